"""
部署清单生成
"""
from typing import Dict, Any, List
import json

from ..models.bindings import ResolvedBinding, BindingType
from .emitter import workflow_binding_name
from ..config import DEFAULT_COMPATIBILITY_DATE


def wrangler_bindings(bindings: List[ResolvedBinding]) -> Dict[str, Any]:
    """按绑定类型生成部署配置的各个段落，资源ID在部署时填写"""
    sections: Dict[str, Any] = {}
    for binding in bindings:
        if binding.type == BindingType.KV_NAMESPACE.value:
            sections.setdefault("kv_namespaces", []).append(
                {"binding": binding.name, "id": "", "preview_id": ""}
            )
        elif binding.type == BindingType.D1_DATABASE.value:
            sections.setdefault("d1_databases", []).append(
                {"binding": binding.name, "database_name": binding.name, "database_id": ""}
            )
        elif binding.type == BindingType.R2_BUCKET.value:
            sections.setdefault("r2_buckets", []).append(
                {"binding": binding.name, "bucket_name": binding.name}
            )
        elif binding.type == BindingType.AI.value:
            sections["ai"] = {"binding": binding.name}
        elif binding.type == BindingType.SERVICE.value:
            sections.setdefault("services", []).append(
                {"binding": binding.name, "service": binding.name}
            )
        elif binding.type == BindingType.DURABLE_OBJECT.value:
            sections.setdefault("durable_objects", {"bindings": []})["bindings"].append(
                {"name": binding.name, "class_name": binding.name, "script_name": binding.name}
            )
    return sections


def generate_wrangler_config(workflow_id: str, class_name: str, bindings: List[ResolvedBinding],
                             compatibility_date: str = DEFAULT_COMPATIBILITY_DATE) -> str:
    """
    生成部署清单

    Returns:
        str: 缩进两格的 JSON 文本
    """
    config: Dict[str, Any] = {
        "name": f"{workflow_id}-worker",
        "main": "src/index.ts",
        "compatibility_date": compatibility_date,
        "workflows": [{
            "name": workflow_id,
            "binding": workflow_binding_name(class_name),
            "class_name": class_name
        }]
    }
    config.update(wrangler_bindings(bindings))
    return json.dumps(config, indent=2)
