"""
外部资源绑定模型
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Mapping
from enum import Enum
import re


class BindingType(str, Enum):
    """绑定类型"""
    KV_NAMESPACE = "kv_namespace"
    D1_DATABASE = "d1_database"
    R2_BUCKET = "r2_bucket"
    AI = "ai"
    SERVICE = "service"
    DURABLE_OBJECT = "durable_object"


@dataclass(frozen=True)
class BindingRequirement:
    """节点类型声明的单个绑定需求"""
    name: str
    type: str
    usage_detail: str = ""


@dataclass(frozen=True)
class BindingUsage:
    """绑定的使用方"""
    node_id: str
    node_type: str
    usage_detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeType": self.node_type,
            "usageDetail": self.usage_detail
        }


@dataclass(frozen=True)
class ResolvedBinding:
    """合并后的绑定"""
    name: str
    type: str
    required_by: List[BindingUsage] = field(default_factory=list)

    @property
    def key(self):
        return (self.name, self.type)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "name": self.name,
            "type": self.type,
            "requiredBy": [usage.to_dict() for usage in self.required_by]
        }


@dataclass(frozen=True)
class AvailableBinding:
    """部署环境中已存在的绑定"""
    name: str
    type: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AvailableBinding":
        return cls(name=str(data.get("name", "")), type=str(data.get("type", "")))

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}


def sanitize_binding_name(name: str) -> str:
    """绑定名只保留 [A-Za-z0-9_]，不能以数字开头"""
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", str(name or ""))
    if not cleaned:
        return ""
    if cleaned[0].isdigit():
        cleaned = f"_{cleaned}"
    return cleaned
