"""
绑定聚合器

按节点数组顺序收集每个节点声明的绑定需求，按名称合并。
"""
from typing import List, Dict, Any, Iterable
import logging

from ..models.workflow import WorkflowGraph
from ..models.bindings import BindingUsage, ResolvedBinding, AvailableBinding
from ..registry.base import NodeTypeRegistry
from ..exceptions import BindingConflictError


logger = logging.getLogger(__name__)


class BindingAggregator:
    """绑定聚合器"""

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry

    def aggregate(self, graph: WorkflowGraph) -> List[ResolvedBinding]:
        """
        聚合工作流所需的绑定

        同名不同类型的绑定是冲突；收集全部冲突后一起抛出 BindingConflictError。

        Returns:
            List[ResolvedBinding]: 按首次出现顺序排列的绑定
        """
        merged: Dict[str, Dict[str, Any]] = {}
        conflicts: Dict[str, Dict[str, Any]] = {}

        for node in graph.nodes:
            definition = self.registry.get_node_type(node.type)
            for requirement in definition.required_bindings(node.config):
                usage = BindingUsage(node.id, node.type, requirement.usage_detail)
                current = merged.get(requirement.name)

                if current is None:
                    merged[requirement.name] = {"type": requirement.type, "usages": [usage]}
                    continue

                if current["type"] != requirement.type:
                    conflict = conflicts.setdefault(requirement.name, {
                        "code": "ConflictingBindingType",
                        "name": requirement.name,
                        "nodes": [
                            {"nodeId": current["usages"][0].node_id, "type": current["type"]}
                        ]
                    })
                    conflict["nodes"].append({"nodeId": node.id, "type": requirement.type})
                    continue

                current["usages"].append(usage)

        if conflicts:
            logger.warning(f"Binding conflicts detected: {', '.join(conflicts)}")
            for conflict in conflicts.values():
                node_ids = [item["nodeId"] for item in conflict["nodes"]]
                conflict["message"] = (
                    f"Binding '{conflict['name']}' is required with different types "
                    f"by nodes {', '.join(node_ids)}"
                )
            raise BindingConflictError(list(conflicts.values()))

        return [
            ResolvedBinding(name=name, type=entry["type"], required_by=entry["usages"])
            for name, entry in merged.items()
        ]

    def validate_bindings(self, graph: WorkflowGraph,
                          available: Iterable[AvailableBinding]) -> Dict[str, Any]:
        """
        比较所需绑定与部署环境中已有的绑定

        按 (name, type) 比较，missing = required - available。
        """
        required = self.aggregate(graph)
        available = list(available)
        available_keys = {(binding.name, binding.type) for binding in available}
        missing = [binding for binding in required if binding.key not in available_keys]

        return {
            "required": [binding.to_dict() for binding in required],
            "available": [binding.to_dict() for binding in available],
            "missing": [binding.to_dict() for binding in missing],
            "valid": not missing
        }
