"""
工作流图定义模型
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Mapping

from ..exceptions import InvalidRequestError


@dataclass(frozen=True)
class NodeInstance:
    """工作流节点"""
    id: str
    type: str
    label: str = ""
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_label(self) -> str:
        """节点显示名称，缺省为节点类型"""
        return self.label or self.type

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NodeInstance":
        """从编辑器格式构造节点"""
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Each node must be an object", "nodes")

        node_id = data.get("id")
        if not isinstance(node_id, str) or not node_id:
            raise InvalidRequestError("All nodes must have a string id", "nodes.id")

        node_type = data.get("type")
        if not isinstance(node_type, str) or not node_type:
            raise InvalidRequestError(f"Node '{node_id}' is missing its type", "nodes.type")

        # 编辑器把 label/config 放在 data 下
        extra = data.get("data") or {}
        config = data.get("config")
        if config is None and isinstance(extra, Mapping):
            config = extra.get("config")
        if config is None:
            config = {}
        if not isinstance(config, Mapping):
            raise InvalidRequestError(f"Node '{node_id}' config must be an object", "nodes.config")

        label = data.get("label")
        if not label and isinstance(extra, Mapping):
            label = extra.get("label")

        return cls(
            id=node_id,
            type=node_type,
            label=str(label) if label else node_type,
            config=dict(config)
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "config": dict(self.config)
        }


@dataclass(frozen=True)
class EdgeInstance:
    """工作流边"""
    id: str
    source: str
    target: str
    source_handle: Optional[str] = None  # 分支出口
    label: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EdgeInstance":
        """从编辑器格式构造边"""
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Each edge must be an object", "edges")

        source = data.get("source", data.get("from"))
        target = data.get("target", data.get("to"))
        if not isinstance(source, str) or not isinstance(target, str):
            raise InvalidRequestError("Edges must have string source and target", "edges")

        return cls(
            id=str(data.get("id") or f"{source}-{target}"),
            source=source,
            target=target,
            source_handle=data.get("sourceHandle"),
            label=data.get("label")
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        data = {"id": self.id, "source": self.source, "target": self.target}
        if self.source_handle:
            data["sourceHandle"] = self.source_handle
        if self.label:
            data["label"] = self.label
        return data


@dataclass(frozen=True)
class WorkflowGraph:
    """工作流图"""
    name: str = ""
    nodes: List[NodeInstance] = field(default_factory=list)
    edges: List[EdgeInstance] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], require_edges: bool = True) -> "WorkflowGraph":
        """
        从请求数据构造工作流图

        Args:
            data: 包含 name/nodes/edges 的字典
            require_edges: 是否要求 edges 字段必须存在

        Returns:
            WorkflowGraph: 工作流图
        """
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Workflow must be an object", "workflow")

        nodes_data = data.get("nodes")
        if not isinstance(nodes_data, list):
            raise InvalidRequestError("'nodes' must be an array", "nodes")

        edges_data = data.get("edges")
        if edges_data is None and not require_edges:
            edges_data = []
        if not isinstance(edges_data, list):
            raise InvalidRequestError("'edges' must be an array", "edges")

        return cls(
            name=str(data.get("name") or ""),
            nodes=[NodeInstance.from_dict(node) for node in nodes_data],
            edges=[EdgeInstance.from_dict(edge) for edge in edges_data]
        )

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "name": self.name,
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges]
        }

    def get_node(self, node_id: str) -> Optional[NodeInstance]:
        """根据ID获取节点"""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return any(node.id == node_id for node in self.nodes)

    def out_edges(self, node_id: str) -> List[EdgeInstance]:
        """按边数组顺序返回出边"""
        return [edge for edge in self.edges if edge.source == node_id]

    def in_edges(self, node_id: str) -> List[EdgeInstance]:
        """按边数组顺序返回入边"""
        return [edge for edge in self.edges if edge.target == node_id]

    def first_upstream(self, node_id: str) -> Optional[str]:
        """第一个上游节点ID，决定节点的默认输入"""
        incoming = self.in_edges(node_id)
        return incoming[0].source if incoming else None
