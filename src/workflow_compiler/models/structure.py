"""
诊断标记与结构区间模型
"""
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from enum import Enum


class MarkerKind(str, Enum):
    """标记类型"""
    WF_START = "WF_START"
    WF_NODE_START = "WF_NODE_START"
    WF_NODE_END = "WF_NODE_END"
    WF_NODE_ERROR = "WF_NODE_ERROR"
    WF_END = "WF_END"


@dataclass(frozen=True)
class MarkerRecord:
    """
    诊断记录

    程序文本中只包含结构字段（type/nodeId/nodeLabel/nodeType/success），
    timestamp、instanceId、payload、error、results 由运行时补充。
    """
    kind: MarkerKind
    node_id: Optional[str] = None
    node_label: Optional[str] = None
    node_type: Optional[str] = None
    success: Optional[bool] = None
    instance_id: Optional[str] = None
    timestamp: Optional[int] = None
    payload: Any = None
    error: Optional[str] = None
    results: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_node_start(self) -> bool:
        return self.kind == MarkerKind.WF_NODE_START

    @property
    def is_node_close(self) -> bool:
        return self.kind in (MarkerKind.WF_NODE_END, MarkerKind.WF_NODE_ERROR)


@dataclass(frozen=True)
class ParsedNodeSpan:
    """程序文本中归属于某个节点的行区间（行号从1开始）"""
    node_id: str
    node_label: str
    node_type: str
    start_line: int
    end_line: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeLabel": self.node_label,
            "nodeType": self.node_type,
            "startLine": self.start_line,
            "endLine": self.end_line
        }
