"""
图校验结果模型
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

from .workflow import WorkflowGraph


@dataclass(frozen=True)
class ValidationError:
    """单条校验错误"""
    code: str
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"code": self.code, "message": self.message}
        if self.node_id is not None:
            data["nodeId"] = self.node_id
        if self.edge_id is not None:
            data["edgeId"] = self.edge_id
        if self.field is not None:
            data["field"] = self.field
        return data


@dataclass(frozen=True)
class ValidationResult:
    """校验结果，ok 为 True 时 errors 为空"""
    ok: bool
    graph: WorkflowGraph
    errors: List[ValidationError] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.ok, "errors": [error.to_dict() for error in self.errors]}
