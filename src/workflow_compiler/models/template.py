"""
模板表达式模型
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional


INPUT_ACCESSOR = "input"
OUTPUT_ACCESSOR = "output"


@dataclass(frozen=True)
class TemplateReference:
    """单个 {{...}} 表达式的解析结果"""
    ref_node_id: str
    accessor: str = OUTPUT_ACCESSOR
    path: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "refNodeId": self.ref_node_id,
            "accessor": self.accessor,
            "path": list(self.path)
        }


@dataclass(frozen=True)
class TextSegment:
    """字面文本片段"""
    content: str
    start: int
    end: int
    type: str = "text"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "content": self.content, "start": self.start, "end": self.end}


@dataclass(frozen=True)
class TemplateSegment:
    """模板片段，content 保留原始 {{...}} 文本"""
    content: str
    start: int
    end: int
    expression: str = ""
    type: str = "template"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "content": self.content,
            "start": self.start,
            "end": self.end,
            "expression": self.expression
        }


@dataclass(frozen=True)
class TemplateFieldError:
    """模板校验错误，定位到节点的配置字段"""
    node_id: str
    field: str
    message: str
    expression: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"nodeId": self.node_id, "field": self.field, "message": self.message}
        if self.expression is not None:
            data["expression"] = self.expression
        return data
