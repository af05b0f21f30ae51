"""
工作流编译器异常定义
"""
from typing import Optional, Dict, Any, List


class WorkflowCompilerError(Exception):
    """工作流编译器基础异常"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


class InvalidRequestError(WorkflowCompilerError):
    """请求格式异常"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {}
        if field:
            details["field"] = field
        super().__init__(message, details)
        self.field = field


class WorkflowParseError(InvalidRequestError):
    """工作流文件解析异常"""
    pass


class GraphValidationError(WorkflowCompilerError):
    """图结构验证异常，携带全部收集到的问题"""

    def __init__(self, errors: List[Any]):
        self.errors = list(errors)
        codes = sorted({error.code for error in self.errors})
        super().__init__(
            f"Workflow validation failed with {len(self.errors)} error(s): {', '.join(codes)}",
            {"errors": [error.to_dict() for error in self.errors]}
        )


class BindingConflictError(WorkflowCompilerError):
    """绑定类型冲突异常"""

    def __init__(self, conflicts: List[Dict[str, Any]]):
        self.conflicts = list(conflicts)
        names = ", ".join(conflict["name"] for conflict in self.conflicts)
        super().__init__(
            f"Conflicting binding types for: {names}",
            {"code": "ConflictingBindingType", "conflicts": self.conflicts}
        )


class TemplateSyntaxError(WorkflowCompilerError):
    """模板表达式语法异常"""

    def __init__(self, token: str, reason: str):
        self.token = token
        super().__init__(
            f"Invalid template expression '{token}': {reason}",
            {"token": token}
        )


class TemplateResolutionError(WorkflowCompilerError):
    """模板引用解析异常"""

    UNKNOWN_NODE = "UnknownNode"
    UNKNOWN_PATH = "UnknownPath"

    def __init__(self, kind: str, ref_node_id: str, message: str, path: Optional[List[str]] = None):
        self.kind = kind
        self.ref_node_id = ref_node_id
        self.path = list(path or [])
        super().__init__(
            message,
            {"kind": kind, "refNodeId": ref_node_id, "path": self.path}
        )


class NodeNotFoundError(WorkflowCompilerError):
    """节点未找到异常"""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}", {"nodeId": node_id})


class UnknownNodeTypeError(WorkflowCompilerError):
    """未注册的节点类型"""

    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"Unknown node type: {node_type}", {"nodeType": node_type})


class CodegenError(WorkflowCompilerError):
    """代码生成异常，整个编译中止"""

    def __init__(self, node_id: str, message: str, code: str = "CompilationError",
                 cause: Optional[Exception] = None):
        self.node_id = node_id
        self.code = code
        self.cause = cause
        details = {"code": code, "nodeId": node_id}
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(f"Codegen failed for node '{node_id}': {message}", details)


class EmptyProgramError(WorkflowCompilerError):
    """反向编译时未找到任何节点标记"""

    def __init__(self):
        super().__init__(
            "No workflow node markers found in program text",
            {"code": "EmptyProgram"}
        )
