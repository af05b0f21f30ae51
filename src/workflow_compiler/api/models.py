"""
API 请求和响应模型
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# 工作流图

class NodeModel(BaseModel):
    """节点定义，label/config 也可以放在 data 下"""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., description="节点ID")
    type: str = Field(..., description="节点类型")
    label: Optional[str] = Field(None, description="节点名称")
    config: Optional[Dict[str, Any]] = Field(None, description="节点配置")
    data: Optional[Dict[str, Any]] = Field(None, description="编辑器数据")


class EdgeModel(BaseModel):
    """边定义"""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, description="边ID")
    source: str = Field(..., description="源节点ID")
    target: str = Field(..., description="目标节点ID")
    source_handle: Optional[str] = Field(None, alias="sourceHandle", description="源节点出口")
    label: Optional[str] = Field(None, description="边标签")


class WorkflowPayload(BaseModel):
    """工作流图"""
    name: str = Field("", description="工作流名称")
    nodes: List[NodeModel] = Field(..., description="节点列表")
    edges: List[EdgeModel] = Field(default_factory=list, description="边列表")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CompileOptions(BaseModel):
    """编译选项"""
    model_config = ConfigDict(extra="allow")

    workflowName: Optional[str] = Field(None, description="部署使用的工作流名称")
    workflowId: Optional[str] = Field(None, description="工作流ID")
    className: Optional[str] = Field(None, description="生成的类名")


class CompileRequest(BaseModel):
    """编译请求"""
    name: str = Field("", description="工作流名称")
    nodes: List[NodeModel] = Field(..., description="节点列表")
    edges: List[EdgeModel] = Field(..., description="边列表")
    options: Optional[CompileOptions] = Field(None, description="编译选项")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AvailableBindingModel(BaseModel):
    """已有绑定"""
    name: str = Field(..., description="绑定名")
    type: str = Field(..., description="绑定类型")


class ValidateBindingsRequest(BaseModel):
    """绑定校验请求"""
    workflow: WorkflowPayload = Field(..., description="工作流")
    availableBindings: List[AvailableBindingModel] = Field(default_factory=list, description="已有绑定")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidateTemplatesRequest(WorkflowPayload):
    """模板校验请求"""
    pass


class ResolveWorkflowRequest(WorkflowPayload):
    """模板解析请求"""
    samples: Dict[str, Any] = Field(default_factory=dict, description="节点样例 {nodeId: {input, output}}")


class ResolveNodeRequest(BaseModel):
    """单节点模板解析请求"""
    workflow: WorkflowPayload = Field(..., description="工作流")
    samples: Dict[str, Any] = Field(default_factory=dict, description="节点样例 {nodeId: {input, output}}")

    def to_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CodeRequest(BaseModel):
    """程序文本请求"""
    code: str = Field(..., description="程序文本")


# 响应

class SuccessResponse(BaseModel):
    """成功响应"""
    success: bool = Field(True, description="是否成功")
    message: str = Field(..., description="消息")
    data: Optional[Any] = Field(None, description="响应数据")


class ErrorResponse(BaseModel):
    """错误响应"""
    success: bool = Field(False, description="是否成功")
    error: str = Field(..., description="错误类型")
    message: str = Field(..., description="错误信息")
    details: Optional[Dict[str, Any]] = Field(None, description="错误详情")
    request_id: Optional[str] = Field(None, description="请求ID")


class HealthCheckResponse(BaseModel):
    """健康检查响应"""
    status: str = Field(..., description="健康状态", examples=["healthy", "unhealthy"])
    version: str = Field(..., description="版本号")
    timestamp: datetime = Field(default_factory=_utcnow, description="时间戳")
    checks: Dict[str, bool] = Field(default_factory=dict, description="各组件检查结果")
