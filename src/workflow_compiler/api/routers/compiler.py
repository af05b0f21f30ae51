"""
编译器 API 路由
"""
from fastapi import APIRouter, Depends
import logging

from ..models import (
    CompileRequest, ValidateBindingsRequest, ValidateTemplatesRequest,
    ResolveWorkflowRequest, ResolveNodeRequest, CodeRequest, SuccessResponse
)
from ..dependencies import get_compiler
from ...core.compiler import WorkflowCompiler


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/compile", response_model=SuccessResponse)
async def compile_workflow(
    request: CompileRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """编译工作流"""
    result = compiler.compile(request.to_request())
    return SuccessResponse(message="Workflow compiled successfully", data=result)


@router.post("/preview", response_model=SuccessResponse)
async def preview_workflow(
    request: CompileRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """预览生成的代码"""
    result = compiler.preview(request.to_request())
    return SuccessResponse(message="Workflow preview generated", data=result)


@router.post("/validate-bindings", response_model=SuccessResponse)
async def validate_bindings(
    request: ValidateBindingsRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """校验所需绑定"""
    result = compiler.validate_bindings(request.to_request())
    message = "All required bindings are available" if result["valid"] else (
        f"{len(result['missing'])} required binding(s) missing"
    )
    return SuccessResponse(message=message, data=result)


@router.post("/validate-templates", response_model=SuccessResponse)
async def validate_templates(
    request: ValidateTemplatesRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """校验模板引用"""
    result = compiler.validate_templates(request.to_request())
    message = "Templates are valid" if result["valid"] else (
        f"{len(result['errors'])} template error(s) found"
    )
    return SuccessResponse(message=message, data=result)


@router.post("/resolve-workflow", response_model=SuccessResponse)
async def resolve_workflow(
    request: ResolveWorkflowRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """用样例数据解析所有节点的模板"""
    result = compiler.resolve_workflow(request.to_request())
    return SuccessResponse(message="Workflow templates resolved", data=result)


@router.post("/resolve-node/{node_id}", response_model=SuccessResponse)
async def resolve_node(
    node_id: str,
    request: ResolveNodeRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """用样例数据解析单个节点的模板"""
    result = compiler.resolve_node(node_id, request.to_request())
    return SuccessResponse(message=f"Node {node_id} templates resolved", data=result)


@router.post("/reverse-codegen", response_model=SuccessResponse)
async def reverse_codegen(
    request: CodeRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """从程序文本恢复工作流骨架"""
    result = compiler.reverse_codegen({"code": request.code})
    return SuccessResponse(message=f"Recovered {len(result['nodes'])} node(s)", data=result)


@router.post("/parse-structure", response_model=SuccessResponse)
async def parse_structure(
    request: CodeRequest,
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """解析程序文本中的节点行区间"""
    spans = compiler.parse_structure(request.code)
    return SuccessResponse(
        message=f"Found {len(spans)} node span(s)",
        data={"spans": [span.to_dict() for span in spans]}
    )


@router.get("/node-types", response_model=SuccessResponse)
async def list_node_types(
    compiler: WorkflowCompiler = Depends(get_compiler)
) -> SuccessResponse:
    """列出已注册的节点类型"""
    node_types = compiler.list_node_types()
    return SuccessResponse(message=f"{len(node_types)} node types registered", data={"nodeTypes": node_types})
