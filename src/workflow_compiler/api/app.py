"""
FastAPI 应用主文件
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from typing import Dict, Any

from .. import __version__
from ..config import CompilerSettings
from ..core.compiler import WorkflowCompiler
from ..node_types import build_default_registry
from ..exceptions import (
    WorkflowCompilerError, InvalidRequestError, GraphValidationError, BindingConflictError,
    NodeNotFoundError, UnknownNodeTypeError, CodegenError, EmptyProgramError
)
from .middleware import RequestLoggingMiddleware
from .routers import compiler, monitoring


logger = logging.getLogger(__name__)


# 全局实例
app_state: Dict[str, Any] = {}

# 异常类型 -> (HTTP 状态码, 错误类型)
ERROR_STATUS = [
    (GraphValidationError, status.HTTP_400_BAD_REQUEST, "validation_error"),
    (BindingConflictError, status.HTTP_400_BAD_REQUEST, "binding_conflict"),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST, "invalid_request"),
    (UnknownNodeTypeError, status.HTTP_400_BAD_REQUEST, "invalid_request"),
    (NodeNotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (CodegenError, 422, "compilation_error"),
    (EmptyProgramError, 422, "compilation_error"),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting Workflow Compiler API...")

    settings = CompilerSettings.from_env()
    registry = build_default_registry()
    app_state.update({
        "settings": settings,
        "registry": registry,
        "compiler": WorkflowCompiler(registry, settings)
    })

    logger.info(f"Workflow Compiler API started with {len(registry)} node types")

    yield

    logger.info("Shutting down Workflow Compiler API...")
    app_state.clear()


# 创建FastAPI应用
app = FastAPI(
    title="Workflow Graph Compiler API",
    description="工作流图编译器 RESTful API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

# 注册路由
app.include_router(compiler.router, prefix="/api/v1/compiler", tags=["compiler"])
app.include_router(monitoring.router, tags=["monitoring"])


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


@app.exception_handler(WorkflowCompilerError)
async def compiler_exception_handler(request: Request, exc: WorkflowCompilerError):
    """编译器异常处理器"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type = "internal_server_error"
    for error_class, code, name in ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code, error_type = code, name
            break

    if status_code >= 500:
        logger.error(f"Compiler error: {exc.message}", exc_info=True)
    else:
        logger.info(f"Request rejected: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": error_type,
            "message": exc.message,
            "details": exc.details,
            "request_id": _request_id(request)
        }
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """请求体校验失败统一返回 400"""
    errors = [
        {"field": ".".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "invalid_request",
            "message": "Request validation failed",
            "details": {"errors": errors},
            "request_id": _request_id(request)
        }
    )


# 全局异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """全局异常处理器"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_server_error",
            "message": "An unexpected error occurred",
            "request_id": _request_id(request)
        }
    )


# 根路径
@app.get("/", tags=["root"])
async def root():
    """API根路径"""
    return {
        "name": "Workflow Graph Compiler API",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


def get_app_state() -> Dict[str, Any]:
    """获取应用状态"""
    return app_state
