"""
FastAPI 依赖注入
"""
from fastapi import HTTPException, status
import logging

from ..core.compiler import WorkflowCompiler


logger = logging.getLogger(__name__)


def get_compiler() -> WorkflowCompiler:
    """获取编译服务实例"""
    from .app import get_app_state

    compiler = get_app_state().get("compiler")
    if not compiler:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error": "service_unavailable",
                "message": "Workflow compiler not initialized"
            }
        )

    return compiler
