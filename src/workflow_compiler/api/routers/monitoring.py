"""
监控 API 路由
"""
from fastapi import APIRouter
import logging

from ..models import HealthCheckResponse
from ... import __version__


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """健康检查"""
    from ..app import get_app_state

    app_state = get_app_state()
    registry = app_state.get("registry")
    checks = {
        "compiler": app_state.get("compiler") is not None,
        "registry": registry is not None and len(registry) > 0
    }

    return HealthCheckResponse(
        status="healthy" if all(checks.values()) else "unhealthy",
        version=__version__,
        checks=checks
    )
