"""
API 路由器
"""

from . import compiler, monitoring

__all__ = ["compiler", "monitoring"]
