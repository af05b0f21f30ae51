"""Builtin node type library"""

from ..registry.base import NodeTypeRegistry
from .flow import FLOW_NODE_TYPES
from .network import NETWORK_NODE_TYPES
from .storage import STORAGE_NODE_TYPES
from .utils import UTILITY_NODE_TYPES


BUILTIN_NODE_TYPES = FLOW_NODE_TYPES + NETWORK_NODE_TYPES + STORAGE_NODE_TYPES + UTILITY_NODE_TYPES


def build_default_registry() -> NodeTypeRegistry:
    """构造包含全部内置节点类型的注册表"""
    return NodeTypeRegistry(BUILTIN_NODE_TYPES)


__all__ = ["BUILTIN_NODE_TYPES", "build_default_registry"]
