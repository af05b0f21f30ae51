"""Node type registry"""

from .base import (
    NodeTypeRegistry, NodeTypeDefinition, CodegenContext, Port, NodeRole, ControlKind
)

__all__ = [
    "NodeTypeRegistry",
    "NodeTypeDefinition",
    "CodegenContext",
    "Port",
    "NodeRole",
    "ControlKind"
]
