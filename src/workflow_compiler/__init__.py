"""
Workflow Graph Compiler - 工作流图编译器
"""

__version__ = "0.1.0"

from .core.compiler import WorkflowCompiler
from .core.loader import WorkflowLoader
from .config import CompilerSettings
from .node_types import build_default_registry
from .registry import NodeTypeRegistry, NodeTypeDefinition
from .models.workflow import WorkflowGraph, NodeInstance, EdgeInstance

__all__ = [
    "WorkflowCompiler",
    "WorkflowLoader",
    "CompilerSettings",
    "build_default_registry",
    "NodeTypeRegistry",
    "NodeTypeDefinition",
    "WorkflowGraph",
    "NodeInstance",
    "EdgeInstance"
]
