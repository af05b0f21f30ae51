"""Compiler core components"""

from .validator import GraphValidator, ErrorCode
from .schema import ConfigSchemaValidator
from .templates import TemplateResolver, segment, parse_reference
from .bindings import BindingAggregator
from .linearizer import Linearizer
from .markers import MarkerProtocol
from .emitter import ForwardEmitter, EmitOptions, EmittedProgram
from .structure import StructuralParser
from .reverse import ReverseBuilder
from .loader import WorkflowLoader
from .compiler import WorkflowCompiler

__all__ = [
    "GraphValidator",
    "ErrorCode",
    "ConfigSchemaValidator",
    "TemplateResolver",
    "segment",
    "parse_reference",
    "BindingAggregator",
    "Linearizer",
    "MarkerProtocol",
    "ForwardEmitter",
    "EmitOptions",
    "EmittedProgram",
    "StructuralParser",
    "ReverseBuilder",
    "WorkflowLoader",
    "WorkflowCompiler"
]
