"""Workflow graph, plan and marker models"""

from .workflow import NodeInstance, EdgeInstance, WorkflowGraph
from .bindings import (
    BindingType, BindingRequirement, BindingUsage, ResolvedBinding, AvailableBinding,
    sanitize_binding_name
)
from .plan import PlanEntry, PlanEntryKind, BranchArm, ExecutionPlan
from .template import (
    TemplateReference, TextSegment, TemplateSegment, TemplateFieldError,
    INPUT_ACCESSOR, OUTPUT_ACCESSOR
)
from .structure import MarkerKind, MarkerRecord, ParsedNodeSpan
from .validation import ValidationError, ValidationResult

__all__ = [
    "NodeInstance",
    "EdgeInstance",
    "WorkflowGraph",
    "BindingType",
    "BindingRequirement",
    "BindingUsage",
    "ResolvedBinding",
    "AvailableBinding",
    "sanitize_binding_name",
    "PlanEntry",
    "PlanEntryKind",
    "BranchArm",
    "ExecutionPlan",
    "TemplateReference",
    "TextSegment",
    "TemplateSegment",
    "TemplateFieldError",
    "INPUT_ACCESSOR",
    "OUTPUT_ACCESSOR",
    "MarkerKind",
    "MarkerRecord",
    "ParsedNodeSpan",
    "ValidationError",
    "ValidationResult"
]
