"""
工作流编译服务

对外暴露的全部操作都在这里组合各个编译组件。所有操作都是纯函数，
不做 I/O，不修改输入。
"""
from typing import Dict, Any, List, Optional, Mapping
import re
import logging

from ..models.workflow import WorkflowGraph
from ..models.bindings import AvailableBinding
from ..models.structure import ParsedNodeSpan, MarkerRecord
from ..models.validation import ValidationError
from ..registry.base import NodeTypeRegistry
from ..exceptions import InvalidRequestError, GraphValidationError, BindingConflictError, CodegenError
from ..config import CompilerSettings
from .validator import GraphValidator
from .schema import ConfigSchemaValidator
from .templates import TemplateResolver
from .bindings import BindingAggregator
from .linearizer import Linearizer
from .markers import MarkerProtocol
from .emitter import ForwardEmitter, EmitOptions, to_class_name
from .structure import StructuralParser
from .reverse import ReverseBuilder
from .deploy_config import generate_wrangler_config


logger = logging.getLogger(__name__)

INVALID_TEMPLATE = "InvalidTemplate"
CONFLICTING_BINDING_TYPE = "ConflictingBindingType"


def to_workflow_id(name: str) -> str:
    """工作流名转换为小写连字符形式的部署ID"""
    return re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")


class WorkflowCompiler:
    """工作流编译服务"""

    def __init__(self, registry: NodeTypeRegistry, settings: Optional[CompilerSettings] = None):
        self.registry = registry
        self.settings = settings or CompilerSettings()
        self.protocol = MarkerProtocol()
        self.validator = GraphValidator(registry)
        self.schema_validator = ConfigSchemaValidator(registry)
        self.templates = TemplateResolver(registry)
        self.bindings = BindingAggregator(registry)
        self.linearizer = Linearizer(registry)
        self.emitter = ForwardEmitter(registry, self.protocol)
        self.structure_parser = StructuralParser(self.protocol)
        self.reverse_builder = ReverseBuilder()

    # 正向编译

    def compile(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """
        编译工作流

        Args:
            request: {name, nodes, edges, options?}

        Returns:
            Dict[str, Any]: {tsCode, bindings, wranglerConfig, className, workflowId, status, errors, warnings}
        """
        graph = self._graph_from_request(request)
        options = request.get("options") or {}
        if not isinstance(options, Mapping):
            raise InvalidRequestError("'options' must be an object", "options")
        return self.compile_graph(graph, options)

    def preview(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """预览生成的代码，与 compile 契约相同"""
        return self.compile(request)

    def compile_graph(self, graph: WorkflowGraph, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        options = options or {}
        logger.info(f"Compiling workflow '{graph.name}' with {len(graph.nodes)} nodes")

        self._check_node_types(graph)
        self.check(graph)

        plan = self.linearizer.linearize(graph)
        bindings = self.bindings.aggregate(graph)

        name = options.get("workflowName") or graph.name or self.settings.default_name
        workflow_id = options.get("workflowId") or to_workflow_id(name) or to_workflow_id(self.settings.default_name)
        class_name = options.get("className") or to_class_name(name)

        program = self.emitter.emit(
            graph, plan, bindings,
            EmitOptions(class_name=class_name, indent=self.settings.indent)
        )
        warnings = self.linearizer.find_unlabeled_arms(graph)
        warnings.extend(self.templates.find_forward_references(graph, plan.node_order()))
        for warning in warnings:
            logger.warning(warning["message"])

        logger.info(f"Compiled workflow '{workflow_id}' into class {class_name}")
        return {
            "tsCode": program.ts_code,
            "bindings": [binding.to_dict() for binding in bindings],
            "wranglerConfig": generate_wrangler_config(
                workflow_id, class_name, bindings, self.settings.compatibility_date
            ),
            "className": class_name,
            "workflowId": workflow_id,
            "status": "success",
            "errors": [],
            "warnings": warnings
        }

    def check(self, graph: WorkflowGraph) -> WorkflowGraph:
        """
        编译前的全部检查：图结构、节点配置、模板引用和绑定类型

        有其他问题时，绑定冲突也并入同一个 GraphValidationError；
        只有绑定冲突时抛出 BindingConflictError。
        """
        errors: List[ValidationError] = list(self.validator.validate(graph).errors)
        errors.extend(self.schema_validator.validate_graph(graph))

        template_result = self.templates.validate_workflow_templates(graph)
        for error in template_result["errors"]:
            errors.append(ValidationError(
                code=INVALID_TEMPLATE,
                message=error["message"],
                node_id=error["nodeId"],
                field=error["field"]
            ))

        conflicts = self._binding_conflicts(graph)
        if errors:
            for conflict in conflicts:
                errors.append(ValidationError(
                    code=CONFLICTING_BINDING_TYPE,
                    message=conflict["message"],
                    node_id=conflict["nodes"][1]["nodeId"],
                    field=conflict["name"]
                ))
            raise GraphValidationError(errors)
        if conflicts:
            raise BindingConflictError(conflicts)
        return graph

    def _binding_conflicts(self, graph: WorkflowGraph) -> List[Dict[str, Any]]:
        # 未注册类型没有绑定声明，先剔除
        known = [node for node in graph.nodes if node.type in self.registry]
        try:
            self.bindings.aggregate(WorkflowGraph(name=graph.name, nodes=known, edges=[]))
        except BindingConflictError as e:
            return e.conflicts
        return []

    def validate(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """只做检查，不生成代码"""
        graph = self._graph_from_request(request)
        try:
            self.check(graph)
        except GraphValidationError as e:
            return {"valid": False, "errors": [error.to_dict() for error in e.errors]}
        except BindingConflictError as e:
            return {"valid": False, "errors": e.conflicts}
        return {"valid": True, "errors": []}

    def _check_node_types(self, graph: WorkflowGraph):
        for node in graph.nodes:
            if node.type not in self.registry:
                raise CodegenError(node.id, f"Unknown node type: {node.type}", code="UnknownNodeType")

    # 绑定与模板

    def validate_bindings(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """
        校验所需绑定是否都已存在

        Args:
            request: {workflow: {nodes, edges}, availableBindings?}
        """
        workflow = request.get("workflow")
        if not isinstance(workflow, Mapping):
            raise InvalidRequestError("'workflow' is required", "workflow")

        graph = WorkflowGraph.from_dict(workflow, require_edges=False)
        available = [
            AvailableBinding.from_dict(item)
            for item in request.get("availableBindings") or []
            if isinstance(item, Mapping)
        ]
        return self.bindings.validate_bindings(graph, available)

    def validate_templates(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        graph = WorkflowGraph.from_dict(request, require_edges=False)
        return self.templates.validate_workflow_templates(graph)

    def resolve_workflow(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        graph = WorkflowGraph.from_dict(request, require_edges=False)
        return self.templates.resolve_workflow(graph, self._samples(request))

    def resolve_node(self, node_id: str, request: Mapping[str, Any]) -> Dict[str, Any]:
        workflow = request.get("workflow")
        if workflow is None and "nodes" in request:
            workflow = request
        if not isinstance(workflow, Mapping):
            raise InvalidRequestError("'workflow' is required", "workflow")

        graph = WorkflowGraph.from_dict(workflow, require_edges=False)
        return self.templates.resolve_node(node_id, graph, self._samples(request))

    def suggest_templates(self, text: str, cursor: int, request: Mapping[str, Any]) -> List[Dict[str, str]]:
        graph = WorkflowGraph.from_dict(request, require_edges=False)
        return self.templates.suggest(text, cursor, graph)

    def _samples(self, request: Mapping[str, Any]) -> Mapping[str, Any]:
        samples = request.get("samples")
        if samples is None:
            samples = {}
        if not isinstance(samples, Mapping):
            raise InvalidRequestError("'samples' must be an object", "samples")
        return samples

    # 反向编译与结构解析

    def reverse_codegen(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """从程序文本恢复图骨架"""
        code = request.get("code")
        if not isinstance(code, str) or not code.strip():
            raise InvalidRequestError("'code' is required", "code")

        graph = self.reverse_builder.build(self.structure_parser.parse(code))
        data = graph.to_dict()
        return {"nodes": data["nodes"], "edges": data["edges"]}

    def parse_structure(self, text: str) -> List[ParsedNodeSpan]:
        return self.structure_parser.parse(text)

    def parse_trace(self, text: str) -> List[MarkerRecord]:
        return self.protocol.parse_trace(text)

    def list_node_types(self) -> List[Dict[str, Any]]:
        return [definition.to_dict() for definition in self.registry.list_node_types()]

    def _graph_from_request(self, request: Mapping[str, Any]) -> WorkflowGraph:
        if not isinstance(request, Mapping):
            raise InvalidRequestError("Request body must be an object")
        return WorkflowGraph.from_dict(request, require_edges=True)
