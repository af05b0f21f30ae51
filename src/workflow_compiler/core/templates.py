"""
模板解析器

模板语法：{{ [state.]nodeId(.segment)* }}。第二段为 input 时表示节点输入，
为 output 时显式指定节点输出，其余情况默认访问节点输出。
"""
from typing import Dict, Any, List, Optional, Iterator, Tuple, Mapping, Union, Set
import json
import re
import logging

from ..models.workflow import WorkflowGraph, NodeInstance
from ..models.template import (
    TemplateReference, TextSegment, TemplateSegment, TemplateFieldError,
    INPUT_ACCESSOR, OUTPUT_ACCESSOR
)
from ..registry.base import NodeTypeRegistry
from ..exceptions import TemplateSyntaxError, TemplateResolutionError, NodeNotFoundError


logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
REFERENCE_PATTERN = re.compile(
    r"^\s*(?:state\.)?([A-Za-z0-9_][A-Za-z0-9_-]*)((?:\.[A-Za-z_][A-Za-z0-9_]*)*)\s*$"
)
MAX_SUGGESTIONS = 15

Segment = Union[TextSegment, TemplateSegment]


def segment(value: str) -> List[Segment]:
    """把字符串切分为文本片段和模板片段，保留原始顺序和偏移"""
    segments: List[Segment] = []
    last_index = 0
    for match in TEMPLATE_PATTERN.finditer(value):
        if match.start() > last_index:
            segments.append(TextSegment(value[last_index:match.start()], last_index, match.start()))
        segments.append(TemplateSegment(match.group(0), match.start(), match.end(), match.group(1).strip()))
        last_index = match.end()
    if last_index < len(value):
        segments.append(TextSegment(value[last_index:], last_index, len(value)))
    return segments


def parse_reference(token: str) -> TemplateReference:
    """
    解析单个模板表达式

    Args:
        token: "{{...}}" 或其中的表达式

    Returns:
        TemplateReference: 引用
    """
    expression = token
    match = TEMPLATE_PATTERN.fullmatch(token.strip())
    if match:
        expression = match.group(1)

    parsed = REFERENCE_PATTERN.match(expression)
    if not parsed:
        raise TemplateSyntaxError(token, "expected {{[state.]nodeId(.segment)*}}")

    node_id = parsed.group(1)
    path = [part for part in parsed.group(2).split(".") if part]
    accessor = OUTPUT_ACCESSOR
    if path and path[0] in (INPUT_ACCESSOR, OUTPUT_ACCESSOR):
        accessor = path.pop(0)

    return TemplateReference(ref_node_id=node_id, accessor=accessor, path=path)


def is_whole_template(value: Any) -> bool:
    """整个值是否恰好是一个模板"""
    return isinstance(value, str) and TEMPLATE_PATTERN.fullmatch(value) is not None


def iter_string_fields(value: Any, prefix: str = "") -> Iterator[Tuple[str, str]]:
    """遍历配置中所有字符串叶子，返回 (字段路径, 字符串)"""
    if isinstance(value, str):
        yield prefix, value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            yield from iter_string_fields(item, f"{prefix}.{key}" if prefix else str(key))
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_string_fields(item, f"{prefix}[{index}]")


class TemplateResolver:
    """模板引用的解析、校验与样例求值"""

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry

    # 引用收集与校验

    def node_references(self, node: NodeInstance) -> Iterator[Tuple[str, str, Union[TemplateReference, TemplateSyntaxError]]]:
        """遍历节点配置中的模板，返回 (字段, 原始 token, 引用或语法错误)"""
        for field, text in iter_string_fields(node.config):
            for match in TEMPLATE_PATTERN.finditer(text):
                token = match.group(0)
                try:
                    yield field, token, parse_reference(token)
                except TemplateSyntaxError as e:
                    yield field, token, e

    def validate_workflow_templates(self, graph: WorkflowGraph) -> Dict[str, Any]:
        """
        校验工作流中的全部模板引用

        只检查语法以及被引用节点是否存在，不检查执行顺序。收集全部错误后返回。
        """
        errors: List[TemplateFieldError] = []
        references: List[Dict[str, Any]] = []

        for node in graph.nodes:
            for field, token, result in self.node_references(node):
                if isinstance(result, TemplateSyntaxError):
                    errors.append(TemplateFieldError(node.id, field, result.message, token))
                    continue

                references.append({
                    "nodeId": node.id,
                    "field": field,
                    "expression": token,
                    **result.to_dict()
                })
                if not graph.has_node(result.ref_node_id):
                    errors.append(TemplateFieldError(
                        node.id, field,
                        f"Referenced node '{result.ref_node_id}' does not exist",
                        token
                    ))

        if errors:
            logger.info(f"Template validation found {len(errors)} error(s)")

        return {
            "valid": not errors,
            "errors": [error.to_dict() for error in errors],
            "references": references
        }

    def find_forward_references(self, graph: WorkflowGraph, order: List[str]) -> List[Dict[str, Any]]:
        """
        查找引用了执行顺序上尚未执行节点的模板

        这类引用合法，运行时回退到触发载荷，只作为警告返回。
        """
        position = {node_id: index for index, node_id in enumerate(order)}
        warnings: List[Dict[str, Any]] = []
        for node in graph.nodes:
            own = position.get(node.id)
            for field, token, result in self.node_references(node):
                if isinstance(result, TemplateSyntaxError):
                    continue
                ref = position.get(result.ref_node_id)
                if own is None or ref is None or ref >= own:
                    warnings.append({
                        "code": "ForwardReference",
                        "nodeId": node.id,
                        "field": field,
                        "expression": token,
                        "message": (
                            f"Node '{node.id}' references '{result.ref_node_id}' "
                            f"which has not executed yet; the trigger payload is used instead"
                        )
                    })
        return warnings

    # 样例求值

    def sample_record(self, node_id: str, graph: WorkflowGraph,
                      samples: Optional[Mapping[str, Any]] = None,
                      _visiting: Optional[Set[str]] = None) -> Dict[str, Any]:
        """
        节点的样例 {input, output}

        捕获的样例优先于注册表的 preset_output；样例输入取第一个上游节点的样例输出。
        """
        samples = samples or {}
        visiting = _visiting if _visiting is not None else set()
        visiting.add(node_id)

        captured = samples.get(node_id)
        if isinstance(captured, Mapping) and (INPUT_ACCESSOR in captured or OUTPUT_ACCESSOR in captured):
            record = {INPUT_ACCESSOR: captured.get(INPUT_ACCESSOR), OUTPUT_ACCESSOR: captured.get(OUTPUT_ACCESSOR)}
            if INPUT_ACCESSOR in captured:
                return record
        else:
            node = graph.get_node(node_id)
            definition = self.registry.find(node.type) if node else None
            output = captured if captured is not None else (definition.preset_output if definition else None)
            record = {INPUT_ACCESSOR: None, OUTPUT_ACCESSOR: output}

        upstream = graph.first_upstream(node_id)
        if upstream is not None and upstream not in visiting:
            record[INPUT_ACCESSOR] = self.sample_record(upstream, graph, samples, visiting)[OUTPUT_ACCESSOR]
        return record

    def resolve_reference(self, ref: TemplateReference, graph: WorkflowGraph,
                          samples: Optional[Mapping[str, Any]] = None) -> Any:
        """求出引用在样例数据上的值"""
        if not graph.has_node(ref.ref_node_id):
            raise TemplateResolutionError(
                TemplateResolutionError.UNKNOWN_NODE, ref.ref_node_id,
                f"Referenced node '{ref.ref_node_id}' does not exist"
            )

        value = self.sample_record(ref.ref_node_id, graph, samples)[ref.accessor]
        walked: List[str] = []
        for key in ref.path:
            walked.append(key)
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                raise TemplateResolutionError(
                    TemplateResolutionError.UNKNOWN_PATH, ref.ref_node_id,
                    f"Path '{'.'.join(walked)}' not found in {ref.accessor} of node '{ref.ref_node_id}'",
                    ref.path
                )
        return value

    def resolve_value(self, value: Any, graph: WorkflowGraph, samples: Optional[Mapping[str, Any]],
                      node_id: str, field: str, errors: List[TemplateFieldError]) -> Any:
        """
        递归解析配置值

        整值模板得到原始类型的值；嵌入文本的模板做字符串插值，非字符串按 JSON 编码。
        无法解析的 token 原样保留并记录错误。
        """
        if isinstance(value, Mapping):
            return {
                key: self.resolve_value(item, graph, samples, node_id, f"{field}.{key}" if field else str(key), errors)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [
                self.resolve_value(item, graph, samples, node_id, f"{field}[{index}]", errors)
                for index, item in enumerate(value)
            ]
        if not isinstance(value, str) or "{{" not in value:
            return value

        if is_whole_template(value):
            try:
                return self.resolve_reference(parse_reference(value), graph, samples)
            except (TemplateSyntaxError, TemplateResolutionError) as e:
                errors.append(TemplateFieldError(node_id, field, e.message, value))
                return value

        parts: List[str] = []
        for piece in segment(value):
            if isinstance(piece, TextSegment):
                parts.append(piece.content)
                continue
            try:
                resolved = self.resolve_reference(parse_reference(piece.content), graph, samples)
            except (TemplateSyntaxError, TemplateResolutionError) as e:
                errors.append(TemplateFieldError(node_id, field, e.message, piece.content))
                parts.append(piece.content)
                continue
            parts.append(resolved if isinstance(resolved, str) else json.dumps(resolved))
        return "".join(parts)

    def resolve_node(self, node_id: str, graph: WorkflowGraph,
                     samples: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """解析单个节点的配置"""
        node = graph.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)

        errors: List[TemplateFieldError] = []
        resolved = self.resolve_value(dict(node.config), graph, samples, node.id, "", errors)
        result = {"id": node.id, "resolvedConfig": resolved}
        if errors:
            result["errors"] = [error.to_dict() for error in errors]
        return result

    def resolve_workflow(self, graph: WorkflowGraph,
                         samples: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """解析工作流中每个节点的配置"""
        return {"nodes": [self.resolve_node(node.id, graph, samples) for node in graph.nodes]}

    # 编辑器自动补全

    def suggest(self, text: str, cursor: int, graph: WorkflowGraph) -> List[Dict[str, str]]:
        """
        为光标处未闭合的 {{... 生成补全建议

        依次补全节点ID、output/input 访问器以及输出端口和 preset_output 的字段。
        """
        before = text[:cursor]
        last_open = before.rfind("{{")
        last_close = before.rfind("}}")
        if last_open == -1 or last_close > last_open:
            return []

        partial = before[last_open + 2:].strip()
        if partial.startswith("state."):
            partial = partial[len("state."):]
        parts = partial.split(".") if partial else []

        suggestions: List[Dict[str, str]] = []
        if len(parts) <= 1:
            prefix = parts[0].lower() if parts else ""
            for node in graph.nodes:
                if not prefix or node.id.lower().startswith(prefix) or prefix in node.display_label.lower():
                    suggestions.append({
                        "value": f"{{{{state.{node.id}.output}}}}",
                        "display": f"state.{node.display_label}.output"
                    })
            return suggestions[:MAX_SUGGESTIONS]

        node = graph.get_node(parts[0])
        if node is None:
            return []
        definition = self.registry.find(node.type)
        name = node.display_label

        if len(parts) == 2:
            prefix = parts[1].lower()
            for accessor in (OUTPUT_ACCESSOR, INPUT_ACCESSOR):
                if accessor.startswith(prefix):
                    suggestions.append({
                        "value": f"{{{{state.{node.id}.{accessor}}}}}",
                        "display": f"state.{name}.{accessor}"
                    })
            if OUTPUT_ACCESSOR.startswith(prefix):
                suggestions.extend(self._output_fields(node, definition, name, ""))
        elif parts[1] == OUTPUT_ACCESSOR:
            suggestions.extend(self._output_fields(node, definition, name, parts[2].lower()))

        return suggestions[:MAX_SUGGESTIONS]

    def _output_fields(self, node: NodeInstance, definition, name: str, prefix: str) -> List[Dict[str, str]]:
        fields: List[Dict[str, str]] = []
        seen: Set[str] = set()
        if definition is None:
            return fields
        for port in definition.output_ports:
            if port.id.lower().startswith(prefix) and port.id not in seen:
                seen.add(port.id)
                fields.append({
                    "value": f"{{{{state.{node.id}.output.{port.id}}}}}",
                    "display": f"state.{name}.output.{port.id} ({port.label})"
                })
        if isinstance(definition.preset_output, Mapping):
            for key in definition.preset_output:
                if key.lower().startswith(prefix) and key not in seen:
                    seen.add(key)
                    fields.append({
                        "value": f"{{{{state.{node.id}.output.{key}}}}}",
                        "display": f"state.{name}.output.{key}"
                    })
        return fields
