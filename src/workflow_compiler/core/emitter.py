"""
程序生成器

把执行计划生成为带诊断标记、可重放的 TypeScript 工作流程序。
每个节点的持久化步骤键由节点标签确定性地导出，输出不依赖时间或随机数。
"""
from typing import Dict, Any, List, Optional, Mapping
from dataclasses import dataclass, field
import json
import re
import logging

from ..models.workflow import WorkflowGraph, NodeInstance
from ..models.plan import ExecutionPlan, PlanEntry, PlanEntryKind
from ..models.bindings import ResolvedBinding, BindingType
from ..models.template import TextSegment
from ..registry.base import NodeTypeRegistry, CodegenContext
from ..exceptions import CodegenError, UnknownNodeTypeError, TemplateSyntaxError
from .markers import MarkerProtocol
from .templates import segment, parse_reference, is_whole_template


logger = logging.getLogger(__name__)

WORKFLOW_BINDING_SUFFIX = "_WORKFLOW"

ENV_TYPES = {
    BindingType.KV_NAMESPACE.value: "KVNamespace",
    BindingType.D1_DATABASE.value: "D1Database",
    BindingType.R2_BUCKET.value: "R2Bucket",
    BindingType.AI.value: "Ai",
    BindingType.SERVICE.value: "Fetcher",
    BindingType.DURABLE_OBJECT.value: "DurableObjectNamespace"
}

_TEMPLATE_LITERAL_ESCAPES = {
    "\\": "\\\\",
    "`": "\\`",
    "$": "\\$",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029"
}


def to_class_name(name: str, default: str = "Workflow") -> str:
    """工作流名转换为 PascalCase 类名，并以 Workflow 结尾"""
    words = re.findall(r"[A-Za-z0-9]+", name or "")
    base = "".join(word[:1].upper() + word[1:] for word in words) or default
    if base[0].isdigit():
        base = f"W{base}"
    if not base.endswith("Workflow"):
        base = f"{base}Workflow"
    return base


def workflow_binding_name(class_name: str) -> str:
    return re.sub(r"[^A-Z0-9]", "_", class_name.upper()) + WORKFLOW_BINDING_SUFFIX


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", (text or "").lower()).strip("_")


def assign_step_keys(plan: ExecutionPlan) -> Dict[str, str]:
    """按计划顺序为节点分配唯一步骤键，重复时追加 _2、_3"""
    keys: Dict[str, str] = {}
    used = set()
    for node_id in plan.node_order():
        node = plan.find(node_id).node
        base = slugify(node.display_label) or slugify(node.type) or "step"
        if base[0].isdigit():
            base = f"step_{base}"
        key = base
        suffix = 2
        while key in used:
            key = f"{base}_{suffix}"
            suffix += 1
        used.add(key)
        keys[node_id] = key
    return keys


class JsRenderer:
    """把配置值渲染为 JavaScript 表达式，模板引用转换为 _wfRef 调用"""

    def render(self, value: Any) -> str:
        if isinstance(value, str):
            return self._render_string(value)
        if isinstance(value, Mapping):
            if not value:
                return "{}"
            items = ", ".join(f"{json.dumps(str(key))}: {self.render(item)}" for key, item in value.items())
            return "{ " + items + " }"
        if isinstance(value, (list, tuple)):
            return "[" + ", ".join(self.render(item) for item in value) + "]"
        return json.dumps(value)

    def reference(self, token: str) -> str:
        ref = parse_reference(token)
        return f"_wfRef({json.dumps(ref.ref_node_id)}, {json.dumps(ref.accessor)}, {json.dumps(ref.path)})"

    def _render_string(self, value: str) -> str:
        if "{{" not in value:
            return json.dumps(value)

        try:
            if is_whole_template(value):
                return self.reference(value)

            parts = []
            for piece in segment(value):
                if isinstance(piece, TextSegment):
                    parts.append("".join(_TEMPLATE_LITERAL_ESCAPES.get(ch, ch) for ch in piece.content))
                else:
                    parts.append("${_wfText(" + self.reference(piece.content) + ")}")
            return "`" + "".join(parts) + "`"
        except TemplateSyntaxError:
            # 语法错误的模板按字面文本处理
            return json.dumps(value)


@dataclass(frozen=True)
class EmitOptions:
    """生成选项"""
    class_name: str = "Workflow"
    indent: int = 2


@dataclass(frozen=True)
class EmittedProgram:
    """生成结果"""
    ts_code: str
    class_name: str
    step_keys: Dict[str, str] = field(default_factory=dict)


class _Writer:
    """按缩进层级累积代码行"""

    def __init__(self, indent: int):
        self.unit = " " * indent
        self.lines: List[str] = []

    def line(self, depth: int, text: str = ""):
        self.lines.append(f"{self.unit * depth}{text}" if text else "")

    def block(self, depth: int, text: str):
        for item in text.split("\n"):
            self.line(depth, item.rstrip())

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


class ForwardEmitter:
    """程序生成器"""

    def __init__(self, registry: NodeTypeRegistry, protocol: Optional[MarkerProtocol] = None):
        self.registry = registry
        self.protocol = protocol or MarkerProtocol()
        self.renderer = JsRenderer()

    def emit(self, graph: WorkflowGraph, plan: ExecutionPlan, bindings: List[ResolvedBinding],
             options: Optional[EmitOptions] = None) -> EmittedProgram:
        """
        生成程序文本

        Args:
            graph: 已验证的工作流图
            plan: 执行计划
            bindings: 聚合后的绑定
            options: 生成选项

        Returns:
            EmittedProgram: 程序文本与类名
        """
        options = options or EmitOptions()
        step_keys = assign_step_keys(plan)
        writer = _Writer(options.indent)

        self._write_header(writer, bindings, options.class_name)
        writer.line(0, f"export class {options.class_name} extends WorkflowEntrypoint<Env, Params> {{")
        writer.line(1, "async run(event: WorkflowEvent<Params>, step: WorkflowStep) {")
        self._write_runtime(writer, 2)
        writer.line(2, f"_wfEmit({self.protocol.workflow_start()}, {{ payload: event.payload }});")
        writer.line(2)

        self._write_entries(writer, 2, plan.entries, graph, step_keys, [], None)

        writer.line(2, f"_wfEmit({self.protocol.workflow_end()}, {{ results: _workflowResults }});")
        writer.line(2, "return _workflowResults;")
        writer.line(1, "}")
        writer.line(0, "}")
        writer.line(0)
        self._write_fetch_handler(writer, workflow_binding_name(options.class_name))

        logger.info(f"Emitted {options.class_name} with {len(step_keys)} step(s)")
        return EmittedProgram(ts_code=writer.text(), class_name=options.class_name, step_keys=step_keys)

    def _write_header(self, writer: _Writer, bindings: List[ResolvedBinding], class_name: str):
        writer.line(0, 'import { WorkflowEntrypoint, WorkflowEvent, WorkflowStep } from "cloudflare:workers";')
        writer.line(0)
        writer.line(0, "type Env = {")
        for binding in bindings:
            writer.line(1, f"{binding.name}: {ENV_TYPES.get(binding.type, 'unknown')};")
        writer.line(1, f"{workflow_binding_name(class_name)}: Workflow;")
        writer.line(0, "};")
        writer.line(0)
        writer.line(0, "type Params = Record<string, any>;")
        writer.line(0)

    def _write_runtime(self, writer: _Writer, depth: int):
        writer.block(depth, "\n".join([
            "const _workflowState: Record<string, { input: any; output: any }> = {};",
            "const _workflowResults: Record<string, any> = {};",
            "const _wfEmit = (record: Record<string, any>, extra: Record<string, any> = {}) => {",
            "  console.log(JSON.stringify({ ...record, ...extra, timestamp: Date.now(), instanceId: event.instanceId }));",
            "};",
            "const _wfRef = (nodeId: string, accessor: \"input\" | \"output\", path: string[]): any => {",
            "  const record = _workflowState[nodeId];",
            "  if (!record) {",
            "    return event.payload;",
            "  }",
            "  let value: any = record[accessor];",
            "  for (const key of path) {",
            "    if (value === undefined || value === null) {",
            "      return undefined;",
            "    }",
            "    value = value[key];",
            "  }",
            "  return value;",
            "};",
            "const _wfText = (value: any): string => (typeof value === \"string\" ? value : JSON.stringify(value));"
        ]))
        writer.line(depth)

    def _write_entries(self, writer: _Writer, depth: int, entries, graph: WorkflowGraph,
                       step_keys: Dict[str, str], loop_indices: List[str],
                       loop_item: Optional[Dict[str, str]]):
        for entry in entries:
            self._write_node(writer, depth, entry.node, graph, step_keys, loop_indices, loop_item)

            if entry.kind == PlanEntryKind.BRANCH:
                self._write_branch(writer, depth, entry, graph, step_keys, loop_indices, loop_item)
            elif entry.kind == PlanEntryKind.LOOP:
                self._write_loop(writer, depth, entry, graph, step_keys, loop_indices)

    def _write_branch(self, writer: _Writer, depth: int, entry: PlanEntry, graph: WorkflowGraph,
                      step_keys: Dict[str, str], loop_indices: List[str],
                      loop_item: Optional[Dict[str, str]]):
        route = f"_route_{slugify(step_keys[entry.node.id])}"
        writer.line(depth, f"const {route} = _workflowState[{json.dumps(entry.node.id)}]?.output ?? {{}};")
        for index, arm in enumerate(entry.branches):
            keyword = "if" if index == 0 else "} else if"
            writer.line(depth, f"{keyword} ({route}[{json.dumps(arm.edge_label)}]) {{")
            self._write_entries(writer, depth + 1, arm.subplan, graph, step_keys, loop_indices, loop_item)
        if entry.branches:
            writer.line(depth, "}")
        writer.line(depth)

    def _write_loop(self, writer: _Writer, depth: int, entry: PlanEntry, graph: WorkflowGraph,
                    step_keys: Dict[str, str], loop_indices: List[str]):
        level = len(loop_indices)
        index_var = f"_i{level}"
        item_var = f"_item{level}"
        items = f"_workflowState[{json.dumps(entry.node.id)}]?.output?.items ?? []"
        writer.line(depth, f"for (const [{index_var}, {item_var}] of ({items}).entries()) {{")
        self._write_entries(
            writer, depth + 1, entry.body, graph, step_keys,
            loop_indices + [index_var], {"loop_id": entry.node.id, "item": item_var}
        )
        writer.line(depth, "}")
        writer.line(depth)

    def _input_expr(self, node: NodeInstance, graph: WorkflowGraph,
                    loop_item: Optional[Dict[str, str]]) -> str:
        """节点输入：第一个上游节点的输出，循环体内直接连在循环节点上的取当前元素"""
        upstream = graph.first_upstream(node.id)
        if upstream is None:
            return "event.payload"
        if loop_item and upstream == loop_item["loop_id"]:
            return loop_item["item"]
        return f"_workflowState[{json.dumps(upstream)}]?.output ?? event.payload"

    def _codegen(self, node: NodeInstance, step_key: str, step_key_expr: str, input_expr: str) -> str:
        try:
            definition = self.registry.get_node_type(node.type)
        except UnknownNodeTypeError as e:
            raise CodegenError(node.id, e.message, code="UnknownNodeType", cause=e)

        context = CodegenContext(
            node=node,
            step_key=step_key,
            input_expr=input_expr,
            render=self.renderer.render,
            step_key_expr=step_key_expr
        )
        try:
            code = definition.codegen(context)
        except Exception as e:
            logger.error(f"Codegen failed for node {node.id}: {str(e)}", exc_info=True)
            raise CodegenError(node.id, str(e), cause=e)

        if not isinstance(code, str):
            raise CodegenError(node.id, f"codegen returned {type(code).__name__} instead of text")
        return code

    def _write_node(self, writer: _Writer, depth: int, node: NodeInstance, graph: WorkflowGraph,
                    step_keys: Dict[str, str], loop_indices: List[str],
                    loop_item: Optional[Dict[str, str]]):
        step_key = step_keys[node.id]
        if loop_indices:
            step_key_expr = "`" + step_key + "".join("_${" + index + "}" for index in loop_indices) + "`"
        else:
            step_key_expr = json.dumps(step_key)

        input_expr = self._input_expr(node, graph, loop_item)
        code = self._codegen(node, step_key, step_key_expr, input_expr)
        durable = self.registry.get_node_type(node.type).durable_step
        node_key = json.dumps(node.id)

        writer.line(depth, f"_wfEmit({self.protocol.node_start(node)});")
        writer.line(depth, "try {")
        inner = depth + 1
        if durable:
            writer.line(inner, f"const _record = await step.do({step_key_expr}, async () => {{")
            body = inner + 1
        else:
            writer.line(inner, "const _record = await (async () => {")
            body = inner + 1
        writer.line(body, f"const inputData = {input_expr};")
        writer.line(body, "let output: any;")
        writer.block(body, code)
        writer.line(body, "return { input: inputData, output: output ?? null };")
        writer.line(inner, "});" if durable else "})();")
        writer.line(inner, f"_workflowState[{node_key}] = _record;")
        writer.line(inner, f"_workflowResults[{step_key_expr}] = _record.output;")
        writer.line(inner, f"_wfEmit({self.protocol.node_end(node)});")
        writer.line(depth, "} catch (error) {")
        writer.line(
            inner,
            f"_wfEmit({self.protocol.node_error(node)}, "
            "{ error: error instanceof Error ? error.message : String(error) });"
        )
        writer.line(inner, "throw error;")
        writer.line(depth, "}")
        writer.line(depth)

    def _write_fetch_handler(self, writer: _Writer, binding: str):
        writer.block(0, "\n".join([
            "export default {",
            "  async fetch(request: Request, env: Env): Promise<Response> {",
            "    const instanceId = new URL(request.url).searchParams.get(\"instanceId\");",
            "    if (instanceId) {",
            f"      const instance = await env.{binding}.get(instanceId);",
            "      return Response.json({ id: instanceId, status: await instance.status() });",
            "    }",
            "    const params = request.method === \"POST\" ? await request.json().catch(() => ({})) : {};",
            f"    const instance = await env.{binding}.create({{ params }});",
            "    return Response.json({ id: instance.id, details: await instance.status() });",
            "  }",
            "};"
        ]))
