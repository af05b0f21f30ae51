"""
流程控制节点：入口、返回、条件路由、循环、休眠、等待事件
"""
from typing import List
import json

from ..registry.base import NodeTypeDefinition, CodegenContext, Port, NodeRole, ControlKind


def _path_lookup(source: str, path: str) -> str:
    """把点分路径转换为可选链访问表达式"""
    parts = [part for part in str(path).split(".") if part]
    return source + "".join(f"?.[{json.dumps(part)}]" for part in parts)


def entry_codegen(ctx: CodegenContext) -> str:
    return "output = inputData;"


def return_codegen(ctx: CodegenContext) -> str:
    if ctx.has("value"):
        return f"output = {ctx.expr('value')};"
    return "output = inputData;"


def conditional_router_codegen(ctx: CodegenContext) -> str:
    """生成路由对象：每个 case 名对应一个布尔值，至多一个为 true"""
    if ctx.has("condition"):
        condition = ctx.expr("condition")
    else:
        condition = _path_lookup("inputData", ctx.config.get("conditionPath", ""))

    lines: List[str] = [f"const conditionValue = {condition};", "const routing: Record<string, boolean> = {};"]
    matched: List[str] = []
    default_case = None
    for case in ctx.config.get("cases", []):
        name = json.dumps(str(case["case"]))
        if case.get("isDefault"):
            default_case = name
            continue
        check = f"conditionValue === {ctx.render(case.get('value'))}"
        if matched:
            check = f"!({' || '.join(matched)}) && {check}"
        lines.append(f"routing[{name}] = {check};")
        matched.append(f"routing[{name}]")

    if default_case is not None:
        default_check = f"!({' || '.join(matched)})" if matched else "true"
        lines.append(f"routing[{default_case}] = {default_check};")

    lines.append("output = routing;")
    return "\n".join(lines)


def for_each_codegen(ctx: CodegenContext) -> str:
    if ctx.has("items"):
        source = ctx.expr("items")
    else:
        source = _path_lookup("inputData", ctx.config.get("array", ""))
    max_iterations = int(ctx.config.get("maxIterations", 1000))
    return "\n".join([
        f"const inputArray = {source};",
        "if (!Array.isArray(inputArray)) {",
        "  throw new Error('for-each input must be an array');",
        "}",
        f"const items = inputArray.slice(0, {max_iterations});",
        "output = { items, count: items.length };"
    ])


def sleep_codegen(ctx: CodegenContext) -> str:
    duration = ctx.expr("duration", 1000)
    return "\n".join([
        f"await step.sleep({ctx.step_key_expr}, {duration});",
        f"output = {{ sleptFor: {duration} }};"
    ])


def wait_event_codegen(ctx: CodegenContext) -> str:
    return "\n".join([
        f"const received = await step.waitForEvent({ctx.step_key_expr}, {{",
        f"  type: {ctx.expr('eventType', 'event')},",
        f"  timeout: {ctx.expr('timeout', '24 hours')}",
        "});",
        "output = received?.payload ?? null;"
    ])


ENTRY = NodeTypeDefinition(
    type="entry",
    name="Entry",
    description="Workflow entry point receiving the trigger payload",
    category="control",
    role=NodeRole.ENTRY,
    codegen=entry_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "params": {"type": "array"}
        }
    },
    output_ports=[Port("payload", "Payload", "object", "Trigger payload")],
    preset_output={"payload": {}},
    color="#10B981"
)

RETURN = NodeTypeDefinition(
    type="return",
    name="Return",
    description="Return the final result of the workflow",
    category="control",
    role=NodeRole.TERMINAL,
    codegen=return_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "value": {}
        }
    },
    input_ports=[Port("value", "Value", "any", "Value to return", required=True)],
    color="#EF4444"
)

CONDITIONAL_ROUTER = NodeTypeDefinition(
    type="conditional-router",
    name="Conditional (Router)",
    description="Route execution to different paths based on a condition",
    category="control",
    control=ControlKind.BRANCH,
    codegen=conditional_router_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "condition": {},
            "conditionPath": {"type": "string"},
            "cases": {
                "type": "array",
                "minItems": 1,
                "items": {
                    "type": "object",
                    "required": ["case"],
                    "properties": {
                        "case": {"type": "string", "minLength": 1},
                        "value": {},
                        "isDefault": {"type": "boolean"}
                    }
                }
            }
        },
        "required": ["cases"]
    },
    input_ports=[Port("trigger", "Execute", "any", "Input data", required=True)],
    output_ports=[
        Port("case1", "Case 1", "any", "First case route"),
        Port("case2", "Case 2", "any", "Second case route"),
        Port("default", "Default", "any", "Default case route")
    ],
    preset_output={"default": True},
    color="#8B5CF6"
)

FOR_EACH = NodeTypeDefinition(
    type="for-each",
    name="For Each",
    description="Iterate over array items",
    category="control",
    control=ControlKind.LOOP,
    codegen=for_each_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "items": {},
            "array": {"type": "string"},
            "maxIterations": {"type": "integer", "minimum": 1}
        }
    },
    input_ports=[Port("trigger", "Execute", "array", "Array to iterate", required=True)],
    output_ports=[
        Port("body", "Body", "any", "Executed once per item"),
        Port("done", "Done", "any", "Continue after the loop")
    ],
    preset_output={"items": [], "count": 0},
    color="#EC4899"
)

SLEEP = NodeTypeDefinition(
    type="sleep",
    name="Sleep",
    description="Pause the workflow for a duration",
    category="timing",
    codegen=sleep_codegen,
    durable_step=False,
    config_schema={
        "type": "object",
        "properties": {
            "duration": {"type": ["integer", "string"]}
        }
    },
    preset_output={"sleptFor": 1000},
    color="#F59E0B"
)

WAIT_EVENT = NodeTypeDefinition(
    type="wait-event",
    name="Wait for Event",
    description="Wait for an external event to resume the workflow",
    category="timing",
    codegen=wait_event_codegen,
    durable_step=False,
    config_schema={
        "type": "object",
        "properties": {
            "eventType": {"type": "string", "minLength": 1},
            "timeout": {"type": ["integer", "string"]}
        },
        "required": ["eventType"]
    },
    preset_output={},
    color="#F59E0B"
)

FLOW_NODE_TYPES = [ENTRY, RETURN, CONDITIONAL_ROUTER, FOR_EACH, SLEEP, WAIT_EVENT]
