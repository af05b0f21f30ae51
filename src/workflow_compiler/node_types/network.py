"""
网络与 AI 节点
"""
from typing import Mapping, Any, List

from ..models.bindings import BindingRequirement, BindingType
from ..registry.base import NodeTypeDefinition, CodegenContext, Port


def _headers_expr(ctx: CodegenContext) -> str:
    headers = ctx.config.get("headers")
    if not headers:
        return "{}"
    # 编辑器使用 [{key, value}] 列表
    if isinstance(headers, list):
        headers = {item["key"]: item.get("value", "") for item in headers if item.get("key")}
    return ctx.render(headers)


def _body_expr(ctx: CodegenContext) -> str:
    body = ctx.config.get("body")
    if body is None or body == "":
        return "undefined"
    if isinstance(body, Mapping) and "type" in body:
        body_type = body.get("type")
        if body_type == "none":
            return "undefined"
        if body_type == "json":
            return f"JSON.stringify({ctx.render(body.get('content'))})"
        return ctx.render(body.get("content", ""))
    if isinstance(body, str):
        return ctx.render(body)
    return f"JSON.stringify({ctx.render(body)})"


def http_request_codegen(ctx: CodegenContext) -> str:
    method = str(ctx.config.get("method", "GET")).upper()
    body = "undefined" if method in ("GET", "HEAD") else _body_expr(ctx)
    return "\n".join([
        f"const response = await fetch({ctx.expr('url')}, {{",
        f"  method: {ctx.render(method)},",
        f"  headers: {_headers_expr(ctx)},",
        f"  body: {body},",
        f"  signal: AbortSignal.timeout({int(ctx.config.get('timeout', 30000))})",
        "});",
        "const text = await response.text();",
        "let body: any = text;",
        "try {",
        "  body = JSON.parse(text);",
        "} catch (parseError) {",
        "  body = text;",
        "}",
        "output = {",
        "  status: response.status,",
        "  ok: response.ok,",
        "  headers: Object.fromEntries(response.headers.entries()),",
        "  body",
        "};"
    ])


def workers_ai_codegen(ctx: CodegenContext) -> str:
    if ctx.has("messages"):
        inputs = f"{{ messages: {ctx.expr('messages')} }}"
    else:
        inputs = f"{{ prompt: {ctx.expr('prompt', '')} }}"
    return "\n".join([
        f"const result = await this.env.AI.run({ctx.expr('model')}, {inputs});",
        "output = result;"
    ])


def workers_ai_bindings(config: Mapping[str, Any]) -> List[BindingRequirement]:
    return [BindingRequirement("AI", BindingType.AI.value, f"Runs model {config.get('model', '')}".strip())]


HTTP_REQUEST = NodeTypeDefinition(
    type="http-request",
    name="HTTP Request",
    description="Make an HTTP request to an external API",
    category="http",
    codegen=http_request_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "minLength": 1},
            "method": {"type": "string", "enum": ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD"]},
            "headers": {"type": ["array", "object"]},
            "body": {},
            "timeout": {"type": "integer", "minimum": 1000, "maximum": 300000}
        },
        "required": ["url"]
    },
    input_ports=[Port("trigger", "Execute", "any", "Trigger the request")],
    output_ports=[
        Port("status", "Status", "number", "HTTP status code"),
        Port("body", "Body", "any", "Parsed response body"),
        Port("headers", "Headers", "object", "Response headers")
    ],
    preset_output={"status": 200, "ok": True, "headers": {}, "body": {}},
    color="#3B82F6"
)

WORKERS_AI = NodeTypeDefinition(
    type="workers-ai",
    name="Workers AI",
    description="Run a Workers AI model",
    category="ai",
    codegen=workers_ai_codegen,
    required_bindings=workers_ai_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "model": {"type": "string", "minLength": 1},
            "prompt": {"type": "string"},
            "messages": {"type": ["array", "string"]}
        },
        "required": ["model"]
    },
    input_ports=[Port("prompt", "Prompt", "string", "Prompt text")],
    output_ports=[Port("response", "Response", "any", "Model response")],
    preset_output={"response": ""},
    color="#F97316"
)

NETWORK_NODE_TYPES = [HTTP_REQUEST, WORKERS_AI]
