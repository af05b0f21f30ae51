"""
存储节点：KV、D1、R2
"""
from typing import Mapping, Any, List

from ..models.bindings import BindingRequirement, BindingType, sanitize_binding_name
from ..registry.base import NodeTypeDefinition, CodegenContext, Port


DEFAULT_KV_BINDING = "KV"
DEFAULT_D1_BINDING = "DB"
DEFAULT_R2_BINDING = "BUCKET"


def _binding(config: Mapping[str, Any], key: str, default: str) -> str:
    return sanitize_binding_name(config.get(key) or default) or default


def kv_bindings(config: Mapping[str, Any]) -> List[BindingRequirement]:
    name = _binding(config, "namespace", DEFAULT_KV_BINDING)
    return [BindingRequirement(name, BindingType.KV_NAMESPACE.value, f"KV access to key {config.get('key', '')}".strip())]


def d1_bindings(config: Mapping[str, Any]) -> List[BindingRequirement]:
    name = _binding(config, "database", DEFAULT_D1_BINDING)
    return [BindingRequirement(name, BindingType.D1_DATABASE.value, "D1 query")]


def r2_bindings(config: Mapping[str, Any]) -> List[BindingRequirement]:
    name = _binding(config, "bucket", DEFAULT_R2_BINDING)
    return [BindingRequirement(name, BindingType.R2_BUCKET.value, f"R2 object {config.get('key', '')}".strip())]


def kv_get_codegen(ctx: CodegenContext) -> str:
    binding = _binding(ctx.config, "namespace", DEFAULT_KV_BINDING)
    return "\n".join([
        f"const key = {ctx.expr('key')};",
        f"const value = await this.env.{binding}.get(key, {{ type: {ctx.expr('type', 'text')} }});",
        "output = { key, value, exists: value !== null };"
    ])


def kv_put_codegen(ctx: CodegenContext) -> str:
    binding = _binding(ctx.config, "namespace", DEFAULT_KV_BINDING)
    options = "{}"
    if ctx.has("expirationTtl"):
        options = f"{{ expirationTtl: {ctx.expr('expirationTtl')} }}"
    return "\n".join([
        f"const key = {ctx.expr('key')};",
        f"const value = {ctx.expr('value', '')};",
        f"await this.env.{binding}.put(key, typeof value === 'string' ? value : JSON.stringify(value), {options});",
        "output = { success: true, key };"
    ])


def d1_query_codegen(ctx: CodegenContext) -> str:
    binding = _binding(ctx.config, "database", DEFAULT_D1_BINDING)
    return "\n".join([
        f"const statement = this.env.{binding}.prepare({ctx.expr('query')});",
        f"const result = await statement.bind(...{ctx.expr('params', [])}).all();",
        "output = { results: result.results, meta: result.meta };"
    ])


def r2_get_codegen(ctx: CodegenContext) -> str:
    binding = _binding(ctx.config, "bucket", DEFAULT_R2_BINDING)
    return "\n".join([
        f"const key = {ctx.expr('key')};",
        f"const object = await this.env.{binding}.get(key);",
        "output = object ? { key, size: object.size, content: await object.text() } : null;"
    ])


def r2_put_codegen(ctx: CodegenContext) -> str:
    binding = _binding(ctx.config, "bucket", DEFAULT_R2_BINDING)
    return "\n".join([
        f"const key = {ctx.expr('key')};",
        f"const content = {ctx.expr('content', '')};",
        f"const object = await this.env.{binding}.put(key, typeof content === 'string' ? content : JSON.stringify(content));",
        "output = { success: true, key, size: object?.size ?? 0 };"
    ])


KV_GET = NodeTypeDefinition(
    type="kv-get",
    name="KV Get",
    description="Read a value from a KV namespace",
    category="storage",
    codegen=kv_get_codegen,
    required_bindings=kv_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "key": {"type": "string", "minLength": 1},
            "namespace": {"type": "string"},
            "type": {"type": "string", "enum": ["text", "json", "arrayBuffer", "stream"]}
        },
        "required": ["key"]
    },
    output_ports=[Port("value", "Value", "any", "Stored value")],
    preset_output={"key": "", "value": None, "exists": False},
    color="#14B8A6"
)

KV_PUT = NodeTypeDefinition(
    type="kv-put",
    name="KV Put",
    description="Write a value to a KV namespace",
    category="storage",
    codegen=kv_put_codegen,
    required_bindings=kv_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "key": {"type": "string", "minLength": 1},
            "value": {},
            "namespace": {"type": "string"},
            "expirationTtl": {"type": "integer", "minimum": 60}
        },
        "required": ["key"]
    },
    input_ports=[Port("value", "Value", "any", "Value to store")],
    output_ports=[Port("success", "Success", "boolean", "Whether the write succeeded")],
    preset_output={"success": True, "key": ""},
    color="#14B8A6"
)

D1_QUERY = NodeTypeDefinition(
    type="d1-query",
    name="D1 Query",
    description="Run a SQL query against a D1 database",
    category="database",
    codegen=d1_query_codegen,
    required_bindings=d1_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "minLength": 1},
            "database": {"type": "string"},
            "params": {"type": ["array", "string"]}
        },
        "required": ["query"]
    },
    output_ports=[Port("results", "Results", "array", "Result rows")],
    preset_output={"results": [], "meta": {}},
    color="#6366F1"
)

R2_GET = NodeTypeDefinition(
    type="r2-get",
    name="R2 Get",
    description="Read an object from an R2 bucket",
    category="storage",
    codegen=r2_get_codegen,
    required_bindings=r2_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "key": {"type": "string", "minLength": 1},
            "bucket": {"type": "string"}
        },
        "required": ["key"]
    },
    output_ports=[Port("content", "Content", "string", "Object content")],
    preset_output={"key": "", "size": 0, "content": ""},
    color="#0EA5E9"
)

R2_PUT = NodeTypeDefinition(
    type="r2-put",
    name="R2 Put",
    description="Write an object to an R2 bucket",
    category="storage",
    codegen=r2_put_codegen,
    required_bindings=r2_bindings,
    config_schema={
        "type": "object",
        "properties": {
            "key": {"type": "string", "minLength": 1},
            "content": {},
            "bucket": {"type": "string"}
        },
        "required": ["key"]
    },
    input_ports=[Port("content", "Content", "any", "Object content")],
    output_ports=[Port("success", "Success", "boolean", "Whether the write succeeded")],
    preset_output={"success": True, "key": "", "size": 0},
    color="#0EA5E9"
)

STORAGE_NODE_TYPES = [KV_GET, KV_PUT, D1_QUERY, R2_GET, R2_PUT]
