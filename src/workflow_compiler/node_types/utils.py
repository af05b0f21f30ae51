"""
数据处理节点
"""
import json

from ..registry.base import NodeTypeDefinition, CodegenContext, Port


def transform_codegen(ctx: CodegenContext) -> str:
    """用户代码以 input 为参数执行，返回值即节点输出"""
    code = str(ctx.config.get("code") or "return input;")
    body = "\n".join(f"  {line}" if line else line for line in code.split("\n"))
    return "\n".join([
        "output = await (async (input: any) => {",
        body,
        "})(inputData);"
    ])


def validate_codegen(ctx: CodegenContext) -> str:
    lines = ["const errors: string[] = [];", "const target = inputData ?? {};"]
    for rule in ctx.config.get("rules", []):
        field = json.dumps(str(rule["field"]))
        if rule.get("required"):
            lines.append(
                f"if (target[{field}] === undefined || target[{field}] === null) "
                f"errors.push({json.dumps(str(rule['field']) + ' is required')});"
            )
        if rule.get("type"):
            expected = json.dumps(str(rule["type"]))
            lines.append(
                f"if (target[{field}] !== undefined && typeof target[{field}] !== {expected}) "
                f"errors.push({json.dumps(str(rule['field']) + ' must be ' + str(rule['type']))});"
            )
    if ctx.config.get("failOnError", True):
        lines.extend([
            "if (errors.length > 0) {",
            "  throw new Error(`Validation failed: ${errors.join(', ')}`);",
            "}"
        ])
    lines.append("output = { valid: errors.length === 0, errors, data: inputData };")
    return "\n".join(lines)


TRANSFORM = NodeTypeDefinition(
    type="transform",
    name="Transform",
    description="Transform data with a JavaScript function body",
    category="transform",
    codegen=transform_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "code": {"type": "string"}
        }
    },
    input_ports=[Port("input", "Input", "any", "Data to transform", required=True)],
    output_ports=[Port("output", "Output", "any", "Transformed data")],
    preset_output={},
    color="#A855F7"
)

VALIDATE = NodeTypeDefinition(
    type="validate",
    name="Validate",
    description="Validate the input against field rules",
    category="transform",
    codegen=validate_codegen,
    config_schema={
        "type": "object",
        "properties": {
            "rules": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["field"],
                    "properties": {
                        "field": {"type": "string", "minLength": 1},
                        "required": {"type": "boolean"},
                        "type": {"type": "string", "enum": ["string", "number", "boolean", "object"]}
                    }
                }
            },
            "failOnError": {"type": "boolean"}
        }
    },
    input_ports=[Port("input", "Input", "object", "Data to validate", required=True)],
    output_ports=[Port("valid", "Valid", "boolean", "Whether the data is valid")],
    preset_output={"valid": True, "errors": [], "data": {}},
    color="#A855F7"
)

UTILITY_NODE_TYPES = [TRANSFORM, VALIDATE]
