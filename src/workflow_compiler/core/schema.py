"""
节点配置Schema验证
"""
from types import MappingProxyType
from typing import Dict, List, Mapping, Union
import logging

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from ..models.workflow import WorkflowGraph, NodeInstance
from ..models.validation import ValidationError
from ..registry.base import NodeTypeRegistry


logger = logging.getLogger(__name__)

INVALID_CONFIG = "InvalidConfig"


class ConfigSchemaValidator:
    """
    节点配置校验器

    构造时为注册表中每个类型建好 Draft7Validator，之后只读。
    Schema 本身不合法的类型记录错误信息，校验时按节点报告。
    """

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry
        validators: Dict[str, Union[Draft7Validator, str]] = {}
        for definition in registry.list_node_types():
            try:
                Draft7Validator.check_schema(definition.config_schema)
            except SchemaError as e:
                logger.error(f"Invalid config schema for node type {definition.type}: {e.message}")
                validators[definition.type] = e.message
                continue
            validators[definition.type] = Draft7Validator(definition.config_schema)
        self.validators: Mapping[str, Union[Draft7Validator, str]] = MappingProxyType(validators)

    def validate_node(self, node: NodeInstance) -> List[ValidationError]:
        """
        校验单个节点配置

        未注册类型的节点跳过，由编译阶段报告。
        """
        validator = self.validators.get(node.type)
        if validator is None:
            return []

        if isinstance(validator, str):
            return [ValidationError(
                code=INVALID_CONFIG,
                message=f"Node type '{node.type}' has an invalid config schema: {validator}",
                node_id=node.id
            )]

        errors = []
        found = sorted(
            validator.iter_errors(node.config),
            key=lambda e: ([str(p) for p in e.absolute_path], e.message)
        )
        for error in found:
            path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
            errors.append(ValidationError(
                code=INVALID_CONFIG,
                message=f"{path}: {error.message}",
                node_id=node.id,
                field=path
            ))
        return errors

    def validate_graph(self, graph: WorkflowGraph) -> List[ValidationError]:
        errors: List[ValidationError] = []
        for node in graph.nodes:
            errors.extend(self.validate_node(node))
        return errors
