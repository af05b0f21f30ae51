"""
节点类型注册表

注册表在构造后不可变，作为显式依赖传入每个编译器组件。
"""
from typing import Dict, Any, Optional, List, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from enum import Enum
import json
import logging

from ..models.bindings import BindingRequirement
from ..models.workflow import NodeInstance
from ..exceptions import UnknownNodeTypeError


logger = logging.getLogger(__name__)


class NodeRole(Enum):
    """节点在图中的角色"""
    ENTRY = "entry"
    TERMINAL = "terminal"


class ControlKind(Enum):
    """控制流节点类型"""
    BRANCH = "branch"
    LOOP = "loop"


@dataclass(frozen=True)
class Port:
    """节点端口"""
    id: str
    label: str
    type: str = "any"
    description: str = ""
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "description": self.description,
            "required": self.required
        }


@dataclass(frozen=True)
class CodegenContext:
    """
    传给节点代码模板的上下文

    Attributes:
        node: 当前节点
        step_key: 持久化步骤键
        step_key_expr: 步骤键的 JavaScript 表达式（循环体内带迭代序号）
        input_expr: 节点输入表达式（步骤体中已声明为 inputData）
        render: 把任意配置值（可含模板）渲染成 JavaScript 表达式
    """
    node: NodeInstance
    step_key: str
    input_expr: str
    render: Callable[[Any], str]
    step_key_expr: str = ""

    @property
    def config(self) -> Mapping[str, Any]:
        return self.node.config

    def expr(self, key: str, default: Any = None) -> str:
        """渲染某个配置项，缺失时使用默认值"""
        if key in self.node.config and self.node.config[key] is not None:
            return self.render(self.node.config[key])
        return json.dumps(default)

    def has(self, key: str) -> bool:
        value = self.node.config.get(key)
        return value is not None and value != ""


def _no_bindings(config: Mapping[str, Any]) -> List[BindingRequirement]:
    return []


@dataclass(frozen=True)
class NodeTypeDefinition:
    """节点类型定义"""
    type: str
    name: str
    codegen: Callable[[CodegenContext], str]
    description: str = ""
    category: str = "utility"
    role: Optional[NodeRole] = None
    control: Optional[ControlKind] = None
    config_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object"})
    required_bindings: Callable[[Mapping[str, Any]], List[BindingRequirement]] = _no_bindings
    input_ports: List[Port] = field(default_factory=list)
    output_ports: List[Port] = field(default_factory=list)
    preset_output: Any = None
    color: str = "#6B7280"
    # False 表示节点自行调用 step.sleep/step.waitForEvent，不包裹在 step.do 中
    durable_step: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（不含代码模板）"""
        return {
            "type": self.type,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "role": self.role.value if self.role else None,
            "control": self.control.value if self.control else None,
            "configSchema": self.config_schema,
            "inputPorts": [port.to_dict() for port in self.input_ports],
            "outputPorts": [port.to_dict() for port in self.output_ports],
            "presetOutput": self.preset_output,
            "color": self.color
        }


class NodeTypeRegistry:
    """不可变的节点类型注册表"""

    def __init__(self, definitions: Iterable[NodeTypeDefinition]):
        types: Dict[str, NodeTypeDefinition] = {}
        for definition in definitions:
            if definition.type in types:
                raise ValueError(f"Duplicate node type: {definition.type}")
            if not callable(definition.codegen):
                raise ValueError(f"Codegen for node type {definition.type} must be callable")
            types[definition.type] = definition

        self._types = MappingProxyType(types)
        logger.debug(f"Node type registry created with {len(types)} types")

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._types

    def __len__(self) -> int:
        return len(self._types)

    def get_node_type(self, node_type: str) -> NodeTypeDefinition:
        """获取节点类型定义，未注册时抛出 UnknownNodeTypeError"""
        definition = self._types.get(node_type)
        if definition is None:
            raise UnknownNodeTypeError(node_type)
        return definition

    def find(self, node_type: str) -> Optional[NodeTypeDefinition]:
        return self._types.get(node_type)

    def list_node_types(self) -> List[NodeTypeDefinition]:
        """按注册顺序列出所有节点类型"""
        return list(self._types.values())

    def role_of(self, node_type: str) -> Optional[NodeRole]:
        definition = self._types.get(node_type)
        return definition.role if definition else None

    def control_of(self, node_type: str) -> Optional[ControlKind]:
        definition = self._types.get(node_type)
        return definition.control if definition else None

    def extend(self, definitions: Iterable[NodeTypeDefinition]) -> "NodeTypeRegistry":
        """返回包含额外类型的新注册表"""
        return NodeTypeRegistry(list(self._types.values()) + list(definitions))
