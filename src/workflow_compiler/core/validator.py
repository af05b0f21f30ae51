"""
工作流图结构验证器

所有检查独立执行，收集全部问题后一起返回。
"""
from typing import List, Dict, Set
from collections import deque
import logging

from ..models.workflow import WorkflowGraph
from ..models.validation import ValidationError, ValidationResult
from ..registry.base import NodeTypeRegistry, NodeRole
from ..exceptions import GraphValidationError


logger = logging.getLogger(__name__)


class ErrorCode:
    """校验错误码"""
    DUPLICATE_NODE_ID = "DuplicateNodeId"
    DANGLING_EDGE = "DanglingEdge"
    MISSING_ENTRY = "MissingEntry"
    MULTIPLE_ENTRY = "MultipleEntry"
    MISSING_TERMINAL = "MissingTerminal"
    MULTIPLE_TERMINAL = "MultipleTerminal"
    UNCONNECTED_NODE = "UnconnectedNode"
    SELF_LOOP = "SelfLoop"
    CYCLE_DETECTED = "CycleDetected"
    UNREACHABLE_NODE = "UnreachableNode"


class GraphValidator:
    """工作流图验证器"""

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry

    def validate(self, graph: WorkflowGraph) -> ValidationResult:
        """
        验证工作流图

        Args:
            graph: 工作流图

        Returns:
            ValidationResult: 验证结果
        """
        errors: List[ValidationError] = []
        errors.extend(self._check_duplicate_ids(graph))
        dangling = self._check_dangling_edges(graph)
        errors.extend(dangling)
        errors.extend(self._check_self_loops(graph))

        entries = self._nodes_with_role(graph, NodeRole.ENTRY)
        errors.extend(self._check_role(
            entries, ErrorCode.MISSING_ENTRY, ErrorCode.MULTIPLE_ENTRY, "entry"
        ))
        errors.extend(self._check_role(
            self._nodes_with_role(graph, NodeRole.TERMINAL),
            ErrorCode.MISSING_TERMINAL, ErrorCode.MULTIPLE_TERMINAL, "terminal"
        ))

        unconnected = self._check_unconnected(graph)
        errors.extend(unconnected)
        errors.extend(self._check_cycles(graph))

        # 入口唯一且没有悬挂边时才做可达性检查
        if len(entries) == 1 and not dangling:
            skip = {error.node_id for error in unconnected}
            errors.extend(self._check_reachability(graph, entries[0], skip))

        if errors:
            logger.info(f"Graph validation failed with {len(errors)} error(s)")
        return ValidationResult(ok=not errors, graph=graph, errors=errors)

    def validate_or_raise(self, graph: WorkflowGraph) -> WorkflowGraph:
        result = self.validate(graph)
        if not result.ok:
            raise GraphValidationError(result.errors)
        return graph

    def _nodes_with_role(self, graph: WorkflowGraph, role: NodeRole) -> List[str]:
        return [node.id for node in graph.nodes if self.registry.role_of(node.type) == role]

    def _check_duplicate_ids(self, graph: WorkflowGraph) -> List[ValidationError]:
        seen: Set[str] = set()
        reported: Set[str] = set()
        errors = []
        for node in graph.nodes:
            if node.id in seen and node.id not in reported:
                reported.add(node.id)
                errors.append(ValidationError(
                    code=ErrorCode.DUPLICATE_NODE_ID,
                    message=f"Duplicate node ID: {node.id}",
                    node_id=node.id
                ))
            seen.add(node.id)
        return errors

    def _check_dangling_edges(self, graph: WorkflowGraph) -> List[ValidationError]:
        node_ids = {node.id for node in graph.nodes}
        errors = []
        for edge in graph.edges:
            missing = [end for end in (edge.source, edge.target) if end not in node_ids]
            if missing:
                errors.append(ValidationError(
                    code=ErrorCode.DANGLING_EDGE,
                    message=f"Edge {edge.id} references non-existent node(s): {', '.join(missing)}",
                    edge_id=edge.id
                ))
        return errors

    def _check_self_loops(self, graph: WorkflowGraph) -> List[ValidationError]:
        return [
            ValidationError(
                code=ErrorCode.SELF_LOOP,
                message=f"Edge {edge.id} connects node {edge.source} to itself",
                node_id=edge.source,
                edge_id=edge.id
            )
            for edge in graph.edges if edge.source == edge.target
        ]

    def _check_role(self, node_ids: List[str], missing_code: str, multiple_code: str,
                    role_name: str) -> List[ValidationError]:
        if not node_ids:
            return [ValidationError(code=missing_code, message=f"Workflow has no {role_name} node")]
        if len(node_ids) > 1:
            return [ValidationError(
                code=multiple_code,
                message=f"Workflow has {len(node_ids)} {role_name} nodes: {', '.join(node_ids)}",
                node_id=node_ids[1]
            )]
        return []

    def _check_unconnected(self, graph: WorkflowGraph) -> List[ValidationError]:
        """入口和终止节点豁免，由可达性检查覆盖"""
        connected: Set[str] = set()
        for edge in graph.edges:
            connected.add(edge.source)
            connected.add(edge.target)

        errors = []
        for node in graph.nodes:
            if self.registry.role_of(node.type) is not None:
                continue
            if node.id not in connected:
                errors.append(ValidationError(
                    code=ErrorCode.UNCONNECTED_NODE,
                    message=f"Node {node.id} is not connected to any edge",
                    node_id=node.id
                ))
        return errors

    def _check_cycles(self, graph: WorkflowGraph) -> List[ValidationError]:
        """Kahn 拓扑排序，剩余节点即在环上或依赖环"""
        node_ids = []
        for node in graph.nodes:
            if node.id not in node_ids:
                node_ids.append(node.id)

        in_degree: Dict[str, int] = {node_id: 0 for node_id in node_ids}
        successors: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
        for edge in graph.edges:
            # 自环单独报告
            if edge.source == edge.target:
                continue
            if edge.source in in_degree and edge.target in in_degree:
                successors[edge.source].append(edge.target)
                in_degree[edge.target] += 1

        queue = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
        visited = 0
        while queue:
            current = queue.popleft()
            visited += 1
            for target in successors[current]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    queue.append(target)

        if visited == len(node_ids):
            return []

        remaining = [node_id for node_id in node_ids if in_degree[node_id] > 0]
        return [ValidationError(
            code=ErrorCode.CYCLE_DETECTED,
            message=f"Workflow contains a cycle involving: {', '.join(remaining)}",
            node_id=remaining[0]
        )]

    def _check_reachability(self, graph: WorkflowGraph, entry_id: str,
                            skip: Set[str]) -> List[ValidationError]:
        reached = {entry_id}
        queue = deque([entry_id])
        while queue:
            current = queue.popleft()
            for edge in graph.out_edges(current):
                if edge.target not in reached:
                    reached.add(edge.target)
                    queue.append(edge.target)

        errors = []
        reported: Set[str] = set()
        for node in graph.nodes:
            if node.id in reached or node.id in skip or node.id in reported:
                continue
            reported.add(node.id)
            errors.append(ValidationError(
                code=ErrorCode.UNREACHABLE_NODE,
                message=f"Node {node.id} is not reachable from entry node {entry_id}",
                node_id=node.id
            ))
        return errors
