"""
线性化器：把已验证的工作流图转换为执行计划

从入口节点出发，按边数组顺序访问出边。每个节点最多出现一次。
"""
from typing import List, Dict, Any, Optional, Set, FrozenSet, Tuple
import logging

from ..models.workflow import WorkflowGraph, EdgeInstance
from ..models.plan import PlanEntry, BranchArm, ExecutionPlan
from ..models.validation import ValidationError
from ..registry.base import NodeTypeRegistry, NodeRole, ControlKind
from ..exceptions import GraphValidationError


logger = logging.getLogger(__name__)

BODY_HANDLE = "body"
DONE_HANDLE = "done"
UNLABELED_BRANCH_EDGE = "UnlabeledBranchEdge"


def arm_label(edge: EdgeInstance) -> str:
    """分支名：边标签，其次是出口句柄，最后是目标节点ID"""
    return edge.label or edge.source_handle or edge.target


class Linearizer:
    """
    执行计划构建器

    - 普通节点：LINEAR，继续沿唯一出边前进
    - 分支节点：BRANCH，每条出边一个分支，分支在汇合点之前结束，计划从汇合点继续
    - 循环节点：LOOP，循环体在后续节点之前结束
    - 多出边的普通节点：分支按顺序内联展开，全部执行
    """

    def __init__(self, registry: NodeTypeRegistry):
        self.registry = registry

    def linearize(self, graph: WorkflowGraph) -> ExecutionPlan:
        entry_id = self._find_entry(graph)
        emitted: Set[str] = set()
        entries = self._walk(graph, entry_id, frozenset(), emitted)
        logger.debug(f"Linearized {len(emitted)} node(s) into {len(entries)} top-level entries")
        return ExecutionPlan(tuple(entries))

    def find_unlabeled_arms(self, graph: WorkflowGraph) -> List[Dict[str, Any]]:
        """
        分支节点上既没有标签也没有出口句柄的出边

        这类分支以目标节点ID命名，不会匹配任何路由键，生成的程序中永远不执行。
        """
        warnings = []
        for node in graph.nodes:
            if self.registry.control_of(node.type) != ControlKind.BRANCH:
                continue
            for edge in graph.out_edges(node.id):
                if edge.label or edge.source_handle:
                    continue
                warnings.append({
                    "code": UNLABELED_BRANCH_EDGE,
                    "nodeId": node.id,
                    "edgeId": edge.id,
                    "message": f"Branch edge {edge.id} from '{node.id}' to '{edge.target}' "
                               f"has no label or sourceHandle and will never be taken"
                })
        return warnings

    def _find_entry(self, graph: WorkflowGraph) -> str:
        for node in graph.nodes:
            if self.registry.role_of(node.type) == NodeRole.ENTRY:
                return node.id
        raise GraphValidationError([
            ValidationError(code="MissingEntry", message="Workflow has no entry node")
        ])

    def _walk(self, graph: WorkflowGraph, start: Optional[str], stop: FrozenSet[str],
              emitted: Set[str]) -> List[PlanEntry]:
        plan: List[PlanEntry] = []
        current = start

        while current is not None and current not in stop and current not in emitted:
            node = graph.get_node(current)
            if node is None:
                break
            emitted.add(current)
            out = graph.out_edges(current)
            control = self.registry.control_of(node.type)

            if control == ControlKind.LOOP and out:
                body_edge, done_edge = self._loop_edges(out)
                after = done_edge.target if done_edge else None
                body_stop = stop | {after} if after else stop
                body = self._walk(graph, body_edge.target, body_stop, emitted)
                plan.append(PlanEntry.loop(node, body))
                current = after
            elif (control == ControlKind.BRANCH and out) or len(out) > 1:
                arms, rejoin = self._arms(graph, out, stop, emitted)
                if control == ControlKind.BRANCH:
                    plan.append(PlanEntry.branch(node, arms))
                else:
                    plan.append(PlanEntry.linear(node))
                    for arm in arms:
                        plan.extend(arm.subplan)
                current = rejoin
            else:
                plan.append(PlanEntry.linear(node))
                current = out[0].target if out else None

        return plan

    def _loop_edges(self, out: List[EdgeInstance]) -> Tuple[EdgeInstance, Optional[EdgeInstance]]:
        """循环体取 body 句柄的边，否则第一条出边；后续取 done 句柄的边，否则下一条出边"""
        body = next((edge for edge in out if edge.source_handle == BODY_HANDLE), out[0])
        done = next((edge for edge in out if edge.source_handle == DONE_HANDLE), None)
        if done is None:
            done = next((edge for edge in out if edge is not body), None)
        return body, done

    def _arms(self, graph: WorkflowGraph, out: List[EdgeInstance], stop: FrozenSet[str],
              emitted: Set[str]) -> Tuple[List[BranchArm], Optional[str]]:
        rejoin = self._find_rejoin(graph, out, stop, emitted)
        arm_stop = stop | {rejoin} if rejoin else stop
        arms = []
        for edge in out:
            subplan = self._walk(graph, edge.target, arm_stop, emitted)
            arms.append(BranchArm(arm_label(edge), edge.target, tuple(subplan)))
        return arms, rejoin

    def _find_rejoin(self, graph: WorkflowGraph, out: List[EdgeInstance], stop: FrozenSet[str],
                     emitted: Set[str]) -> Optional[str]:
        """
        汇合点：依次扫描各分支（分支内按遍历顺序），第一个已被前面分支到达的节点
        """
        reached: Set[str] = set()
        for edge in out:
            walk = self._reach_order(graph, edge.target, stop, emitted)
            for node_id in walk:
                if node_id in reached:
                    return node_id
            reached.update(walk)
        return None

    def _reach_order(self, graph: WorkflowGraph, start: str, stop: FrozenSet[str],
                     emitted: Set[str]) -> List[str]:
        """深度优先先序遍历，出边按数组顺序"""
        order: List[str] = []
        seen: Set[str] = set()
        stack = [start]
        while stack:
            node_id = stack.pop()
            if node_id in seen or node_id in stop or node_id in emitted:
                continue
            seen.add(node_id)
            order.append(node_id)
            targets = [edge.target for edge in graph.out_edges(node_id)]
            stack.extend(reversed(targets))
        return order
