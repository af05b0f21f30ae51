"""
执行计划模型

执行计划是 PlanEntry 的有序序列。PlanEntry 是带标签的变体：
LINEAR 只包含一个节点，BRANCH 额外带有各分支子计划，LOOP 带有循环体子计划。
"""
from dataclasses import dataclass, field
from typing import List, Tuple, Optional, Iterator
from enum import Enum

from .workflow import NodeInstance


class PlanEntryKind(Enum):
    """计划项类型"""
    LINEAR = "linear"
    BRANCH = "branch"
    LOOP = "loop"


@dataclass(frozen=True)
class BranchArm:
    """分支的一条出路"""
    edge_label: str
    target_id: str
    subplan: Tuple["PlanEntry", ...] = ()


@dataclass(frozen=True)
class PlanEntry:
    """执行计划项"""
    kind: PlanEntryKind
    node: NodeInstance
    branches: Tuple[BranchArm, ...] = ()
    body: Tuple["PlanEntry", ...] = ()

    @classmethod
    def linear(cls, node: NodeInstance) -> "PlanEntry":
        return cls(kind=PlanEntryKind.LINEAR, node=node)

    @classmethod
    def branch(cls, node: NodeInstance, arms: List[BranchArm]) -> "PlanEntry":
        return cls(kind=PlanEntryKind.BRANCH, node=node, branches=tuple(arms))

    @classmethod
    def loop(cls, node: NodeInstance, body: List["PlanEntry"]) -> "PlanEntry":
        return cls(kind=PlanEntryKind.LOOP, node=node, body=tuple(body))

    def to_dict(self) -> dict:
        """转换为字典"""
        data = {"kind": self.kind.value, "nodeId": self.node.id}
        if self.kind == PlanEntryKind.BRANCH:
            data["branches"] = [
                {
                    "edgeLabel": arm.edge_label,
                    "targetId": arm.target_id,
                    "subplan": [entry.to_dict() for entry in arm.subplan]
                }
                for arm in self.branches
            ]
        elif self.kind == PlanEntryKind.LOOP:
            data["bodySubplan"] = [entry.to_dict() for entry in self.body]
        return data


@dataclass(frozen=True)
class ExecutionPlan:
    """线性化后的执行计划"""
    entries: Tuple[PlanEntry, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[PlanEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def node_order(self) -> List[str]:
        """按计划顺序（深度优先）展开的节点ID"""
        order: List[str] = []
        _collect(self.entries, order)
        return order

    def find(self, node_id: str) -> Optional[PlanEntry]:
        for entry in _walk(self.entries):
            if entry.node.id == node_id:
                return entry
        return None

    def to_dict(self) -> dict:
        return {"entries": [entry.to_dict() for entry in self.entries]}


def _walk(entries) -> Iterator[PlanEntry]:
    for entry in entries:
        yield entry
        for arm in entry.branches:
            yield from _walk(arm.subplan)
        yield from _walk(entry.body)


def _collect(entries, order: List[str]):
    for entry in _walk(entries):
        order.append(entry.node.id)
