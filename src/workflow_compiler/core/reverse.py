"""
反向构建：从结构区间恢复工作流图骨架
"""
from typing import List
import logging

from ..models.structure import ParsedNodeSpan
from ..models.workflow import NodeInstance, EdgeInstance, WorkflowGraph
from ..exceptions import EmptyProgramError


logger = logging.getLogger(__name__)


class ReverseBuilder:
    """
    按起始行顺序为每个区间生成一个节点，并把相邻节点串成链

    节点配置为空，不检查节点类型是否已注册。
    """

    def build(self, spans: List[ParsedNodeSpan], name: str = "") -> WorkflowGraph:
        if not spans:
            raise EmptyProgramError()

        ordered = sorted(spans, key=lambda span: span.start_line)
        nodes = [
            NodeInstance(
                id=span.node_id,
                type=span.node_type,
                label=span.node_label or span.node_type,
                config={}
            )
            for span in ordered
        ]
        edges = [
            EdgeInstance(id=f"{source.id}-{target.id}", source=source.id, target=target.id)
            for source, target in zip(nodes, nodes[1:])
        ]

        logger.info(f"Recovered workflow skeleton with {len(nodes)} nodes")
        return WorkflowGraph(name=name, nodes=nodes, edges=edges)
