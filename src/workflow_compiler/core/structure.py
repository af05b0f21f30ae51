"""
结构解析器：把程序文本划分为节点行区间

编辑器用它做行到节点的高亮，反向编译用它恢复图骨架。
"""
from typing import List, Optional, Tuple
import logging

from ..models.structure import ParsedNodeSpan, MarkerRecord
from .markers import MarkerProtocol


logger = logging.getLogger(__name__)


class StructuralParser:
    """
    基于栈的标记解析

    前提（不做校验）：开始/结束标记正确嵌套。
    结束标记总是弹出栈顶，不比较节点ID；空栈时忽略结束标记。
    文本被截断时，未闭合的节点在最后一行强制闭合。
    """

    def __init__(self, protocol: Optional[MarkerProtocol] = None):
        self.protocol = protocol or MarkerProtocol()

    def parse(self, text: str) -> List[ParsedNodeSpan]:
        """
        解析程序文本

        Args:
            text: 程序文本

        Returns:
            List[ParsedNodeSpan]: 按闭合顺序排列的区间
        """
        lines = text.split("\n")
        stack: List[Tuple[MarkerRecord, int]] = []
        spans: List[ParsedNodeSpan] = []

        for index, line in enumerate(lines, start=1):
            record = self.protocol.parse_line(line)
            if record is None:
                continue

            if record.is_node_start:
                stack.append((record, index))
            elif record.is_node_close:
                if not stack:
                    logger.debug(f"Ignoring close marker without open node at line {index}")
                    continue
                start_record, start_line = stack.pop()
                spans.append(self._span(start_record, start_line, index))

        if stack:
            logger.debug(f"Force closing {len(stack)} unterminated node(s)")
        while stack:
            start_record, start_line = stack.pop()
            spans.append(self._span(start_record, start_line, len(lines)))

        return spans

    def _span(self, record: MarkerRecord, start_line: int, end_line: int) -> ParsedNodeSpan:
        return ParsedNodeSpan(
            node_id=record.node_id or "",
            node_label=record.node_label or record.node_type or "",
            node_type=record.node_type or "",
            start_line=start_line,
            end_line=end_line
        )
