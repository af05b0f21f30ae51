"""
诊断标记协议

每条标记是单行、自包含的紧凑 JSON 对象字面量，以 {"type":"WF_ 开头。
发射器、结构解析器和运行日志消费者共用同一套编码与识别规则。
"""
from typing import Dict, Any, Optional, List, Iterator
import json
import re
import logging

from ..models.structure import MarkerKind, MarkerRecord
from ..models.workflow import NodeInstance


logger = logging.getLogger(__name__)

MARKER_PATTERN = re.compile(r'\{"type":"WF_[A-Z_]+"')

_FIELD_NAMES = {
    "node_id": "nodeId",
    "node_label": "nodeLabel",
    "node_type": "nodeType",
    "success": "success",
    "instance_id": "instanceId",
    "timestamp": "timestamp",
    "payload": "payload",
    "error": "error",
    "results": "results"
}


class MarkerProtocol:
    """标记的渲染与识别"""

    def __init__(self):
        self._decoder = json.JSONDecoder()

    def render(self, record: MarkerRecord) -> str:
        """
        渲染为单行 JSON 对象字面量

        ASCII 转义保证字面量中不会出现换行或行分隔符。
        """
        data: Dict[str, Any] = {"type": record.kind.value}
        for attr, key in _FIELD_NAMES.items():
            value = getattr(record, attr)
            if value is not None:
                data[key] = value
        for key, value in record.extra.items():
            data.setdefault(key, value)
        return json.dumps(data, separators=(",", ":"), ensure_ascii=True)

    def parse_line(self, line: str) -> Optional[MarkerRecord]:
        """在一行中查找并解码一个标记，找不到时返回 None"""
        for match in MARKER_PATTERN.finditer(line):
            try:
                data, _ = self._decoder.raw_decode(line, match.start())
            except json.JSONDecodeError:
                continue
            record = self.from_dict(data)
            if record is not None:
                return record
        return None

    def from_dict(self, data: Dict[str, Any]) -> Optional[MarkerRecord]:
        """从解码后的对象构造标记，未知类型返回 None"""
        try:
            kind = MarkerKind(data.get("type"))
        except ValueError:
            logger.debug(f"Ignoring unknown marker type: {data.get('type')}")
            return None

        known = set(_FIELD_NAMES.values()) | {"type"}
        values = {attr: data.get(key) for attr, key in _FIELD_NAMES.items()}
        # 运行时 instanceId 等字段可能缺失，文本中的 ID 统一为字符串
        for attr in ("node_id", "node_label", "node_type"):
            if values[attr] is not None:
                values[attr] = str(values[attr])

        return MarkerRecord(
            kind=kind,
            extra={key: value for key, value in data.items() if key not in known},
            **values
        )

    def parse_trace(self, text: str) -> List[MarkerRecord]:
        """解析运行日志中的全部标记"""
        return list(self.iter_records(text))

    def iter_records(self, text: str) -> Iterator[MarkerRecord]:
        for line in text.split("\n"):
            record = self.parse_line(line)
            if record is not None:
                yield record

    # 程序文本中的结构标记

    def workflow_start(self) -> str:
        return self.render(MarkerRecord(kind=MarkerKind.WF_START))

    def workflow_end(self) -> str:
        return self.render(MarkerRecord(kind=MarkerKind.WF_END))

    def node_start(self, node: NodeInstance) -> str:
        return self.render(MarkerRecord(
            kind=MarkerKind.WF_NODE_START,
            node_id=node.id,
            node_label=node.display_label,
            node_type=node.type
        ))

    def node_end(self, node: NodeInstance) -> str:
        return self.render(MarkerRecord(kind=MarkerKind.WF_NODE_END, node_id=node.id, success=True))

    def node_error(self, node: NodeInstance) -> str:
        return self.render(MarkerRecord(kind=MarkerKind.WF_NODE_ERROR, node_id=node.id))
