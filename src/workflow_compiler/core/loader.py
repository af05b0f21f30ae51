"""
工作流文件加载器
"""
import yaml
import json
from typing import Dict, Any, Union
from pathlib import Path

from ..models.workflow import WorkflowGraph
from ..exceptions import WorkflowParseError


class WorkflowLoader:
    """从字典、YAML/JSON 字符串或文件加载工作流"""

    def __init__(self):
        self.parsers = {
            'yaml': self._parse_yaml,
            'yml': self._parse_yaml,
            'json': self._parse_json
        }

    def load(self, source: Union[str, Path, Dict[str, Any]]) -> Dict[str, Any]:
        """
        加载工作流定义

        Args:
            source: 文件路径、YAML/JSON 字符串或字典

        Returns:
            Dict[str, Any]: 工作流数据，顶层 workflow 键会被展开
        """
        if isinstance(source, dict):
            return self._unwrap(source)

        if isinstance(source, (str, Path)):
            path = Path(source)
            if isinstance(source, Path) or (len(str(source)) < 4096 and "\n" not in str(source)):
                if path.exists() and path.is_file():
                    return self.load_file(path)
            return self.load_string(str(source))

        raise WorkflowParseError(f"Unsupported source type: {type(source)}")

    def load_graph(self, source: Union[str, Path, Dict[str, Any]]) -> WorkflowGraph:
        return WorkflowGraph.from_dict(self.load(source), require_edges=False)

    def load_file(self, file_path: Path) -> Dict[str, Any]:
        """加载工作流文件"""
        suffix = file_path.suffix.lower().lstrip('.')
        if suffix not in self.parsers:
            raise WorkflowParseError(f"Unsupported file format: {suffix}")

        with open(file_path, 'r', encoding='utf-8') as f:
            content = f.read()

        return self._unwrap(self.parsers[suffix](content))

    def load_string(self, content: str) -> Dict[str, Any]:
        """加载工作流字符串，JSON 是 YAML 的子集，统一按 YAML 解析"""
        return self._unwrap(self._parse_yaml(content))

    def _parse_yaml(self, content: str) -> Any:
        """解析YAML格式"""
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise WorkflowParseError(f"Failed to parse YAML: {e}")

    def _parse_json(self, content: str) -> Any:
        """解析JSON格式"""
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise WorkflowParseError(f"Failed to parse JSON: {e}")

    def _unwrap(self, data: Any) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise WorkflowParseError("Workflow definition must be a mapping")
        if isinstance(data.get('workflow'), dict) and 'nodes' not in data:
            data = data['workflow']
        return data
