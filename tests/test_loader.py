"""
工作流文件加载测试
"""
import json
from pathlib import Path

import pytest
import yaml

from workflow_compiler import WorkflowLoader
from workflow_compiler.exceptions import WorkflowParseError, InvalidRequestError


EXAMPLES = Path(__file__).parent.parent / "examples" / "workflows"


class TestWorkflowLoader:
    """加载器测试类"""

    @pytest.fixture
    def loader(self):
        return WorkflowLoader()

    def test_load_dict_unwraps_workflow_key(self, loader, fetch_and_store):
        assert loader.load({"workflow": fetch_and_store}) == fetch_and_store
        assert loader.load(fetch_and_store) == fetch_and_store

    def test_load_yaml_file(self, loader, tmp_path, fetch_and_store):
        path = tmp_path / "flow.yaml"
        path.write_text(yaml.safe_dump({"workflow": fetch_and_store}), encoding="utf-8")
        data = loader.load(path)
        assert data["name"] == "fetch and store"
        assert len(data["nodes"]) == 4

    def test_load_json_file(self, loader, tmp_path, fetch_and_store):
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(fetch_and_store), encoding="utf-8")
        assert loader.load(str(path)) == fetch_and_store

    def test_load_string(self, loader):
        data = loader.load("name: inline\nnodes: []\nedges: []\n")
        assert data == {"name": "inline", "nodes": [], "edges": []}

    def test_load_graph(self, loader, fetch_and_store):
        graph = loader.load_graph({"nodes": fetch_and_store["nodes"]})
        assert [node.id for node in graph.nodes] == ["n1", "n2", "n3", "n4"]
        assert graph.edges == []

    def test_invalid_sources(self, loader, tmp_path):
        with pytest.raises(WorkflowParseError):
            loader.load("nodes: [unclosed\n")
        with pytest.raises(WorkflowParseError):
            loader.load("- just\n- a list\n")

        path = tmp_path / "flow.txt"
        path.write_text("nodes: []", encoding="utf-8")
        with pytest.raises(WorkflowParseError):
            loader.load_file(path)

    def test_parse_error_is_invalid_request(self):
        assert issubclass(WorkflowParseError, InvalidRequestError)

    def test_bundled_examples_compile(self, loader, compiler):
        for path in sorted(EXAMPLES.glob("*.yaml")):
            result = compiler.compile(loader.load(path))
            assert result["status"] == "success", path.name
