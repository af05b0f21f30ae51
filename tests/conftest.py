"""
Pytest 配置和公共 fixtures
"""
import copy

import pytest

from workflow_compiler import WorkflowCompiler, build_default_registry
from workflow_compiler.models import WorkflowGraph


FETCH_AND_STORE = {
    "name": "fetch and store",
    "nodes": [
        {"id": "n1", "type": "entry", "data": {"label": "Entry", "config": {}}},
        {
            "id": "n2",
            "type": "http-request",
            "data": {
                "label": "Fetch Age",
                "config": {"url": "https://api.agify.io?name=steve", "method": "GET"}
            }
        },
        {
            "id": "n3",
            "type": "kv-put",
            "data": {
                "label": "Store Name",
                "config": {"key": "name", "value": "vaish", "namespace": "MY_KV"}
            }
        },
        {"id": "n4", "type": "return", "data": {"label": "Return", "config": {}}}
    ],
    "edges": [
        {"id": "e1", "source": "n1", "target": "n2"},
        {"id": "e2", "source": "n2", "target": "n3"},
        {"id": "e3", "source": "n3", "target": "n4"}
    ]
}

BRANCHING = {
    "name": "route by priority",
    "nodes": [
        {"id": "start", "type": "entry", "label": "Start"},
        {
            "id": "route",
            "type": "conditional-router",
            "label": "Route",
            "config": {
                "condition": "{{start.output.priority}}",
                "cases": [
                    {"case": "high", "value": "high"},
                    {"case": "low", "isDefault": True}
                ]
            }
        },
        {"id": "urgent", "type": "http-request", "label": "Page", "config": {"url": "https://example.com/page"}},
        {"id": "later", "type": "kv-put", "label": "Queue", "config": {"key": "queued", "namespace": "QUEUE"}},
        {"id": "finish", "type": "return", "label": "Finish"}
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "route"},
        {"id": "e2", "source": "route", "target": "urgent", "sourceHandle": "high"},
        {"id": "e3", "source": "route", "target": "later", "sourceHandle": "low"},
        {"id": "e4", "source": "urgent", "target": "finish"},
        {"id": "e5", "source": "later", "target": "finish"}
    ]
}

LOOPING = {
    "name": "each item",
    "nodes": [
        {"id": "start", "type": "entry", "label": "Start"},
        {"id": "loop", "type": "for-each", "label": "Each", "config": {"items": "{{start.output.items}}"}},
        {"id": "save", "type": "kv-put", "label": "Save", "config": {"key": "item", "value": "{{save.input}}"}},
        {"id": "finish", "type": "return", "label": "Finish"}
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "loop"},
        {"id": "e2", "source": "loop", "target": "save", "sourceHandle": "body"},
        {"id": "e3", "source": "loop", "target": "finish", "sourceHandle": "done"}
    ]
}


@pytest.fixture
def registry():
    """内置节点类型注册表"""
    return build_default_registry()


@pytest.fixture
def compiler(registry):
    """编译服务"""
    return WorkflowCompiler(registry)


@pytest.fixture
def fetch_and_store():
    """入口 -> HTTP -> KV -> 返回"""
    return copy.deepcopy(FETCH_AND_STORE)


@pytest.fixture
def branching():
    """条件路由，两个分支在返回节点汇合"""
    return copy.deepcopy(BRANCHING)


@pytest.fixture
def looping():
    """for-each 循环体后接返回节点"""
    return copy.deepcopy(LOOPING)


@pytest.fixture
def graph_of():
    """把请求字典转换为工作流图"""
    def _build(data):
        return WorkflowGraph.from_dict(data)
    return _build
