"""
绑定聚合测试
"""
import pytest

from workflow_compiler.core.bindings import BindingAggregator
from workflow_compiler.core.deploy_config import generate_wrangler_config, wrangler_bindings
from workflow_compiler.models import AvailableBinding, sanitize_binding_name
from workflow_compiler.exceptions import BindingConflictError, UnknownNodeTypeError
import json


class TestBindingAggregator:
    """绑定聚合器测试类"""

    @pytest.fixture
    def aggregator(self, registry):
        return BindingAggregator(registry)

    def test_single_kv_binding(self, aggregator, graph_of, fetch_and_store):
        bindings = aggregator.aggregate(graph_of(fetch_and_store))
        assert len(bindings) == 1
        assert bindings[0].to_dict() == {
            "name": "MY_KV",
            "type": "kv_namespace",
            "requiredBy": [
                {"nodeId": "n3", "nodeType": "kv-put", "usageDetail": "KV access to key name"}
            ]
        }

    def test_merges_usages_in_first_seen_order(self, aggregator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].insert(2, {
            "id": "db", "type": "d1-query", "config": {"query": "SELECT 1", "database": "MAIN"}
        })
        fetch_and_store["nodes"].append({
            "id": "n5", "type": "kv-get", "config": {"key": "name", "namespace": "MY_KV"}
        })
        bindings = aggregator.aggregate(graph_of(fetch_and_store))
        assert [binding.key for binding in bindings] == [("MAIN", "d1_database"), ("MY_KV", "kv_namespace")]
        assert [usage.node_id for usage in bindings[1].required_by] == ["n3", "n5"]

    def test_default_binding_names(self, aggregator, graph_of):
        graph = graph_of({
            "nodes": [
                {"id": "a", "type": "kv-get", "config": {"key": "k"}},
                {"id": "b", "type": "r2-get", "config": {"key": "k"}},
                {"id": "c", "type": "d1-query", "config": {"query": "SELECT 1"}},
                {"id": "d", "type": "workers-ai", "config": {"model": "@cf/meta/llama"}}
            ],
            "edges": []
        })
        assert [binding.key for binding in aggregator.aggregate(graph)] == [
            ("KV", "kv_namespace"), ("BUCKET", "r2_bucket"), ("DB", "d1_database"), ("AI", "ai")
        ]

    def test_conflicting_types(self, aggregator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({
            "id": "n5", "type": "r2-get", "config": {"key": "name", "bucket": "MY_KV"}
        })
        with pytest.raises(BindingConflictError) as exc_info:
            aggregator.aggregate(graph_of(fetch_and_store))
        conflict = exc_info.value.conflicts[0]
        assert conflict["name"] == "MY_KV"
        assert conflict["nodes"] == [
            {"nodeId": "n3", "type": "kv_namespace"},
            {"nodeId": "n5", "type": "r2_bucket"}
        ]
        assert exc_info.value.details["code"] == "ConflictingBindingType"

    def test_unknown_node_type(self, aggregator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({"id": "n5", "type": "teleport"})
        with pytest.raises(UnknownNodeTypeError):
            aggregator.aggregate(graph_of(fetch_and_store))

    def test_validate_bindings(self, aggregator, graph_of, fetch_and_store):
        graph = graph_of(fetch_and_store)
        result = aggregator.validate_bindings(graph, [AvailableBinding("MY_KV", "r2_bucket")])
        assert not result["valid"]
        assert [item["name"] for item in result["missing"]] == ["MY_KV"]
        assert result["available"] == [{"name": "MY_KV", "type": "r2_bucket"}]

        result = aggregator.validate_bindings(graph, [AvailableBinding("MY_KV", "kv_namespace")])
        assert result["valid"]
        assert result["missing"] == []

    def test_sanitize_binding_name(self):
        assert sanitize_binding_name("my-kv") == "my_kv"
        assert sanitize_binding_name("1st") == "_1st"
        assert sanitize_binding_name("") == ""


class TestDeployConfig:
    """部署清单测试类"""

    def test_sections_by_binding_type(self, registry, graph_of):
        graph = graph_of({
            "nodes": [
                {"id": "a", "type": "kv-get", "config": {"key": "k", "namespace": "CACHE"}},
                {"id": "b", "type": "d1-query", "config": {"query": "SELECT 1"}},
                {"id": "c", "type": "workers-ai", "config": {"model": "m"}}
            ],
            "edges": []
        })
        sections = wrangler_bindings(BindingAggregator(registry).aggregate(graph))
        assert sections["kv_namespaces"] == [{"binding": "CACHE", "id": "", "preview_id": ""}]
        assert sections["d1_databases"][0]["binding"] == "DB"
        assert sections["ai"] == {"binding": "AI"}

    def test_generate_wrangler_config(self, registry, graph_of, fetch_and_store):
        bindings = BindingAggregator(registry).aggregate(graph_of(fetch_and_store))
        text = generate_wrangler_config("fetch-and-store", "FetchAndStoreWorkflow", bindings)
        config = json.loads(text)
        assert config["name"] == "fetch-and-store-worker"
        assert config["compatibility_date"] == "2024-01-01"
        assert config["workflows"] == [{
            "name": "fetch-and-store",
            "binding": "FETCHANDSTOREWORKFLOW_WORKFLOW",
            "class_name": "FetchAndStoreWorkflow"
        }]
        assert config["kv_namespaces"][0]["binding"] == "MY_KV"
        assert text.startswith("{\n  ")
