"""
API 端点测试
"""
import pytest
from fastapi.testclient import TestClient

from workflow_compiler.api import app


PREFIX = "/api/v1/compiler"


class TestCompilerAPI:
    """编译器 API 测试类"""

    @pytest.fixture
    def client(self):
        """创建测试客户端，lifespan 负责初始化编译器"""
        with TestClient(app) as client:
            yield client

    def test_root_and_health(self, client):
        assert client.get("/").json()["name"] == "Workflow Graph Compiler API"

        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"] == {"compiler": True, "registry": True}

    def test_request_id_header(self, client):
        response = client.get("/health", headers={"X-Request-ID": "req-1"})
        assert response.headers["X-Request-ID"] == "req-1"
        assert "X-Process-Time" in response.headers

    def test_compile(self, client, fetch_and_store):
        response = client.post(f"{PREFIX}/compile", json=fetch_and_store)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["status"] == "success"
        assert data["className"] == "FetchAndStoreWorkflow"
        assert data["bindings"][0]["name"] == "MY_KV"
        assert '"type":"WF_END"' in data["tsCode"]

    def test_compile_keeps_source_handles(self, client, branching):
        response = client.post(f"{PREFIX}/compile", json=branching)
        assert response.status_code == 200
        assert 'if (_route_route["high"]) {' in response.json()["data"]["tsCode"]

    def test_preview(self, client, looping):
        response = client.post(f"{PREFIX}/preview", json=looping)
        assert response.status_code == 200
        assert response.json()["data"]["warnings"][0]["nodeId"] == "save"

    def test_compile_validation_error(self, client, fetch_and_store):
        fetch_and_store["edges"].append({"id": "back", "source": "n3", "target": "n2"})
        response = client.post(f"{PREFIX}/compile", json=fetch_and_store)
        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "validation_error"
        assert body["details"]["errors"][0]["code"] == "CycleDetected"
        assert body["request_id"]

    def test_compile_missing_edges(self, client, fetch_and_store):
        del fetch_and_store["edges"]
        response = client.post(f"{PREFIX}/compile", json=fetch_and_store)
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    def test_compile_unknown_node_type(self, client, fetch_and_store):
        fetch_and_store["nodes"][1]["type"] = "teleport"
        response = client.post(f"{PREFIX}/compile", json=fetch_and_store)
        assert response.status_code == 422
        assert response.json()["details"]["code"] == "UnknownNodeType"

    def test_compile_binding_conflict(self, client, fetch_and_store):
        fetch_and_store["nodes"][1] = {"id": "n2", "type": "r2-get", "config": {"key": "x", "bucket": "MY_KV"}}
        response = client.post(f"{PREFIX}/compile", json=fetch_and_store)
        assert response.status_code == 400
        assert response.json()["error"] == "binding_conflict"

    def test_validate_bindings(self, client, fetch_and_store):
        response = client.post(f"{PREFIX}/validate-bindings", json={
            "workflow": {"nodes": fetch_and_store["nodes"]},
            "availableBindings": []
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["valid"] is False
        assert data["missing"][0]["name"] == "MY_KV"

    def test_validate_templates(self, client, fetch_and_store):
        fetch_and_store["nodes"][3]["data"]["config"] = {"value": "{{ghost.output}}"}
        response = client.post(f"{PREFIX}/validate-templates", json=fetch_and_store)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["valid"] is False
        assert data["errors"][0]["nodeId"] == "n4"

    def test_resolve_workflow_and_node(self, client, fetch_and_store):
        fetch_and_store["nodes"][3]["data"]["config"] = {"value": "{{n2.output.status}}"}
        samples = {"n2": {"input": {}, "output": {"status": 204}}}

        response = client.post(f"{PREFIX}/resolve-workflow", json={**fetch_and_store, "samples": samples})
        assert response.status_code == 200
        nodes = response.json()["data"]["nodes"]
        assert nodes[3]["resolvedConfig"] == {"value": 204}

        response = client.post(f"{PREFIX}/resolve-node/n4", json={"workflow": fetch_and_store, "samples": samples})
        assert response.status_code == 200
        assert response.json()["data"]["resolvedConfig"] == {"value": 204}

        response = client.post(f"{PREFIX}/resolve-node/ghost", json={"workflow": fetch_and_store})
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_reverse_codegen_and_structure(self, client, fetch_and_store):
        code = client.post(f"{PREFIX}/compile", json=fetch_and_store).json()["data"]["tsCode"]

        response = client.post(f"{PREFIX}/reverse-codegen", json={"code": code})
        assert response.status_code == 200
        data = response.json()["data"]
        assert [node["id"] for node in data["nodes"]] == ["n1", "n2", "n3", "n4"]
        assert len(data["edges"]) == 3

        response = client.post(f"{PREFIX}/parse-structure", json={"code": code})
        spans = response.json()["data"]["spans"]
        assert spans[0]["nodeId"] == "n1"
        assert set(spans[0]) == {"nodeId", "nodeLabel", "nodeType", "startLine", "endLine"}

    def test_reverse_codegen_without_markers(self, client):
        response = client.post(f"{PREFIX}/reverse-codegen", json={"code": "const x = 1;"})
        assert response.status_code == 422
        assert response.json()["details"]["code"] == "EmptyProgram"

    def test_node_types(self, client):
        response = client.get(f"{PREFIX}/node-types")
        assert response.status_code == 200
        types = [item["type"] for item in response.json()["data"]["nodeTypes"]]
        assert "http-request" in types
