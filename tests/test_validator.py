"""
图结构验证测试
"""
import pytest

from workflow_compiler.core.validator import GraphValidator, ErrorCode
from workflow_compiler.core.schema import ConfigSchemaValidator
from workflow_compiler.registry import NodeTypeDefinition
from workflow_compiler.exceptions import GraphValidationError


def _codes(result):
    return [error.code for error in result.errors]


class TestGraphValidator:
    """图结构验证器测试类"""

    @pytest.fixture
    def validator(self, registry):
        return GraphValidator(registry)

    def test_valid_linear_graph(self, validator, graph_of, fetch_and_store):
        result = validator.validate(graph_of(fetch_and_store))
        assert result.ok
        assert result.errors == []
        assert result.to_dict() == {"valid": True, "errors": []}

    def test_valid_branch_and_loop_graphs(self, validator, graph_of, branching, looping):
        assert validator.validate(graph_of(branching)).ok
        assert validator.validate(graph_of(looping)).ok

    def test_duplicate_node_id(self, validator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({"id": "n2", "type": "transform"})
        result = validator.validate(graph_of(fetch_and_store))
        assert ErrorCode.DUPLICATE_NODE_ID in _codes(result)
        duplicate = next(e for e in result.errors if e.code == ErrorCode.DUPLICATE_NODE_ID)
        assert duplicate.node_id == "n2"

    def test_dangling_edge(self, validator, graph_of, fetch_and_store):
        fetch_and_store["edges"].append({"id": "e9", "source": "n2", "target": "ghost"})
        result = validator.validate(graph_of(fetch_and_store))
        assert ErrorCode.DANGLING_EDGE in _codes(result)
        assert ErrorCode.UNREACHABLE_NODE not in _codes(result)
        dangling = next(e for e in result.errors if e.code == ErrorCode.DANGLING_EDGE)
        assert dangling.edge_id == "e9"
        assert "ghost" in dangling.message

    def test_missing_entry_and_terminal(self, validator, graph_of):
        graph = graph_of({
            "nodes": [{"id": "a", "type": "transform"}, {"id": "b", "type": "transform"}],
            "edges": [{"source": "a", "target": "b"}]
        })
        codes = _codes(validator.validate(graph))
        assert ErrorCode.MISSING_ENTRY in codes
        assert ErrorCode.MISSING_TERMINAL in codes

    def test_multiple_entries(self, validator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({"id": "n5", "type": "entry"})
        fetch_and_store["edges"].append({"id": "e4", "source": "n5", "target": "n2"})
        result = validator.validate(graph_of(fetch_and_store))
        assert _codes(result) == [ErrorCode.MULTIPLE_ENTRY]

    def test_multiple_terminals(self, validator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({"id": "n5", "type": "return"})
        fetch_and_store["edges"].append({"id": "e4", "source": "n2", "target": "n5"})
        assert ErrorCode.MULTIPLE_TERMINAL in _codes(validator.validate(graph_of(fetch_and_store)))

    def test_unconnected_node(self, validator, graph_of, fetch_and_store):
        fetch_and_store["nodes"].append({"id": "lonely", "type": "transform"})
        result = validator.validate(graph_of(fetch_and_store))
        assert _codes(result) == [ErrorCode.UNCONNECTED_NODE]
        assert result.errors[0].node_id == "lonely"

    def test_isolated_terminal_is_unreachable(self, validator, graph_of, fetch_and_store):
        fetch_and_store["nodes"] = [node for node in fetch_and_store["nodes"] if node["id"] != "n4"]
        fetch_and_store["edges"] = fetch_and_store["edges"][:2]
        fetch_and_store["nodes"].append({"id": "end", "type": "return"})
        result = validator.validate(graph_of(fetch_and_store))
        assert _codes(result) == [ErrorCode.UNREACHABLE_NODE]
        assert result.errors[0].node_id == "end"

    def test_self_loop(self, validator, graph_of, fetch_and_store):
        fetch_and_store["edges"].append({"id": "loop", "source": "n2", "target": "n2"})
        result = validator.validate(graph_of(fetch_and_store))
        assert ErrorCode.SELF_LOOP in _codes(result)
        assert ErrorCode.CYCLE_DETECTED not in _codes(result)

    def test_cycle_detected(self, validator, graph_of, fetch_and_store):
        fetch_and_store["edges"].append({"id": "back", "source": "n3", "target": "n2"})
        assert ErrorCode.CYCLE_DETECTED in _codes(validator.validate(graph_of(fetch_and_store)))

    def test_collects_all_errors(self, validator, graph_of):
        graph = graph_of({
            "nodes": [
                {"id": "a", "type": "transform"},
                {"id": "a", "type": "transform"},
                {"id": "b", "type": "transform"}
            ],
            "edges": [{"source": "a", "target": "missing"}]
        })
        codes = set(_codes(validator.validate(graph)))
        assert {
            ErrorCode.DUPLICATE_NODE_ID, ErrorCode.DANGLING_EDGE,
            ErrorCode.MISSING_ENTRY, ErrorCode.MISSING_TERMINAL, ErrorCode.UNCONNECTED_NODE
        } <= codes

    def test_validate_or_raise(self, validator, graph_of, fetch_and_store):
        graph = graph_of(fetch_and_store)
        assert validator.validate_or_raise(graph) is graph

        fetch_and_store["edges"].append({"id": "back", "source": "n3", "target": "n2"})
        with pytest.raises(GraphValidationError) as exc_info:
            validator.validate_or_raise(graph_of(fetch_and_store))
        assert "CycleDetected" in exc_info.value.message
        assert exc_info.value.details["errors"][0]["code"] == ErrorCode.CYCLE_DETECTED


class TestConfigSchemaValidator:
    """节点配置校验测试类"""

    def test_validators_built_for_every_type(self, registry):
        schema_validator = ConfigSchemaValidator(registry)
        assert set(schema_validator.validators) == {item.type for item in registry.list_node_types()}
        with pytest.raises(TypeError):
            schema_validator.validators["extra"] = None

    def test_validation_does_not_change_state(self, registry, graph_of, fetch_and_store):
        schema_validator = ConfigSchemaValidator(registry)
        before = dict(schema_validator.validators)
        fetch_and_store["nodes"][1]["data"]["config"] = {"method": "FETCH"}
        errors = schema_validator.validate_graph(graph_of(fetch_and_store))
        assert {error.node_id for error in errors} == {"n2"}
        assert dict(schema_validator.validators) == before

    def test_invalid_schema_reported_per_node(self, registry, graph_of, fetch_and_store):
        extended = registry.extend([NodeTypeDefinition(
            type="odd", name="Odd", codegen=lambda ctx: "", config_schema={"type": "nonsense"}
        )])
        schema_validator = ConfigSchemaValidator(extended)
        assert isinstance(schema_validator.validators["odd"], str)

        fetch_and_store["nodes"][1] = {"id": "n2", "type": "odd"}
        errors = schema_validator.validate_graph(graph_of(fetch_and_store))
        assert [(error.code, error.node_id) for error in errors] == [("InvalidConfig", "n2")]

    def test_unknown_type_skipped(self, registry, graph_of, fetch_and_store):
        fetch_and_store["nodes"][1]["type"] = "teleport"
        assert ConfigSchemaValidator(registry).validate_graph(graph_of(fetch_and_store)) == []
