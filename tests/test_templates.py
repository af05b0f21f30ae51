"""
模板解析测试
"""
import pytest

from workflow_compiler.core.templates import (
    TemplateResolver, segment, parse_reference, is_whole_template, iter_string_fields
)
from workflow_compiler.models import TextSegment, TemplateSegment
from workflow_compiler.exceptions import (
    TemplateSyntaxError, TemplateResolutionError, NodeNotFoundError
)


class TestTemplateSyntax:
    """模板语法测试类"""

    def test_segment_preserves_order_and_offsets(self):
        pieces = segment("Hello {{n1.output.name}}, you are {{n2.output.age}}")
        assert [type(piece) for piece in pieces] == [TextSegment, TemplateSegment, TextSegment, TemplateSegment]
        assert pieces[0].content == "Hello "
        assert pieces[1].content == "{{n1.output.name}}"
        assert pieces[1].expression == "n1.output.name"
        assert (pieces[1].start, pieces[1].end) == (6, 24)
        assert pieces[2].content == ", you are "

    def test_segment_plain_text(self):
        pieces = segment("no templates here")
        assert len(pieces) == 1
        assert isinstance(pieces[0], TextSegment)

    def test_parse_default_output_accessor(self):
        ref = parse_reference("{{n2.body.name}}")
        assert ref.ref_node_id == "n2"
        assert ref.accessor == "output"
        assert ref.path == ["body", "name"]

    def test_parse_explicit_accessors(self):
        assert parse_reference("{{state.n2.output.body}}").path == ["body"]
        ref = parse_reference("{{ n2.input.query }}")
        assert ref.accessor == "input"
        assert ref.path == ["query"]
        assert parse_reference("{{n2}}").path == []

    def test_parse_invalid_expression(self):
        with pytest.raises(TemplateSyntaxError):
            parse_reference("{{n2.body name}}")
        with pytest.raises(TemplateSyntaxError):
            parse_reference("{{n2..body}}")

    def test_is_whole_template(self):
        assert is_whole_template("{{n1.output}}")
        assert not is_whole_template("x {{n1.output}}")
        assert not is_whole_template(42)

    def test_iter_string_fields(self):
        fields = dict(iter_string_fields({"a": {"b": ["x", 1, "y"]}, "c": "z"}))
        assert fields == {"a.b[0]": "x", "a.b[2]": "y", "c": "z"}


class TestTemplateResolver:
    """模板解析器测试类"""

    @pytest.fixture
    def resolver(self, registry):
        return TemplateResolver(registry)

    @pytest.fixture
    def graph(self, graph_of, fetch_and_store):
        fetch_and_store["nodes"][3]["data"]["config"] = {
            "value": "{{n2.output.body}}",
            "message": "Age is {{n2.body.age}} for {{n1.input.name}}"
        }
        return graph_of(fetch_and_store)

    def test_validate_templates_valid(self, resolver, graph):
        result = resolver.validate_workflow_templates(graph)
        assert result["valid"]
        assert result["errors"] == []
        assert [ref["refNodeId"] for ref in result["references"]] == ["n2", "n2", "n1"]
        assert result["references"][0]["field"] == "value"

    def test_validate_templates_reports_all_errors(self, resolver, graph_of, fetch_and_store):
        fetch_and_store["nodes"][3]["data"]["config"] = {
            "value": "{{missing.output}}",
            "other": ["{{bad expression}}"]
        }
        result = resolver.validate_workflow_templates(graph_of(fetch_and_store))
        assert not result["valid"]
        assert [(error["nodeId"], error["field"]) for error in result["errors"]] == [
            ("n4", "value"), ("n4", "other[0]")
        ]

    def test_forward_reference_warning(self, resolver, graph_of, fetch_and_store):
        fetch_and_store["nodes"][1]["data"]["config"]["url"] = "https://example.com/{{n3.output.key}}"
        graph = graph_of(fetch_and_store)
        warnings = resolver.find_forward_references(graph, ["n1", "n2", "n3", "n4"])
        assert len(warnings) == 1
        assert warnings[0]["code"] == "ForwardReference"
        assert warnings[0]["nodeId"] == "n2"
        assert warnings[0]["field"] == "url"

    def test_resolve_with_preset_output(self, resolver, graph):
        result = resolver.resolve_node("n4", graph)
        assert result["id"] == "n4"
        assert result["resolvedConfig"]["value"] == {}
        assert "errors" in result

    def test_resolve_with_captured_samples(self, resolver, graph):
        samples = {
            "n1": {"input": {"name": "steve"}, "output": {"name": "steve"}},
            "n2": {"input": {}, "output": {"status": 200, "body": {"age": 62}}}
        }
        result = resolver.resolve_node("n4", graph, samples)
        assert result["resolvedConfig"] == {
            "value": {"age": 62},
            "message": "Age is 62 for steve"
        }
        assert "errors" not in result

    def test_bare_sample_is_output(self, resolver, graph):
        samples = {"n2": {"body": {"age": 7}}}
        result = resolver.resolve_node("n4", graph, samples)
        assert result["resolvedConfig"]["value"] == {"age": 7}

    def test_unresolvable_token_is_kept(self, resolver, graph):
        samples = {"n2": {"input": {}, "output": {"body": {}}}}
        result = resolver.resolve_node("n4", graph, samples)
        assert result["resolvedConfig"]["message"].startswith("Age is {{n2.body.age}}")
        assert result["errors"][0]["field"] == "message"

    def test_resolve_reference_errors(self, resolver, graph):
        with pytest.raises(TemplateResolutionError) as exc_info:
            resolver.resolve_reference(parse_reference("{{ghost.output}}"), graph)
        assert exc_info.value.kind == TemplateResolutionError.UNKNOWN_NODE

        with pytest.raises(TemplateResolutionError) as exc_info:
            resolver.resolve_reference(parse_reference("{{n2.output.nope}}"), graph)
        assert exc_info.value.kind == TemplateResolutionError.UNKNOWN_PATH

    def test_resolve_unknown_node(self, resolver, graph):
        with pytest.raises(NodeNotFoundError):
            resolver.resolve_node("ghost", graph)

    def test_resolve_workflow_covers_every_node(self, resolver, graph):
        result = resolver.resolve_workflow(graph)
        assert [node["id"] for node in result["nodes"]] == ["n1", "n2", "n3", "n4"]
        assert result["nodes"][1]["resolvedConfig"]["url"] == "https://api.agify.io?name=steve"

    def test_suggest_node_ids(self, resolver, graph):
        suggestions = resolver.suggest("{{n", 3, graph)
        assert [item["value"] for item in suggestions] == [
            "{{state.n1.output}}", "{{state.n2.output}}", "{{state.n3.output}}", "{{state.n4.output}}"
        ]

    def test_suggest_output_fields(self, resolver, graph):
        suggestions = resolver.suggest("{{n2.output.b", 13, graph)
        assert [item["value"] for item in suggestions] == ["{{state.n2.output.body}}"]

    def test_suggest_outside_template(self, resolver, graph):
        assert resolver.suggest("{{n2.output}} done", 18, graph) == []
