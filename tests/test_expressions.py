"""
Tests for editor-time expression checks.
Run: pytest tests/test_expressions.py -v
"""
from catalyst.workflow.expressions import (
    check_node_expressions,
    check_workflow_expressions,
    extract_expressions,
    unreferenced_variables,
    validate_expression,
)
from catalyst.workflow.manifest import NodeDefinition, WorkflowDefinition


class TestExtractExpressions:

    def test_nested_paths(self):
        config = {"prompt": "Hi {{ input.name }}", "messages": [{"content": "{{ nodes.a.output }}"}]}
        assert extract_expressions(config) == [
            ("prompt", "input.name"),
            ("messages[0].content", "nodes.a.output"),
        ]

    def test_non_strings_ignored(self):
        assert extract_expressions({"limit": 5, "flag": True}) == []


class TestValidateExpression:

    def test_known_contexts(self):
        for expression in ("input.name", "env.HOME", "global.region", "secrets.KEY", "execution.id"):
            assert validate_expression(expression) is None

    def test_unknown_context_with_suggestion(self):
        message = validate_expression("inputs.name")
        assert "Unknown context 'inputs'" in message
        assert "Did you mean 'input'?" in message

    def test_unsupported_syntax(self):
        assert "Unsupported expression" in validate_expression("input.name | upper")
        assert "Unsupported expression" in validate_expression("input.items[-1]")

    def test_node_reference_shape(self):
        assert "nodes.<id>.output" in validate_expression("nodes.fetch")
        assert validate_expression("nodes.fetch.output.items[0]", ["fetch"]) is None
        assert "unknown node 'gone'" in validate_expression("nodes.gone.output", ["fetch"])

    def test_local_variables(self):
        assert validate_expression("topic", local_names=["topic"]) is None


class TestNodeChecks:

    def test_self_reference(self):
        node = NodeDefinition(id="a", type="log", config={"message": "{{ nodes.a.output }}"})
        issues = check_node_expressions(node, ["a"])
        assert len(issues) == 1
        assert "own output" in issues[0].message

    def test_edge_conditions_checked(self):
        workflow = WorkflowDefinition.model_validate({
            "id": "wf", "name": "W",
            "nodes": {"a": {"id": "a", "type": "log"}, "b": {"id": "b", "type": "log"}},
            "edges": [{"id": "e1", "source": "a", "target": "b", "condition": "{{ vars.x }} > 1"}],
        })
        issues = check_workflow_expressions(workflow)
        assert issues[0].config_path == "edge:e1.condition"
        assert issues[0].node_id == "b"

    def test_unreferenced_variables(self):
        node = NodeDefinition(id="p", type="promptTemplate", config={
            "variables": {"topic": "{{ input.topic }}", "tone": "dry"},
            "template": "Write about {{ topic }}",
        })
        assert unreferenced_variables(node) == ["tone"]
        assert check_node_expressions(node, ["p"]) == []
