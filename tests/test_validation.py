"""
Tests for the workflow validator and the validate-then-generate pipeline.
Run: pytest tests/test_validation.py -v
"""
from catalyst.compiler.orchestrator import WorkflowOrchestrator
from catalyst.compiler.pipeline import compile_workflow
from catalyst.config.settings import CompilerSettings
from catalyst.workflow.validation import Severity


def _paths(issues):
    return [i.path for i in issues]


class TestSchemaErrors:

    def test_missing_name(self, validator):
        report = validator.validate_workflow({"id": "wf", "nodes": {}})
        assert not report.valid
        assert "name" in _paths(report.errors)
        assert report.workflow is None

    def test_bad_on_error_policy_has_dotted_path(self, validator, hello_workflow):
        hello_workflow["nodes"]["greet"]["onError"] = "explode"
        report = validator.validate_workflow(hello_workflow)
        assert not report.valid
        assert "nodes.greet.onError" in _paths(report.errors)


class TestStructuralChecks:

    def test_valid_workflow(self, validator, hello_workflow):
        report = validator.validate_workflow(hello_workflow)
        assert report.valid
        assert report.workflow.id == "wf_hello"

    def test_unknown_type_is_error(self, validator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "teleport"
        report = validator.validate_workflow(hello_workflow)
        assert "nodes.greet.type" in _paths(report.errors)

    def test_stub_type_is_warning(self, validator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "delay"
        report = validator.validate_workflow(hello_workflow)
        assert report.valid
        assert "nodes.greet.type" in _paths(report.warnings)

    def test_missing_required_field_is_warning(self, validator, hello_workflow):
        hello_workflow["nodes"]["note"] = {"id": "note", "type": "log", "config": {}}
        report = validator.validate_workflow(hello_workflow)
        assert report.valid
        assert "nodes.note.config.message" in _paths(report.warnings)

    def test_dangling_and_duplicate_edges(self, validator, hello_workflow):
        hello_workflow["edges"].append({"id": "e1", "source": "greet", "target": "ghost"})
        report = validator.validate_workflow(hello_workflow)
        messages = [i.message for i in report.errors]
        assert any("Duplicate edge id 'e1'" in m for m in messages)
        assert any("'ghost' does not exist" in m for m in messages)

    def test_self_loop(self, validator, hello_workflow):
        hello_workflow["edges"].append({"id": "loop", "source": "greet", "target": "greet"})
        report = validator.validate_workflow(hello_workflow)
        assert any("to itself" in i.message for i in report.errors)

    def test_unknown_branch_handle_warns(self, validator, branch_workflow):
        branch_workflow["edges"][1]["sourceHandle"] = "maybe"
        report = validator.validate_workflow(branch_workflow)
        assert any(i.path.endswith("sourceHandle") for i in report.warnings)

    def test_expression_warning(self, validator, hello_workflow):
        hello_workflow["nodes"]["greet"]["config"]["template"] = "{{ nodes.ghost.output }}"
        report = validator.validate_workflow(hello_workflow)
        assert report.valid
        assert any("unknown node 'ghost'" in i.message for i in report.warnings)
        assert all(i.severity == Severity.WARNING for i in report.warnings)


class TestManifestValidation:

    def test_workflow_key_mismatch(self, validator, hello_workflow):
        report = validator.validate_manifest({"workflows": {"other": hello_workflow}})
        assert "workflows.other.id" in _paths(report.errors)

    def test_nested_paths(self, validator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "teleport"
        report = validator.validate_manifest({"workflows": {"wf_hello": hello_workflow}})
        assert "workflows.wf_hello.nodes.greet.type" in _paths(report.errors)

    def test_optional_secret_without_default(self, validator):
        report = validator.validate_manifest({"secrets": {"TOKEN": {"required": False}}})
        assert report.valid
        assert "secrets.TOKEN" in _paths(report.warnings)


class TestCompileWorkflow:

    def test_compiles_valid_workflow(self, hello_workflow):
        result = compile_workflow(hello_workflow)
        assert result.success
        assert result.code

    def test_refuses_invalid_workflow(self, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "teleport"
        result = compile_workflow(hello_workflow)
        assert not result.success
        assert result.code == ""
        assert result.workflow_name == "hello_flow"
        assert any(e.startswith("nodes.greet.type") for e in result.errors)

    def test_validation_warnings_are_merged_once(self, hello_workflow):
        hello_workflow["nodes"]["note"] = {"id": "note", "type": "log", "config": {}}
        hello_workflow["edges"].append({"id": "e2", "source": "greet", "target": "note"})
        result = compile_workflow(hello_workflow)
        assert result.success
        assert sum("'message' is not set" in w for w in result.warnings) == 1

    def test_uses_given_orchestrator(self, hello_workflow, node_registry):
        orchestrator = WorkflowOrchestrator(node_registry, CompilerSettings(CATALYST_ROUTE_PREFIX="/flows"))
        result = compile_workflow(hello_workflow, registry=node_registry, orchestrator=orchestrator)
        assert result.success, result.errors
        assert '"/flows/hello_flow"' in result.code
        assert '"/workflow/hello_flow"' not in result.code
