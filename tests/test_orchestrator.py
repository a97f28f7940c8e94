"""
Tests for the workflow orchestrator - program layout, determinism and
fail-closed generation.
Run: pytest tests/test_orchestrator.py -v
"""
import ast

import pytest

from catalyst.compiler.orchestrator import WorkflowOrchestrator, sanitize_workflow_name
from catalyst.config.settings import CompilerSettings
from catalyst.workflow.manifest import Manifest, WorkflowDefinition
from conftest import make_branch_workflow, make_hello_workflow


def _generate(orchestrator, data, manifest=None):
    return orchestrator.generate(WorkflowDefinition.model_validate(data), manifest)


# ── Slugs ────────────────────────────────────────────────────────


class TestSanitizeWorkflowName:

    @pytest.mark.parametrize("name, slug", [
        ("My Workflow!", "my_workflow"),
        ("User-API-v2", "user_api_v2"),
        ("   ", "workflow"),
        ("", "workflow"),
        ("__Already_Snake__", "already_snake"),
    ])
    def test_cases(self, name, slug):
        assert sanitize_workflow_name(name) == slug

    def test_custom_fallback(self):
        assert sanitize_workflow_name("!!!", fallback="flow") == "flow"


# ── Program layout ───────────────────────────────────────────────


class TestProgramLayout:

    def test_success_metadata(self, orchestrator, hello_workflow):
        result = _generate(orchestrator, hello_workflow)
        assert result.success, result.errors
        assert result.errors == []
        assert result.workflow_name == "hello_flow"
        assert result.node_count == 2
        assert result.dependencies == sorted(set(result.dependencies))
        assert "fastapi>=0.104.0" in result.dependencies
        ast.parse(result.code)

    def test_sections_in_order(self, orchestrator, hello_workflow):
        code = _generate(orchestrator, hello_workflow).code
        sections = [
            "# EXECUTION LOGGING",
            "# EXPRESSION RUNTIME",
            "# EXECUTION CONTEXT",
            "# FASTAPI APPLICATION",
            "# NODE LIBRARY FUNCTIONS",
            "# WORKFLOW EXECUTION",
            "# WORKFLOW ENDPOINTS",
            "# TEST EXECUTION FUNCTION",
            "# MAIN",
        ]
        positions = [code.index(s) for s in sections]
        assert positions == sorted(positions)
        assert code.index("Catalyst Workflow: Hello Flow") < positions[0]
        assert "@catalyst:generated" in code

    def test_one_call_site_per_node(self, orchestrator, branch_workflow):
        result = _generate(orchestrator, branch_workflow)
        assert result.code.count("await run_node(") == result.node_count == 4
        for n in range(1, 5):
            assert f"result_{n} = await run_node(" in result.code

    def test_both_mode_branches(self, orchestrator, hello_workflow):
        code = _generate(orchestrator, hello_workflow).code
        assert "os.getenv('CATALYST_EXECUTION_MODE', 'production')" in code
        assert "if execution_mode == 'test':" in code
        assert "async def execute_workflow_test(trigger_data: dict) -> dict:" in code
        assert "__CATALYST_EXECUTION_START__" in code
        assert "__CATALYST_EXECUTION_END__" in code
        assert "uvicorn.run(" in code

    def test_route_uses_trigger_method(self, orchestrator, hello_workflow):
        hello_workflow["trigger"]["config"]["method"] = "GET"
        code = _generate(orchestrator, hello_workflow).code
        assert '@app.get("/workflow/hello_flow")' in code
        assert "async def workflow_hello_flow(request: Request)" in code

    def test_method_falls_back_to_http_endpoint_node(self, orchestrator, hello_workflow):
        hello_workflow["trigger"]["config"] = {}
        hello_workflow["nodes"]["trigger"]["config"]["method"] = "put"
        code = _generate(orchestrator, hello_workflow).code
        assert '@app.put("/workflow/hello_flow")' in code

    def test_invalid_method_warns_and_uses_post(self, orchestrator, hello_workflow):
        hello_workflow["trigger"]["config"]["method"] = "FETCH"
        result = _generate(orchestrator, hello_workflow)
        assert '@app.post("/workflow/hello_flow")' in result.code
        assert any("FETCH" in w for w in result.warnings)

    def test_no_streaming_imports_without_streaming_nodes(self, orchestrator, hello_workflow):
        code = _generate(orchestrator, hello_workflow).code
        assert "AsyncGenerator" not in code
        assert "StreamingResponse" not in code

    def test_streaming_route(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["llm"] = {
            "id": "llm", "type": "anthropicCompletion",
            "config": {"prompt": "{{ nodes.greet.output.prompt }}", "stream": True},
        }
        hello_workflow["edges"].append({"id": "e2", "source": "greet", "target": "llm"})
        result = _generate(orchestrator, hello_workflow)
        assert result.success, result.errors
        assert "from fastapi.responses import JSONResponse, StreamingResponse" in result.code
        assert "/workflow/hello_flow/stream/node_llm_" in result.code
        assert 'media_type="text/event-stream"' in result.code
        assert "anthropic>=0.18.0" in result.dependencies
        assert result.code.count("await run_node(") == 3

    def test_manifest_secrets_globals_and_port(self, orchestrator, hello_workflow):
        manifest = Manifest.model_validate({
            "config": {"port": 9100, "cors": {"origins": ["https://app.example.com"]}},
            "secrets": {"SERVICE_TOKEN": {"required": False, "default": "dev-token"}},
            "globalVariables": {"region": "eu"},
        })
        code = _generate(orchestrator, hello_workflow, manifest).code
        assert "'SERVICE_TOKEN': 'dev-token'" in code
        assert "GLOBAL_VARIABLES: Dict[str, Any] = {'region': 'eu'}" in code
        assert 'os.getenv("PORT", "9100")' in code
        assert "CORSMiddleware" in code

    def test_settings_port_default(self, hello_workflow, node_registry):
        orchestrator = WorkflowOrchestrator(node_registry, CompilerSettings(CATALYST_DEFAULT_PORT=8123))
        code = _generate(orchestrator, hello_workflow).code
        assert 'os.getenv("PORT", "8123")' in code

    def test_emitter_secrets_declared(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["llm"] = {"id": "llm", "type": "groqCompletion", "config": {"prompt": "hi"}}
        code = _generate(orchestrator, hello_workflow).code
        assert "'GROQ_API_KEY': None" in code

    def test_generation_is_deterministic(self, orchestrator, branch_workflow):
        first = _generate(orchestrator, branch_workflow).code
        second = _generate(orchestrator, branch_workflow).code
        assert first == second

    def test_node_names_with_quotes_are_escaped(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["name"] = 'Say "hi"\n\'there\' """'
        hello_workflow["description"] = 'Docs with """ quotes'
        result = _generate(orchestrator, hello_workflow)
        assert result.success, result.errors
        ast.parse(result.code)


# ── Warnings ─────────────────────────────────────────────────────


class TestWarnings:

    def test_orphan_and_cache(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["extra"] = {
            "id": "extra", "type": "log", "config": {"message": "x"}, "cache": {"enabled": True, "ttl": 60},
        }
        result = _generate(orchestrator, hello_workflow)
        assert result.success
        assert any("extra" in w and "no connections" in w for w in result.warnings)
        assert any("caching is reserved" in w for w in result.warnings)

    def test_unreferenced_variable(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["config"]["variables"] = {"unused": "1"}
        result = _generate(orchestrator, hello_workflow)
        assert any("'unused' is never referenced" in w for w in result.warnings)

    def test_expression_issue(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["config"]["template"] = "Hi {{ inputs.name }}"
        result = _generate(orchestrator, hello_workflow)
        assert result.success
        assert any("Did you mean 'input'" in w for w in result.warnings)

    def test_scheduled_trigger_note(self, orchestrator, hello_workflow):
        hello_workflow["trigger"] = {"type": "scheduledTask", "config": {"schedule": "0 * * * *"}}
        result = _generate(orchestrator, hello_workflow)
        assert any("scheduler" in w for w in result.warnings)


# ── Failures ─────────────────────────────────────────────────────


class TestFailClosed:

    def test_unknown_node_type(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "teleport"
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert result.code == ""
        assert any("Unknown node type 'teleport'" in e for e in result.errors)

    def test_stub_node_type(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "webhookSend"
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert any("not implemented" in e for e in result.errors)

    def test_parallel_has_no_scheduler(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["type"] = "parallel"
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert any("no scheduling implementation" in e for e in result.errors)

    def test_cycle(self, orchestrator, branch_workflow):
        branch_workflow["edges"].append({"id": "e4", "source": "high", "target": "check"})
        result = _generate(orchestrator, branch_workflow)
        assert not result.success
        assert result.code == ""
        assert any("cycle" in e for e in result.errors)

    def test_dangling_edge(self, orchestrator, hello_workflow):
        hello_workflow["edges"].append({"id": "e9", "source": "greet", "target": "ghost"})
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert any("ghost" in e for e in result.errors)

    def test_key_mismatch(self, orchestrator, hello_workflow):
        hello_workflow["nodes"]["greet"]["id"] = "other"
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert any("does not match its key" in e for e in result.errors)

    def test_no_nodes(self, orchestrator):
        result = _generate(orchestrator, {"id": "wf", "name": "Empty"})
        assert not result.success
        assert result.errors == ["Workflow has no nodes"]

    def test_emitter_failure_is_reported(self, orchestrator, hello_workflow, monkeypatch):
        def broken(node):
            raise RuntimeError("emitter exploded")

        from catalyst.compiler.registry import RegistryEntry
        original = orchestrator._registry.lookup

        def lookup(node_type):
            entry = original(node_type)
            if node_type == "promptTemplate":
                return RegistryEntry(metadata=entry.metadata, emitter=broken)
            return entry

        monkeypatch.setattr(orchestrator._registry, "lookup", lookup)
        result = _generate(orchestrator, hello_workflow)
        assert not result.success
        assert any("Failed to generate node 'greet'" in e and "emitter exploded" in e for e in result.errors)
