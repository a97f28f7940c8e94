"""
Shared fixtures for the Catalyst compiler test suite.
"""
import sys
import os
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("LOG_LEVEL", "WARNING")


@pytest.fixture
def node_registry():
    """The default registry (catalogue plus built-in emitters)."""
    from catalyst.compiler.registry import build_node_registry
    return build_node_registry()


@pytest.fixture
def orchestrator(node_registry):
    from catalyst.compiler.orchestrator import WorkflowOrchestrator
    return WorkflowOrchestrator(node_registry)


@pytest.fixture
def validator(node_registry):
    from catalyst.workflow.validation import WorkflowValidator
    return WorkflowValidator(node_registry)


# ── Sample workflows ─────────────────────────────────────────────


def make_hello_workflow(name: str = "Hello Flow") -> dict:
    """httpEndpoint -> promptTemplate rendering 'Hello {{ input.name }}'."""
    return {
        "id": "wf_hello",
        "name": name,
        "trigger": {"type": "httpEndpoint", "config": {"method": "POST"}},
        "nodes": {
            "trigger": {"id": "trigger", "type": "httpEndpoint", "name": "Request",
                        "config": {"path": "/hello", "method": "POST"}},
            "greet": {"id": "greet", "type": "promptTemplate", "name": "Greeting",
                      "config": {"template": "Hello {{ input.name }}"}},
        },
        "edges": [{"id": "e1", "source": "trigger", "target": "greet"}],
    }


def make_branch_workflow() -> dict:
    """httpEndpoint -> condition -> (true: high log | false: low log)."""
    return {
        "id": "wf_branch",
        "name": "Score Router",
        "nodes": {
            "trigger": {"id": "trigger", "type": "httpEndpoint", "config": {"path": "/score", "method": "POST"}},
            "check": {"id": "check", "type": "condition", "config": {"condition": "{{ input.score }} > 50"}},
            "high": {"id": "high", "type": "log", "config": {"message": "high {{ input.score }}"}},
            "low": {"id": "low", "type": "log", "config": {"message": "low {{ input.score }}"}},
        },
        "edges": [
            {"id": "e1", "source": "trigger", "target": "check"},
            {"id": "e2", "source": "check", "target": "high", "sourceHandle": "true"},
            {"id": "e3", "source": "check", "target": "low", "sourceHandle": "false"},
        ],
    }


@pytest.fixture
def hello_workflow():
    return make_hello_workflow()


@pytest.fixture
def branch_workflow():
    return make_branch_workflow()
