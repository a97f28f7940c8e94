"""
Tests for the execution runtime embedded in generated programs:
run_node policies, branch activation and result assembly.
Run: pytest tests/test_execution_runtime.py -v
"""
import asyncio

import pytest

from catalyst.runtime.execution import (
    ExecutionContext,
    NodeConfigurationError,
    NodeRuntimeError,
    WorkflowExecutionError,
    build_execution_result,
    classify_error,
    is_activated,
    record_skipped,
    retry_delay_seconds,
    run_node,
    run_with_timeout,
)


def _ctx(mode: str = "production", input_data=None) -> ExecutionContext:
    return ExecutionContext("wf_test", "Test", input_data=input_data or {"x": 1}, env={}, mode=mode)


class Flaky:
    """Node function failing ``failures`` times before returning ``value``."""

    def __init__(self, failures: int, error: Exception, value="ok"):
        self.failures = failures
        self.error = error
        self.value = value
        self.calls = 0

    async def __call__(self, ctx):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


def _run(ctx, func, **kwargs):
    executions = []
    params = dict(node_id="n1", node_name="Node One", node_type="log", func=func)
    params.update(kwargs)
    result = asyncio.run(run_node(ctx, executions, **params))
    return result, executions


# ── run_node ─────────────────────────────────────────────────────


class TestRunNode:

    def test_success_records_output(self):
        ctx = _ctx()
        result, executions = _run(ctx, Flaky(0, RuntimeError()), sources=[])
        assert result == "ok"
        assert ctx.nodes["n1"] == {"output": "ok", "status": "success"}
        record = executions[0].to_dict()
        assert record["status"] == "success"
        assert record["attempts"] == 1
        assert record["input"] == {"x": 1}
        assert record["durationMs"] is not None

    def test_retries_runtime_errors(self):
        func = Flaky(2, NodeRuntimeError("boom"))
        result, executions = _run(_ctx(), func, retries=2, retry_delay_ms=0)
        assert result == "ok"
        assert func.calls == 3
        assert executions[0].attempts == 3

    def test_configuration_errors_are_not_retried(self):
        func = Flaky(5, NodeConfigurationError("missing"))
        with pytest.raises(WorkflowExecutionError) as exc:
            _run(_ctx(), func, retries=3, retry_delay_ms=0)
        assert func.calls == 1
        assert exc.value.category == "configuration"
        assert exc.value.node_id == "n1"

    def test_throw_policy_records_error(self):
        ctx = _ctx()
        executions = []
        with pytest.raises(WorkflowExecutionError):
            asyncio.run(run_node(ctx, executions, "n1", "Node One", "log", Flaky(9, NodeRuntimeError("down"))))
        record = executions[0].to_dict()
        assert record["status"] == "error"
        assert record["error"]["category"] == "runtime"
        assert "down" in record["error"]["message"]

    def test_continue_policy_yields_none(self):
        ctx = _ctx()
        result, executions = _run(ctx, Flaky(9, NodeRuntimeError("down")), on_error="continue")
        assert result is None
        assert ctx.nodes["n1"]["status"] == "error"
        assert executions[0].status == "error"

    def test_fallback_policy_yields_fallback_value(self):
        ctx = _ctx()
        result, _ = _run(ctx, Flaky(9, ValueError("bad")), on_error="fallback", fallback_value={"safe": True})
        assert result == {"safe": True}
        assert ctx.nodes["n1"]["output"] == {"safe": True}

    def test_timeout_is_categorised(self):
        async def slow(ctx):
            await asyncio.sleep(1)

        executions = []
        with pytest.raises(WorkflowExecutionError) as exc:
            asyncio.run(run_node(_ctx(), executions, "n1", "Slow", "log", slow, timeout_ms=20))
        assert exc.value.category == "timeout"
        assert executions[0].error["category"] == "timeout"

    def test_pinned_data_used_in_test_mode(self):
        func = Flaky(0, RuntimeError())
        result, executions = _run(_ctx(mode="test"), func, pinned_data={"frozen": 1})
        assert result == {"frozen": 1}
        assert func.calls == 0
        assert executions[0].pinned is True

    def test_pinned_data_ignored_in_production(self):
        func = Flaky(0, RuntimeError())
        result, _ = _run(_ctx(mode="production"), func, pinned_data={"frozen": 1})
        assert result == "ok"
        assert func.calls == 1

    def test_input_collected_from_sources(self):
        ctx = _ctx()
        ctx.nodes["a"] = {"output": {"v": 1}, "status": "success"}
        _, executions = _run(ctx, Flaky(0, RuntimeError()), sources=["a"])
        assert executions[0].input == {"a": {"v": 1}}


class TestRetryDelay:

    def test_linear(self):
        assert retry_delay_seconds(1, 1000, "linear") == 1.0
        assert retry_delay_seconds(3, 1000, "linear") == 3.0

    def test_exponential(self):
        assert retry_delay_seconds(1, 500, "exponential") == 0.5
        assert retry_delay_seconds(3, 500, "exponential") == 2.0


class TestClassifyError:

    def test_categories(self):
        assert classify_error(NodeConfigurationError("x")) == "configuration"
        assert classify_error(NodeRuntimeError("x")) == "runtime"
        assert classify_error(asyncio.TimeoutError()) == "timeout"
        assert classify_error(KeyError("x")) == "unexpected"


# ── Activation ───────────────────────────────────────────────────


class TestIsActivated:

    def test_no_incoming_edges_always_runs(self):
        assert is_activated(_ctx(), []) is True

    def test_source_must_have_run(self):
        assert is_activated(_ctx(), [{"source": "a", "branch": None, "condition": None}]) is False

    def test_branch_must_match(self):
        ctx = _ctx()
        ctx.nodes["check"] = {"output": {"result": True, "branch": "true"}, "status": "success"}
        assert is_activated(ctx, [{"source": "check", "branch": "true", "condition": None}]) is True
        assert is_activated(ctx, [{"source": "check", "branch": "false", "condition": None}]) is False

    def test_edge_condition(self):
        ctx = _ctx(input_data={"score": 80})
        ctx.nodes["a"] = {"output": 1, "status": "success"}
        assert is_activated(ctx, [{"source": "a", "branch": None, "condition": "{{ input.score }} > 50"}]) is True
        assert is_activated(ctx, [{"source": "a", "branch": None, "condition": "{{ input.score }} > 90"}]) is False

    def test_any_live_edge_activates(self):
        ctx = _ctx()
        ctx.nodes["b"] = {"output": None, "status": "success"}
        incoming = [
            {"source": "a", "branch": None, "condition": None},
            {"source": "b", "branch": None, "condition": None},
        ]
        assert is_activated(ctx, incoming) is True


# ── Results ──────────────────────────────────────────────────────


class TestExecutionResult:

    def test_skipped_and_result_shape(self):
        ctx = _ctx(mode="test")
        executions = []
        record_skipped(ctx, executions, "low", "Low", "log")
        result = build_execution_result(ctx, executions, "success", result={"done": True})
        assert result["workflowId"] == "wf_test"
        assert result["executionMode"] == "test"
        assert result["status"] == "success"
        assert result["result"] == {"done": True}
        assert result["nodeExecutions"][0]["status"] == "skipped"
        assert result["nodeExecutions"][0]["durationMs"] == 0.0

    def test_run_with_timeout(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(WorkflowExecutionError) as exc:
            asyncio.run(run_with_timeout(slow(), 20))
        assert exc.value.category == "timeout"

    def test_run_without_timeout(self):
        async def quick():
            return 5

        assert asyncio.run(run_with_timeout(quick(), None)) == 5
