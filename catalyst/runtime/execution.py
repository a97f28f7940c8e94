"""
Execution Runtime - per-run context, node execution records and the node
wrapper that applies timeouts, retries, pinned data and error policies.
Embedded verbatim into every generated workflow program after the
expression runtime.
"""

import asyncio
import logging
import os
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from catalyst.runtime.interpolation import (
    ExpressionResolutionError,
    build_variables,
    evaluate_condition,
)

logger = logging.getLogger(__name__)


class NodeConfigurationError(ValueError):
    """A node's configuration is missing or invalid. Never retried."""


class NodeRuntimeError(RuntimeError):
    """A node failed while talking to an external system."""


class WorkflowExecutionError(Exception):
    """A node failed under the 'throw' policy, or the run timed out."""

    def __init__(self, message: str, node_id: Optional[str] = None, category: str = "unexpected"):
        super().__init__(message)
        self.node_id = node_id
        self.category = category


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def classify_error(error: BaseException) -> str:
    if isinstance(error, NodeConfigurationError):
        return "configuration"
    if isinstance(error, ExpressionResolutionError):
        return "resolution"
    if isinstance(error, asyncio.TimeoutError):
        return "timeout"
    if isinstance(error, NodeRuntimeError):
        return "runtime"
    return "unexpected"


def require_config(config: Dict[str, Any], fields: Sequence[str], node_id: str) -> None:
    """Raise NodeConfigurationError naming every required field that is empty."""
    missing = [f for f in fields if config.get(f) in (None, "", [], {})]
    if missing:
        raise NodeConfigurationError(
            f"Node '{node_id}' is missing required configuration: {', '.join(missing)}"
        )


def resolve_secret(ctx: "ExecutionContext", explicit: Any, name: str, node_id: str) -> str:
    """Prefer an explicitly configured value, else the named workflow secret."""
    value = explicit or ctx.secrets.get(name)
    if not value:
        raise NodeConfigurationError(
            f"Node '{node_id}' requires the {name} secret (or an explicit apiKey)"
        )
    return str(value)


class ExecutionContext:
    """State shared by every node of a single workflow run."""

    def __init__(
        self,
        workflow_id: str,
        workflow_name: str = "",
        input_data: Any = None,
        secrets: Optional[Dict[str, Any]] = None,
        global_vars: Optional[Dict[str, Any]] = None,
        env: Optional[Dict[str, str]] = None,
        mode: str = "production",
        execution_id: Optional[str] = None,
    ):
        self.execution_id = execution_id or str(uuid.uuid4())
        self.workflow_id = workflow_id
        self.workflow_name = workflow_name
        self.input = input_data if input_data is not None else {}
        self.nodes: Dict[str, Dict[str, Any]] = {}
        self.env = dict(os.environ) if env is None else env
        self.global_vars = global_vars or {}
        self.secrets = secrets or {}
        self.mode = mode
        self.started_at = utc_now()
        self.clock_start = time.perf_counter()
        self.execution = {
            "id": self.execution_id,
            "workflowId": workflow_id,
            "workflowName": workflow_name,
            "mode": mode,
            "startedAt": self.started_at,
        }


class NodeExecution:
    """Record of one node's run: timing, attempts, input, output and error."""

    def __init__(self, node_id: str, node_name: str, node_type: str):
        self.node_id = node_id
        self.node_name = node_name
        self.node_type = node_type
        self.status = "pending"
        self.started_at: Optional[str] = None
        self.completed_at: Optional[str] = None
        self.duration_ms: Optional[float] = None
        self.attempts = 0
        self.pinned = False
        self.input: Any = None
        self.output: Any = None
        self.error: Optional[Dict[str, Any]] = None
        self._clock: Optional[float] = None

    def start(self, input_data: Any) -> None:
        self.status = "running"
        self.input = input_data
        self.started_at = utc_now()
        self._clock = time.perf_counter()

    def _finish(self, status: str) -> None:
        self.status = status
        self.completed_at = utc_now()
        if self._clock is not None:
            self.duration_ms = round((time.perf_counter() - self._clock) * 1000, 2)

    def succeed(self, output: Any, pinned: bool = False) -> None:
        self.output = output
        self.pinned = pinned
        self._finish("success")

    def fail(self, category: str, error: BaseException) -> None:
        self.error = {
            "message": str(error) or type(error).__name__,
            "category": category,
            "type": type(error).__name__,
            "stack": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        }
        self._finish("error")

    def skip(self) -> None:
        self.started_at = self.completed_at = utc_now()
        self.duration_ms = 0.0
        self.status = "skipped"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "nodeName": self.node_name,
            "nodeType": self.node_type,
            "status": self.status,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "durationMs": self.duration_ms,
            "attempts": self.attempts,
            "pinned": self.pinned,
            "input": self.input,
            "output": self.output,
            "error": self.error,
        }


def retry_delay_seconds(attempt: int, base_delay_ms: int, backoff: str) -> float:
    if backoff == "exponential":
        return base_delay_ms * (2 ** (attempt - 1)) / 1000.0
    return base_delay_ms * attempt / 1000.0


def _collect_input(ctx: ExecutionContext, sources: Sequence[str]) -> Any:
    if not sources:
        return ctx.input
    return {s: ctx.nodes[s]["output"] for s in sources if s in ctx.nodes}


async def run_node(
    ctx: ExecutionContext,
    executions: List[NodeExecution],
    node_id: str,
    node_name: str,
    node_type: str,
    func: Callable[[ExecutionContext], Awaitable[Any]],
    sources: Sequence[str] = (),
    timeout_ms: Optional[int] = None,
    retries: int = 0,
    retry_delay_ms: int = 0,
    retry_backoff: str = "linear",
    on_error: str = "throw",
    fallback_value: Any = None,
    pinned_data: Any = None,
) -> Any:
    """
    Run one node function and record its NodeExecution.

    Retries everything except configuration errors. After the last attempt
    the on_error policy decides: 'throw' raises WorkflowExecutionError,
    'continue' yields None and 'fallback' yields fallback_value. Pinned data
    replaces the call in test mode.
    """
    record = NodeExecution(node_id, node_name, node_type)
    executions.append(record)
    record.start(_collect_input(ctx, sources))

    if pinned_data is not None and ctx.mode == "test":
        logger.info(f"[{node_id}] Using pinned data")
        record.succeed(pinned_data, pinned=True)
        ctx.nodes[node_id] = {"output": pinned_data, "status": "success"}
        return pinned_data

    attempt = 0
    while True:
        attempt += 1
        record.attempts = attempt
        try:
            if timeout_ms:
                result = await asyncio.wait_for(func(ctx), timeout=timeout_ms / 1000.0)
            else:
                result = await func(ctx)
        except Exception as e:
            category = classify_error(e)
            if category != "configuration" and attempt <= retries:
                delay = retry_delay_seconds(attempt, retry_delay_ms, retry_backoff)
                logger.warning(f"[{node_id}] Attempt {attempt} failed ({category}): {e}. Retrying in {delay:.2f}s")
                if delay > 0:
                    await asyncio.sleep(delay)
                continue
            error = e
            break
        record.succeed(result)
        ctx.nodes[node_id] = {"output": result, "status": "success"}
        logger.info(f"[{node_id}] Completed in {record.duration_ms}ms")
        return result

    category = classify_error(error)
    record.fail(category, error)
    if category == "unexpected":
        logger.error(f"[{node_id}] Unexpected error: {error}", exc_info=error)
    else:
        logger.error(f"[{node_id}] {category.capitalize()} error: {error}")

    if on_error == "continue":
        ctx.nodes[node_id] = {"output": None, "status": "error"}
        return None
    if on_error == "fallback":
        ctx.nodes[node_id] = {"output": fallback_value, "status": "error"}
        return fallback_value
    raise WorkflowExecutionError(
        f"Node '{node_name}' ({node_id}) failed: {error}", node_id=node_id, category=category
    ) from error


def is_activated(ctx: ExecutionContext, incoming: Sequence[Dict[str, Any]]) -> bool:
    """
    A node with no incoming edges always runs. Otherwise at least one edge
    must be live: its source ran, its branch (if any) matches the source's
    branch output and its condition (if any) holds.
    """
    if not incoming:
        return True
    for edge in incoming:
        state = ctx.nodes.get(edge["source"])
        if state is None:
            continue
        branch = edge.get("branch")
        if branch is not None:
            output = state.get("output")
            if not isinstance(output, dict) or output.get("branch") != branch:
                continue
        condition = edge.get("condition")
        if condition and not evaluate_condition(condition, build_variables(ctx)):
            continue
        return True
    return False


def record_skipped(
    ctx: ExecutionContext,
    executions: List[NodeExecution],
    node_id: str,
    node_name: str,
    node_type: str,
) -> None:
    record = NodeExecution(node_id, node_name, node_type)
    record.skip()
    executions.append(record)
    logger.info(f"[{node_id}] Skipped: no active incoming edge")


async def run_with_timeout(coro: Awaitable[Any], timeout_ms: Optional[int]) -> Any:
    if not timeout_ms:
        return await coro
    try:
        return await asyncio.wait_for(coro, timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError as e:
        raise WorkflowExecutionError(
            f"Workflow exceeded its timeout of {timeout_ms}ms", category="timeout"
        ) from e


def build_execution_result(
    ctx: ExecutionContext,
    executions: List[NodeExecution],
    status: str,
    result: Any = None,
    error: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    return {
        "executionId": ctx.execution_id,
        "workflowId": ctx.workflow_id,
        "workflowName": ctx.workflow_name,
        "executionMode": ctx.mode,
        "status": status,
        "startedAt": ctx.started_at,
        "completedAt": utc_now(),
        "durationMs": round((time.perf_counter() - ctx.clock_start) * 1000, 2),
        "nodeExecutions": [e.to_dict() for e in executions],
        "result": result,
        "error": error,
    }
