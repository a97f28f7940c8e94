"""Test Execution Protocol - markers and result parsing for test-mode runs"""
from .protocol import (
    EXECUTION_END_MARKER,
    EXECUTION_MODE_ENV,
    EXECUTION_START_MARKER,
    ExecutionProtocolError,
    NodeExecutionRecord,
    WorkflowExecutionResult,
    parse_execution_output,
)

__all__ = [
    "EXECUTION_END_MARKER",
    "EXECUTION_MODE_ENV",
    "EXECUTION_START_MARKER",
    "ExecutionProtocolError",
    "NodeExecutionRecord",
    "WorkflowExecutionResult",
    "parse_execution_output",
]
