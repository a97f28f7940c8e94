"""Workflow Runtime - code embedded into generated programs, importable for tests"""
from .interpolation import (
    NOT_FOUND,
    ExpressionResolutionError,
    build_variables,
    evaluate_condition,
    interpolate_template,
    interpolate_value,
    resolve_expression,
    stringify_value,
)
from .execution import (
    ExecutionContext,
    NodeConfigurationError,
    NodeExecution,
    NodeRuntimeError,
    WorkflowExecutionError,
    run_node,
)

__all__ = [
    "NOT_FOUND",
    "ExpressionResolutionError",
    "build_variables",
    "evaluate_condition",
    "interpolate_template",
    "interpolate_value",
    "resolve_expression",
    "stringify_value",
    "ExecutionContext",
    "NodeConfigurationError",
    "NodeExecution",
    "NodeRuntimeError",
    "WorkflowExecutionError",
    "run_node",
]
