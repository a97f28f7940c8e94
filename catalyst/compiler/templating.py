"""
Template Compiler - emits the expression and execution runtimes into a
generated program. The runtimes are real modules under catalyst.runtime; their
top-level definitions are copied once per program, minus the module
docstring, imports and module logger (the program supplies those).
"""

import ast
import inspect
from types import ModuleType
from typing import Callable, Dict, List

from catalyst.runtime import execution, interpolation


def _is_module_logger(node: ast.stmt) -> bool:
    return (
        isinstance(node, ast.Assign)
        and len(node.targets) == 1
        and isinstance(node.targets[0], ast.Name)
        and node.targets[0].id == "logger"
    )


def _is_docstring(node: ast.stmt) -> bool:
    return (
        isinstance(node, ast.Expr)
        and isinstance(node.value, ast.Constant)
        and isinstance(node.value.value, str)
    )


def module_body_source(module: ModuleType) -> str:
    """Top-level definitions of ``module`` as source text, with their leading comments."""
    source = inspect.getsource(module)
    lines = source.splitlines()
    tree = ast.parse(source)
    blocks: List[str] = []

    for index, node in enumerate(tree.body):
        if isinstance(node, (ast.Import, ast.ImportFrom)) or _is_module_logger(node):
            continue
        if index == 0 and _is_docstring(node):
            continue
        start = node.lineno - 1
        decorators = getattr(node, "decorator_list", [])
        if decorators:
            start = min(d.lineno for d in decorators) - 1
        while start > 0 and lines[start - 1].lstrip().startswith("#"):
            start -= 1
        blocks.append("\n".join(lines[start:node.end_lineno]))

    return "\n\n\n".join(blocks)


def helper_sources(*functions: Callable) -> Dict[str, str]:
    """Name -> source for runtime helper functions a fragment depends on."""
    return {f.__name__: inspect.getsource(f).rstrip() for f in functions}


def emit_expression_runtime() -> str:
    return module_body_source(interpolation)


def emit_execution_runtime() -> str:
    return module_body_source(execution)
