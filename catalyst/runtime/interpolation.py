"""
Expression Runtime - resolves {{ path }} placeholders against live run data.
This module is embedded verbatim into every generated workflow program, so it
may only depend on the standard library and on names defined in the program
itself (``logger``).
"""

import json
import logging
import re
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_SEGMENT_PATTERN = re.compile(r"^([^\[\]]*)((?:\[[^\[\]]*\])*)$")
_INDEX_PATTERN = re.compile(r"\[([^\[\]]*)\]")
_COMPARISON_PATTERN = re.compile(r"^(.*?)\s*(==|!=|>=|<=|>|<)\s*(.*)$", re.DOTALL)
_FALSY_TEXT = {"", "false", "0", "none", "null"}


class _NotFound:
    """Result of a path that does not resolve. Distinct from a stored None."""

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


class ExpressionResolutionError(LookupError):
    """A placeholder could not be resolved while strict resolution was on."""


def expression_root(expression: str) -> str:
    return re.split(r"[.\[]", expression.strip(), maxsplit=1)[0]


def _lookup(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current[key] if key in current else NOT_FOUND
    if key.startswith("_"):
        return NOT_FOUND
    return getattr(current, key, NOT_FOUND)


def _index(current: Any, raw_index: str) -> Any:
    # Only non-negative integer literals index a list or tuple.
    if not raw_index.isdigit() or not isinstance(current, (list, tuple)):
        return NOT_FOUND
    position = int(raw_index)
    if position >= len(current):
        return NOT_FOUND
    return current[position]


def resolve_expression(expression: str, variables: Dict[str, Any]) -> Any:
    """
    Walk a dot path such as ``nodes.fetch.output.items[0].title`` through
    ``variables``. Returns NOT_FOUND at the first segment that does not
    resolve; never raises.
    """
    path = expression.strip()
    if not path:
        return NOT_FOUND

    current: Any = variables
    for segment in path.split("."):
        match = _SEGMENT_PATTERN.match(segment.strip())
        if match is None:
            return NOT_FOUND
        name, indices = match.groups()
        if name:
            current = _lookup(current, name)
        elif not indices:
            return NOT_FOUND
        if current is NOT_FOUND:
            return NOT_FOUND
        for raw_index in _INDEX_PATTERN.findall(indices):
            current = _index(current, raw_index.strip())
            if current is NOT_FOUND:
                return NOT_FOUND
    return current


def stringify_value(value: Any) -> str:
    """None -> '', scalars -> str(), dicts and lists -> compact JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _resolve_placeholder(
    expression: str,
    variables: Dict[str, Any],
    variables_used: Optional[Set[str]],
    strict: bool,
) -> Any:
    if variables_used is not None:
        variables_used.add(expression_root(expression))
    value = resolve_expression(expression, variables)
    if value is NOT_FOUND:
        if strict:
            raise ExpressionResolutionError(f"Expression '{{{{ {expression} }}}}' could not be resolved")
        logger.warning(f"[EXPRESSION] '{{{{ {expression} }}}}' could not be resolved. Using empty string")
    return value


def interpolate_template(
    template: str,
    variables: Dict[str, Any],
    variables_used: Optional[Set[str]] = None,
    strict: bool = False,
) -> str:
    """Replace every placeholder in ``template`` with its stringified value."""

    def replace(match: "re.Match") -> str:
        value = _resolve_placeholder(match.group(1).strip(), variables, variables_used, strict)
        if value is NOT_FOUND:
            return ""
        return stringify_value(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def interpolate_value(
    value: Any,
    variables: Dict[str, Any],
    variables_used: Optional[Set[str]] = None,
    strict: bool = False,
) -> Any:
    """
    Resolve a config value. Static wrappers unwrap untouched, a string that
    is exactly one placeholder keeps the resolved value's type, other strings
    are interpolated and containers are resolved item by item.
    """
    if isinstance(value, str):
        match = PLACEHOLDER_PATTERN.fullmatch(value.strip())
        if match:
            resolved = _resolve_placeholder(match.group(1).strip(), variables, variables_used, strict)
            return "" if resolved is NOT_FOUND else resolved
        return interpolate_template(value, variables, variables_used, strict)

    if isinstance(value, dict):
        if set(value) == {"type", "value"} and value["type"] == "static":
            return value["value"]
        if set(value) == {"type", "expression"} and value["type"] == "expression":
            return interpolate_value(value["expression"], variables, variables_used, strict)
        return {k: interpolate_value(v, variables, variables_used, strict) for k, v in value.items()}

    if isinstance(value, list):
        return [interpolate_value(v, variables, variables_used, strict) for v in value]

    return value


def build_variables(ctx: Any, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Expression scope for one node: run contexts plus config-level variables."""
    variables: Dict[str, Any] = {
        "input": ctx.input,
        "nodes": ctx.nodes,
        "env": ctx.env,
        "global": ctx.global_vars,
        "secrets": ctx.secrets,
        "execution": ctx.execution,
    }
    if overrides:
        resolved = interpolate_value(overrides, dict(variables))
        if isinstance(resolved, dict):
            variables.update(resolved)
    return variables


def _operand(text: str, variables: Dict[str, Any], variables_used: Optional[Set[str]]) -> Any:
    text = text.strip()
    match = PLACEHOLDER_PATTERN.fullmatch(text)
    if match:
        value = _resolve_placeholder(match.group(1).strip(), variables, variables_used, False)
        return None if value is NOT_FOUND else value
    if PLACEHOLDER_PATTERN.search(text):
        return interpolate_template(text, variables, variables_used)
    if len(text) >= 2 and text[0] == text[-1] == "'":
        return text[1:-1]
    try:
        return json.loads(text)
    except ValueError:
        return text


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


_COMPARATORS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
}


def _compare(left: Any, operator: str, right: Any) -> bool:
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        left, right = left_num, right_num
    compare = _COMPARATORS[operator]
    try:
        return bool(compare(left, right))
    except TypeError:
        # Mixed types (e.g. None vs str) fall back to text comparison.
        return bool(compare(stringify_value(left), stringify_value(right)))


def evaluate_condition(
    condition: Any,
    variables: Dict[str, Any],
    variables_used: Optional[Set[str]] = None,
) -> bool:
    """
    Evaluate an edge or condition-node expression without eval():
    a lone placeholder uses the value's truthiness, ``left OP right``
    compares both sides, anything else is true unless it interpolates to
    an empty or false-like string.
    """
    if isinstance(condition, bool):
        return condition
    if condition is None:
        return False
    text = str(condition).strip()

    match = PLACEHOLDER_PATTERN.fullmatch(text)
    if match:
        value = _resolve_placeholder(match.group(1).strip(), variables, variables_used, False)
        return False if value is NOT_FOUND else bool(value)

    comparison = _COMPARISON_PATTERN.match(text)
    if comparison:
        left, operator, right = comparison.groups()
        if left.strip() and right.strip():
            return _compare(
                _operand(left, variables, variables_used),
                operator,
                _operand(right, variables, variables_used),
            )

    rendered = interpolate_template(text, variables, variables_used).strip()
    return rendered.lower() not in _FALSY_TEXT
