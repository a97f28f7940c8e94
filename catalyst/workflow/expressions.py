"""
Expression Checks - editor-time validation of {{ }} expressions in node
config. Nothing here resolves values; it only reports expressions that the
runtime would resolve to an empty string (unknown contexts, unsupported
syntax, references to nodes that do not exist).
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel

from catalyst.runtime.interpolation import PLACEHOLDER_PATTERN, expression_root
from catalyst.workflow.manifest import NodeDefinition, WorkflowDefinition

EXPRESSION_CONTEXTS: Dict[str, str] = {
    "input": "Workflow trigger payload",
    "nodes": "Outputs of earlier nodes: nodes.<id>.output",
    "env": "Environment variables",
    "global": "Project global variables",
    "secrets": "Secret values",
    "execution": "Execution metadata (id, workflowId, mode, startedAt)",
}

CONTEXT_SUGGESTIONS: Dict[str, str] = {
    "inputs": "input",
    "node": "nodes",
    "environment": "env",
    "vars": "global",
    "globals": "global",
    "secret": "secrets",
    "exec": "execution",
}

_PATH_PATTERN = re.compile(r"^[A-Za-z_][\w-]*(\[\d+\])*(\.[\w-]+(\[\d+\])*)*$")


class ExpressionIssue(BaseModel):
    """A problem with one expression inside a node's config."""
    node_id: str
    config_path: str
    expression: str
    message: str


def extract_expressions(value: Any, path: str = "") -> List[Tuple[str, str]]:
    """Every (config path, expression) pair in a config value, depth first."""
    found: List[Tuple[str, str]] = []
    if isinstance(value, str):
        for match in PLACEHOLDER_PATTERN.finditer(value):
            found.append((path, match.group(1).strip()))
    elif isinstance(value, dict):
        for key, item in value.items():
            found.extend(extract_expressions(item, f"{path}.{key}" if path else str(key)))
    elif isinstance(value, list):
        for position, item in enumerate(value):
            found.extend(extract_expressions(item, f"{path}[{position}]"))
    return found


def validate_expression(
    expression: str,
    node_ids: Iterable[str] = (),
    local_names: Iterable[str] = (),
) -> Optional[str]:
    """Return a message describing what is wrong with ``expression``, or None."""
    text = expression.strip()
    if not _PATH_PATTERN.match(text):
        return (
            f"Unsupported expression '{text}': only dot paths with [n] indices are resolved "
            f"(filters, function calls and negative indices are not)"
        )

    root = expression_root(text)
    if root in set(local_names):
        return None
    if root not in EXPRESSION_CONTEXTS:
        suggestion = CONTEXT_SUGGESTIONS.get(root)
        hint = f" Did you mean '{suggestion}'?" if suggestion else ""
        known = ", ".join(EXPRESSION_CONTEXTS)
        return f"Unknown context '{root}' in '{text}'. Known contexts: {known}.{hint}"

    if root == "nodes":
        segments = text.split(".")
        if len(segments) < 3:
            return f"Node reference '{text}' needs the form nodes.<id>.output"
        node_id = re.sub(r"\[\d+\]$", "", segments[1])
        ids = set(node_ids)
        if ids and node_id not in ids:
            return f"'{text}' references unknown node '{node_id}'"
    return None


def check_node_expressions(node: NodeDefinition, node_ids: Iterable[str]) -> List[ExpressionIssue]:
    ids = list(node_ids)
    variables = node.config.get("variables")
    local_names = list(variables) if isinstance(variables, dict) else []
    issues: List[ExpressionIssue] = []
    for config_path, expression in extract_expressions(node.config):
        message = validate_expression(expression, ids, local_names)
        if message is None and expression_root(expression) == "nodes":
            referenced = expression.split(".")[1]
            if referenced == node.id:
                message = f"'{expression}' references the node's own output, which is not available yet"
        if message:
            issues.append(ExpressionIssue(
                node_id=node.id, config_path=config_path, expression=expression, message=message,
            ))
    return issues


def check_workflow_expressions(workflow: WorkflowDefinition) -> List[ExpressionIssue]:
    node_ids = list(workflow.nodes)
    issues: List[ExpressionIssue] = []
    for node in workflow.nodes.values():
        issues.extend(check_node_expressions(node, node_ids))
    for edge in workflow.edges:
        if not edge.condition:
            continue
        for _, expression in extract_expressions(edge.condition):
            message = validate_expression(expression, node_ids)
            if message:
                issues.append(ExpressionIssue(
                    node_id=edge.target, config_path=f"edge:{edge.id}.condition",
                    expression=expression, message=message,
                ))
    return issues


def unreferenced_variables(node: NodeDefinition) -> List[str]:
    """Config-level variables that no placeholder in the rest of the config uses."""
    variables = node.config.get("variables")
    if not isinstance(variables, dict):
        return []
    rest = {k: v for k, v in node.config.items() if k != "variables"}
    used = {expression_root(expr) for _, expr in extract_expressions(rest)}
    return [name for name in variables if name not in used]
