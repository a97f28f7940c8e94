"""
Workflow Editing - pure graph operations used by the canvas.
Every operation returns a new WorkflowDefinition; the input is never
mutated. Invalid edits raise WorkflowEditError.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from catalyst.workflow.manifest import EdgeDefinition, NodeDefinition, TriggerDefinition, WorkflowDefinition

logger = logging.getLogger(__name__)


class WorkflowEditError(ValueError):
    """An edit that would leave the workflow inconsistent."""


def create_workflow(name: str, description: str = "", workflow_id: Optional[str] = None,
                    trigger_type: str = "httpEndpoint") -> WorkflowDefinition:
    return WorkflowDefinition(
        id=workflow_id or f"wf_{uuid.uuid4().hex[:12]}",
        name=name,
        description=description,
        trigger=TriggerDefinition(type=trigger_type),
    )


def create_node(node_type: str, name: str = "", config: Optional[Dict[str, Any]] = None,
                node_id: Optional[str] = None, **fields: Any) -> NodeDefinition:
    """Build a node; extra keyword fields (timeout, retries, on_error, ...) pass through."""
    return NodeDefinition(
        id=node_id or f"{node_type}_{uuid.uuid4().hex[:8]}",
        type=node_type,
        name=name,
        config=dict(config or {}),
        **fields,
    )


def create_edge(source: str, target: str, source_handle: Optional[str] = None,
                condition: Optional[str] = None, edge_id: Optional[str] = None) -> EdgeDefinition:
    return EdgeDefinition(
        id=edge_id or f"e_{source}_{target}_{uuid.uuid4().hex[:6]}",
        source=source,
        target=target,
        source_handle=source_handle,
        condition=condition,
    )


def _copy(workflow: WorkflowDefinition) -> WorkflowDefinition:
    return workflow.model_copy(deep=True)


def add_node(workflow: WorkflowDefinition, node: NodeDefinition) -> WorkflowDefinition:
    if node.id in workflow.nodes:
        raise WorkflowEditError(f"Node '{node.id}' already exists")
    updated = _copy(workflow)
    updated.nodes[node.id] = node.model_copy(deep=True)
    return updated


def remove_node(workflow: WorkflowDefinition, node_id: str) -> WorkflowDefinition:
    """Remove a node and every edge touching it."""
    if node_id not in workflow.nodes:
        raise WorkflowEditError(f"Node '{node_id}' does not exist")
    updated = _copy(workflow)
    del updated.nodes[node_id]
    before = len(updated.edges)
    updated.edges = [e for e in updated.edges if e.source != node_id and e.target != node_id]
    logger.debug(f"[EDITOR] Removed node '{node_id}' and {before - len(updated.edges)} edge(s)")
    return updated


def update_node_config(workflow: WorkflowDefinition, node_id: str, changes: Dict[str, Any]) -> WorkflowDefinition:
    """Shallow-merge ``changes`` into the node's config."""
    if node_id not in workflow.nodes:
        raise WorkflowEditError(f"Node '{node_id}' does not exist")
    updated = _copy(workflow)
    node = updated.nodes[node_id]
    node.config = {**node.config, **changes}
    return updated


def add_edge(workflow: WorkflowDefinition, edge: EdgeDefinition) -> WorkflowDefinition:
    for endpoint in (edge.source, edge.target):
        if endpoint not in workflow.nodes:
            raise WorkflowEditError(f"Edge '{edge.id}' references missing node '{endpoint}'")
    if edge.source == edge.target:
        raise WorkflowEditError(f"Edge '{edge.id}' would connect node '{edge.source}' to itself")
    if any(e.id == edge.id for e in workflow.edges):
        raise WorkflowEditError(f"Edge '{edge.id}' already exists")
    updated = _copy(workflow)
    updated.edges.append(edge.model_copy(deep=True))
    return updated


def remove_edge(workflow: WorkflowDefinition, edge_id: str) -> WorkflowDefinition:
    if not any(e.id == edge_id for e in workflow.edges):
        raise WorkflowEditError(f"Edge '{edge_id}' does not exist")
    updated = _copy(workflow)
    updated.edges = [e for e in updated.edges if e.id != edge_id]
    return updated
