"""
Execution Planner - orders a workflow's nodes and describes the gates on
each node's incoming edges. Branch continuation itself is decided at run
time from these gates (see is_activated in the execution runtime).
"""

import logging
from typing import Callable, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from catalyst.workflow.manifest import TRIGGER_TYPES, EdgeDefinition, NodeDefinition

logger = logging.getLogger(__name__)


class EdgeGate(BaseModel):
    """How one incoming edge activates its target."""
    edge_id: str
    source: str
    branch: Optional[str] = None  # source's conditional port, e.g. "true" / "false"
    condition: Optional[str] = None

    @property
    def is_gated(self) -> bool:
        return self.branch is not None or bool(self.condition)

    def as_runtime(self) -> Dict[str, Optional[str]]:
        return {"source": self.source, "branch": self.branch, "condition": self.condition}


class PlannedStep(BaseModel):
    """One node in execution order."""
    position: int  # 1-based, names the result_N binding
    node_id: str
    incoming: List[EdgeGate] = Field(default_factory=list)

    @property
    def sources(self) -> List[str]:
        seen: List[str] = []
        for gate in self.incoming:
            if gate.source not in seen:
                seen.append(gate.source)
        return seen


class ExecutionPlan(BaseModel):
    steps: List[PlannedStep] = Field(default_factory=list)
    roots: List[str] = Field(default_factory=list)
    orphans: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def order(self) -> List[str]:
        return [s.node_id for s in self.steps]


def plan_execution(
    nodes: Dict[str, NodeDefinition],
    edges: List[EdgeDefinition],
    conditional_ports: Optional[Callable[[str], Set[str]]] = None,
) -> ExecutionPlan:
    """
    Order nodes with Kahn's algorithm. Roots keep node-map order and edges
    are followed in declaration order, so the plan is deterministic.
    ``conditional_ports`` maps a node type to its conditional output ports.
    """
    plan = ExecutionPlan()
    ports_for = conditional_ports or (lambda node_type: set())

    for edge in edges:
        if edge.source not in nodes:
            plan.errors.append(f"Edge {edge.id}: source '{edge.source}' not found")
        if edge.target not in nodes:
            plan.errors.append(f"Edge {edge.id}: target '{edge.target}' not found")
    if plan.errors:
        return plan

    adjacency: Dict[str, List[str]] = {node_id: [] for node_id in nodes}
    in_degree: Dict[str, int] = {node_id: 0 for node_id in nodes}
    incoming: Dict[str, List[EdgeGate]] = {node_id: [] for node_id in nodes}

    for edge in edges:
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1
        source_type = nodes[edge.source].type
        branch = edge.source_handle if edge.source_handle in ports_for(source_type) else None
        incoming[edge.target].append(
            EdgeGate(edge_id=edge.id, source=edge.source, branch=branch, condition=edge.condition or None)
        )

    plan.roots = [node_id for node_id, degree in in_degree.items() if degree == 0]
    if edges:
        connected = {e.source for e in edges} | {e.target for e in edges}
        plan.orphans = [node_id for node_id in nodes if node_id not in connected]
        for node_id in plan.orphans:
            plan.warnings.append(f"Node '{node_id}' has no connections; it runs as an independent root")

    for node_id, node in nodes.items():
        if node.type in TRIGGER_TYPES and incoming[node_id]:
            plan.warnings.append(f"Trigger node '{node_id}' has incoming edges; triggers normally start a workflow")

    queue = list(plan.roots)
    remaining = dict(in_degree)
    order: List[str] = []
    while queue:
        node_id = queue.pop(0)
        order.append(node_id)
        for neighbor in adjacency[node_id]:
            remaining[neighbor] -= 1
            if remaining[neighbor] == 0:
                queue.append(neighbor)

    if len(order) != len(nodes):
        stuck = [node_id for node_id in nodes if node_id not in order]
        plan.errors.append(f"Workflow contains a cycle involving: {', '.join(stuck)}")
        return plan

    plan.steps = [
        PlannedStep(position=i, node_id=node_id, incoming=incoming[node_id])
        for i, node_id in enumerate(order, start=1)
    ]
    logger.debug(f"[PLANNER] Planned {len(plan.steps)} steps, roots={plan.roots}")
    return plan
