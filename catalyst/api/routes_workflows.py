"""
Catalyst Compiler - Workflow Routes
Canvas-facing endpoints for the node palette and for validating, previewing
and generating workflow programs.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Query
from pydantic import BaseModel, ValidationError

from catalyst.compiler.orchestrator import WorkflowOrchestrator
from catalyst.compiler.pipeline import compile_workflow
from catalyst.compiler.planner import plan_execution
from catalyst.compiler.registry import NodeRegistry
from catalyst.workflow.manifest import Manifest, NodeCategory
from catalyst.workflow.validation import WorkflowValidator

logger = logging.getLogger(__name__)


# ── Request Models ────────────────────────────────────────────────

class WorkflowRequest(BaseModel):
    workflow: Dict[str, Any]
    manifest: Optional[Dict[str, Any]] = None


def _parse_manifest(raw: Optional[Dict[str, Any]]) -> Optional[Manifest]:
    if raw is None:
        return None
    try:
        return Manifest.model_validate(raw)
    except ValidationError as e:
        raise HTTPException(422, {"message": "Invalid manifest", "errors": e.errors(include_url=False)})


# ── Route Registration ────────────────────────────────────────────

def register_workflow_routes(app, registry: NodeRegistry, validator: WorkflowValidator,
                             orchestrator: WorkflowOrchestrator):
    """Register palette and compilation routes."""

    # ══════════════════════════════════════════════════════════════
    # NODE PALETTE
    # ══════════════════════════════════════════════════════════════

    @app.get("/nodes")
    async def list_nodes(category: Optional[NodeCategory] = Query(default=None),
                         implemented_only: bool = Query(default=False, alias="implementedOnly")):
        """List node types for the canvas palette."""
        nodes = registry.list_all(category)
        if implemented_only:
            nodes = [n for n in nodes if n.implemented]
        return {
            "count": len(nodes),
            "nodes": [n.model_dump(by_alias=True, mode="json") for n in nodes],
            "stats": registry.get_stats(),
        }

    @app.get("/nodes/{node_type}")
    async def get_node(node_type: str):
        meta = registry.get_metadata(node_type)
        if meta is None:
            raise HTTPException(404, f"Unknown node type '{node_type}'")
        return meta.model_dump(by_alias=True, mode="json")

    # ══════════════════════════════════════════════════════════════
    # WORKFLOWS
    # ══════════════════════════════════════════════════════════════

    @app.post("/workflows/validate")
    async def validate_workflow(req: WorkflowRequest):
        """Validate a workflow document without generating code."""
        report = validator.validate_workflow(req.workflow)
        return {
            "valid": report.valid,
            "errors": [i.model_dump(mode="json") for i in report.errors],
            "warnings": [i.model_dump(mode="json") for i in report.warnings],
        }

    @app.post("/workflows/preview")
    async def preview_workflow(req: WorkflowRequest):
        """Execution order and branch gates the generated program would use."""
        report = validator.validate_workflow(req.workflow)
        if report.workflow is None:
            raise HTTPException(422, {
                "message": "Workflow does not match the schema",
                "errors": [i.model_dump(mode="json") for i in report.errors],
            })
        workflow = report.workflow
        plan = plan_execution(workflow.nodes, workflow.edges, registry.conditional_ports)
        return {
            "valid": report.valid and plan.success,
            "order": plan.order,
            "roots": plan.roots,
            "orphans": plan.orphans,
            "steps": [
                {
                    "position": s.position,
                    "nodeId": s.node_id,
                    "nodeType": workflow.nodes[s.node_id].type,
                    "incoming": [g.as_runtime() for g in s.incoming],
                }
                for s in plan.steps
            ],
            "errors": [f"{i.path}: {i.message}" for i in report.errors] + plan.errors,
            "warnings": [f"{i.path}: {i.message}" for i in report.warnings] + plan.warnings,
        }

    @app.post("/workflows/generate")
    async def generate_workflow(req: WorkflowRequest):
        """Validate and compile a workflow into a standalone FastAPI program."""
        manifest = _parse_manifest(req.manifest)
        result = compile_workflow(req.workflow, manifest=manifest, registry=registry, orchestrator=orchestrator)
        logger.info(f"[API] Generate '{result.workflow_id}': success={result.success}")
        return result.model_dump(by_alias=True)
