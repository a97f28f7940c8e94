"""
Catalyst Compiler - FastAPI Server
REST API for the visual canvas: node palette, workflow validation, plan
preview and program generation.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from catalyst.api.routes_workflows import register_workflow_routes
from catalyst.compiler.orchestrator import WorkflowOrchestrator
from catalyst.compiler.registry import build_node_registry
from catalyst.config.settings import settings
from catalyst.workflow.validation import WorkflowValidator

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Global Instances ──────────────────────────────────────────────────────────

node_registry = build_node_registry()
workflow_validator = WorkflowValidator(node_registry)
workflow_orchestrator = WorkflowOrchestrator(node_registry, settings)


app = FastAPI(
    title="Catalyst Workflow Compiler",
    description="Compiles canvas workflows into standalone Python/FastAPI programs.",
    version="1.0.0",
)

# ── CORS - configurable allowed origins ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list() or ["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ══════════════════════════════════════════════════════════════════════════════
# HEALTH & INFO
# ══════════════════════════════════════════════════════════════════════════════

@app.get("/health", tags=["System"])
async def health():
    stats = node_registry.get_stats()
    return {
        "status": "ok",
        "environment": settings.environment,
        "nodeTypes": stats["total"],
        "implemented": stats["implemented"],
    }


register_workflow_routes(app, node_registry, workflow_validator, workflow_orchestrator)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
