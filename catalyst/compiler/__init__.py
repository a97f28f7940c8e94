"""Workflow Compiler - registry, planner, emitters and the program orchestrator"""
from .orchestrator import GenerationResult, WorkflowOrchestrator, sanitize_workflow_name
from .planner import ExecutionPlan, plan_execution
from .registry import NodeRegistry, RegistryIntegrityError, UnknownNodeType, build_node_registry

__all__ = [
    "GenerationResult",
    "WorkflowOrchestrator",
    "sanitize_workflow_name",
    "ExecutionPlan",
    "plan_execution",
    "NodeRegistry",
    "RegistryIntegrityError",
    "UnknownNodeType",
    "build_node_registry",
]
