"""Workflow Manifest - declarative models for Catalyst projects and workflows"""
from .manifest import (
    EdgeDefinition,
    ExecutionConfig,
    Manifest,
    NodeDefinition,
    NodeType,
    TriggerDefinition,
    WorkflowDefinition,
)

__all__ = [
    "EdgeDefinition",
    "ExecutionConfig",
    "Manifest",
    "NodeDefinition",
    "NodeType",
    "TriggerDefinition",
    "WorkflowDefinition",
]
