"""
Compile Pipeline - validate a raw workflow document, then generate code.
Kept apart from the orchestrator because the validator imports the registry.
"""

import logging
from typing import Any, Dict, Optional, Union

from catalyst.compiler.orchestrator import GenerationResult, WorkflowOrchestrator, sanitize_workflow_name
from catalyst.compiler.registry import NodeRegistry, build_node_registry
from catalyst.workflow.manifest import Manifest, WorkflowDefinition
from catalyst.workflow.validation import WorkflowValidator

logger = logging.getLogger(__name__)


def compile_workflow(
    data: Union[Dict[str, Any], WorkflowDefinition],
    manifest: Optional[Manifest] = None,
    registry: Optional[NodeRegistry] = None,
    orchestrator: Optional[WorkflowOrchestrator] = None,
) -> GenerationResult:
    """
    Validate ``data`` and, when it has no errors, generate its program with
    ``orchestrator`` (a default one over ``registry`` when omitted).
    Validation warnings that the orchestrator does not already report are
    appended to the result's warnings.
    """
    registry = registry or build_node_registry()
    report = WorkflowValidator(registry).validate_workflow(data)
    validation_warnings = [f"{issue.path}: {issue.message}" for issue in report.warnings]

    if not report.valid or report.workflow is None:
        workflow_id = data.get("id", "") if isinstance(data, dict) else data.id
        name = data.get("name", "") if isinstance(data, dict) else data.name
        logger.info(f"[COMPILER] '{workflow_id}' rejected by validation: {len(report.errors)} error(s)")
        return GenerationResult(
            success=False,
            workflow_id=str(workflow_id or ""),
            workflow_name=sanitize_workflow_name(str(name or "")),
            errors=[f"{issue.path}: {issue.message}" for issue in report.errors],
            warnings=validation_warnings,
        )

    orchestrator = orchestrator or WorkflowOrchestrator(registry)
    result = orchestrator.generate(report.workflow, manifest)
    for issue in report.warnings:
        if not any(issue.message in existing for existing in result.warnings):
            result.warnings.append(f"{issue.path}: {issue.message}")
    return result
