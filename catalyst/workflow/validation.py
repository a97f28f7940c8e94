"""
Workflow Validator - accept/reject gate in front of the compiler.
Schema errors come from the pydantic models; structural checks (dangling
edges, unknown node types, id mismatches) are layered on top. Issues carry a
dotted field path and a severity; any ERROR blocks compilation.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from catalyst.compiler.registry import NodeRegistry, build_node_registry
from catalyst.workflow.expressions import check_workflow_expressions
from catalyst.workflow.manifest import Manifest, WorkflowDefinition

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class ValidationIssue(BaseModel):
    """One field-level finding."""
    path: str
    message: str
    severity: Severity = Severity.ERROR


class ValidationReport(BaseModel):
    """Validator output: issues plus the parsed model when parsing succeeded."""
    issues: List[ValidationIssue] = Field(default_factory=list)
    workflow: Optional[WorkflowDefinition] = None
    manifest: Optional[Manifest] = None

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def error(self, path: str, message: str) -> None:
        self.issues.append(ValidationIssue(path=path, message=message, severity=Severity.ERROR))

    def warn(self, path: str, message: str) -> None:
        self.issues.append(ValidationIssue(path=path, message=message, severity=Severity.WARNING))


def _join(prefix: str, *parts: Any) -> str:
    tail = ".".join(str(p) for p in parts)
    return f"{prefix}.{tail}" if prefix and tail else (prefix or tail)


def _schema_issues(report: ValidationReport, error: ValidationError, prefix: str = "") -> None:
    for detail in error.errors():
        report.error(_join(prefix, *detail["loc"]), detail["msg"])


class WorkflowValidator:
    """Validates workflow and manifest documents against the schema and the node registry."""

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self._registry = registry or build_node_registry()

    def validate_workflow(self, data: Union[Dict[str, Any], WorkflowDefinition]) -> ValidationReport:
        report = ValidationReport()
        if isinstance(data, WorkflowDefinition):
            workflow = data
        else:
            try:
                workflow = WorkflowDefinition.model_validate(data)
            except ValidationError as e:
                _schema_issues(report, e)
                logger.info(f"[VALIDATOR] Workflow rejected: {len(report.issues)} schema issue(s)")
                return report
        report.workflow = workflow
        self._check_workflow(workflow, report, prefix="")
        logger.info(
            f"[VALIDATOR] Workflow '{workflow.id}': "
            f"{len(report.errors)} error(s), {len(report.warnings)} warning(s)"
        )
        return report

    def validate_manifest(self, data: Union[Dict[str, Any], Manifest]) -> ValidationReport:
        report = ValidationReport()
        if isinstance(data, Manifest):
            manifest = data
        else:
            try:
                manifest = Manifest.model_validate(data)
            except ValidationError as e:
                _schema_issues(report, e)
                return report
        report.manifest = manifest
        for key, workflow in manifest.workflows.items():
            prefix = f"workflows.{key}"
            if workflow.id != key:
                report.error(_join(prefix, "id"), f"Workflow id '{workflow.id}' does not match its key '{key}'")
            self._check_workflow(workflow, report, prefix=prefix)
        for name, secret in manifest.secrets.items():
            if not secret.required and secret.default is None:
                report.warn(_join("secrets", name), f"Optional secret '{name}' has no default")
        return report

    # ── Structural checks ─────────────────────────────────────────────

    def _check_workflow(self, workflow: WorkflowDefinition, report: ValidationReport, prefix: str) -> None:
        if not workflow.name.strip():
            report.warn(_join(prefix, "name"), "Workflow name is empty; the generated route uses the fallback name")
        if not workflow.nodes:
            report.error(_join(prefix, "nodes"), "Workflow has no nodes")

        for key, node in workflow.nodes.items():
            path = _join(prefix, "nodes", key)
            if node.id != key:
                report.error(_join(path, "id"), f"Node id '{node.id}' does not match its key '{key}'")
            if node.type not in self._registry:
                report.error(_join(path, "type"), f"Unknown node type '{node.type}'")
                continue
            if not self._registry.is_implemented(node.type):
                report.warn(_join(path, "type"), f"Node type '{node.type}' is not implemented yet; compilation will fail")
                continue
            for field in self._registry.required_config_fields(node.type):
                if node.config.get(field) in (None, "", [], {}):
                    report.warn(_join(path, "config", field), f"Required field '{field}' is not set")
            if node.on_error == "fallback" and node.fallback_value is None:
                report.warn(_join(path, "fallbackValue"), "onError is 'fallback' but no fallbackValue is set")
            if node.cache and node.cache.enabled:
                report.warn(_join(path, "cache"), "Node caching is reserved and not applied by generated code")

        seen_edges = set()
        for position, edge in enumerate(workflow.edges):
            path = _join(prefix, "edges", position)
            if edge.id in seen_edges:
                report.error(_join(path, "id"), f"Duplicate edge id '{edge.id}'")
            seen_edges.add(edge.id)
            if edge.source not in workflow.nodes:
                report.error(_join(path, "source"), f"Edge source '{edge.source}' does not exist")
            if edge.target not in workflow.nodes:
                report.error(_join(path, "target"), f"Edge target '{edge.target}' does not exist")
            if edge.source == edge.target:
                report.error(path, f"Edge '{edge.id}' connects node '{edge.source}' to itself")
            source = workflow.nodes.get(edge.source)
            if source is not None and edge.source_handle:
                ports = self._registry.conditional_ports(source.type)
                if ports and edge.source_handle not in ports:
                    report.warn(
                        _join(path, "sourceHandle"),
                        f"Handle '{edge.source_handle}' is not an output of '{source.type}' ({', '.join(sorted(ports))})",
                    )

        for node in workflow.nodes.values():
            if self._registry.conditional_ports(node.type) and not workflow.get_outgoing_edges(node.id):
                report.warn(_join(prefix, "nodes", node.id), "Condition node has no outgoing edges")

        for issue in check_workflow_expressions(workflow):
            report.warn(_join(prefix, "nodes", issue.node_id, "config", issue.config_path), issue.message)
