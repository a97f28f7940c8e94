"""
Test Execution Protocol - the contract between a generated program running
in test mode and the supervisor that spawned it.
The program reads one JSON object on stdin and prints its result JSON
between two marker lines on stdout; everything else on stdout is noise.
"""

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from catalyst.workflow.manifest import ManifestModel

logger = logging.getLogger(__name__)

EXECUTION_MODE_ENV = "CATALYST_EXECUTION_MODE"
TEST_MODE = "test"
PRODUCTION_MODE = "production"
EXECUTION_START_MARKER = "__CATALYST_EXECUTION_START__"
EXECUTION_END_MARKER = "__CATALYST_EXECUTION_END__"


class ExecutionProtocolError(ValueError):
    """Markers were found but the payload between them is unusable."""


class NodeExecutionError(BaseModel):
    message: str
    category: Optional[str] = None
    type: Optional[str] = None
    stack: Optional[str] = None


class NodeExecutionRecord(ManifestModel):
    """One node's run as reported by the generated program."""
    node_id: str
    node_name: str = ""
    node_type: str = ""
    status: Literal["pending", "running", "success", "error", "skipped"]
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None
    attempts: int = 0
    pinned: bool = False
    input: Any = None
    output: Any = None
    error: Optional[NodeExecutionError] = None


class WorkflowExecutionResult(ManifestModel):
    """A whole test run as reported between the markers."""
    execution_id: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_name: Optional[str] = None
    execution_mode: str = TEST_MODE
    status: Literal["success", "error"]
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None
    node_executions: List[NodeExecutionRecord] = Field(default_factory=list)
    result: Any = None
    error: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def get_node(self, node_id: str) -> Optional[NodeExecutionRecord]:
        for record in self.node_executions:
            if record.node_id == node_id:
                return record
        return None


def extract_payload(stdout: str) -> Optional[str]:
    """Text between the last start marker and the end marker after it, or None."""
    start = stdout.rfind(EXECUTION_START_MARKER)
    if start == -1:
        return None
    end = stdout.find(EXECUTION_END_MARKER, start)
    if end == -1:
        return None
    return stdout[start + len(EXECUTION_START_MARKER):end].strip()


def parse_execution_output(stdout: str) -> Optional[WorkflowExecutionResult]:
    """
    Parse a test-mode program's stdout. Returns None when the markers are
    absent; raises ExecutionProtocolError when the payload is malformed.
    """
    payload = extract_payload(stdout)
    if payload is None:
        logger.warning("[PROTOCOL] No execution markers found in program output")
        return None
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as e:
        raise ExecutionProtocolError(f"Execution payload is not valid JSON: {e}") from e
    try:
        return WorkflowExecutionResult.model_validate(data)
    except ValidationError as e:
        raise ExecutionProtocolError(f"Execution payload has an unexpected shape: {e}") from e
