"""
Workflow Orchestrator - compiles one workflow graph into a standalone
Python/FastAPI program.

Compilation Pipeline:
1. Node checks (id/key agreement, registry lookup, unsupported types)
2. Execution planning (deterministic order, edge gates, cycle detection)
3. Node emission (one fragment per node from its registry emitter)
4. Program assembly (runtimes, helpers, node functions, runner, routes, main)
5. Result metadata (slug, node count, dependencies, warnings)

Generation never raises: every problem lands in GenerationResult.errors and
a failed result carries no code.
"""

import ast
import json
import logging
import re
import time
from typing import Dict, List, Optional

from pydantic import Field

from catalyst.compiler.fragments import NodeFragment, doc_text, py_literal
from catalyst.compiler.planner import ExecutionPlan, PlannedStep, plan_execution
from catalyst.compiler.registry import NodeRegistry, UnknownNodeType, build_node_registry
from catalyst.compiler.templating import emit_execution_runtime, emit_expression_runtime
from catalyst.config.settings import CompilerSettings, settings as default_settings
from catalyst.execution.protocol import (
    EXECUTION_END_MARKER,
    EXECUTION_MODE_ENV,
    EXECUTION_START_MARKER,
    PRODUCTION_MODE,
    TEST_MODE,
)
from catalyst.workflow.expressions import check_workflow_expressions, unreferenced_variables
from catalyst.workflow.manifest import (
    ExecutionConfig,
    Manifest,
    ManifestModel,
    NodeDefinition,
    NodeType,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)

UNSCHEDULED_TYPES = {NodeType.PARALLEL.value, NodeType.AGGREGATE.value}
HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
ROUTED_TRIGGERS = {NodeType.HTTP_ENDPOINT.value, NodeType.SCHEDULED_TASK.value}
CACHE_RESERVED_MESSAGE = "Node caching is reserved and not applied by generated code"


class GenerationResult(ManifestModel):
    """Result of compiling one workflow."""
    success: bool = False
    workflow_id: str = ""
    workflow_name: str = ""  # sanitized slug
    code: str = ""
    node_count: int = 0
    dependencies: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    generation_time_ms: float = 0.0


def sanitize_workflow_name(name: str, fallback: str = "workflow") -> str:
    """'My Workflow!' -> 'my_workflow'; blank names fall back."""
    slug = re.sub(r"[^a-z0-9]+", "_", (name or "").lower()).strip("_")
    return slug or fallback


def _banner(title: str) -> str:
    rule = "# " + "=" * 76
    return f"{rule}\n# {title}\n{rule}"


def _comment(text: str) -> str:
    return " ".join(str(text).split())


class WorkflowOrchestrator:
    """
    Composes registry lookups, node fragments, the embedded runtimes and the
    execution plan into one program with a test-mode and a production-mode
    entry point. Stateless: one instance can compile any number of workflows.
    """

    def __init__(self, registry: Optional[NodeRegistry] = None, config: Optional[CompilerSettings] = None):
        self._registry = registry or build_node_registry()
        self._settings = config or default_settings

    def generate(self, workflow: WorkflowDefinition, manifest: Optional[Manifest] = None) -> GenerationResult:
        """
        Compile ``workflow`` into program source. ``manifest`` supplies the
        project-level secrets, global variables, port and CORS settings.
        """
        start = time.time()
        slug = sanitize_workflow_name(workflow.name, self._settings.fallback_workflow_name)
        result = GenerationResult(workflow_id=workflow.id, workflow_name=slug, node_count=len(workflow.nodes))

        # Step 1: Node checks
        result.errors.extend(self._check_nodes(workflow))
        if result.errors:
            return self._finish(result, start)

        # Step 2: Execution plan
        plan = plan_execution(workflow.nodes, workflow.edges, self._registry.conditional_ports)
        result.warnings.extend(plan.warnings)
        if not plan.success:
            result.errors.extend(plan.errors)
            return self._finish(result, start)

        # Step 3: Node fragments
        fragments: Dict[str, NodeFragment] = {}
        for step in plan.steps:
            node = workflow.nodes[step.node_id]
            entry = self._registry.lookup(node.type)
            try:
                fragments[node.id] = entry.emitter(node)
            except Exception as e:
                result.errors.append(f"Failed to generate node '{node.id}' ({node.type}): {e}")
        if result.errors:
            return self._finish(result, start)

        result.warnings.extend(self._collect_warnings(workflow))
        method = self._trigger_method(workflow, result.warnings)

        # Step 4: Program assembly
        code = self._assemble(workflow, manifest, slug, method, plan, fragments)
        try:
            ast.parse(code)
        except SyntaxError as e:
            result.errors.append(f"Generated code failed to parse: {e}")
            return self._finish(result, start)

        # Step 5: Metadata
        result.code = code
        result.dependencies = self._collect_dependencies(fragments)
        result.success = True
        logger.info(
            f"[COMPILER] Generated '{slug}': {result.node_count} nodes, "
            f"{len(result.dependencies)} dependencies, {len(result.warnings)} warnings"
        )
        return self._finish(result, start)

    def _finish(self, result: GenerationResult, start: float) -> GenerationResult:
        result.generation_time_ms = round((time.time() - start) * 1000, 1)
        if result.errors:
            result.code = ""
            logger.warning(f"[COMPILER] Generation of '{result.workflow_id}' failed: {result.errors}")
        return result

    # ── Checks and metadata ───────────────────────────────────────────

    def _check_nodes(self, workflow: WorkflowDefinition) -> List[str]:
        errors: List[str] = []
        if not workflow.nodes:
            errors.append("Workflow has no nodes")
        for key, node in workflow.nodes.items():
            if node.id != key:
                errors.append(f"Node id '{node.id}' does not match its key '{key}'")
            if node.type in UNSCHEDULED_TYPES:
                errors.append(
                    f"Node '{node.id}' uses '{node.type}', which has no scheduling "
                    f"implementation in generated programs"
                )
                continue
            entry = self._registry.lookup(node.type)
            if isinstance(entry, UnknownNodeType):
                errors.append(f"Node '{node.id}': {entry.message}")
        return errors

    def _collect_warnings(self, workflow: WorkflowDefinition) -> List[str]:
        warnings: List[str] = []
        trigger_type = workflow.trigger.type
        if trigger_type == NodeType.SCHEDULED_TASK.value:
            warnings.append(
                "Scheduled trigger: the program exposes the workflow route; "
                "an external scheduler must call it on the cron schedule"
            )
        elif trigger_type not in ROUTED_TRIGGERS:
            warnings.append(f"Trigger type '{trigger_type}' is served as a plain HTTP route")

        for node in workflow.nodes.values():
            if node.cache and node.cache.enabled:
                warnings.append(f"Node '{node.id}': {CACHE_RESERVED_MESSAGE}")
            for name in unreferenced_variables(node):
                warnings.append(f"Node '{node.id}': config variable '{name}' is never referenced")
            meta = self._registry.get_metadata(node.type)
            if (node.config.get("stream") or node.config.get("streaming")) and meta and not meta.streaming:
                warnings.append(f"Node '{node.id}': '{node.type}' does not support streaming; 'stream' is ignored")

        for issue in check_workflow_expressions(workflow):
            warnings.append(f"Node '{issue.node_id}' config '{issue.config_path}': {issue.message}")
        return warnings

    def _trigger_method(self, workflow: WorkflowDefinition, warnings: List[str]) -> str:
        method = workflow.trigger.config.get("method")
        if not method:
            for node in workflow.nodes.values():
                if node.type == NodeType.HTTP_ENDPOINT.value and node.config.get("method"):
                    method = node.config["method"]
                    break
        method = str(method or "POST").upper()
        if method not in HTTP_METHODS:
            warnings.append(f"Unsupported trigger method '{method}'; using POST")
            method = "POST"
        return method

    def _collect_dependencies(self, fragments: Dict[str, NodeFragment]) -> List[str]:
        deps = set(self._settings.base_dependencies)
        for fragment in fragments.values():
            deps.update(fragment.dependencies)
        return sorted(deps)

    # ── Assembly ──────────────────────────────────────────────────────

    def _assemble(
        self,
        workflow: WorkflowDefinition,
        manifest: Optional[Manifest],
        slug: str,
        method: str,
        plan: ExecutionPlan,
        fragments: Dict[str, NodeFragment],
    ) -> str:
        streaming = [f for f in fragments.values() if f.stream_function_source]
        cors = manifest.config.cors if manifest else None
        sections = [
            self._header(workflow, slug),
            self._imports(bool(streaming), cors is not None),
            self._logging_section(slug),
            _banner("EXPRESSION RUNTIME") + "\n\n" + emit_expression_runtime(),
            _banner("EXECUTION CONTEXT") + "\n\n" + emit_execution_runtime(),
            self._workflow_constants(workflow, manifest, slug, fragments),
            self._app_section(workflow, cors),
            self._library_section(plan, fragments),
            self._runner_section(workflow, plan, fragments),
            self._endpoint_section(workflow, slug, method, plan, fragments),
            self._test_section(),
            self._main_section(manifest),
        ]
        return "\n\n\n".join(s.strip("\n") for s in sections) + "\n"

    def _header(self, workflow: WorkflowDefinition, slug: str) -> str:
        lines = [
            "#!/usr/bin/env python3",
            '"""',
            f"Catalyst Workflow: {doc_text(workflow.name or slug)}",
        ]
        if workflow.description:
            lines.append(doc_text(workflow.description))
        lines.extend([
            "",
            "@catalyst:generated",
            "DO NOT EDIT - regenerate from the workflow manifest instead.",
            "",
            f"Serve:     python {slug}.py",
            f"Test run:  {EXECUTION_MODE_ENV}={TEST_MODE} python {slug}.py < trigger.json",
            '"""',
        ])
        return "\n".join(lines)

    def _imports(self, streaming: bool, cors: bool) -> str:
        typing_names = ["Any", "Awaitable", "Callable", "Dict", "List", "Optional", "Sequence", "Set", "Tuple"]
        if streaming:
            typing_names.insert(0, "AsyncGenerator")
        lines = [
            "import asyncio",
            "import copy",
            "import json",
            "import logging",
            "import os",
            "import re",
            "import sys",
            "import time",
            "import traceback",
            "import uuid",
            "from datetime import datetime, timezone",
            f"from typing import {', '.join(typing_names)}",
            "",
            "from fastapi import FastAPI, HTTPException, Request",
            "from fastapi.encoders import jsonable_encoder",
        ]
        if cors:
            lines.append("from fastapi.middleware.cors import CORSMiddleware")
        if streaming:
            lines.append("from fastapi.responses import JSONResponse, StreamingResponse")
        else:
            lines.append("from fastapi.responses import JSONResponse")
        return "\n".join(lines)

    def _logging_section(self, slug: str) -> str:
        return "\n".join([
            _banner("EXECUTION LOGGING"),
            "",
            "logging.basicConfig(",
            '    level=os.getenv("LOG_LEVEL", "INFO").upper(),',
            '    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",',
            "    stream=sys.stderr,",
            ")",
            f"logger = logging.getLogger({'catalyst.workflow.' + slug!r})",
        ])

    def _workflow_constants(
        self,
        workflow: WorkflowDefinition,
        manifest: Optional[Manifest],
        slug: str,
        fragments: Dict[str, NodeFragment],
    ) -> str:
        secret_defaults: Dict[str, Optional[str]] = {}
        for fragment in fragments.values():
            for name in fragment.secrets:
                secret_defaults.setdefault(name, None)
        if manifest:
            for name, secret in manifest.secrets.items():
                secret_defaults[name] = secret.default
        secret_defaults = dict(sorted(secret_defaults.items()))
        global_vars = manifest.global_variables if manifest else {}

        return "\n".join([
            f"WORKFLOW_ID = {workflow.id!r}",
            f"WORKFLOW_NAME = {workflow.name!r}",
            f"WORKFLOW_SLUG = {slug!r}",
            f"WORKFLOW_TIMEOUT_MS = {workflow.execution_config.timeout!r}",
            f"SECRET_DEFAULTS: Dict[str, Optional[str]] = {py_literal(secret_defaults)}",
            f"GLOBAL_VARIABLES: Dict[str, Any] = {py_literal(global_vars)}",
            "",
            "",
            "def load_secrets() -> Dict[str, Any]:",
            '    """Secrets come from the environment; manifest defaults fill the gaps."""',
            "    secrets: Dict[str, Any] = {}",
            "    for name, default in SECRET_DEFAULTS.items():",
            "        value = os.getenv(name, default)",
            "        if value is not None:",
            "            secrets[name] = value",
            "    return secrets",
            "",
            "",
            "def create_context(trigger_data: Any, mode: str) -> ExecutionContext:",
            "    return ExecutionContext(",
            "        workflow_id=WORKFLOW_ID,",
            "        workflow_name=WORKFLOW_NAME,",
            "        input_data=trigger_data,",
            "        secrets=load_secrets(),",
            "        global_vars=copy.deepcopy(GLOBAL_VARIABLES),",
            "        mode=mode,",
            "    )",
        ])

    def _app_section(self, workflow: WorkflowDefinition, cors) -> str:
        lines = [
            _banner("FASTAPI APPLICATION"),
            "",
            "app = FastAPI(",
            f"    title={(workflow.name or 'Catalyst Workflow')!r},",
            f"    description={workflow.description!r},",
            '    version="1.0.0",',
            ")",
        ]
        if cors is not None:
            lines.extend([
                "app.add_middleware(",
                "    CORSMiddleware,",
                f"    allow_origins={py_literal(cors.origins)},",
                f"    allow_credentials={cors.credentials!r},",
                '    allow_methods=["*"],',
                '    allow_headers=["*"],',
                ")",
            ])
        return "\n".join(lines)

    def _library_section(self, plan: ExecutionPlan, fragments: Dict[str, NodeFragment]) -> str:
        helpers: Dict[str, str] = {}
        for step in plan.steps:
            helpers.update(fragments[step.node_id].helpers)
        blocks = [_banner("NODE LIBRARY FUNCTIONS")]
        blocks.extend(helpers[name] for name in sorted(helpers))
        for step in plan.steps:
            fragment = fragments[step.node_id]
            blocks.append(fragment.function_source)
            if fragment.stream_function_source:
                blocks.append(fragment.stream_function_source)
        return "\n\n\n".join(blocks)

    def _step_source(self, step: PlannedStep, node: NodeDefinition, fragment: NodeFragment,
                     execution: ExecutionConfig) -> str:
        n = step.position
        retries = node.retries if node.retries is not None else execution.retries
        pinned = node.pinned_data.data if node.pinned_data and node.pinned_data.enabled else None
        incoming = [gate.as_runtime() for gate in step.incoming]
        return "\n".join([
            f"    # [{n}] {_comment(node.display_name)} ({node.type})",
            f"    result_{n} = None",
            f"    if is_activated(ctx, {py_literal(incoming, indent=8)}):",
            f"        result_{n} = await run_node(",
            "            ctx,",
            "            executions,",
            f"            node_id={node.id!r},",
            f"            node_name={node.display_name!r},",
            f"            node_type={node.type!r},",
            f"            func={fragment.function_name},",
            f"            sources={py_literal(step.sources)},",
            f"            timeout_ms={node.timeout!r},",
            f"            retries={retries!r},",
            f"            retry_delay_ms={execution.retry_delay!r},",
            f"            retry_backoff={execution.retry_backoff!r},",
            f"            on_error={node.on_error!r},",
            f"            fallback_value={py_literal(node.fallback_value, indent=12)},",
            f"            pinned_data={py_literal(pinned, indent=12)},",
            "        )",
            f"        result = result_{n}",
            "    else:",
            f"        record_skipped(ctx, executions, {node.id!r}, {node.display_name!r}, {node.type!r})",
        ])

    def _runner_section(self, workflow: WorkflowDefinition, plan: ExecutionPlan,
                        fragments: Dict[str, NodeFragment]) -> str:
        lines = [
            _banner("WORKFLOW EXECUTION"),
            "",
            "async def run_workflow(ctx: ExecutionContext, executions: List[NodeExecution]) -> Any:",
            '    """',
            "    Run every node in planned order. Shared by the HTTP endpoint and test mode.",
            "    Returns the output of the last node that ran.",
            '    """',
            "    result = None",
        ]
        for step in plan.steps:
            node = workflow.nodes[step.node_id]
            lines.append("")
            lines.append(self._step_source(step, node, fragments[step.node_id], workflow.execution_config))
        lines.append("")
        lines.append("    return result")
        return "\n".join(lines)

    def _endpoint_section(self, workflow: WorkflowDefinition, slug: str, method: str,
                          plan: ExecutionPlan, fragments: Dict[str, NodeFragment]) -> str:
        route = f"{self._settings.route_prefix.rstrip('/')}/{slug}"
        lines = [
            _banner("WORKFLOW ENDPOINTS"),
            "",
            "async def read_trigger_payload(request: Request) -> Any:",
            '    """Trigger data: query parameters for GET, otherwise the JSON body."""',
            '    if request.method == "GET":',
            "        return dict(request.query_params)",
            "    body = await request.body()",
            "    if not body.strip():",
            "        return {}",
            "    try:",
            "        return json.loads(body)",
            "    except json.JSONDecodeError as e:",
            '        raise HTTPException(status_code=400, detail=f"Invalid JSON body: {e}")',
            "",
            "",
            '@app.get("/health")',
            "async def health() -> Dict[str, Any]:",
            '    return {"status": "ok", "workflowId": WORKFLOW_ID, "workflow": WORKFLOW_SLUG}',
            "",
            "",
            f"@app.{method.lower()}({json.dumps(route)})",
            f"async def workflow_{slug}(request: Request) -> Dict[str, Any]:",
            f'    """{doc_text(workflow.name or slug)}: run the workflow for one request."""',
            "    trigger_data = await read_trigger_payload(request)",
            f"    ctx = create_context(trigger_data, mode={PRODUCTION_MODE!r})",
            "    executions: List[NodeExecution] = []",
            "    try:",
            "        result = await run_with_timeout(run_workflow(ctx, executions), WORKFLOW_TIMEOUT_MS)",
            "    except WorkflowExecutionError as e:",
            '        logger.error(f"[{ctx.execution_id}] Workflow failed: {e}")',
            '        error = {"reason": "node_failure", "message": str(e), "nodeId": e.node_id, "category": e.category}',
            '        payload = build_execution_result(ctx, executions, "error", error=error)',
            '        return JSONResponse(status_code=500, content=jsonable_encoder({"detail": payload}))',
            '    return build_execution_result(ctx, executions, "success", result=result)',
        ]

        streamed = [fragments[s.node_id] for s in plan.steps if fragments[s.node_id].stream_function_source]
        if streamed:
            lines.extend([
                "",
                "",
                'SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no", "Connection": "keep-alive"}',
            ])
        for fragment in streamed:
            node = workflow.nodes[fragment.node_id]
            lines.extend([
                "",
                "",
                f"@app.post({json.dumps(f'{route}/stream/{fragment.function_name}')})",
                f"async def route_{fragment.stream_function_name}(request: Request) -> StreamingResponse:",
                f'    """Stream {doc_text(node.display_name)} as Server-Sent Events. Runs this node on its own."""',
                "    trigger_data = await read_trigger_payload(request)",
                f"    ctx = create_context(trigger_data, mode={PRODUCTION_MODE!r})",
                "    return StreamingResponse(",
                f"        {fragment.stream_function_name}(ctx),",
                '        media_type="text/event-stream",',
                "        headers=SSE_HEADERS,",
                "    )",
            ])
        return "\n".join(lines)

    def _test_section(self) -> str:
        return "\n".join([
            _banner("TEST EXECUTION FUNCTION"),
            "",
            "async def execute_workflow_test(trigger_data: dict) -> dict:",
            '    """Execute workflow once with provided trigger data (test mode)"""',
            f"    ctx = create_context(trigger_data, mode={TEST_MODE!r})",
            "    executions: List[NodeExecution] = []",
            '    logger.info(f"[TEST MODE] Starting workflow: {WORKFLOW_NAME} ({ctx.execution_id})")',
            "    try:",
            "        result = await run_with_timeout(run_workflow(ctx, executions), WORKFLOW_TIMEOUT_MS)",
            "    except WorkflowExecutionError as e:",
            '        logger.error(f"[TEST MODE] Workflow failed: {e}")',
            '        error = {"reason": "node_failure", "message": str(e), "nodeId": e.node_id, "category": e.category}',
            '        return build_execution_result(ctx, executions, "error", error=error)',
            "    except Exception as e:",
            '        logger.exception(f"[TEST MODE] Unexpected error: {e}")',
            '        error = {"reason": "unexpected", "message": str(e), "stack": traceback.format_exc()}',
            '        return build_execution_result(ctx, executions, "error", error=error)',
            '    logger.info(f"[TEST MODE] Workflow completed: {len(executions)} node execution(s)")',
            '    return build_execution_result(ctx, executions, "success", result=result)',
            "",
            "",
            "def failed_test_result(reason: str, message: str) -> dict:",
            "    return {",
            '        "executionId": None,',
            '        "workflowId": WORKFLOW_ID,',
            '        "workflowName": WORKFLOW_NAME,',
            f'        "executionMode": {TEST_MODE!r},',
            '        "status": "error",',
            '        "nodeExecutions": [],',
            '        "result": None,',
            '        "error": {"reason": reason, "message": message},',
            "    }",
            "",
            "",
            "def print_test_result(execution_result: dict) -> None:",
            f"    print({EXECUTION_START_MARKER!r})",
            "    print(json.dumps(execution_result, indent=2, default=str))",
            f"    print({EXECUTION_END_MARKER!r})",
            "    sys.stdout.flush()",
        ])

    def _main_section(self, manifest: Optional[Manifest]) -> str:
        port = manifest.config.port if manifest else self._settings.default_port
        return "\n".join([
            _banner("MAIN"),
            "",
            'if __name__ == "__main__":',
            f"    execution_mode = os.getenv({EXECUTION_MODE_ENV!r}, {PRODUCTION_MODE!r})",
            "",
            f"    if execution_mode == {TEST_MODE!r}:",
            "        # TEST MODE: Execute workflow once and exit",
            "        trigger_data_str = sys.stdin.read()",
            "        try:",
            "            trigger_data = json.loads(trigger_data_str) if trigger_data_str.strip() else {}",
            "        except json.JSONDecodeError as e:",
            '            print(f"Invalid JSON in trigger data: {e}", file=sys.stderr)',
            '            print_test_result(failed_test_result("invalid_input", f"Invalid JSON in trigger data: {e}"))',
            "            sys.exit(1)",
            "        try:",
            "            execution_result = asyncio.run(execute_workflow_test(trigger_data))",
            "        except Exception as e:",
            '            print(f"Test execution failed: {e}", file=sys.stderr)',
            '            print_test_result(failed_test_result("unexpected", f"Test execution failed: {e}"))',
            "            sys.exit(1)",
            "        print_test_result(execution_result)",
            '        sys.exit(0 if execution_result["status"] == "success" else 1)',
            "",
            "    # PRODUCTION MODE: Start FastAPI server",
            "    import uvicorn",
            "",
            "    uvicorn.run(",
            "        app,",
            f'        host=os.getenv("HOST", {self._settings.default_host!r}),',
            f'        port=int(os.getenv("PORT", "{port}")),',
            "    )",
        ])
