"""
Trigger emitters - httpEndpoint and scheduledTask.
Triggers do no work of their own: the FastAPI route (or the scheduler that
calls it) delivers the payload, and the trigger node hands it to the rest of
the graph as its output.
"""

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.workflow.manifest import NodeDefinition

HTTP_DEPENDENCIES = ["fastapi>=0.104.0", "uvicorn[standard]>=0.24.0"]


def emit_http_endpoint(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "HTTP trigger. The workflow route receives the request; this node exposes its payload.",
        [
            "path (str): informational, the route is /workflow/<workflow slug>",
            "method (str): GET | POST | PUT | PATCH | DELETE, default POST",
        ],
        "the trigger payload (request JSON body or query parameters)",
    )
    body = '''
    method = str(config.get("method", "POST")).upper()
    logger.info(f"[{node_id}] {method} trigger received {len(ctx.input) if isinstance(ctx.input, dict) else 1} field(s)")
    return ctx.input
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body, uses_expressions=False),
        dependencies=list(HTTP_DEPENDENCIES),
    )


def emit_scheduled_task(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Scheduled trigger. An external scheduler invokes the workflow route on the cron schedule.",
        [
            "schedule (str, required): cron expression",
            "timezone (str): IANA timezone, default UTC",
            "enabled (bool): default True",
        ],
        "dict with the schedule, timezone, fire time and the invocation payload",
    )
    body = '''
    require_config(config, ["schedule"], node_id)
    if not config.get("enabled", True):
        logger.warning(f"[{node_id}] Schedule is disabled; running because the workflow was invoked directly")
    return {
        "schedule": config["schedule"],
        "timezone": config.get("timezone", "UTC"),
        "firedAt": ctx.execution["startedAt"],
        "payload": ctx.input,
    }
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body, uses_expressions=False),
        dependencies=list(HTTP_DEPENDENCIES),
    )
