"""
Utility emitters - log.
"""

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.workflow.manifest import NodeDefinition


def emit_log(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Write a structured log line.",
        [
            "message (str, required): text with placeholders",
            "level (str): debug | info | warn | error, default info",
            "data (dict): extra values, resolved and logged as JSON",
        ],
        "dict with level, message and data",
    )
    body = '''
    require_config(config, ["message"], node_id)
    level = str(config.get("level", "info")).lower()
    levels = {"debug": logging.DEBUG, "info": logging.INFO, "warn": logging.WARNING, "warning": logging.WARNING, "error": logging.ERROR}
    if level not in levels:
        raise NodeConfigurationError(f"Unknown log level '{level}' for '{node_id}'. Supported: debug, info, warn, error")
    message = stringify_value(interpolate_value(config["message"], variables, variables_used, strict))
    data = interpolate_value(config.get("data") or {}, variables, variables_used, strict)
    line = f"[{node_id}] {message}"
    if data:
        line = f"{line} {json.dumps(data, default=str)}"
    logger.log(levels[level], line)
    return {"level": level, "message": message, "data": data}
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
    )
