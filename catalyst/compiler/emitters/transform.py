"""
Transform emitters - editFields.
"""

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.workflow.manifest import NodeDefinition


def emit_edit_fields(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Set or overwrite fields on an object.",
        [
            "fields (dict, required): field path -> value; dotted paths create nested objects",
            "mode (str): merge (keep existing fields) | replace, default merge",
            "source (str): expression for the base object, default the trigger input",
        ],
        "the edited object",
    )
    body = '''
    fields = config.get("fields")
    if not isinstance(fields, dict) or not fields:
        raise NodeConfigurationError(f"Edit fields node '{node_id}' requires a non-empty 'fields' object")
    mode = config.get("mode", "merge")
    if mode not in ("merge", "replace"):
        raise NodeConfigurationError(f"Unknown mode '{mode}' for '{node_id}'. Supported: merge, replace")
    base = interpolate_value(config["source"], variables, variables_used, strict) if config.get("source") else ctx.input
    result: Dict[str, Any] = copy.deepcopy(base) if mode == "merge" and isinstance(base, dict) else {}
    for path, raw in fields.items():
        value = interpolate_value(raw, variables, variables_used, strict)
        target = result
        parts = str(path).split(".")
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = value
    logger.info(f"[{node_id}] Set {len(fields)} field(s) in {mode} mode")
    return result
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
    )
