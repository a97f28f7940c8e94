"""
Control-flow emitters - condition (if/else).
The condition node only computes its branch; edges leaving its 'true' and
'false' ports are gated on that branch by the workflow runner.
"""

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.workflow.manifest import NodeDefinition


def emit_condition(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Evaluate a condition and select the 'true' or 'false' branch.",
        [
            "condition (str, required): placeholder, comparison (== != >= <= > <) or text",
            "expression (str): alias for condition",
        ],
        "dict with result (bool) and branch ('true' | 'false')",
    )
    body = '''
    condition = config.get("condition")
    if condition in (None, ""):
        condition = config.get("expression")
    if condition in (None, ""):
        raise NodeConfigurationError(f"Condition node '{node_id}' requires a 'condition' expression")
    outcome = evaluate_condition(condition, variables, variables_used)
    logger.info(f"[{node_id}] Condition evaluated to {outcome}")
    return {"result": outcome, "branch": "true" if outcome else "false", "variablesUsed": sorted(variables_used)}
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
    )
