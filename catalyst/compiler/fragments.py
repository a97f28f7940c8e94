"""
Node Fragments - the unit every emitter returns, plus the helpers emitters
share for naming functions, embedding literals and wrapping node bodies in
the standard configuration / resolution / runtime error handling.
"""

import hashlib
import pprint
import re
import textwrap
from typing import Any, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from catalyst.workflow.manifest import NodeDefinition


class NodeFragment(BaseModel):
    """Generated source for one node and what it needs from the program."""
    node_id: str
    function_name: str
    function_source: str
    dependencies: List[str] = Field(default_factory=list)
    helpers: Dict[str, str] = Field(default_factory=dict)  # helper name -> source
    secrets: List[str] = Field(default_factory=list)
    stream_function_name: Optional[str] = None
    stream_function_source: Optional[str] = None


Emitter = Callable[[NodeDefinition], NodeFragment]


def function_name_for(node_id: str, prefix: str = "node") -> str:
    """Identifier derived from the node id; the hash keeps distinct ids distinct."""
    slug = re.sub(r"[^a-z0-9]+", "_", node_id.lower()).strip("_") or "step"
    digest = hashlib.sha1(node_id.encode("utf-8")).hexdigest()[:6]
    return f"{prefix}_{slug}_{digest}"


def py_literal(value: Any, indent: int = 0) -> str:
    """Python literal for a JSON-shaped value, continuation lines indented."""
    text = pprint.pformat(value, width=88, sort_dicts=False)
    if indent:
        pad = " " * indent
        text = text.replace("\n", "\n" + pad)
    return text


def doc_text(text: str) -> str:
    """Single line of user text safe to place inside a triple-quoted docstring."""
    flat = " ".join(str(text).split())
    return flat.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')


def contract_docstring(node: NodeDefinition, summary: str, config_lines: Sequence[str], returns: str) -> str:
    lines = [f"{doc_text(node.display_name)} ({node.type})", summary]
    if node.description:
        lines.append(doc_text(node.description))
    lines.append("")
    lines.append("Configuration:")
    lines.extend(f"    {line}" for line in config_lines)
    lines.append("")
    lines.append(f"Returns: {returns}")
    body = "\n".join(f"    {line}" if line else "" for line in lines)
    return f'    """\n{body}\n    """'


_ERROR_HANDLING = '''
    except NodeConfigurationError as e:
        logger.error(f"[{node_id}] Configuration error: {e}")
        raise
    except ExpressionResolutionError as e:
        logger.error(f"[{node_id}] Expression resolution error: {e}")
        raise
    except NodeRuntimeError as e:
        logger.warning(f"[{node_id}] Runtime error: {e}")
        raise
    except Exception as e:
        logger.exception(f"[{node_id}] Unexpected error: {e}")
        raise'''

_STREAM_ERROR_HANDLING = '''
    except NodeConfigurationError as e:
        logger.error(f"[{node_id}] Configuration error: {e}")
        yield format_sse({"type": "error", "nodeId": node_id, "category": "configuration", "message": str(e)})
        raise
    except ExpressionResolutionError as e:
        logger.error(f"[{node_id}] Expression resolution error: {e}")
        yield format_sse({"type": "error", "nodeId": node_id, "category": "resolution", "message": str(e)})
        raise
    except NodeRuntimeError as e:
        logger.warning(f"[{node_id}] Runtime error: {e}")
        yield format_sse({"type": "error", "nodeId": node_id, "category": "runtime", "message": str(e)})
        raise
    except Exception as e:
        logger.exception(f"[{node_id}] Unexpected error: {e}")
        yield format_sse({"type": "error", "nodeId": node_id, "category": "unexpected", "message": str(e)})
        raise'''


def build_node_function(
    node: NodeDefinition,
    function_name: str,
    docstring: str,
    body: str,
    uses_expressions: bool = True,
    is_generator: bool = False,
) -> str:
    """
    Assemble an async node function: docstring, the node's config literal,
    the expression scope, then ``body`` inside the standard error handling.
    ``body`` is written at zero indentation. Generators send an SSE error
    frame before re-raising, since the response headers are already out.
    """
    returns = "AsyncGenerator[str, None]" if is_generator else "Any"
    lines = [
        f"async def {function_name}(ctx: ExecutionContext) -> {returns}:",
        docstring,
        f"    node_id = {node.id!r}",
        f"    config = {py_literal(node.config, indent=4)}",
    ]
    if uses_expressions:
        lines.append('    strict = bool(config.get("strictExpressions", False))')
        lines.append("    variables_used: Set[str] = set()")
    lines.append("    try:")
    if uses_expressions:
        lines.append('        variables = build_variables(ctx, config.get("variables"))')
    lines.append(textwrap.indent(textwrap.dedent(body).strip("\n"), " " * 8))
    handling = _STREAM_ERROR_HANDLING if is_generator else _ERROR_HANDLING
    lines.append(handling.strip("\n"))
    return "\n".join(lines)
