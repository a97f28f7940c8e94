"""
Data emitters - Qdrant vector search and PostgreSQL queries.
"""

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.workflow.manifest import NodeDefinition


def emit_qdrant_search(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Vector similarity search against a Qdrant collection.",
        [
            "url (str): Qdrant URL, else the QDRANT_URL secret",
            "apiKey (str): optional, else the QDRANT_API_KEY secret when set",
            "collection (str, required): collection name",
            "queryVector (list | expression, required): query embedding",
            "limit (int): default 10",
            "scoreThreshold (float): optional minimum score",
            "filter (dict): optional Qdrant filter (must / should / must_not)",
            "withPayload (bool): default True",
        ],
        "dict with results [{id, score, payload}] and count",
    )
    body = '''
    require_config(config, ["collection", "queryVector"], node_id)
    collection = stringify_value(interpolate_value(config["collection"], variables, variables_used, strict))
    vector = interpolate_value(config["queryVector"], variables, variables_used, strict)
    if isinstance(vector, str):
        try:
            vector = json.loads(vector)
        except ValueError as e:
            raise NodeConfigurationError(f"queryVector for '{node_id}' is not a JSON array") from e
    if isinstance(vector, dict) and "embedding" in vector:
        vector = vector["embedding"]
    if not isinstance(vector, list) or not vector:
        raise NodeConfigurationError(f"queryVector for '{node_id}' must resolve to a non-empty list of numbers")
    url = interpolate_value(config.get("url"), variables, variables_used, strict) or ctx.secrets.get("QDRANT_URL")
    if not url:
        raise NodeConfigurationError(f"Qdrant node '{node_id}' requires 'url' or the QDRANT_URL secret")
    api_key = interpolate_value(config.get("apiKey"), variables, variables_used, strict) or ctx.secrets.get("QDRANT_API_KEY")

    from qdrant_client import AsyncQdrantClient, models

    query_filter = models.Filter(**config["filter"]) if config.get("filter") else None
    client = AsyncQdrantClient(url=url, api_key=api_key or None)
    try:
        response = await client.query_points(
            collection_name=collection,
            query=[float(v) for v in vector],
            limit=int(config.get("limit") or 10),
            score_threshold=config.get("scoreThreshold"),
            query_filter=query_filter,
            with_payload=config.get("withPayload", True),
        )
    except Exception as e:
        raise NodeRuntimeError(f"Qdrant search on '{collection}' failed: {e}") from e
    finally:
        await client.close()
    results = [{"id": p.id, "score": p.score, "payload": p.payload} for p in response.points]
    logger.info(f"[{node_id}] Qdrant returned {len(results)} result(s) from '{collection}'")
    return {"results": results, "count": len(results)}
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
        dependencies=["qdrant-client>=1.10.0"],
        secrets=["QDRANT_URL", "QDRANT_API_KEY"],
    )


def emit_postgres_query(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Run a SQL statement against PostgreSQL.",
        [
            "query (str, required): SQL text, placeholders are interpolated into the text",
            "params (list): positional parameters ($1, $2, ...) resolved as typed values",
            "connectionString (str): DSN, else the DATABASE_URL secret",
            "timeout (int): query timeout in seconds, default 30",
            "transaction (bool): run inside a transaction, default False",
        ],
        "dict with rows (list of dicts) and rowCount",
    )
    body = '''
    require_config(config, ["query"], node_id)
    query = stringify_value(interpolate_value(config["query"], variables, variables_used, strict))
    params = interpolate_value(config.get("params") or [], variables, variables_used, strict)
    if not isinstance(params, list):
        raise NodeConfigurationError(f"'params' for '{node_id}' must be a list")
    dsn = resolve_secret(ctx, interpolate_value(config.get("connectionString"), variables, variables_used, strict), "DATABASE_URL", node_id)
    timeout = float(config.get("timeout") or 30)

    import asyncpg

    try:
        conn = await asyncpg.connect(dsn, timeout=timeout)
    except (OSError, asyncpg.PostgresError) as e:
        raise NodeRuntimeError(f"Could not connect to PostgreSQL: {e}") from e
    try:
        if config.get("transaction"):
            async with conn.transaction():
                records = await conn.fetch(query, *params, timeout=timeout)
        else:
            records = await conn.fetch(query, *params, timeout=timeout)
    except asyncpg.PostgresError as e:
        raise NodeRuntimeError(f"PostgreSQL query failed: {e}") from e
    finally:
        await conn.close()
    rows = [dict(r) for r in records]
    logger.info(f"[{node_id}] Query returned {len(rows)} row(s)")
    return {"rows": rows, "rowCount": len(rows)}
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
        dependencies=["asyncpg>=0.29.0"],
        secrets=["DATABASE_URL"],
    )
