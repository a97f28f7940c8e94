"""
Node Catalogue - static metadata for every node type the palette offers.
Implemented types have an emitter in catalyst.compiler.emitters; the rest are
placeholders for later phases and are rejected by the compiler.
"""

from typing import Any, List, Literal, Optional

from pydantic import Field

from catalyst.workflow.manifest import ManifestModel, NodeCategory, NodeType


class HandleDefinition(ManifestModel):
    """An input or output port on a node."""
    id: str
    name: str
    type: Literal["default", "conditional"] = "default"


class ConfigFieldOption(ManifestModel):
    label: str
    value: str


class ConfigFieldDefinition(ManifestModel):
    """One editable field in a node's config panel."""
    path: str
    label: str
    type: Literal["text", "textarea", "number", "boolean", "select", "secret", "json", "expression"] = "text"
    required: bool = False
    default: Any = None
    description: str = ""
    options: List[ConfigFieldOption] = Field(default_factory=list)


class NodeMetadata(ManifestModel):
    """Static description of a node type."""
    type: NodeType
    category: NodeCategory
    name: str
    description: str
    icon: str = ""
    inputs: List[HandleDefinition] = Field(default_factory=list)
    outputs: List[HandleDefinition] = Field(default_factory=list)
    config_fields: List[ConfigFieldDefinition] = Field(default_factory=list)
    implemented: bool = False
    streaming: bool = False
    phase: int = 0


# ── Builders ──────────────────────────────────────────────────────────

def _port(handle_id: str = "input", name: str = "Input", kind: str = "default") -> HandleDefinition:
    return HandleDefinition(id=handle_id, name=name, type=kind)


def _field(path: str, label: str, kind: str = "text", required: bool = False,
           description: str = "", default: Any = None, options: Optional[List[str]] = None) -> ConfigFieldDefinition:
    return ConfigFieldDefinition(
        path=path,
        label=label,
        type=kind,
        required=required,
        description=description,
        default=default,
        options=[ConfigFieldOption(label=o, value=o) for o in (options or [])],
    )


def _node(node_type: NodeType, category: NodeCategory, name: str, description: str, icon: str,
          phase: int, inputs: Optional[List[HandleDefinition]] = None,
          outputs: Optional[List[HandleDefinition]] = None,
          fields: Optional[List[ConfigFieldDefinition]] = None,
          implemented: bool = False, streaming: bool = False) -> NodeMetadata:
    return NodeMetadata(
        type=node_type,
        category=category,
        name=name,
        description=description,
        icon=icon,
        inputs=[_port()] if inputs is None else inputs,
        outputs=[_port("output", "Output")] if outputs is None else outputs,
        config_fields=fields or [],
        implemented=implemented,
        streaming=streaming,
        phase=phase,
    )


def _completion_fields(models: List[str], secret: str) -> List[ConfigFieldDefinition]:
    return [
        _field("apiKey", "API Key", "secret", description=f"Defaults to the {secret} secret"),
        _field("model", "Model", "select", default=models[0], options=models),
        _field("system", "System Prompt", "textarea"),
        _field("prompt", "Prompt", "textarea", description="User prompt. Supports {{ }} expressions"),
        _field("messages", "Messages (JSON)", "json", description="Alternative to prompt: [{role, content}]"),
        _field("temperature", "Temperature", "number", default=0.7),
        _field("maxTokens", "Max Tokens", "number", default=1024),
        _field("stream", "Stream Response", "boolean", default=False),
    ]


T, L, D, H, C, X, S, U = (
    NodeCategory.TRIGGERS, NodeCategory.LLM, NodeCategory.DATA, NodeCategory.HTTP,
    NodeCategory.CONTROL, NodeCategory.TRANSFORM, NodeCategory.STREAMING, NodeCategory.UTILITIES,
)

# ── Catalogue ─────────────────────────────────────────────────────────

NODE_CATALOG: List[NodeMetadata] = [
    # Triggers
    _node(NodeType.HTTP_ENDPOINT, T, "HTTP Endpoint", "REST API endpoint that starts the workflow", "Globe", 0,
          inputs=[], outputs=[_port("output", "Request")], implemented=True,
          fields=[
              _field("path", "Path", required=True, default="/api/endpoint"),
              _field("method", "HTTP Method", "select", required=True, default="POST",
                     options=["GET", "POST", "PUT", "PATCH", "DELETE"]),
              _field("description", "Description", "textarea"),
          ]),
    _node(NodeType.WEBHOOK_RECEIVER, T, "Webhook Receiver", "Receive webhooks with signature validation",
          "Inbox", 1, inputs=[], outputs=[_port("output", "Webhook")]),
    _node(NodeType.SCHEDULED_TASK, T, "Scheduled Task", "Run workflow on a cron schedule", "Clock", 0,
          inputs=[], outputs=[_port("output", "Execution")], implemented=True,
          fields=[
              _field("schedule", "Cron Schedule", required=True, default="0 * * * *"),
              _field("timezone", "Timezone", "select", default="UTC",
                     options=["UTC", "America/New_York", "Europe/London", "Asia/Tokyo"]),
              _field("enabled", "Enabled", "boolean", default=True),
          ]),
    _node(NodeType.SUBWORKFLOW_TRIGGER, T, "Subworkflow Trigger", "Called by another workflow", "ArrowDownOnSquare",
          2, inputs=[], outputs=[_port("output", "Input")]),
    _node(NodeType.WEBSOCKET_ENDPOINT, T, "WebSocket Endpoint", "Bidirectional real-time connection", "Signal",
          2, inputs=[], outputs=[_port("output", "Connection")]),
    _node(NodeType.QUEUE_CONSUMER, T, "Queue Consumer", "Consume messages from a queue", "QueueList",
          3, inputs=[], outputs=[_port("output", "Message")]),

    # LLM / AI
    _node(NodeType.ANTHROPIC_COMPLETION, L, "Claude (Anthropic)", "Call the Anthropic Messages API", "Sparkles", 0,
          outputs=[_port("output", "Response")], implemented=True, streaming=True,
          fields=_completion_fields(
              ["claude-3-5-sonnet-20241022", "claude-3-5-haiku-20241022", "claude-3-opus-20240229"],
              "ANTHROPIC_API_KEY")),
    _node(NodeType.OPENAI_COMPLETION, L, "OpenAI (GPT)", "Call the OpenAI Chat Completions API", "Sparkles", 0,
          outputs=[_port("output", "Response")], implemented=True, streaming=True,
          fields=_completion_fields(["gpt-4-turbo-preview", "gpt-4o", "gpt-4o-mini"], "OPENAI_API_KEY")),
    _node(NodeType.GROQ_COMPLETION, L, "Groq", "Fast inference on Groq", "Bolt", 2,
          outputs=[_port("output", "Response")], implemented=True, streaming=True,
          fields=_completion_fields(
              ["llama-3.1-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768"], "GROQ_API_KEY")),
    _node(NodeType.AZURE_OPENAI_COMPLETION, L, "Azure OpenAI", "Call Azure-hosted OpenAI deployments",
          "Cloud", 2, outputs=[_port("output", "Response")]),
    _node(NodeType.EMBEDDING_GENERATE, L, "Generate Embedding", "Create vector embeddings from text", "CubeTransparent",
          2, inputs=[_port("input", "Text")], outputs=[_port("output", "Vector")], implemented=True,
          fields=[
              _field("provider", "Provider", "select", required=True, default="openai", options=["openai", "voyage"]),
              _field("apiKey", "API Key", "secret"),
              _field("model", "Model", "select", default="text-embedding-3-small",
                     options=["text-embedding-3-small", "text-embedding-3-large", "voyage-3"]),
              _field("text", "Text", "textarea", required=True, description="Text to embed. Supports {{ }}"),
          ]),
    _node(NodeType.PROMPT_TEMPLATE, L, "Prompt Template", "Build prompts with variable interpolation",
          "DocumentText", 2, inputs=[_port("input", "Variables")], outputs=[_port("output", "Prompt")],
          implemented=True,
          fields=[
              _field("template", "Template", "textarea", description="Text with {{ }} placeholders"),
              _field("messages", "Messages (JSON)", "json", description="[{role, content}] with placeholders"),
              _field("system", "System Message", "textarea"),
              _field("variables", "Variables (JSON)", "json", description="Extra placeholder names"),
          ]),
    _node(NodeType.AGENTIC_TOOL_CALL, L, "Agentic Tool Call", "LLM with tool use", "WrenchScrewdriver",
          5, outputs=[_port("output", "Result")]),
    _node(NodeType.LLM_ROUTER, L, "LLM Router", "Route to the best model based on criteria", "ArrowsRightLeft",
          2, outputs=[_port("output", "Response")], implemented=True,
          fields=[
              _field("strategy", "Routing Strategy", "select", required=True, default="balanced",
                     options=["cost", "speed", "quality", "balanced", "custom"]),
              _field("routes", "Custom Routes (JSON)", "json",
                     description="[{condition, maxInputChars, provider, model}] for the custom strategy"),
              _field("fallback", "Fallback (JSON)", "json", description="{provider, model}"),
              _field("prompt", "Prompt", "textarea"),
              _field("system", "System Prompt", "textarea"),
              _field("maxTokens", "Max Tokens", "number", default=1024),
          ]),

    # Data sources
    _node(NodeType.QDRANT_SEARCH, D, "Qdrant Search", "Vector similarity search", "MagnifyingGlass", 0,
          inputs=[_port("input", "Query")], outputs=[_port("output", "Results")], implemented=True,
          fields=[
              _field("url", "Qdrant URL", default="http://localhost:6333",
                     description="Defaults to the QDRANT_URL secret"),
              _field("apiKey", "API Key", "secret"),
              _field("collection", "Collection Name", required=True),
              _field("queryVector", "Query Vector", "expression", required=True,
                     description="Typically {{ nodes.<embedding node>.output.embedding }}"),
              _field("limit", "Result Limit", "number", default=10),
              _field("scoreThreshold", "Score Threshold", "number"),
              _field("filter", "Filter (JSON)", "json"),
          ]),
    _node(NodeType.QDRANT_UPSERT, D, "Qdrant Upsert", "Insert or update vectors", "ArrowUpTray", 3,
          inputs=[_port("input", "Points")], outputs=[_port("output", "Result")]),
    _node(NodeType.QDRANT_SCROLL, D, "Qdrant Scroll", "Paginated point retrieval", "ArrowsUpDown", 3,
          outputs=[_port("output", "Points")]),
    _node(NodeType.QDRANT_PAYLOAD, D, "Qdrant Payload", "Update point payloads", "PencilSquare", 3,
          outputs=[_port("output", "Result")]),
    _node(NodeType.POSTGRES_QUERY, D, "PostgreSQL Query", "Execute SQL queries", "CircleStack", 0,
          outputs=[_port("output", "Rows")], implemented=True,
          fields=[
              _field("connectionString", "Connection String", "secret",
                     description="Defaults to the DATABASE_URL secret"),
              _field("query", "SQL Query", "textarea", required=True),
              _field("params", "Query Parameters (JSON)", "json"),
              _field("timeout", "Timeout (seconds)", "number", default=30),
              _field("transaction", "Use Transaction", "boolean", default=False),
          ]),
    _node(NodeType.DIRECTUS_QUERY, D, "Directus Query", "Query Directus collections", "TableCells", 3,
          outputs=[_port("output", "Items")]),
    _node(NodeType.GRAPHQL_QUERY, D, "GraphQL Query", "Execute GraphQL queries", "CodeBracket", 3,
          inputs=[_port("input", "Variables")], outputs=[_port("output", "Data")]),
    _node(NodeType.REDIS_OPERATION, D, "Redis Cache", "Cache operations (get/set/del)", "Square3Stack3d", 3,
          outputs=[_port("output", "Result")]),

    # HTTP / external
    _node(NodeType.HTTP_REQUEST, H, "HTTP Request", "Make external API calls", "ArrowRightCircle", 1,
          outputs=[_port("output", "Response")]),
    _node(NodeType.GMAIL_OPERATION, H, "Gmail", "Send emails via the Gmail API", "Envelope", 5,
          outputs=[_port("output", "Result")]),
    _node(NodeType.WEBHOOK_SEND, H, "Send Webhook", "Send webhooks with retry", "PaperAirplane", 5,
          outputs=[_port("output", "Result")]),
    _node(NodeType.GRAPHQL_MUTATION, H, "GraphQL Mutation", "Execute GraphQL mutations", "PencilSquare", 3,
          inputs=[_port("input", "Variables")], outputs=[_port("output", "Data")]),

    # Control flow
    _node(NodeType.CONDITION, C, "Condition (If/Else)", "Branch execution based on a condition",
          "ArrowTopRightOnSquare", 0, implemented=True,
          outputs=[_port("true", "True", "conditional"), _port("false", "False", "conditional")],
          fields=[
              _field("condition", "Condition Expression", "textarea", required=True,
                     description="e.g. {{ input.count }} > 10"),
              _field("description", "Description"),
          ]),
    _node(NodeType.SWITCH, C, "Switch", "Multi-way branching", "Squares2x2", 4,
          outputs=[_port("case0", "Case 0", "conditional"), _port("case1", "Case 1", "conditional"),
                   _port("default", "Default", "conditional")]),
    _node(NodeType.LOOP, C, "Loop", "Iterate over items", "ArrowPath", 4,
          inputs=[_port("input", "Items")], outputs=[_port("output", "Results")]),
    _node(NodeType.PARALLEL, C, "Parallel", "Execute nodes in parallel (fan-out)", "ArrowsPointingOut", 4,
          outputs=[_port("output", "Results")],
          fields=[
              _field("maxConcurrency", "Max Concurrency", "number"),
              _field("failureStrategy", "Failure Strategy", "select", default="fail_all",
                     options=["fail_all", "continue", "partial"]),
          ]),
    _node(NodeType.AGGREGATE, C, "Aggregate", "Merge results (fan-in)", "ArrowsPointingIn", 4,
          inputs=[_port("input1", "Input 1"), _port("input2", "Input 2")], outputs=[_port("output", "Merged")]),
    _node(NodeType.RETRY, C, "Retry", "Retry with exponential backoff", "ArrowPathRoundedSquare", 4,
          outputs=[_port("output", "Result")]),
    _node(NodeType.DELAY, C, "Delay", "Wait for a specified duration", "ClockIcon", 4),
    _node(NodeType.EARLY_RETURN, C, "Early Return", "Exit the workflow early", "ArrowUturnLeft", 4, outputs=[]),

    # Transform
    _node(NodeType.EDIT_FIELDS, X, "Edit Fields", "Set or modify field values", "Wrench", 0, implemented=True,
          fields=[
              _field("fields", "Fields (JSON)", "json", required=True,
                     description="Field path -> value; values support {{ }}"),
              _field("mode", "Mode", "select", default="merge", options=["merge", "replace"]),
              _field("source", "Source Object", "expression", description="Defaults to the trigger input"),
          ]),
    _node(NodeType.JAVASCRIPT_FUNCTION, X, "JavaScript Function", "Custom JavaScript code",
          "CodeBracketSquare", 4),
    _node(NodeType.PYTHON_FUNCTION, X, "Python Function", "Custom Python code", "CodeBracketSquare", 4),
    _node(NodeType.JSON_TRANSFORM, X, "JSON Transform", "Transform with JSONata/JMESPath", "CursorArrowRays", 4),
    _node(NodeType.MAP_ARRAY, X, "Map Array", "Transform each array item", "ListBullet", 4,
          inputs=[_port("input", "Array")], outputs=[_port("output", "Mapped")]),
    _node(NodeType.FILTER_ARRAY, X, "Filter Array", "Filter array items", "Funnel", 4,
          inputs=[_port("input", "Array")], outputs=[_port("output", "Filtered")]),
    _node(NodeType.REDUCE_ARRAY, X, "Reduce Array", "Reduce an array to a single value", "FunnelIcon", 4,
          inputs=[_port("input", "Array")], outputs=[_port("output", "Result")]),
    _node(NodeType.SPLIT_ARRAY, X, "Split Array", "Split an array into batches", "Scissors", 4,
          inputs=[_port("input", "Array")], outputs=[_port("output", "Batches")]),

    # Streaming
    _node(NodeType.STREAM_START, S, "Stream Start", "Begin a streaming response", "Signal", 2,
          outputs=[_port("output", "Stream")]),
    _node(NodeType.STREAM_CHUNK, S, "Stream Chunk", "Send a chunk to the client", "DocumentText", 2,
          inputs=[_port("input", "Data")], outputs=[_port("output", "Next")]),
    _node(NodeType.STREAM_END, S, "Stream End", "End a streaming response", "StopCircle", 2, outputs=[]),
    _node(NodeType.STREAM_MERGE, S, "Stream Merge", "Merge multiple streams", "ArrowsRightLeft", 2,
          inputs=[_port("stream1", "Stream 1"), _port("stream2", "Stream 2")],
          outputs=[_port("output", "Merged")]),
    _node(NodeType.STREAM_BUFFER, S, "Stream Buffer", "Buffer stream chunks", "QueueList", 2,
          inputs=[_port("input", "Stream")], outputs=[_port("output", "Buffered")]),

    # Utilities
    _node(NodeType.CRYPTO_GENERATE, U, "Crypto Generate", "Generate secure values (UUID, hash, ...)", "Key", 5,
          outputs=[_port("output", "Result")]),
    _node(NodeType.EXECUTION_DATA, U, "Execution Data", "Get or set execution context", "InformationCircle", 1,
          outputs=[_port("output", "Data")]),
    _node(NodeType.GLOBAL_VARIABLE, U, "Global Variable", "Access global variables", "Variable", 1,
          outputs=[_port("output", "Value")]),
    _node(NodeType.ERROR_HANDLER, U, "Error Handler", "Catch and handle errors", "ShieldExclamation", 4),
    _node(NodeType.LOG, U, "Log", "Structured logging", "DocumentMagnifyingGlass", 0, implemented=True,
          fields=[
              _field("level", "Level", "select", default="info", options=["debug", "info", "warn", "error"]),
              _field("message", "Message", "textarea", required=True, description="Supports {{ }}"),
              _field("data", "Data (JSON)", "json"),
          ]),
    _node(NodeType.METRICS, U, "Metrics", "Record custom metrics", "ChartBar", 6),
    _node(NodeType.RATE_LIMIT, U, "Rate Limit", "Throttle execution", "Funnel", 5),
    _node(NodeType.VALIDATE, U, "Validate", "Validate data against a schema", "CheckBadge", 4),
]
