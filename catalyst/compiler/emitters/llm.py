"""
LLM emitters - provider completions (Anthropic, OpenAI, Groq), embeddings,
prompt templates and the LLM router.
Completion nodes with ``stream`` set also get an SSE generator variant;
no other emitter produces streaming code.
"""

from typing import Any, Dict

from catalyst.compiler.fragments import (
    NodeFragment,
    build_node_function,
    contract_docstring,
    function_name_for,
)
from catalyst.compiler.templating import helper_sources
from catalyst.runtime import providers
from catalyst.workflow.manifest import NodeDefinition

COMPLETION_PROVIDERS: Dict[str, Dict[str, Any]] = {
    "anthropic": {
        "label": "Anthropic",
        "secret": "ANTHROPIC_API_KEY",
        "default_model": "claude-3-5-sonnet-20241022",
        "dependency": "anthropic>=0.18.0",
        "complete": [providers.anthropic_complete],
        "stream": [providers.anthropic_stream],
    },
    "openai": {
        "label": "OpenAI",
        "secret": "OPENAI_API_KEY",
        "default_model": "gpt-4-turbo-preview",
        "dependency": "openai>=1.0.0",
        "complete": [providers.chat_completion, providers.openai_complete],
        "stream": [providers.chat_stream, providers.openai_stream],
    },
    "groq": {
        "label": "Groq",
        "secret": "GROQ_API_KEY",
        "default_model": "llama-3.1-70b-versatile",
        "dependency": "groq>=0.4.0",
        "complete": [providers.chat_completion, providers.groq_complete],
        "stream": [providers.chat_stream, providers.groq_stream],
    },
}

_COMPLETION_CONTRACT = [
    "prompt (str): user prompt, supports expression placeholders",
    "messages (list): alternative to prompt, items with role and content, role defaults to 'user'",
    "system (str): optional system prompt",
    "model (str): default {default_model}",
    "maxTokens (int): default 1024",
    "temperature (float): optional",
    "apiKey (str): optional, else the {secret} secret",
    "stream (bool): also emit an SSE streaming variant",
]

_COMPLETION_BODY = '''
api_key = resolve_secret(ctx, interpolate_value(config.get("apiKey"), variables, variables_used, strict), "{secret}", node_id)
system, messages = build_chat_messages(config, variables, variables_used, strict)
model = config.get("model") or "{default_model}"
max_tokens = int(config.get("maxTokens") or 1024)
logger.info(f"[{{node_id}}] Calling {label} model {{model}}")
result = await {provider}_complete(api_key, model, system, messages, max_tokens, config.get("temperature"))
result["variablesUsed"] = sorted(variables_used)
return result
'''

_STREAM_BODY = '''
api_key = resolve_secret(ctx, interpolate_value(config.get("apiKey"), variables, variables_used, strict), "{secret}", node_id)
system, messages = build_chat_messages(config, variables, variables_used, strict)
model = config.get("model") or "{default_model}"
max_tokens = int(config.get("maxTokens") or 1024)
logger.info(f"[{{node_id}}] Streaming from {label} model {{model}}")
async for text in {provider}_stream(api_key, model, system, messages, max_tokens, config.get("temperature")):
    yield format_sse({{"type": "chunk", "nodeId": node_id, "content": text}})
yield format_sse({{"type": "done", "nodeId": node_id}})
'''


def wants_streaming(node: NodeDefinition) -> bool:
    return bool(node.config.get("stream") or node.config.get("streaming"))


def _completion_emitter(provider: str):
    provider_info = COMPLETION_PROVIDERS[provider]
    fields = {
        "provider": provider,
        "label": provider_info["label"],
        "secret": provider_info["secret"],
        "default_model": provider_info["default_model"],
    }

    def emit(node: NodeDefinition) -> NodeFragment:
        name = function_name_for(node.id)
        contract = [line.format(**fields) for line in _COMPLETION_CONTRACT]
        doc = contract_docstring(
            node,
            f"{provider_info['label']} chat completion.",
            contract,
            "dict with content, model, provider, stopReason, usage and variablesUsed",
        )
        helpers = helper_sources(providers.build_chat_messages, *provider_info["complete"])
        fragment = NodeFragment(
            node_id=node.id,
            function_name=name,
            function_source=build_node_function(node, name, doc, _COMPLETION_BODY.format(**fields)),
            dependencies=[provider_info["dependency"]],
            helpers=helpers,
            secrets=[provider_info["secret"]],
        )
        if wants_streaming(node):
            stream_name = function_name_for(node.id, prefix="stream_node")
            stream_doc = contract_docstring(
                node,
                f"{provider_info['label']} streaming completion as Server-Sent Events.",
                contract,
                "AsyncGenerator of SSE frames (chunk frames, then a done frame)",
            )
            fragment.stream_function_name = stream_name
            fragment.stream_function_source = build_node_function(
                node, stream_name, stream_doc, _STREAM_BODY.format(**fields), is_generator=True,
            )
            fragment.helpers.update(helper_sources(*provider_info["stream"], providers.format_sse))
        return fragment

    emit.__name__ = f"emit_{provider}_completion"
    return emit


emit_anthropic_completion = _completion_emitter("anthropic")
emit_openai_completion = _completion_emitter("openai")
emit_groq_completion = _completion_emitter("groq")


def emit_prompt_template(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Render a prompt from a template and/or a messages array.",
        [
            "template (str): text with {{ }} placeholders",
            "messages (list): [{role, content}] rendered the same way",
            "system (str): optional system message",
            "variables (dict): extra names for placeholders, override context names",
            "strictExpressions (bool): fail on unresolved placeholders",
        ],
        "dict with prompt and/or messages, system and metadata (templateCount, variablesUsed)",
    )
    body = '''
    template = config.get("template")
    if not template and not config.get("messages"):
        raise NodeConfigurationError(f"Prompt template node '{node_id}' requires a 'template' or a 'messages' array")
    result: Dict[str, Any] = {}
    template_count = 0
    if template:
        result["prompt"] = stringify_value(interpolate_value(template, variables, variables_used, strict))
        template_count += 1
    if config.get("messages"):
        system, messages = build_chat_messages(config, variables, variables_used, strict)
        result["messages"] = messages
        result["system"] = system
        template_count += len(messages)
    elif config.get("system"):
        result["system"] = stringify_value(interpolate_value(config["system"], variables, variables_used, strict))
    result["metadata"] = {"templateCount": template_count, "variablesUsed": sorted(variables_used)}
    return result
    '''
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
        helpers=helper_sources(providers.build_chat_messages),
    )


EMBEDDING_PROVIDERS = {
    "openai": {"secret": "OPENAI_API_KEY", "model": "text-embedding-3-small", "dependency": "openai>=1.0.0"},
    "voyage": {"secret": "VOYAGE_API_KEY", "model": "voyage-3", "dependency": "httpx>=0.25.0"},
}


def emit_embedding_generate(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    provider = str(node.config.get("provider") or "openai").lower()
    doc = contract_docstring(
        node,
        "Generate embedding vectors.",
        [
            "provider (str): openai | voyage, default openai",
            "text (str | list): text or list of texts to embed, supports {{ }}",
            "model (str): default text-embedding-3-small (openai) / voyage-3 (voyage)",
            "apiKey (str): optional, else OPENAI_API_KEY / VOYAGE_API_KEY",
        ],
        "dict with embedding (single text), embeddings, model, provider, dimensions and count",
    )
    body = '''
    provider = str(config.get("provider") or "openai").lower()
    if provider not in ("openai", "voyage"):
        raise NodeConfigurationError(f"Unknown embedding provider '{provider}'. Supported providers: openai, voyage")
    raw_text = config.get("text") if config.get("text") is not None else config.get("input")
    text_value = interpolate_value(raw_text, variables, variables_used, strict)
    texts = [stringify_value(t) for t in text_value] if isinstance(text_value, list) else [stringify_value(text_value)]
    if not any(t.strip() for t in texts):
        raise NodeConfigurationError(f"Embedding node '{node_id}' requires non-empty 'text'")
    secret_name = "OPENAI_API_KEY" if provider == "openai" else "VOYAGE_API_KEY"
    api_key = resolve_secret(ctx, interpolate_value(config.get("apiKey"), variables, variables_used, strict), secret_name, node_id)
    model = config.get("model") or ("text-embedding-3-small" if provider == "openai" else "voyage-3")
    logger.info(f"[{node_id}] Embedding {len(texts)} text(s) with {provider}/{model}")
    if provider == "openai":
        vectors = await openai_embed(api_key, model, texts)
    else:
        vectors = await voyage_embed(api_key, model, texts)
    return {
        "embedding": None if isinstance(text_value, list) else vectors[0],
        "embeddings": vectors,
        "model": model,
        "provider": provider,
        "dimensions": len(vectors[0]) if vectors else 0,
        "count": len(vectors),
    }
    '''
    # Only the configured provider's client is required; the body guards the other path.
    chosen = EMBEDDING_PROVIDERS.get(provider, EMBEDDING_PROVIDERS["openai"])
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
        dependencies=[chosen["dependency"]],
        helpers=helper_sources(providers.openai_embed, providers.voyage_embed),
        secrets=[chosen["secret"]],
    )


def emit_llm_router(node: NodeDefinition) -> NodeFragment:
    name = function_name_for(node.id)
    doc = contract_docstring(
        node,
        "Route the request to a provider/model chosen by strategy.",
        [
            "strategy (str): cost | speed | quality | balanced | custom, default balanced",
            "routes (list): custom routes [{condition, maxInputChars, provider, model}]",
            "fallback (dict): {provider, model} used when no route matches",
            "prompt / messages / system: as for completion nodes",
            "maxTokens (int): default 1024",
            "temperature (float): optional",
        ],
        "completion dict plus provider and routingReason",
    )
    body = '''
    system, messages = build_chat_messages(config, variables, variables_used, strict)
    route, reason = select_route(config, messages, variables, variables_used)
    completions = {
        "anthropic": (anthropic_complete, "ANTHROPIC_API_KEY"),
        "openai": (openai_complete, "OPENAI_API_KEY"),
        "groq": (groq_complete, "GROQ_API_KEY"),
    }
    provider = str(route.get("provider", "")).lower()
    if provider not in completions:
        raise NodeConfigurationError(f"Unknown provider '{provider}'. Supported providers: anthropic, openai, groq")
    if not route.get("model"):
        raise NodeConfigurationError(f"Route for provider '{provider}' has no model")
    complete, secret_name = completions[provider]
    api_key = resolve_secret(ctx, None, secret_name, node_id)
    logger.info(f"[{node_id}] Routing to {provider}/{route['model']} ({reason})")
    result = await complete(api_key, route["model"], system, messages, int(config.get("maxTokens") or 1024), config.get("temperature"))
    result["routingReason"] = reason
    result["variablesUsed"] = sorted(variables_used)
    return result
    '''
    helpers = helper_sources(
        providers.build_chat_messages,
        providers.routing_strategies,
        providers.select_route,
        providers.anthropic_complete,
        providers.chat_completion,
        providers.openai_complete,
        providers.groq_complete,
    )
    return NodeFragment(
        node_id=node.id,
        function_name=name,
        function_source=build_node_function(node, name, doc, body),
        dependencies=[p["dependency"] for p in COMPLETION_PROVIDERS.values()],
        helpers=helpers,
        secrets=[p["secret"] for p in COMPLETION_PROVIDERS.values()],
    )
