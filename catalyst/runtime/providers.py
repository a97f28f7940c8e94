"""
Provider Helpers - LLM, embedding and routing support functions.
Emitters copy only the functions a node needs into the generated program,
so every function here must import its SDK lazily and rely only on the
expression and execution runtimes.
"""

import json
from typing import Any, AsyncGenerator, Dict, List, Optional, Set, Tuple

from catalyst.runtime.execution import NodeConfigurationError, NodeRuntimeError
from catalyst.runtime.interpolation import evaluate_condition, interpolate_value, stringify_value


def build_chat_messages(
    config: Dict[str, Any],
    variables: Dict[str, Any],
    variables_used: Set[str],
    strict: bool = False,
) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """Interpolated (system, messages) from a 'prompt' string or a 'messages' array."""
    system_value = config.get("system") or config.get("systemPrompt")
    system = stringify_value(interpolate_value(system_value, variables, variables_used, strict)) if system_value else None
    messages: List[Dict[str, str]] = []

    raw_messages = config.get("messages")
    if raw_messages:
        if not isinstance(raw_messages, list):
            raise NodeConfigurationError("'messages' must be an array of {role, content} objects")
        for position, message in enumerate(raw_messages):
            if not isinstance(message, dict) or "content" not in message:
                raise NodeConfigurationError(f"Message {position} must be an object with a 'content' field")
            role = message.get("role") or "user"
            content = stringify_value(interpolate_value(message["content"], variables, variables_used, strict))
            if role == "system":
                system = f"{system}\n\n{content}" if system else content
                continue
            messages.append({"role": role, "content": content})
    elif config.get("prompt"):
        prompt = stringify_value(interpolate_value(config["prompt"], variables, variables_used, strict))
        messages.append({"role": "user", "content": prompt})

    if not messages:
        raise NodeConfigurationError("LLM node requires a 'prompt' or a non-empty 'messages' array")
    return system, messages


async def anthropic_complete(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> Dict[str, Any]:
    from anthropic import APIError, AsyncAnthropic, AuthenticationError, RateLimitError

    client = AsyncAnthropic(api_key=api_key)
    params: Dict[str, Any] = {"model": model, "max_tokens": max_tokens, "messages": messages}
    if system:
        params["system"] = system
    if temperature is not None:
        params["temperature"] = temperature
    try:
        response = await client.messages.create(**params)
    except AuthenticationError as e:
        raise NodeRuntimeError("Anthropic rejected the API key. Check the ANTHROPIC_API_KEY secret") from e
    except RateLimitError as e:
        raise NodeRuntimeError("Anthropic rate limit exceeded") from e
    except APIError as e:
        raise NodeRuntimeError(f"Anthropic API error: {e}") from e

    return {
        "content": "".join(getattr(block, "text", "") for block in response.content),
        "model": response.model,
        "provider": "anthropic",
        "stopReason": response.stop_reason,
        "usage": {
            "inputTokens": response.usage.input_tokens,
            "outputTokens": response.usage.output_tokens,
        },
    }


async def chat_completion(
    provider: str,
    client: Any,
    errors: Tuple[type, type, type],
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> Dict[str, Any]:
    """Chat completion against an OpenAI-compatible client (OpenAI, Groq)."""
    auth_error, rate_error, api_error = errors
    chat = ([{"role": "system", "content": system}] if system else []) + messages
    params: Dict[str, Any] = {"model": model, "messages": chat, "max_tokens": max_tokens}
    if temperature is not None:
        params["temperature"] = temperature
    try:
        response = await client.chat.completions.create(**params)
    except auth_error as e:
        raise NodeRuntimeError(f"{provider} rejected the API key") from e
    except rate_error as e:
        raise NodeRuntimeError(f"{provider} rate limit exceeded") from e
    except api_error as e:
        raise NodeRuntimeError(f"{provider} API error: {e}") from e

    choice = response.choices[0]
    usage = response.usage
    return {
        "content": choice.message.content or "",
        "model": response.model,
        "provider": provider,
        "stopReason": choice.finish_reason,
        "usage": {
            "inputTokens": getattr(usage, "prompt_tokens", None),
            "outputTokens": getattr(usage, "completion_tokens", None),
        },
    }


async def openai_complete(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> Dict[str, Any]:
    from openai import APIError, AsyncOpenAI, AuthenticationError, RateLimitError

    client = AsyncOpenAI(api_key=api_key)
    errors = (AuthenticationError, RateLimitError, APIError)
    return await chat_completion("openai", client, errors, model, system, messages, max_tokens, temperature)


async def groq_complete(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> Dict[str, Any]:
    from groq import APIError, AsyncGroq, AuthenticationError, RateLimitError

    client = AsyncGroq(api_key=api_key)
    errors = (AuthenticationError, RateLimitError, APIError)
    return await chat_completion("groq", client, errors, model, system, messages, max_tokens, temperature)


async def anthropic_stream(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> AsyncGenerator[str, None]:
    from anthropic import APIError, AsyncAnthropic, AuthenticationError, RateLimitError

    client = AsyncAnthropic(api_key=api_key)
    params: Dict[str, Any] = {"model": model, "max_tokens": max_tokens, "messages": messages}
    if system:
        params["system"] = system
    if temperature is not None:
        params["temperature"] = temperature
    try:
        async with client.messages.stream(**params) as stream:
            async for text in stream.text_stream:
                yield text
    except AuthenticationError as e:
        raise NodeRuntimeError("Anthropic rejected the API key. Check the ANTHROPIC_API_KEY secret") from e
    except RateLimitError as e:
        raise NodeRuntimeError("Anthropic rate limit exceeded") from e
    except APIError as e:
        raise NodeRuntimeError(f"Anthropic API error: {e}") from e


async def chat_stream(
    provider: str,
    client: Any,
    errors: Tuple[type, type, type],
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> AsyncGenerator[str, None]:
    auth_error, rate_error, api_error = errors
    chat = ([{"role": "system", "content": system}] if system else []) + messages
    params: Dict[str, Any] = {"model": model, "messages": chat, "max_tokens": max_tokens, "stream": True}
    if temperature is not None:
        params["temperature"] = temperature
    try:
        stream = await client.chat.completions.create(**params)
        async for chunk in stream:
            delta = chunk.choices[0].delta.content if chunk.choices else None
            if delta:
                yield delta
    except auth_error as e:
        raise NodeRuntimeError(f"{provider} rejected the API key") from e
    except rate_error as e:
        raise NodeRuntimeError(f"{provider} rate limit exceeded") from e
    except api_error as e:
        raise NodeRuntimeError(f"{provider} API error: {e}") from e


async def openai_stream(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> AsyncGenerator[str, None]:
    from openai import APIError, AsyncOpenAI, AuthenticationError, RateLimitError

    client = AsyncOpenAI(api_key=api_key)
    errors = (AuthenticationError, RateLimitError, APIError)
    async for text in chat_stream("openai", client, errors, model, system, messages, max_tokens, temperature):
        yield text


async def groq_stream(
    api_key: str,
    model: str,
    system: Optional[str],
    messages: List[Dict[str, str]],
    max_tokens: int,
    temperature: Optional[float],
) -> AsyncGenerator[str, None]:
    from groq import APIError, AsyncGroq, AuthenticationError, RateLimitError

    client = AsyncGroq(api_key=api_key)
    errors = (AuthenticationError, RateLimitError, APIError)
    async for text in chat_stream("groq", client, errors, model, system, messages, max_tokens, temperature):
        yield text


def format_sse(data: Dict[str, Any]) -> str:
    """One Server-Sent Events frame."""
    return f"data: {json.dumps(data, default=str)}\n\n"


async def openai_embed(api_key: str, model: str, texts: List[str]) -> List[List[float]]:
    from openai import APIError, AsyncOpenAI, AuthenticationError, RateLimitError

    client = AsyncOpenAI(api_key=api_key)
    try:
        response = await client.embeddings.create(model=model, input=texts)
    except AuthenticationError as e:
        raise NodeRuntimeError("openai rejected the API key") from e
    except RateLimitError as e:
        raise NodeRuntimeError("openai rate limit exceeded") from e
    except APIError as e:
        raise NodeRuntimeError(f"openai API error: {e}") from e
    return [item.embedding for item in response.data]


async def voyage_embed(api_key: str, model: str, texts: List[str]) -> List[List[float]]:
    import httpx

    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.post(
                "https://api.voyageai.com/v1/embeddings",
                headers={"Authorization": f"Bearer {api_key}"},
                json={"model": model, "input": texts},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        if status == 401:
            raise NodeRuntimeError("voyage rejected the API key") from e
        if status == 429:
            raise NodeRuntimeError("voyage rate limit exceeded") from e
        raise NodeRuntimeError(f"voyage API error ({status}): {e.response.text}") from e
    except httpx.HTTPError as e:
        raise NodeRuntimeError(f"voyage request failed: {e}") from e
    return [item["embedding"] for item in response.json()["data"]]


def routing_strategies() -> Dict[str, List[Dict[str, Any]]]:
    """Preset route tables. A route matches when the prompt is shorter than maxInputChars (if set)."""
    return {
        "cost": [
            {"maxInputChars": 500, "provider": "groq", "model": "llama-3.1-8b-instant"},
            {"maxInputChars": 2000, "provider": "groq", "model": "llama-3.1-70b-versatile"},
            {"condition": "always", "provider": "anthropic", "model": "claude-3-5-sonnet-20241022"},
        ],
        "speed": [
            {"condition": "always", "provider": "groq", "model": "llama-3.1-70b-versatile"},
        ],
        "quality": [
            {"maxInputChars": 4000, "provider": "anthropic", "model": "claude-3-5-sonnet-20241022"},
            {"condition": "always", "provider": "anthropic", "model": "claude-3-opus-20240229"},
        ],
        "balanced": [
            {"maxInputChars": 1000, "provider": "groq", "model": "llama-3.1-70b-versatile"},
            {"condition": "always", "provider": "anthropic", "model": "claude-3-5-sonnet-20241022"},
        ],
    }


def select_route(
    config: Dict[str, Any],
    messages: List[Dict[str, str]],
    variables: Dict[str, Any],
    variables_used: Set[str],
) -> Tuple[Dict[str, Any], str]:
    """Pick the first matching route; fall back to config['fallback'] if none match."""
    strategy = config.get("strategy") or config.get("routingStrategy") or "balanced"
    if strategy == "custom":
        routes = config.get("routes") or []
    else:
        presets = routing_strategies()
        if strategy not in presets:
            raise NodeConfigurationError(
                f"Unknown routing strategy '{strategy}'. Supported: {', '.join(sorted(presets))}, custom"
            )
        routes = presets[strategy]

    input_chars = sum(len(m["content"]) for m in messages)
    for position, route in enumerate(routes):
        limit = route.get("maxInputChars")
        if limit is not None and input_chars >= int(limit):
            continue
        condition = route.get("condition")
        if condition and condition != "always" and not evaluate_condition(condition, variables, variables_used):
            continue
        return route, f"{strategy} strategy, route {position} ({input_chars} input chars)"

    fallback = config.get("fallback")
    if not fallback:
        raise NodeConfigurationError(f"No route matched for strategy '{strategy}' and no fallback defined")
    return fallback, f"{strategy} strategy, fallback ({input_chars} input chars)"
