"""
Provider protocol adapter.

WHAT: Map a provider-agnostic ChatConfig onto a provider-specific HTTP request
WHY: Three incompatible chat APIs behind one send operation
HOW: Small pure functions per concern (endpoint, headers, body) dispatched on Provider
"""

from dataclasses import dataclass
from typing import Any, Sequence
from urllib.parse import quote

from .providers import get_provider_spec
from .types import AuthType, ChatConfig, ChatMessage, Provider, SystemPromptMode

ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_BROWSER_ACCESS_HEADER = "anthropic-dangerous-direct-browser-access"


@dataclass(frozen=True)
class ChatRequest:
    """A fully built provider request, ready for the transport."""
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


def resolve_base_url(config: ChatConfig) -> str:
    """Configured base URL, or the provider default, without trailing slash."""
    base_url = config.base_url or get_provider_spec(config.provider).default_base_url
    return base_url.rstrip("/")


def _with_query_key(endpoint: str, config: ChatConfig) -> str:
    spec = get_provider_spec(config.provider)
    if spec.auth_type != AuthType.QUERY_PARAM:
        return endpoint
    separator = "&" if "?" in endpoint else "?"
    return f"{endpoint}{separator}{spec.auth_query_param}={quote(config.api_key, safe='')}"


def build_endpoint(config: ChatConfig) -> str:
    """
    Build the streaming chat endpoint for the configured provider.

    The API key is appended as a query parameter only for providers whose
    auth scheme is query-parameter based.
    """
    base_url = resolve_base_url(config)

    if config.provider == Provider.ANTHROPIC:
        endpoint = f"{base_url}/v1/messages"
    elif config.provider == Provider.GOOGLE:
        endpoint = f"{base_url}/v1beta/models/{config.model}:streamGenerateContent?alt=sse"
    else:
        endpoint = f"{base_url}/v1/chat/completions"

    return _with_query_key(endpoint, config)


def build_models_endpoint(config: ChatConfig) -> str:
    """Model-listing endpoint used for connection checks."""
    base_url = resolve_base_url(config)

    if config.provider == Provider.GOOGLE:
        endpoint = f"{base_url}/v1beta/models"
    else:
        endpoint = f"{base_url}/v1/models"

    return _with_query_key(endpoint, config)


def build_headers(config: ChatConfig) -> dict[str, str]:
    """Content type, exactly one auth placement, plus Anthropic's fixed markers."""
    spec = get_provider_spec(config.provider)
    headers = {"Content-Type": "application/json"}

    if spec.auth_type == AuthType.BEARER:
        headers["Authorization"] = f"Bearer {config.api_key}"
    elif spec.auth_type == AuthType.CUSTOM_HEADER and spec.auth_header:
        headers[spec.auth_header] = config.api_key
    # QUERY_PARAM: key travels in the URL

    if config.provider == Provider.ANTHROPIC:
        headers["anthropic-version"] = ANTHROPIC_VERSION
        headers[ANTHROPIC_BROWSER_ACCESS_HEADER] = "true"

    return headers


def _openai_body(messages: Sequence[ChatMessage], config: ChatConfig) -> dict[str, Any]:
    return {
        "model": config.model,
        "messages": [{"role": msg.role, "content": msg.content} for msg in messages],
        "stream": True,
    }


def _anthropic_body(messages: Sequence[ChatMessage], config: ChatConfig) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": config.model,
        "max_tokens": config.max_tokens,
    }

    if config.system_prompt_mode == SystemPromptMode.TOP_LEVEL:
        system_parts = [msg.content for msg in messages if msg.role == "system"]
        turns = [msg for msg in messages if msg.role != "system"]
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
    else:
        turns = list(messages)

    body["messages"] = [{"role": msg.role, "content": msg.content} for msg in turns]
    body["stream"] = True
    return body


def _google_body(messages: Sequence[ChatMessage], config: ChatConfig) -> dict[str, Any]:
    # No stream flag: streaming is selected by ?alt=sse on the endpoint
    contents = [
        {
            "role": "model" if msg.role == "assistant" else "user",
            "parts": [{"text": msg.content}],
        }
        for msg in messages
    ]
    return {
        "contents": contents,
        "generationConfig": {"maxOutputTokens": config.max_tokens},
    }


def build_request_body(messages: Sequence[ChatMessage], config: ChatConfig) -> dict[str, Any]:
    """
    Reshape role/content pairs into the provider's request schema.

    Args:
        messages: Full history with the new user message last, oldest first
        config: Target provider and model

    Returns:
        JSON-serializable request body
    """
    if config.provider == Provider.ANTHROPIC:
        return _anthropic_body(messages, config)
    if config.provider == Provider.GOOGLE:
        return _google_body(messages, config)
    return _openai_body(messages, config)


def build_chat_request(messages: Sequence[ChatMessage], config: ChatConfig) -> ChatRequest:
    """Endpoint, headers and body for one streaming chat call."""
    return ChatRequest(
        url=build_endpoint(config),
        headers=build_headers(config),
        body=build_request_body(messages, config),
    )
