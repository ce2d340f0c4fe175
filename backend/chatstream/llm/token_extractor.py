"""
Per-provider token extraction.

WHAT: Pull the incremental text delta out of one decoded stream event
WHY: Each provider nests its delta differently; control events carry none
HOW: Tolerant path lookup returning "" on any missing or mistyped level
"""

from typing import Any

from .types import Provider

ANTHROPIC_TEXT_EVENT = "content_block_delta"


def _dig(data: Any, *path: str | int) -> Any:
    """Walk dict keys / list indices, returning None at the first miss."""
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        else:
            if key not in current:
                return None
        current = current[key]
    return current


def _as_token(value: Any) -> str:
    return value if isinstance(value, str) else ""


def extract_openai_token(data: Any) -> str:
    return _as_token(_dig(data, "choices", 0, "delta", "content"))


def extract_anthropic_token(data: Any) -> str:
    if _dig(data, "type") != ANTHROPIC_TEXT_EVENT:
        return ""
    return _as_token(_dig(data, "delta", "text"))


def extract_google_token(data: Any) -> str:
    return _as_token(_dig(data, "candidates", 0, "content", "parts", 0, "text"))


def extract_token(provider: Provider, data: Any) -> str:
    """
    Return the text delta carried by one event payload.

    Args:
        provider: Protocol the payload came from
        data: Decoded JSON of one data frame

    Returns:
        The token, or "" when the event carries no text (never raises)
    """
    if provider == Provider.ANTHROPIC:
        return extract_anthropic_token(data)
    if provider == Provider.GOOGLE:
        return extract_google_token(data)
    return extract_openai_token(data)
