"""
Chat streaming types, dataclasses, and exceptions.

WHAT: Provider-agnostic definitions shared by the adapter, decoder and session
WHY: Keep one contract for every provider so vendor rules stay in small functions
HOW: Enums for closed variants, dataclasses for records, custom exceptions for errors
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Union


class Provider(str, Enum):
    """Closed set of wire protocols the client can speak."""
    OPENAI = "openai"  # OpenAI and OpenAI-compatible endpoints
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class AuthType(str, Enum):
    """Where the API key travels on a request."""
    BEARER = "bearer"
    CUSTOM_HEADER = "custom-header"
    QUERY_PARAM = "query-param"


class SystemPromptMode(str, Enum):
    """How system-role messages are placed in an Anthropic request body."""
    INLINE = "inline"  # left in the message list as-is
    TOP_LEVEL = "top_level"  # lifted into the top-level "system" field


Role = Literal["user", "assistant", "system"]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ChatConfig:
    """Target of one send: immutable for the duration of the stream."""
    provider: Provider
    api_key: str
    base_url: str
    model: str
    max_tokens: int = 4096
    system_prompt_mode: SystemPromptMode = SystemPromptMode.INLINE


@dataclass
class ChatMessage:
    """One conversation turn. `id` is empty for the outgoing, unsaved message."""
    role: Role
    content: str
    id: str = ""
    timestamp: int = field(default_factory=_now_ms)


@dataclass
class ParsedContent:
    """Reasoning/answer split of an accumulated reply."""
    think_content: str | None
    main_content: str
    is_thinking_complete: bool


@dataclass
class ChatReply:
    """A fully drained reply with its reasoning split."""
    content: str
    parsed: ParsedContent


@dataclass
class ProviderStatus:
    """Health status of an LLM provider."""
    available: bool
    base_url: str
    models: list[str] | None = None
    error: str | None = None


MaybeAwaitable = Union[None, Awaitable[None]]


@dataclass
class StreamCallbacks:
    """
    Receivers for one send.

    on_token fires zero or more times, strictly before exactly one of
    on_complete / on_error. Each may be a plain or a coroutine function.
    """
    on_token: Callable[[str], MaybeAwaitable]
    on_complete: Callable[[], MaybeAwaitable]
    on_error: Callable[["ChatStreamError"], MaybeAwaitable]


# Stream exceptions
class ChatStreamError(Exception):
    """Base error delivered to on_error."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ProviderTimeoutError(ChatStreamError):
    """Request to provider timed out."""
    pass


class ProviderUnavailableError(ChatStreamError):
    """Provider is not reachable, or the connection dropped mid-stream."""
    pass


class ProviderResponseError(ChatStreamError):
    """Provider answered with a non-success HTTP status."""
    pass
