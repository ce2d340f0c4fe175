"""Multi-provider streaming chat layer."""

from .types import (
    Provider,
    AuthType,
    SystemPromptMode,
    ChatConfig,
    ChatMessage,
    ChatReply,
    ParsedContent,
    ProviderStatus,
    StreamCallbacks,
    ChatStreamError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
)
from .providers import ProviderSpec, get_provider_spec
from .protocol import ChatRequest, build_chat_request
from .sse_decoder import SSEFrameDecoder, parse_data_line
from .token_extractor import extract_token
from .think_splitter import parse_think_tags
from .session import StreamingChatSession, send_chat_message

__all__ = [
    "Provider",
    "AuthType",
    "SystemPromptMode",
    "ChatConfig",
    "ChatMessage",
    "ChatReply",
    "ParsedContent",
    "ProviderStatus",
    "StreamCallbacks",
    "ChatStreamError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderResponseError",
    "ProviderSpec",
    "get_provider_spec",
    "ChatRequest",
    "build_chat_request",
    "SSEFrameDecoder",
    "parse_data_line",
    "extract_token",
    "parse_think_tags",
    "StreamingChatSession",
    "send_chat_message",
]
