"""
Chat relay endpoints.

WHAT: Server-Sent Events relay of a provider chat stream, one-shot replies and think-tag parsing
WHY: Browser clients get one uniform token stream whatever the provider
HOW: EventSourceResponse wrapping StreamingChatSession.stream()
"""

import json
from contextlib import aclosing
from typing import AsyncIterator, Sequence

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ....core.config import settings, default_chat_config
from ....llm.session import StreamingChatSession, normalize_error
from ....llm.session_factory import get_session
from ....llm.think_splitter import parse_think_tags
from ....llm.types import (
    ChatConfig,
    ChatMessage,
    ChatStreamError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
)
from ....models.api_schemas import ChatReplyOut, ChatStreamRequest, ParseRequest, ParsedContentOut
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _error_code(error: ChatStreamError) -> str:
    if isinstance(error, ProviderTimeoutError):
        return "LLM_TIMEOUT"
    if isinstance(error, ProviderUnavailableError):
        return "LLM_UNAVAILABLE"
    if isinstance(error, ProviderResponseError):
        return "LLM_BAD_GATEWAY"
    return "LLM_STREAM_ERROR"


async def chat_event_generator(
    messages: Sequence[ChatMessage],
    config: ChatConfig,
    session: StreamingChatSession,
) -> AsyncIterator[dict]:
    """
    Generate SSE events for one chat reply.

    Yields "token" events, then exactly one "complete" or "error" event.
    A client disconnect cancels this generator, which closes the upstream
    response.

    Args:
        messages: Full history, new user message last
        config: Provider target
        session: Shared streaming session

    Yields:
        SSE event dicts
    """
    parts: list[str] = []

    try:
        async with aclosing(session.stream(messages, config)) as tokens:
            async for token in tokens:
                parts.append(token)
                yield {
                    "event": "token",
                    "data": json.dumps({"token": token})
                }
    except Exception as e:
        error = normalize_error(e)
        logger.debug(f"Chat relay ended with error: {error.message}")
        yield {
            "event": "error",
            "data": json.dumps({
                "error": _error_code(error),
                "message": error.message,
                "status_code": error.status_code
            })
        }
        return

    content = "".join(parts)
    parsed = parse_think_tags(content)
    yield {
        "event": "complete",
        "data": json.dumps({
            "content": content,
            "think_content": parsed.think_content,
            "main_content": parsed.main_content,
            "is_thinking_complete": parsed.is_thinking_complete
        })
    }


@router.post("/chat/stream")
async def stream_chat(
    request: ChatStreamRequest,
    session: StreamingChatSession = Depends(get_session),
):
    """
    Relay a streaming chat reply as Server-Sent Events.

    Returns:
        EventSourceResponse with token / complete / error events
    """
    config = request.config.to_config() if request.config else default_chat_config()
    messages = [msg.to_message() for msg in request.messages]
    logger.info(f"Chat relay requested ({len(messages)} messages, provider: {config.provider.value})")

    return EventSourceResponse(
        chat_event_generator(messages, config, session),
        ping=settings.SSE_PING_INTERVAL,
    )


@router.post("/chat/complete", response_model=ChatReplyOut)
async def complete_chat(
    request: ChatStreamRequest,
    session: StreamingChatSession = Depends(get_session),
):
    """
    Return a whole chat reply in one response.

    Provider failures are not caught here; the exception handlers turn them
    into 503 (timeout, unreachable) or 502 (error status) responses.
    """
    config = request.config.to_config() if request.config else default_chat_config()
    messages = [msg.to_message() for msg in request.messages]
    logger.info(f"Chat completion requested ({len(messages)} messages, provider: {config.provider.value})")

    reply = await session.collect_reply(messages, config)
    return ChatReplyOut.from_reply(reply)


@router.post("/chat/parse", response_model=ParsedContentOut)
async def parse_content(request: ParseRequest):
    """Split accumulated content into reasoning and answer."""
    return ParsedContentOut.from_parsed(parse_think_tags(request.content))
