"""
Streaming chat session.

WHAT: Send a conversation to a provider and deliver tokens as they arrive
WHY: One send operation over three incompatible streaming chat APIs
HOW: ProtocolAdapter -> httpx streaming POST -> SSEFrameDecoder -> TokenExtractor,
     exposed as a cancellable async iterator with a callback wrapper on top
"""

import asyncio
import inspect
import json
from contextlib import aclosing
from typing import Any, AsyncIterator, Callable, Sequence

import httpx

from .protocol import build_chat_request, build_headers, build_models_endpoint, resolve_base_url
from .sse_decoder import SSEFrameDecoder, parse_data_line
from .think_splitter import parse_think_tags
from .token_extractor import extract_token
from .types import (
    ChatConfig,
    ChatMessage,
    ChatReply,
    ChatStreamError,
    Provider,
    ProviderResponseError,
    ProviderStatus,
    ProviderTimeoutError,
    ProviderUnavailableError,
    StreamCallbacks,
)
from ..core.config import settings
from ..utils.logger import get_logger, redact_key

logger = get_logger(__name__)


def extract_error_message(status_code: int, reason_phrase: str, error_text: str) -> str:
    """
    Best-effort human-readable message for a non-success response.

    Falls back from error.message / message in a JSON body, to the raw body
    text, to the status line.
    """
    fallback = f"HTTP {status_code}: {reason_phrase}"

    try:
        error_json = json.loads(error_text)
    except json.JSONDecodeError:
        return error_text or fallback

    if not isinstance(error_json, dict):
        return error_text or fallback

    error = error_json.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
        return error["message"]

    message = error_json.get("message")
    if isinstance(message, str) and message:
        return message

    return fallback


def normalize_error(exc: BaseException) -> ChatStreamError:
    """Wrap anything that is not already a ChatStreamError."""
    if isinstance(exc, ChatStreamError):
        return exc
    return ChatStreamError(str(exc) or exc.__class__.__name__)


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def _is_set(abort: asyncio.Event | None) -> bool:
    return abort is not None and abort.is_set()


def _transport_error(exc: httpx.RequestError, config: ChatConfig) -> ChatStreamError:
    """Map an httpx failure to the session's error type, logging it once."""
    provider = config.provider.value
    if isinstance(exc, httpx.TimeoutException):
        logger.error(f"{provider} stream timeout: {exc}")
        return ProviderTimeoutError("Streaming request timed out")
    if isinstance(exc, httpx.ConnectError):
        logger.error(f"{provider} not reachable: {exc}")
        return ProviderUnavailableError(f"{provider} is not reachable")
    logger.error(f"{provider} stream request failed: {exc}")
    return ProviderUnavailableError(str(exc) or "Connection to provider failed")


_EOF = object()


async def _iter_chunks(response: httpx.Response, abort: asyncio.Event | None) -> AsyncIterator[bytes]:
    """
    Response body chunks, ending as soon as `abort` is set.

    Each read is raced against the abort event, so a read stalled waiting on
    the provider does not hold up the abort. The outcome of a read cut short
    this way is discarded.
    """
    if abort is None:
        async for chunk in response.aiter_bytes():
            yield chunk
        return

    chunks = response.aiter_bytes()
    abort_wait = asyncio.ensure_future(abort.wait())
    next_chunk = None
    try:
        while not abort.is_set():
            next_chunk = asyncio.ensure_future(anext(chunks, _EOF))
            await asyncio.wait({next_chunk, abort_wait}, return_when=asyncio.FIRST_COMPLETED)
            if abort.is_set():
                return

            chunk = next_chunk.result()
            next_chunk = None
            if chunk is _EOF:
                return
            yield chunk
    finally:
        abort_wait.cancel()
        if next_chunk is not None:
            next_chunk.cancel()
            await asyncio.gather(next_chunk, return_exceptions=True)
        await chunks.aclose()


class StreamingChatSession:
    """Streaming chat client over a shared httpx connection pool."""

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout: httpx.Timeout | None = None):
        """
        Initialize session.

        Args:
            client: Pre-built client (tests inject a MockTransport-backed one)
            timeout: Timeout for an owned client; defaults from settings
        """
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=timeout or httpx.Timeout(settings.LLM_CONNECT_TIMEOUT, read=settings.LLM_READ_TIMEOUT),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                http2=False,
            )
        self.client = client

    async def __aenter__(self) -> "StreamingChatSession":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this session created it."""
        if self._owns_client:
            await self.client.aclose()

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        config: ChatConfig,
        *,
        abort: asyncio.Event | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream non-empty tokens of the provider's reply.

        Breaking out of the iteration (or closing the generator) closes the
        HTTP response. Setting `abort` ends the stream normally, including
        while a read is waiting on the provider; a transport failure that
        happens after the abort is not reported.

        Args:
            messages: Full history, new user message last
            config: Provider, key, base URL and model for this call
            abort: Optional abort handle

        Yields:
            Text tokens in arrival order

        Raises:
            ProviderTimeoutError: Connect or read timed out
            ProviderUnavailableError: Provider not reachable or connection dropped
            ProviderResponseError: Non-success HTTP status
        """
        request = build_chat_request(messages, config)
        logger.info(
            f"Chat stream starting (provider: {config.provider.value}, model: {config.model}, "
            f"endpoint: {request.url.split('?')[0]}, API key: {redact_key(config.api_key)})"
        )

        decoder = SSEFrameDecoder()
        token_count = 0

        try:
            async with self.client.stream(
                "POST",
                request.url,
                headers=request.headers,
                json=request.body,
            ) as response:
                if not response.is_success:
                    error_text = (await response.aread()).decode("utf-8", errors="replace")
                    message = extract_error_message(response.status_code, response.reason_phrase, error_text)
                    logger.warning(f"Chat stream rejected: HTTP {response.status_code} ({message})")
                    raise ProviderResponseError(message, status_code=response.status_code)

                async with aclosing(_iter_chunks(response, abort)) as chunks:
                    async for chunk in chunks:
                        for line in decoder.feed(chunk):
                            if _is_set(abort):
                                break

                            payload = parse_data_line(line)
                            if payload is None:
                                continue

                            token = extract_token(config.provider, payload)
                            if token:
                                token_count += 1
                                yield token

                        if _is_set(abort):
                            break

        except httpx.RequestError as e:
            # a read torn down after abort is the abort, not a failure
            if not _is_set(abort):
                raise _transport_error(e, config) from e

        finally:
            decoder.finish()

        if _is_set(abort):
            logger.info(f"Chat stream aborted ({token_count} tokens)")
        else:
            logger.info(f"Chat stream completed ({token_count} tokens)")

    async def send(
        self,
        messages: Sequence[ChatMessage],
        config: ChatConfig,
        callbacks: StreamCallbacks,
        *,
        abort: asyncio.Event | None = None,
    ) -> None:
        """
        Stream a reply into callbacks.

        on_token fires per token; then exactly one of on_complete / on_error.
        No stream failure escapes this call. Task cancellation is propagated
        without a terminal callback.
        """
        try:
            async with aclosing(self.stream(messages, config, abort=abort)) as tokens:
                async for token in tokens:
                    await _invoke(callbacks.on_token, token)
        except Exception as e:
            error = normalize_error(e)
            logger.debug(f"Chat send ended with error: {error.message}")
            await _invoke(callbacks.on_error, error)
            return

        await _invoke(callbacks.on_complete)

    async def collect_reply(
        self,
        messages: Sequence[ChatMessage],
        config: ChatConfig,
        *,
        abort: asyncio.Event | None = None,
    ) -> ChatReply:
        """Drain the stream and return the full reply with its reasoning split."""
        parts: list[str] = []
        async with aclosing(self.stream(messages, config, abort=abort)) as tokens:
            async for token in tokens:
                parts.append(token)
        content = "".join(parts)
        return ChatReply(content=content, parsed=parse_think_tags(content))

    async def check_connection(self, config: ChatConfig) -> ProviderStatus:
        """
        Check a configuration by listing the provider's models.

        Returns:
            ProviderStatus (never raises)
        """
        base_url = resolve_base_url(config)
        headers = build_headers(config)
        headers.pop("Content-Type", None)

        try:
            response = await self.client.get(build_models_endpoint(config), headers=headers)
            if not response.is_success:
                message = extract_error_message(response.status_code, response.reason_phrase, response.text)
                logger.warning(f"{config.provider.value} connection check rejected: HTTP {response.status_code}")
                return ProviderStatus(available=False, base_url=base_url, models=None, error=message)

            data = response.json()
            if config.provider == Provider.GOOGLE:
                models = [model["name"] for model in data.get("models", []) if model.get("name")]
            else:
                models = [model["id"] for model in data.get("data", []) if model.get("id")]

            logger.info(f"{config.provider.value} connection check success ({len(models)} models available)")

            return ProviderStatus(
                available=True,
                base_url=base_url,
                models=models[:10] if models else None,  # Return first 10
                error=None
            )
        except httpx.TimeoutException:
            logger.warning(f"{config.provider.value} connection check timeout")
            return ProviderStatus(available=False, base_url=base_url, models=None, error="Request timed out")
        except httpx.ConnectError:
            logger.warning(f"{config.provider.value} not reachable")
            return ProviderStatus(available=False, base_url=base_url, models=None, error="Connection refused")
        except Exception as e:
            logger.error(f"{config.provider.value} connection check failed: {e}")
            return ProviderStatus(available=False, base_url=base_url, models=None, error=str(e))


async def send_chat_message(
    messages: Sequence[ChatMessage],
    config: ChatConfig,
    callbacks: StreamCallbacks,
    *,
    abort: asyncio.Event | None = None,
) -> None:
    """One-shot send on a fresh session."""
    async with StreamingChatSession() as session:
        await session.send(messages, config, callbacks, abort=abort)
