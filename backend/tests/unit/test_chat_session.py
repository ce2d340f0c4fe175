"""
Unit tests for the streaming chat session.

WHAT: Test send/stream orchestration, error normalization, abort, connection checks
WHY: Exactly one terminal callback per send, whatever the transport does
HOW: Scripted httpx.MockTransport chunks and respx routes
"""

import asyncio
import json

import httpx
import pytest
import respx

from chatstream.llm.session import StreamingChatSession, extract_error_message
from chatstream.llm.types import (
    ChatMessage,
    ChatStreamError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    StreamCallbacks,
)
from tests.fixtures.fake_transport import RecordingCallbacks, raising_client, scripted_client

HELLO_CHUNKS = [
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n\ndata: [DONE]\n\n',
]


def sse(payload) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@pytest.mark.unit
class TestSend:
    """Test the callback contract."""

    @pytest.mark.asyncio
    async def test_tokens_then_single_complete(self, conversation, openai_config):
        client, requests = scripted_client(HELLO_CHUNKS)
        recorder = RecordingCallbacks()

        async with StreamingChatSession(client) as session:
            await session.send(conversation, openai_config, recorder.as_callbacks())

        assert recorder.events == [("token", "Hel"), ("token", "lo"), ("complete",)]
        assert len(requests) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_matches_adapter_output(self, conversation, anthropic_config):
        client, requests = scripted_client([sse({"type": "message_stop"})])

        await StreamingChatSession(client).send(conversation, anthropic_config, RecordingCallbacks().as_callbacks())

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://api.anthropic.com/v1/messages"
        assert request.headers["x-api-key"] == "ant-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body["max_tokens"] == 4096
        assert body["stream"] is True
        assert body["messages"][-1] == {"role": "user", "content": "Describe crm"}
        await client.aclose()

    @pytest.mark.asyncio
    async def test_anthropic_stream(self, conversation, anthropic_config):
        chunks = [
            "event: message_start\n" + sse({"type": "message_start", "message": {"id": "msg_1"}}),
            "event: content_block_delta\n" + sse({"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}),
            "event: content_block_delta\n" + sse({"type": "content_block_delta", "delta": {"type": "text_delta", "text": " there"}}),
            "event: message_delta\n" + sse({"type": "message_delta", "delta": {"stop_reason": "end_turn"}}),
        ]
        client, _ = scripted_client(chunks)
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, anthropic_config, recorder.as_callbacks())

        assert recorder.tokens == ["Hi", " there"]
        assert recorder.completions == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_google_stream_split_mid_character(self, conversation, google_config):
        raw = (
            sse({"candidates": [{"content": {"parts": [{"text": "Größe"}]}}]})
            + sse({"candidates": [{"finishReason": "STOP"}]})
        ).encode("utf-8")
        split = raw.index("ö".encode("utf-8")) + 1
        client, requests = scripted_client([raw[:split], raw[split:]])
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, google_config, recorder.as_callbacks())

        assert recorder.tokens == ["Größe"]
        assert recorder.completions == 1
        assert requests[0].url.params["key"] == "g-key"
        assert requests[0].url.params["alt"] == "sse"
        assert "Authorization" not in requests[0].headers
        await client.aclose()

    @pytest.mark.asyncio
    async def test_malformed_frame_is_skipped(self, conversation, openai_config):
        chunks = [
            'data: {"choices":[{"delta":{"content":"A"}}]}\n',
            'data: {"choices":[{"delta":\n',
            'data: {"choices":[{"delta":{"content":"B"}}]}\n',
        ]
        client, _ = scripted_client(chunks)
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert recorder.events == [("token", "A"), ("token", "B"), ("complete",)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_empty_stream_completes(self, conversation, openai_config):
        client, _ = scripted_client([])
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert recorder.events == [("complete",)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_async_callbacks_are_awaited(self, conversation, openai_config):
        client, _ = scripted_client(HELLO_CHUNKS)
        seen = []

        async def on_token(token):
            await asyncio.sleep(0)
            seen.append(token)

        async def on_complete():
            seen.append("<complete>")

        async def on_error(error):
            seen.append(error)

        await StreamingChatSession(client).send(
            conversation, openai_config, StreamCallbacks(on_token, on_complete, on_error)
        )

        assert seen == ["Hel", "lo", "<complete>"]
        await client.aclose()


@pytest.mark.unit
class TestSendErrors:
    """Test that every failure ends in exactly one on_error."""

    @pytest.mark.asyncio
    async def test_http_429_structured_message(self, conversation, openai_config):
        client, _ = scripted_client(['{"error":{"message":"rate limited"}}'], status_code=429)
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert recorder.tokens == []
        assert recorder.completions == 0
        assert len(recorder.errors) == 1
        error = recorder.errors[0]
        assert isinstance(error, ProviderResponseError)
        assert str(error) == "rate limited"
        assert error.status_code == 429
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_error_plain_text_body(self, conversation, openai_config):
        respx.post("https://api.openai.com/v1/chat/completions").mock(
            return_value=httpx.Response(401, text="invalid api key")
        )
        recorder = RecordingCallbacks()

        async with StreamingChatSession() as session:
            await session.send(conversation, openai_config, recorder.as_callbacks())

        assert [str(e) for e in recorder.errors] == ["invalid api key"]
        assert recorder.completions == 0

    @pytest.mark.asyncio
    async def test_connection_refused(self, conversation, openai_config):
        client = raising_client(httpx.ConnectError("connection refused"))
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ProviderUnavailableError)
        assert recorder.completions == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout(self, conversation, openai_config):
        client = raising_client(httpx.ReadTimeout("timed out"))
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ProviderTimeoutError)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_drop_mid_stream(self, conversation, openai_config):
        client, _ = scripted_client(HELLO_CHUNKS[:1], fail_with=httpx.ReadError("connection reset"))
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(conversation, openai_config, recorder.as_callbacks())

        assert recorder.tokens == ["Hel"]
        assert recorder.events[-1][0] == "error"
        assert isinstance(recorder.errors[0], ProviderUnavailableError)
        assert recorder.completions == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_failing_token_callback_reports_error(self, conversation, openai_config):
        client, _ = scripted_client(HELLO_CHUNKS)
        errors = []

        def on_token(token):
            raise RuntimeError("render failed")

        await StreamingChatSession(client).send(
            conversation,
            openai_config,
            StreamCallbacks(on_token=on_token, on_complete=lambda: errors.append("complete"), on_error=errors.append),
        )

        assert len(errors) == 1
        assert isinstance(errors[0], ChatStreamError)
        assert errors[0].message == "render failed"
        await client.aclose()


@pytest.mark.unit
class TestStream:
    """Test the async-iterator interface and abort handle."""

    @pytest.mark.asyncio
    async def test_stream_yields_tokens(self, conversation, openai_config):
        client, _ = scripted_client(HELLO_CHUNKS)
        session = StreamingChatSession(client)

        tokens = [token async for token in session.stream(conversation, openai_config)]

        assert tokens == ["Hel", "lo"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_stream_raises_normalized_errors(self, conversation, openai_config):
        client, _ = scripted_client(['{"message":"model not found"}'], status_code=404)
        session = StreamingChatSession(client)

        with pytest.raises(ProviderResponseError, match="model not found"):
            async for _ in session.stream(conversation, openai_config):
                pass
        await client.aclose()

    @pytest.mark.asyncio
    async def test_abort_stops_stream_and_completes(self, conversation, openai_config):
        chunks = [sse({"choices": [{"delta": {"content": c}}]}) for c in ["A", "B", "C"]]
        client, _ = scripted_client(chunks)
        abort = asyncio.Event()
        recorder = RecordingCallbacks()

        def on_token(token):
            recorder.events.append(("token", token))
            abort.set()

        await StreamingChatSession(client).send(
            conversation,
            openai_config,
            StreamCallbacks(
                on_token=on_token,
                on_complete=lambda: recorder.events.append(("complete",)),
                on_error=lambda e: recorder.events.append(("error", e)),
            ),
            abort=abort,
        )

        assert recorder.events == [("token", "A"), ("complete",)]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_abort_during_stalled_read_completes(self, conversation, openai_config):
        client, _ = scripted_client(
            [sse({"choices": [{"delta": {"content": "A"}}]})],
            stall=0.3,
            fail_with=httpx.ReadTimeout("read timed out"),
        )
        abort = asyncio.Event()
        recorder = RecordingCallbacks()
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, abort.set)

        started = loop.time()
        await StreamingChatSession(client).send(
            conversation, openai_config, recorder.as_callbacks(), abort=abort
        )

        assert recorder.events == [("token", "A"), ("complete",)]
        assert loop.time() - started < 0.25
        await client.aclose()

    @pytest.mark.asyncio
    async def test_abort_ends_iteration_blocked_on_read(self, conversation, openai_config):
        client, _ = scripted_client(HELLO_CHUNKS[:1], stall=5.0)
        abort = asyncio.Event()
        session = StreamingChatSession(client)
        tokens = []

        async def consume():
            async for token in session.stream(conversation, openai_config, abort=abort):
                tokens.append(token)

        asyncio.get_running_loop().call_later(0.05, abort.set)
        await asyncio.wait_for(consume(), timeout=1.0)

        assert tokens == ["Hel"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_stalled_read_without_abort_reports_timeout(self, conversation, openai_config):
        client, _ = scripted_client(
            HELLO_CHUNKS[:1],
            stall=0.05,
            fail_with=httpx.ReadTimeout("read timed out"),
        )
        abort = asyncio.Event()
        recorder = RecordingCallbacks()

        await StreamingChatSession(client).send(
            conversation, openai_config, recorder.as_callbacks(), abort=abort
        )

        assert recorder.tokens == ["Hel"]
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ProviderTimeoutError)
        assert recorder.completions == 0
        await client.aclose()

    @pytest.mark.asyncio
    async def test_collect_reply_splits_reasoning(self, conversation, openai_config):
        chunks = [sse({"choices": [{"delta": {"content": c}}]}) for c in ["<think>look", " up</think>", "crm has 3 tables"]]
        client, _ = scripted_client(chunks)

        reply = await StreamingChatSession(client).collect_reply(conversation, openai_config)

        assert reply.content == "<think>look up</think>crm has 3 tables"
        assert reply.parsed.think_content == "look up"
        assert reply.parsed.main_content == "crm has 3 tables"
        await client.aclose()


@pytest.mark.unit
class TestExtractErrorMessage:
    """Test the three-level error message fallback."""

    def test_nested_error_message(self):
        assert extract_error_message(400, "Bad Request", '{"error":{"message":"bad model"}}') == "bad model"

    def test_top_level_message(self):
        assert extract_error_message(400, "Bad Request", '{"message":"bad model"}') == "bad model"

    def test_json_without_message_falls_back_to_status_line(self):
        assert extract_error_message(500, "Internal Server Error", '{"code":1}') == "HTTP 500: Internal Server Error"

    def test_raw_text(self):
        assert extract_error_message(502, "Bad Gateway", "upstream down") == "upstream down"

    def test_empty_body(self):
        assert extract_error_message(503, "Service Unavailable", "") == "HTTP 503: Service Unavailable"


@pytest.mark.unit
class TestCheckConnection:
    """Test configuration validation via the models endpoint."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_openai_success(self, openai_config):
        route = respx.get("https://api.openai.com/v1/models").mock(
            return_value=httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"id": "gpt-4o-mini"}]})
        )

        async with StreamingChatSession() as session:
            status = await session.check_connection(openai_config)

        assert status.available is True
        assert status.models == ["gpt-4o", "gpt-4o-mini"]
        assert status.base_url == "https://api.openai.com"
        assert route.calls.last.request.headers["Authorization"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_google_uses_query_key(self, google_config):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"models": [{"name": "models/gemini-2.0-flash"}]})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        status = await StreamingChatSession(client).check_connection(google_config)

        assert status.available is True
        assert status.models == ["models/gemini-2.0-flash"]
        assert requests[0].url.params["key"] == "g-key"
        await client.aclose()

    @pytest.mark.asyncio
    async def test_models_without_id_are_skipped(self, openai_config):
        def handler(request):
            return httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"object": "model"}, {"id": None}]})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        status = await StreamingChatSession(client).check_connection(openai_config)

        assert status.available is True
        assert status.models == ["gpt-4o"]
        await client.aclose()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_key(self, anthropic_config):
        respx.get("https://api.anthropic.com/v1/models").mock(
            return_value=httpx.Response(
                401, json={"type": "error", "error": {"type": "authentication_error", "message": "invalid x-api-key"}}
            )
        )

        async with StreamingChatSession() as session:
            status = await session.check_connection(anthropic_config)

        assert status.available is False
        assert status.error == "invalid x-api-key"

    @pytest.mark.asyncio
    async def test_connection_refused(self, openai_config):
        client = raising_client(httpx.ConnectError("refused"))
        status = await StreamingChatSession(client).check_connection(openai_config)

        assert status.available is False
        assert "refused" in status.error.lower()
        await client.aclose()


@pytest.mark.unit
def test_chat_message_defaults():
    message = ChatMessage(role="user", content="hi")
    assert message.id == ""
    assert message.timestamp > 0
