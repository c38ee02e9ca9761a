"""Integration tests for StreamingChatClient.

End-to-end cases run the client against the real FastAPI app through
ASGITransport with a stub provider. Transport-level cases feed hand-built
byte streams through httpx.MockTransport.
"""

import asyncio
from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.api.sse import sse_finish, sse_text
from src.client.chat_client import RATE_LIMIT_NOTICE, StreamingChatClient
from src.client.conversation import Snapshot
from src.errors import ClientValidationError, ConcurrencyViolationError, ProviderError
from src.models.schemas import ErrorKind, Message, MessageStatus, Role
from tests.conftest import StubProvider


def app_client(app: FastAPI) -> StreamingChatClient:
    http = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    return StreamingChatClient(http_client=http)


def mock_client(handler: Callable) -> StreamingChatClient:
    http = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return StreamingChatClient(http_client=http)


def sse_response(chunks: AsyncIterator[bytes]) -> httpx.Response:
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=chunks)


@pytest.mark.usefixtures("api_key_env")
class TestSendAgainstEndpoint:
    """Full request/response cycles through the real endpoint."""

    async def test_successful_stream_settles_with_concatenated_fragments(
        self, app: FastAPI, stub_provider: StubProvider
    ) -> None:
        stub_provider.fragments = ["The ", "quick ", "brown ", "fox"]
        chat = app_client(app)
        chat.conversation.append(Role.USER, "Tell me about foxes")

        reply = await chat.send()

        messages = chat.messages
        assert len(messages) == 2
        assert messages[-1].id == reply.id
        assert reply.role is Role.ASSISTANT
        assert reply.content == "The quick brown fox"
        assert reply.status is MessageStatus.SETTLED
        assert not chat.is_streaming

    async def test_content_only_grows_while_streaming(
        self, app: FastAPI, stub_provider: StubProvider
    ) -> None:
        stub_provider.fragments = ["a", "bc", "", "def", "g"]
        chat = app_client(app)
        observed: list[str] = []

        def record(snapshot: Snapshot) -> None:
            if snapshot[-1].role is Role.ASSISTANT:
                observed.append(snapshot[-1].content)

        chat.subscribe(record)
        await chat.submit("letters please")

        assert observed[-1] == "abcdefg"
        for earlier, later in zip(observed, observed[1:]):
            assert later.startswith(earlier)

    async def test_status_moves_pending_streaming_settled(self, app: FastAPI) -> None:
        chat = app_client(app)
        statuses: list[MessageStatus] = []
        chat.subscribe(lambda snapshot: statuses.append(snapshot[-1].status))

        await chat.submit("hi")

        assert statuses[0] is MessageStatus.SETTLED  # the user message
        assistant_statuses = statuses[1:]
        assert assistant_statuses[0] is MessageStatus.PENDING
        assert MessageStatus.STREAMING in assistant_statuses
        assert assistant_statuses[-1] is MessageStatus.SETTLED

    async def test_in_band_error_keeps_partial_content(
        self, app: FastAPI, stub_provider: StubProvider
    ) -> None:
        stub_provider.error = ProviderError.classify("connection to model lost")
        chat = app_client(app)
        notices: list[str] = []
        chat.on_error(notices.append)

        reply = await chat.submit("hi")

        assert reply is not None
        assert reply.content == "Hello"
        assert reply.status is MessageStatus.FAILED
        assert reply.error == "connection to model lost"
        assert notices == ["connection to model lost"]
        assert not chat.is_streaming

    async def test_rate_limited_pre_stream_failure(
        self, app: FastAPI, stub_provider: StubProvider
    ) -> None:
        stub_provider.fragments = []
        stub_provider.error = ProviderError.classify("insufficient_quota")
        chat = app_client(app)
        notices: list[str] = []
        chat.on_error(notices.append)

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.FAILED
        assert reply.error == "insufficient_quota"
        assert reply.error_kind is ErrorKind.RATE_LIMITED
        assert reply.content == ""
        assert notices == [RATE_LIMIT_NOTICE]

    async def test_configuration_failure_surfaces_server_text(
        self, app: FastAPI, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("OPENAI_API_KEY")
        chat = app_client(app)

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.FAILED
        assert reply.error == "OpenAI API key is not configured."
        assert reply.error_kind is ErrorKind.SERVER_ERROR

    async def test_can_send_again_after_settling(self, app: FastAPI) -> None:
        chat = app_client(app)

        await chat.submit("first")
        await chat.submit("second")

        assert [m.role for m in chat.messages] == [Role.USER, Role.ASSISTANT] * 2
        assert all(m.status is MessageStatus.SETTLED for m in chat.messages)

    async def test_payload_carries_full_history(
        self, app: FastAPI, stub_provider: StubProvider
    ) -> None:
        chat = app_client(app)

        await chat.submit("first")
        await chat.submit("second")

        forwarded = stub_provider.calls[-1]
        assert [m.content for m in forwarded] == ["first", "Hello", "second"]
        assert [m.id for m in forwarded] == [m.id for m in chat.messages[:3]]


class TestSendPreconditions:
    async def test_empty_submit_is_ignored(self) -> None:
        chat = mock_client(lambda request: pytest.fail("no request expected"))

        assert await chat.submit("   ") is None
        assert chat.messages == ()

    async def test_history_must_end_with_user_message(self) -> None:
        chat = mock_client(lambda request: pytest.fail("no request expected"))
        notices: list[str] = []
        chat.on_error(notices.append)

        with pytest.raises(ClientValidationError):
            await chat.send([Message(role=Role.ASSISTANT, content="hi")])
        with pytest.raises(ClientValidationError):
            await chat.send([])

        assert notices == ["History must end with an unanswered user message."] * 2
        assert chat.messages == ()

    async def test_closed_client_refuses_to_send(self) -> None:
        chat = mock_client(lambda request: pytest.fail("no request expected"))
        await chat.aclose()

        with pytest.raises(RuntimeError):
            await chat.submit("hi")


class TestStreamingTransport:
    """Client behaviour driven by hand-built streams."""

    async def test_concurrent_send_is_rejected_without_request(self) -> None:
        release = asyncio.Event()
        requests: list[httpx.Request] = []

        async def body() -> AsyncIterator[bytes]:
            yield sse_text("Hel").encode()
            await release.wait()
            yield sse_text("lo").encode()
            yield sse_finish().encode()

        async def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return sse_response(body())

        chat = mock_client(handler)
        notices: list[str] = []
        chat.on_error(notices.append)
        first = asyncio.create_task(chat.submit("hi"))
        while not chat.messages or chat.messages[-1].content != "Hel":
            await asyncio.sleep(0.01)

        with pytest.raises(ConcurrencyViolationError):
            await chat.submit("again")
        with pytest.raises(ConcurrencyViolationError):
            await chat.send()

        release.set()
        reply = await first

        assert len(requests) == 1
        assert reply.content == "Hello"
        assert reply.status is MessageStatus.SETTLED
        assert [m.content for m in chat.messages] == ["hi", "Hello"]
        assert len(notices) == 2
        streaming = [m for m in chat.messages if m.status is MessageStatus.STREAMING]
        assert streaming == []

    async def test_aclose_mid_stream_stops_all_updates(self) -> None:
        body_closed = asyncio.Event()

        async def body() -> AsyncIterator[bytes]:
            try:
                yield sse_text("Hel").encode()
                await asyncio.Event().wait()
                yield sse_text("never").encode()
            finally:
                body_closed.set()

        chat = mock_client(lambda request: sse_response(body()))
        changes: list[Snapshot] = []
        send = asyncio.create_task(chat.submit("hi"))
        while not chat.messages or chat.messages[-1].content != "Hel":
            await asyncio.sleep(0.01)
        chat.subscribe(changes.append)

        await chat.aclose()
        reply = await send

        assert reply.content == "Hel"
        assert reply.status is MessageStatus.STREAMING
        assert changes == []
        assert body_closed.is_set()

    async def test_stream_without_terminal_marker_fails(self) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield sse_text("partial").encode()

        chat = mock_client(lambda request: sse_response(body()))

        reply = await chat.submit("hi")

        assert reply.content == "partial"
        assert reply.status is MessageStatus.FAILED
        assert reply.error_kind is ErrorKind.MALFORMED_STREAM

    async def test_malformed_frame_fails_message(self) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield sse_text("ok ").encode()
            yield b"data: {broken\n\n"

        chat = mock_client(lambda request: sse_response(body()))

        reply = await chat.submit("hi")

        assert reply.content == "ok "
        assert reply.status is MessageStatus.FAILED
        assert reply.error_kind is ErrorKind.MALFORMED_STREAM

    async def test_fragments_split_across_network_chunks(self) -> None:
        frames = (sse_text("Hel") + sse_text("lo") + sse_finish()).encode()

        async def body() -> AsyncIterator[bytes]:
            for start in range(0, len(frames), 7):
                yield frames[start:start + 7]

        chat = mock_client(lambda request: sse_response(body()))

        reply = await chat.submit("hi")

        assert reply.content == "Hello"
        assert reply.status is MessageStatus.SETTLED

    async def test_connection_reset_mid_stream_is_transport_fault(self) -> None:
        async def body() -> AsyncIterator[bytes]:
            yield sse_text("Hel").encode()
            raise httpx.ReadError("connection reset by peer")

        chat = mock_client(lambda request: sse_response(body()))
        notices: list[str] = []
        chat.on_error(notices.append)

        reply = await chat.submit("hi")

        assert reply.content == "Hel"
        assert reply.status is MessageStatus.FAILED
        assert reply.error_kind is ErrorKind.TRANSPORT
        assert notices and notices[0].startswith("Connection failed")

    async def test_connection_refused_is_transport_fault(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        chat = mock_client(handler)

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.FAILED
        assert reply.error_kind is ErrorKind.TRANSPORT

    async def test_non_json_error_body_reports_status(self) -> None:
        chat = mock_client(lambda request: httpx.Response(502, text="Bad Gateway"))

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.FAILED
        assert reply.error == "HTTP 502"


class TestRecovery:
    """Interrupted or disturbed exchanges leave the client ready for the next one."""

    @staticmethod
    async def finished() -> AsyncIterator[bytes]:
        yield sse_text("Hel").encode()
        yield sse_text("lo").encode()
        yield sse_finish().encode()

    async def test_raising_subscriber_does_not_leave_client_busy(self) -> None:
        chat = mock_client(lambda request: sse_response(self.finished()))
        calls = 0

        def flaky(snapshot: Snapshot) -> None:
            nonlocal calls
            calls += 1
            if calls == 3:
                raise RuntimeError("render failed")

        chat.subscribe(flaky)

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.SETTLED
        assert reply.content == "Hello"
        assert not chat.is_streaming
        again = await chat.submit("again")
        assert again.status is MessageStatus.SETTLED

    async def test_raising_error_listener_does_not_leave_client_busy(self) -> None:
        chat = mock_client(lambda request: httpx.Response(502, text="Bad Gateway"))

        def broken(notice: str) -> None:
            raise RuntimeError("toast failed")

        chat.on_error(broken)

        reply = await chat.submit("hi")

        assert reply.status is MessageStatus.FAILED
        assert not chat.is_streaming
        again = await chat.submit("again")
        assert again.status is MessageStatus.FAILED

    async def test_cancelled_caller_fails_message_and_frees_client(self) -> None:
        requests = 0

        async def hanging() -> AsyncIterator[bytes]:
            yield sse_text("Hel").encode()
            await asyncio.Event().wait()

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal requests
            requests += 1
            return sse_response(hanging() if requests == 1 else self.finished())

        chat = mock_client(handler)
        notices: list[str] = []
        chat.on_error(notices.append)
        send = asyncio.create_task(chat.submit("hi"))
        while not chat.messages or chat.messages[-1].content != "Hel":
            await asyncio.sleep(0.01)

        send.cancel()
        with pytest.raises(asyncio.CancelledError):
            await send

        interrupted = chat.messages[-1]
        assert interrupted.content == "Hel"
        assert interrupted.status is MessageStatus.FAILED
        assert interrupted.error_kind is ErrorKind.TRANSPORT
        assert notices == ["Request ended before the response completed."]
        assert not chat.is_streaming

        reply = await chat.submit("again")

        assert reply.status is MessageStatus.SETTLED
        assert reply.content == "Hello"
        assert requests == 2
