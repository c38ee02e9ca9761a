"""Streaming chat client consuming the SSE chat endpoint.

Owns one Conversation, posts it to ``/api/chat`` and applies each event of
the streamed reply to a single assistant message as it arrives.
"""

import asyncio
import logging
import os
from collections.abc import Callable, Sequence

import httpx
from pydantic import ValidationError

from src.client.conversation import Conversation, Listener
from src.errors import ClientValidationError, ConcurrencyViolationError
from src.logging_utils import log_event
from src.models.schemas import (
    ErrorKind,
    Message,
    MessageStatus,
    Role,
    StreamEvent,
    StreamEventType,
)

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
CHAT_PATH = "/api/chat"
DEFAULT_TIMEOUT = 120.0

RATE_LIMIT_NOTICE = "Rate limit reached or insufficient quota. Please try again later."

_STATUS_KINDS = {
    400: ErrorKind.INVALID_REQUEST,
    422: ErrorKind.INVALID_REQUEST,
    429: ErrorKind.RATE_LIMITED,
}

ErrorListener = Callable[[str], None]


def parse_event_line(line: str) -> StreamEvent | None:
    """Decode one line of an event stream.

    Returns:
        The event carried by a ``data:`` line, None for anything else.

    Raises:
        ValidationError: If the data payload is not a valid StreamEvent.
    """
    if not line.startswith("data:"):
        return None
    return StreamEvent.model_validate_json(line[len("data:"):].strip())


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"HTTP {response.status_code}"


class StreamingChatClient:
    """Drives the request/response cycle for one conversation.

    At most one request is in flight at a time. Progress is exposed through
    ``subscribe`` (conversation snapshots) and ``on_error`` (human-readable
    failure notices for a notification surface).
    """

    def __init__(
        self,
        base_url: str | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        path: str = CHAT_PATH,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._conversation = Conversation()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url or API_BASE_URL, timeout=timeout
        )
        self._path = path
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._error_listeners: list[ErrorListener] = []

    async def __aenter__(self) -> "StreamingChatClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._conversation.snapshot()

    @property
    def is_streaming(self) -> bool:
        return self._task is not None or self._conversation.active is not None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self._conversation.subscribe(listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        """Register a listener for user-facing error notices."""
        self._error_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._error_listeners:
                self._error_listeners.remove(listener)

        return unsubscribe

    async def submit(self, text: str) -> Message | None:
        """Append a user message and stream the reply to it.

        Empty input is ignored.

        Returns:
            The final assistant message, or None if nothing was sent.
        """
        text = text.strip()
        if not text:
            return None
        self._ensure_idle()
        self._conversation.append(Role.USER, text)
        return await self.send()

    async def send(self, history: Sequence[Message] | None = None) -> Message:
        """Request a reply to ``history`` and stream it into a new assistant message.

        Args:
            history: Messages to send; defaults to the whole conversation.
                Must end with the user message being answered.

        Returns:
            The assistant message once it is settled or failed. If the client
            is closed mid-stream, the message as it stood at that moment. Any
            other interruption, including cancellation of the caller, fails
            the message so the client is idle again.

        Raises:
            ConcurrencyViolationError: If a reply is already streaming.
            ClientValidationError: If the history does not end with a user message.
        """
        self._ensure_idle()
        messages = list(history) if history is not None else list(self._conversation.snapshot())
        if not messages or messages[-1].role is not Role.USER:
            error = ClientValidationError("History must end with an unanswered user message.")
            self._notify_error(error.message)
            raise error

        assistant = self._conversation.append(Role.ASSISTANT, status=MessageStatus.PENDING)
        payload = {"messages": [m.to_wire() for m in messages]}
        log_event("message_submit", message_count=len(messages), message_length=len(messages[-1].content))

        self._task = asyncio.create_task(self._consume(assistant.id, payload))
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._closed:
                raise
        finally:
            self._task = None
            if not self._closed and not self._conversation.get(assistant.id).status.is_terminal:
                self._fail(assistant.id, "Request ended before the response completed.", ErrorKind.TRANSPORT)
        return self._conversation.get(assistant.id)

    async def aclose(self) -> None:
        """Abort any streaming reply and release the HTTP client.

        The aborted message is left exactly as it was; nothing changes after
        this returns.
        """
        self._closed = True
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])
        if self._owns_http:
            await self._http.aclose()

    def _ensure_idle(self) -> None:
        if self._closed:
            raise RuntimeError("Chat client is closed")
        if self.is_streaming:
            error = ConcurrencyViolationError("Please wait for the current response to finish.")
            self._notify_error(error.message)
            raise error

    async def _consume(self, message_id: str, payload: dict) -> None:
        try:
            async with self._http.stream(
                "POST",
                self._path,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as response:
                if not response.is_success:
                    await response.aread()
                    kind = _STATUS_KINDS.get(response.status_code, ErrorKind.SERVER_ERROR)
                    self._fail(message_id, _error_text(response), kind)
                    return

                async for line in response.aiter_lines():
                    event = parse_event_line(line)
                    if event is not None and self._apply(message_id, event):
                        return

            self._fail(message_id, "Stream ended before the response completed.", ErrorKind.MALFORMED_STREAM)
        except ValidationError as e:
            logger.warning(f"Malformed stream event: {e}")
            self._fail(message_id, "Received a malformed response stream.", ErrorKind.MALFORMED_STREAM)
        except httpx.HTTPError as e:
            self._fail(message_id, f"Connection failed: {e}", ErrorKind.TRANSPORT)

    def _apply(self, message_id: str, event: StreamEvent) -> bool:
        """Apply one event to the assistant message.

        Returns:
            True once the message has reached a terminal status.
        """
        self._conversation.mark_streaming(message_id)

        if event.type is StreamEventType.TEXT_DELTA:
            if event.content:
                self._conversation.append_fragment(message_id, event.content)
            return False

        if event.type is StreamEventType.FINISH:
            self._conversation.settle(message_id)
            log_event("chat_completed", message_count=len(self._conversation))
            return True

        self._fail(message_id, event.error or "Unknown error occurred during streaming.", event.kind)
        return True

    def _fail(self, message_id: str, error: str, kind: ErrorKind | None) -> None:
        self._conversation.fail(message_id, error, kind)
        log_event("chat_error", logging.ERROR, kind=kind.value if kind else None, message=error)
        self._notify_error(RATE_LIMIT_NOTICE if kind is ErrorKind.RATE_LIMITED else error)

    def _notify_error(self, notice: str) -> None:
        for listener in list(self._error_listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception("Error listener failed")
