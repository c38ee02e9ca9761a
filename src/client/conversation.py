"""Append-only conversation log with snapshot-and-subscribe notifications."""

import logging
from collections.abc import Callable

from src.errors import ConcurrencyViolationError
from src.models.schemas import ErrorKind, Message, MessageStatus, Role

logger = logging.getLogger(__name__)

Snapshot = tuple[Message, ...]
Listener = Callable[[Snapshot], None]


class Conversation:
    """Ordered messages of one chat session.

    Messages are only ever appended. The active assistant message may grow
    and change status; every other message is fixed. Subscribers receive a
    fresh snapshot after each change and never see the live objects.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._listeners: list[Listener] = []

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def active(self) -> Message | None:
        """The pending or streaming assistant message, if any."""
        for message in reversed(self._messages):
            if not message.status.is_terminal:
                return message.model_copy()
        return None

    def snapshot(self) -> Snapshot:
        return tuple(message.model_copy() for message in self._messages)

    def get(self, message_id: str) -> Message:
        return self._find(message_id).model_copy()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with a snapshot after every change.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def append(
        self,
        role: Role,
        content: str = "",
        status: MessageStatus = MessageStatus.SETTLED,
    ) -> Message:
        """Append a message to the end of the conversation.

        Raises:
            ConcurrencyViolationError: If an unfinished message is appended
                while another is still pending or streaming.
        """
        if not status.is_terminal and self.active is not None:
            raise ConcurrencyViolationError("A response is already in progress.")
        message = Message(role=role, content=content, status=status)
        self._messages.append(message)
        self._notify()
        return message.model_copy()

    def mark_streaming(self, message_id: str) -> None:
        message = self._find_open(message_id)
        if message.status is MessageStatus.PENDING:
            message.status = MessageStatus.STREAMING
            self._notify()

    def append_fragment(self, message_id: str, fragment: str) -> None:
        """Grow the content of an open message. Content is never rewritten."""
        message = self._find_open(message_id)
        message.status = MessageStatus.STREAMING
        message.content += fragment
        self._notify()

    def settle(self, message_id: str) -> None:
        message = self._find_open(message_id)
        message.status = MessageStatus.SETTLED
        self._notify()

    def fail(self, message_id: str, error: str, kind: ErrorKind | None = None) -> None:
        """Mark an open message failed, keeping whatever content it has."""
        message = self._find_open(message_id)
        message.status = MessageStatus.FAILED
        message.error = error
        message.error_kind = kind
        self._notify()

    def _find(self, message_id: str) -> Message:
        for message in self._messages:
            if message.id == message_id:
                return message
        raise KeyError(message_id)

    def _find_open(self, message_id: str) -> Message:
        message = self._find(message_id)
        if message.status.is_terminal:
            raise ValueError(f"Message {message_id} is {message.status.value} and can no longer change")
        return message

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Conversation listener failed")
