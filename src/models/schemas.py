"""Pydantic models for conversation state and the streaming wire protocol.

Shared by the endpoint (request validation, event framing) and the client
(conversation state, event parsing).

Models:
    - Message: One turn in a client-side conversation
    - ChatMessage: Message as carried in the request payload
    - ChatRequest: Incoming chat request payload
    - StreamEvent: One framed event of the streamed response
    - ErrorResponse: JSON body of a pre-stream failure
"""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Speaker of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class MessageStatus(str, Enum):
    """Lifecycle status of a message.

    User and system messages are settled at creation. Assistant messages
    move pending -> streaming -> settled | failed.
    """

    PENDING = "pending"
    STREAMING = "streaming"
    SETTLED = "settled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (MessageStatus.SETTLED, MessageStatus.FAILED)


class ErrorKind(str, Enum):
    """Classification carried by error responses and error markers."""

    INVALID_REQUEST = "invalid_request"
    CONFIGURATION_ERROR = "configuration_error"
    RATE_LIMITED = "rate_limited"
    PROVIDER_ERROR = "provider_error"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    MALFORMED_STREAM = "malformed_stream"
    BUSY = "busy"
    SERVER_ERROR = "server_error"


def _new_message_id() -> str:
    return uuid.uuid4().hex


class Message(BaseModel):
    """A single turn in the conversation.

    Attributes:
        id: Opaque identifier, stable for the lifetime of the message.
        role: The speaker (user, assistant, or system).
        content: Message text. Grows by append only while streaming.
        status: Lifecycle status.
        error: Failure reason when status is failed.
        error_kind: Failure classification when status is failed.
    """

    id: str = Field(default_factory=_new_message_id)
    role: Role
    content: str = ""
    status: MessageStatus = MessageStatus.SETTLED
    error: str | None = None
    error_kind: ErrorKind | None = None

    def to_wire(self) -> dict[str, str]:
        """Return the request payload representation of this message."""
        return {"id": self.id, "role": self.role.value, "content": self.content}


class ChatMessage(BaseModel):
    """A message as received in the request body."""

    id: str | None = Field(None, description="Client-side message identifier")
    role: Role = Field(..., description="Message role: 'user', 'assistant', or 'system'")
    content: str = Field(..., description="The message content")


class ChatRequest(BaseModel):
    """Request payload for the streaming chat endpoint.

    Attributes:
        messages: Full conversation history, oldest first.
    """

    messages: list[ChatMessage] = Field(..., min_length=1)


class StreamEventType(str, Enum):
    """Kinds of event in the streamed response."""

    TEXT_DELTA = "text-delta"
    FINISH = "finish"
    ERROR = "error"


class StreamEvent(BaseModel):
    """One unit of the streaming wire protocol.

    Attributes:
        type: text-delta, finish, or error.
        content: Fragment text for text-delta events.
        finish_reason: Why generation stopped, for finish events.
        error: Human-readable message for error events.
        kind: Optional error classification (e.g. rate_limited).
    """

    model_config = ConfigDict(frozen=True)

    type: StreamEventType
    content: str | None = None
    finish_reason: str | None = None
    error: str | None = None
    kind: ErrorKind | None = None

    @classmethod
    def text_delta(cls, content: str) -> "StreamEvent":
        return cls(type=StreamEventType.TEXT_DELTA, content=content)

    @classmethod
    def finish(cls, reason: str = "stop") -> "StreamEvent":
        return cls(type=StreamEventType.FINISH, finish_reason=reason)

    @classmethod
    def failure(cls, error: str, kind: ErrorKind | None = None) -> "StreamEvent":
        return cls(type=StreamEventType.ERROR, error=error, kind=kind)


class ErrorResponse(BaseModel):
    """JSON body returned for failures detected before streaming starts."""

    error: str
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
