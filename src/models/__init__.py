"""Pydantic models shared by the endpoint and the client.

Provides type safety, validation, and automatic OpenAPI documentation.
"""

from src.models.schemas import (
    ChatMessage,
    ChatRequest,
    ErrorKind,
    ErrorResponse,
    Message,
    MessageStatus,
    Role,
    StreamEvent,
    StreamEventType,
)

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ErrorKind",
    "ErrorResponse",
    "Message",
    "MessageStatus",
    "Role",
    "StreamEvent",
    "StreamEventType",
]
