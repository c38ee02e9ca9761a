from src.models.schemas import ErrorKind, StreamEvent

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DATA_PREFIX = "data: "


def format_sse_event(event: StreamEvent) -> str:
    """Frame a StreamEvent as a single server-sent event."""
    return f"{DATA_PREFIX}{event.model_dump_json(exclude_none=True)}\n\n"


def sse_text(content: str) -> str:
    return format_sse_event(StreamEvent.text_delta(content))


def sse_finish(reason: str = "stop") -> str:
    return format_sse_event(StreamEvent.finish(reason))


def sse_error(error: str, kind: ErrorKind | None = None) -> str:
    return format_sse_event(StreamEvent.failure(error, kind))
