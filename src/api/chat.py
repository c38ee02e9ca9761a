"""Streaming chat endpoint relaying provider output to the caller.

The request is validated, the provider credential checked, and the first
provider event awaited before any response byte is committed. Failures up
to that point become JSON error responses with a meaningful status. After
that, the response is a 200 event stream and failures travel in-band as an
error marker.
"""

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from src.agent.config import load_agent_config
from src.api.sse import SSE_HEADERS, SSE_MEDIA_TYPE, format_sse_event, sse_error, sse_finish
from src.errors import ChatError, ProviderError, StreamTimeoutError
from src.logging_utils import log_event
from src.models.schemas import ChatRequest, ErrorKind, StreamEvent, StreamEventType

router = APIRouter(prefix="/api", tags=["chat"])


def _remaining(deadline: float) -> float:
    return max(deadline - asyncio.get_running_loop().time(), 0.0)


async def _next_event(events: AsyncIterator[StreamEvent], deadline: float) -> StreamEvent | None:
    """Wait for the next provider event, bounded by the request deadline.

    Returns:
        The next event, or None once the provider stream is exhausted.

    Raises:
        TimeoutError: If the deadline passes first.
    """
    return await asyncio.wait_for(anext(events, None), timeout=_remaining(deadline))


async def _close(events: AsyncIterator[StreamEvent]) -> None:
    aclose = getattr(events, "aclose", None)
    if aclose is not None:
        await aclose()


async def relay_events(
    first: StreamEvent | None,
    events: AsyncIterator[StreamEvent],
    deadline: float,
) -> AsyncIterator[str]:
    """Forward provider events to the caller as they arrive.

    Each fragment is framed and yielded immediately. The stream always ends
    with exactly one terminal frame (finish or error), unless the caller
    disconnects, in which case the provider stream is closed and nothing
    more is written.

    Args:
        first: Event already pulled from the provider before headers were sent.
        events: The rest of the provider stream.
        deadline: Loop time after which the request is abandoned.

    Yields:
        Server-sent event frames.
    """
    fragments = 0
    event = first
    try:
        while event is not None:
            yield format_sse_event(event)
            if event.type is StreamEventType.FINISH:
                log_event("stream_completed", fragment_count=fragments)
                return
            if event.type is StreamEventType.ERROR:
                log_event("stream_error", logging.ERROR, error=ProviderError(event.error or "", kind=event.kind))
                return
            fragments += 1
            event = await _next_event(events, deadline)

        # Provider ended without its own terminal marker
        log_event("stream_completed", fragment_count=fragments)
        yield sse_finish()
    except TimeoutError:
        error = StreamTimeoutError("Request timed out before the response completed.")
        log_event("stream_timeout", logging.ERROR, error=error, fragment_count=fragments)
        yield sse_error(error.message, error.kind)
    except ChatError as e:
        log_event("stream_error", logging.ERROR, error=e, fragment_count=fragments)
        yield sse_error(e.message, e.kind)
    except Exception as e:
        log_event("stream_error", logging.ERROR, error=e, fragment_count=fragments)
        yield sse_error(str(e) or "Unknown error occurred during streaming.", ErrorKind.PROVIDER_ERROR)
    except (asyncio.CancelledError, GeneratorExit):
        log_event("stream_cancelled", fragment_count=fragments)
        raise
    finally:
        await _close(events)


@router.post("/chat")
async def chat_endpoint(req: ChatRequest, request: Request) -> StreamingResponse:
    """Stream an assistant reply to the posted conversation.

    Args:
        req: Validated request body with the conversation history.
        request: Incoming request, used to reach the provider factory.

    Returns:
        A text/event-stream response of framed StreamEvents.

    Raises:
        ConfigurationError: 500 if the provider credential is missing.
        ProviderError: 429 on rate limit or quota rejection, 500 otherwise.
        StreamTimeoutError: 500 if the provider does not start in time.
    """
    loop = asyncio.get_running_loop()
    started_at = loop.time()

    config = load_agent_config()
    deadline = started_at + config.request_timeout

    log_event("stream_started", message_count=len(req.messages))

    try:
        provider = request.app.state.provider_factory(config)
        events = aiter(provider.stream_reply(req.messages))
    except ChatError:
        raise
    except Exception as e:
        raise ProviderError.classify(str(e) or e.__class__.__name__) from e

    try:
        first = await _next_event(events, deadline)
    except TimeoutError as e:
        await _close(events)
        raise StreamTimeoutError("Timed out waiting for the provider to respond.") from e
    except ChatError:
        await _close(events)
        raise
    except Exception as e:
        await _close(events)
        raise ProviderError.classify(str(e) or e.__class__.__name__) from e

    log_event("stream_ready", model=config.model_name)

    return StreamingResponse(
        relay_events(first, events, deadline),
        media_type=SSE_MEDIA_TYPE,
        headers=SSE_HEADERS,
    )
