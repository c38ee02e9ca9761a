"""Structured lifecycle logging for chat requests.

Records are emitted as single-line JSON through the standard logging
module, so they share handlers and levels with the rest of the app.
"""

import json
import logging
import traceback
from datetime import UTC, datetime
from typing import Any

from src.errors import ChatError

logger = logging.getLogger("src.events")


def build_event(event_type: str, error: BaseException | None = None, **fields: Any) -> dict[str, Any]:
    """Build a structured log record.

    Args:
        event_type: Lifecycle milestone (stream_started, stream_ready, ...).
        error: Optional exception to attach with message, name, kind and trace.
        **fields: Extra context such as message_count or model.

    Returns:
        JSON-serializable record with an ISO-8601 timestamp.
    """
    record: dict[str, Any] = {
        "type": event_type,
        "timestamp": datetime.now(UTC).isoformat(),
        **fields,
    }
    if error is not None:
        record["error"] = {
            "message": str(error) or error.__class__.__name__,
            "name": error.__class__.__name__,
            "kind": error.kind.value if isinstance(error, ChatError) else None,
            "stack": "".join(traceback.format_exception(error)),
        }
    return record


def log_event(
    event_type: str,
    level: int = logging.INFO,
    error: BaseException | None = None,
    **fields: Any,
) -> None:
    """Emit a structured lifecycle record."""
    record = build_event(event_type, error=error, **fields)
    logger.log(level, json.dumps(record, default=str))
