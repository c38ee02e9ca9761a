"""Error types for the chat relay.

Each error carries the HTTP status it maps to when raised before streaming
starts, and the kind reported to clients in error bodies and error markers.
"""

from src.models.schemas import ErrorKind

# Substrings providers use when rejecting a request for rate or quota reasons
_RATE_LIMIT_MARKERS = ("429", "insufficient_quota", "rate limit", "rate_limit", "quota")


class ChatError(Exception):
    """Base class for chat relay failures."""

    status_code: int = 500
    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if kind is not None:
            self.kind = kind


class ClientValidationError(ChatError):
    """Malformed or missing request payload."""

    status_code = 400
    kind = ErrorKind.INVALID_REQUEST


class ConfigurationError(ChatError):
    """Required server configuration (e.g. the provider credential) is missing."""

    status_code = 500
    kind = ErrorKind.CONFIGURATION_ERROR


class ProviderError(ChatError):
    """The text-generation provider failed or rejected the request."""

    status_code = 500
    kind = ErrorKind.PROVIDER_ERROR

    @classmethod
    def classify(cls, message: str, status_code: int | None = None) -> "ProviderError":
        """Build a ProviderError, detecting rate-limit and quota conditions.

        Args:
            message: The provider's error message.
            status_code: HTTP status reported by the provider, if any.

        Returns:
            ProviderError with status 429 and kind rate_limited for rate or
            quota failures, otherwise status 500 and kind provider_error.
        """
        lowered = message.lower()
        if status_code == 429 or any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
            return cls(message, status_code=429, kind=ErrorKind.RATE_LIMITED)
        return cls(message)


class StreamTimeoutError(ChatError):
    """The request exceeded its wall-clock deadline."""

    status_code = 500
    kind = ErrorKind.TIMEOUT


class ConcurrencyViolationError(ChatError):
    """A send was attempted while a response is still streaming."""

    status_code = 409
    kind = ErrorKind.BUSY
