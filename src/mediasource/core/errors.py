# src/mediasource/core/errors.py


class MediaSourceError(Exception):
    """Base application error for mediasource.

    Use this for predictable, user-facing error messages that should be
    caught by the host (the CLI) and displayed nicely.
    """

    pass


class TransientUpstreamError(MediaSourceError):
    """Rate limited, auth rejected, 5xx or transport failure. Retried up to budget."""


class RequestFailed(TransientUpstreamError):
    def __init__(self, status: int, status_text: str = ""):
        self.status = status
        self.status_text = status_text
        super().__init__(f"API request failed: {status} - {status_text}".rstrip(" -"))


class ApiError(TransientUpstreamError):
    """The payload itself reported a failure despite a 2xx status."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"API error: {message}")


class ConnectionFailed(TransientUpstreamError):
    """The HTTP call never produced a response (DNS, reset, timeout)."""


class MalformedResponseError(MediaSourceError):
    """Unexpected body or shape. Never retried."""


class InvalidResponse(MalformedResponseError):
    def __init__(self, message: str = "Invalid JSON response from server"):
        super().__init__(message)


class NotFoundError(MediaSourceError):
    """A lookup by id, slug or URL matched nothing."""


class NoPlayableStreamError(NotFoundError):
    """The item exists but exposes no stream we know how to play."""


class InvalidUrlError(MediaSourceError):
    """A content URL could not be parsed into an upstream identifier."""


class PartialMappingError(MediaSourceError):
    """One upstream record cannot be mapped. Absorbed; the record is dropped."""
