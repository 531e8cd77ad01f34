"""Error types raised by the debate engine."""

# Retrying is not part of this engine, so these map status codes to a
# human-facing category only.
_STATUS_CATEGORIES = {
    401: "auth",
    402: "billing",
    403: "auth",
    408: "transient",
    429: "rate_limit",
    502: "transient",
    503: "transient",
    504: "transient",
}


def classify_status(status_code: int | None) -> str:
    """Map an upstream HTTP status code to an error category."""
    if status_code is None:
        return "timeout"
    return _STATUS_CATEGORIES.get(status_code, "unknown")


class RoundtableError(Exception):
    """Base class for all debate engine errors."""


class SessionValidationError(RoundtableError):
    """The session request was rejected before any events were emitted."""


class UpstreamGenerationError(RoundtableError):
    """A generation call (turn, summary, verdict or panel) failed.

    Fatal to the whole session.
    """

    def __init__(
        self,
        model: str,
        message: str,
        status_code: int | None = None,
        category: str | None = None,
    ) -> None:
        super().__init__(message)
        self.model = model
        self.message = message
        self.status_code = status_code
        self.category = category or classify_status(status_code)

    def __str__(self) -> str:
        return f"{self.model}: {self.message}"


class UpstreamLookupError(RoundtableError):
    """The optional web lookup failed. Never fatal."""


class StreamDecodeError(RoundtableError):
    """A malformed event frame reached the client."""
