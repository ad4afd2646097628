"""Exception hierarchy for the Flipbook frame service.

Every failure the service can surface to a client is a subclass of
:class:`FlipbookError`.  Each class carries the HTTP status code it maps to,
so the FastAPI layer can translate any of them into a JSON error response
with a single exception handler.

Hierarchy
---------
::

    FlipbookError (500)
    ├── InvalidInputError (400)
    │   └── UnsupportedMediaTypeError (415)
    ├── ConfigError (503)
    ├── InferenceTimeoutError (504)
    └── UpstreamError (500)
        ├── UpstreamRateLimitedError (429)
        ├── UpstreamTransientError (503)
        └── UpstreamTerminalError (500)
            └── UpstreamParseError (500)

Retryable upstream conditions (model loading, rate limits, network blips)
are handled inside :class:`~flipbook.core.frame_generator.FrameGenerator`.
Only an exhausted retry budget or a terminal condition escapes as one of
these exceptions.
"""

from __future__ import annotations


class FlipbookError(Exception):
    """Base class for all errors surfaced by the frame service.

    Attributes:
        message: Human-readable message returned to the client.
        details: Optional diagnostic text (upstream body, traceback).  Only
            exposed to clients outside production mode.
        frame_index: Zero-based index of the frame being generated when the
            error occurred, or ``None`` when not tied to a frame.
    """

    status_code: int = 500

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.frame_index: int | None = None


class InvalidInputError(FlipbookError):
    """The client request is malformed or missing required fields."""

    status_code = 400


class UnsupportedMediaTypeError(InvalidInputError):
    """The client request does not declare a JSON content type."""

    status_code = 415


class ConfigError(FlipbookError):
    """The service is missing or has an invalid operator-supplied setting."""

    status_code = 503


class InferenceTimeoutError(FlipbookError):
    """An upstream call exceeded the per-request timeout."""

    status_code = 504


class UpstreamError(FlipbookError):
    """Base class for failures reported by the inference API.

    Attributes:
        upstream_status: HTTP status returned by the inference API, or
            ``None`` for transport-level failures.
        body: Truncated upstream response body, if any.
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        body: str | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message, details=details if details is not None else body)
        self.upstream_status = upstream_status
        self.body = body


class UpstreamRateLimitedError(UpstreamError):
    """The inference API kept rate-limiting after the retry budget ran out."""

    status_code = 429


class UpstreamTransientError(UpstreamError):
    """A transient condition (model loading, network error) did not clear."""

    status_code = 503


class UpstreamTerminalError(UpstreamError):
    """A non-retryable upstream failure (auth, outage page, bad payload)."""

    status_code = 500


class UpstreamParseError(UpstreamTerminalError):
    """The upstream error body could not be parsed as JSON."""
