"""Single-frame generation against the hosted inference API.

This module provides :class:`FrameGenerator`, which turns one prompt into one
image by POSTing to the inference API and applying the retry policy.

Request Flow
------------
Each attempt is a single ``POST <endpoint_url>`` with a Bearer credential and
the JSON body ``{"inputs": prompt}`` (plus ``{"options": {"wait_for_model":
true}}`` when enabled).  The response is classified as:

- **Success**: 2xx with an ``image/*`` content type.  The bytes are returned.
- **Retryable**: model still loading (503), rate limited (429), transport
  error, or timeout.  The timeout is a deadline on the whole call, body
  included.  The generator sleeps and tries again while the budget
  for that failure kind lasts.
- **Terminal**: everything else, raised immediately.  An endpoint URL httpx
  cannot request is a :class:`~flipbook.core.errors.ConfigError`.

The loop is bounded by the per-kind budgets in
:class:`~flipbook.core.retry.RetryPolicy`, so a frame always terminates.
Sleeping goes through an injected callable so tests can record the waits
instead of performing them.

Usage
-----
::

    import httpx

    from flipbook.core.config import PipelineSettings, config
    from flipbook.core.frame_generator import FrameGenerator

    with httpx.Client() as client:
        generator = FrameGenerator(PipelineSettings.from_config(config), client)
        png_bytes = generator.generate_one("a cat playing piano")
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

import httpx

from .config import PipelineSettings, validate_token
from .errors import (
    ConfigError,
    FlipbookError,
    InferenceTimeoutError,
    UpstreamParseError,
    UpstreamRateLimitedError,
    UpstreamTerminalError,
    UpstreamTransientError,
)
from .models import FrameJob
from .retry import QUOTA_EXHAUSTED_MARKER, FailureKind

logger = logging.getLogger(__name__)

# Upstream bodies attached to errors are truncated to this many characters.
_BODY_SNIPPET_LIMIT = 2048


class RetryableFailure(Exception):
    """Internal signal that an attempt failed in a retryable way.

    Attributes:
        kind: Which retry budget the failure draws from.
        error: The error to raise if the budget is exhausted.
        estimated_time: Upstream ``estimated_time`` hint, if any.
    """

    def __init__(
        self,
        kind: FailureKind,
        error: FlipbookError,
        *,
        estimated_time: float | None = None,
    ) -> None:
        super().__init__(error.message)
        self.kind = kind
        self.error = error
        self.estimated_time = estimated_time


def _snippet(text: str) -> str:
    """Truncate an upstream body for inclusion in errors and logs."""
    if len(text) <= _BODY_SNIPPET_LIMIT:
        return text
    return text[:_BODY_SNIPPET_LIMIT] + "...(truncated)"


def _looks_like_html(content_type: str, body: str) -> bool:
    """Detect an HTML error page where a JSON body was expected."""
    if "text/html" in content_type:
        return True
    head = body.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


def _parse_error_body(status: int, body: str) -> dict:
    """Decode a JSON error body from the inference API.

    Raises:
        UpstreamParseError: If the body is not a JSON object.
    """
    try:
        data = json.loads(body)
    except ValueError as e:
        raise UpstreamParseError(
            f"Could not parse inference API error response ({status})",
            upstream_status=status,
            body=_snippet(body),
        ) from e
    if not isinstance(data, dict):
        raise UpstreamParseError(
            f"Unexpected inference API error response ({status})",
            upstream_status=status,
            body=_snippet(body),
        )
    return data


def _estimated_time(data: dict) -> float | None:
    """Extract a numeric ``estimated_time`` hint from an error body."""
    value = data.get("estimated_time")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class FrameGenerator:
    """Generates one image per prompt with bounded retries.

    Attributes:
        _settings (PipelineSettings):
            Credential, endpoint, timeout and retry policy.
        _client (httpx.Client):
            HTTP client used for upstream calls.  Owned by the caller.
        _sleep (Callable[[float], None]):
            Delay function, ``time.sleep`` by default.
        _clock (Callable[[], float]):
            Monotonic clock for the per-call deadline, ``time.monotonic``
            by default.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        client: httpx.Client,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client = client
        self._sleep = sleep
        self._clock = clock

    def generate_one(self, prompt: str) -> bytes:
        """Generate a single image for a free-standing prompt."""
        return self.generate(FrameJob(prompt=prompt))

    def generate(self, job: FrameJob) -> bytes:
        """Generate the image for one frame, retrying per the policy.

        Args:
            job: The frame to generate.  ``job.attempt`` is incremented by one
                before each retry.

        Returns:
            Raw image bytes.

        Raises:
            ConfigError: The credential is absent or malformed, or the
                endpoint URL cannot be requested.  Raised before retrying.
            UpstreamRateLimitedError: Rate-limit budget exhausted.
            UpstreamTransientError: Loading or network budget exhausted.
            InferenceTimeoutError: Timeout budget exhausted.
            UpstreamTerminalError: Non-retryable upstream failure.
        """
        validate_token(self._settings.api_token)
        policy = self._settings.retry_policy
        retries_used: dict[FailureKind, int] = {}

        while True:
            try:
                return self._attempt(job)
            except RetryableFailure as failure:
                used = retries_used.get(failure.kind, 0)
                budget = policy.max_retries(failure.kind)
                if used >= budget:
                    logger.error(
                        f"Frame {job.index + 1}: giving up after attempt {job.attempt} "
                        f"({failure.kind.value} budget of {budget} retries exhausted)"
                    )
                    raise failure.error from failure

                retries_used[failure.kind] = used + 1
                wait = policy.wait_seconds(
                    failure.kind,
                    used + 1,
                    estimated_time=failure.estimated_time,
                )
                logger.warning(
                    f"Frame {job.index + 1}: {failure.error.message}; waiting {wait:.1f}s "
                    f"before retry {used + 1}/{budget} (attempt {job.attempt + 1})"
                )
                self._sleep(wait)
                job.attempt += 1

    def _payload(self, prompt: str) -> dict:
        payload: dict = {"inputs": prompt}
        if self._settings.wait_for_model:
            payload["options"] = {"wait_for_model": True}
        return payload

    def _timed_out(self, timeout: float, details: str | None = None) -> RetryableFailure:
        return RetryableFailure(
            FailureKind.TIMEOUT,
            InferenceTimeoutError(
                f"Inference API did not respond within {timeout:g}s",
                details=details,
            ),
        )

    def _attempt(self, job: FrameJob) -> bytes:
        """Make one upstream call and classify the outcome.

        httpx applies its timeout to each connect, read or write separately,
        so a body trickled in small chunks never trips it.  The body is
        streamed instead and the whole call is held to one deadline.
        """
        logger.info(f"Frame {job.index + 1}: requesting image (attempt {job.attempt})")
        timeout = self._settings.request_timeout_seconds
        deadline = self._clock() + timeout

        try:
            with self._client.stream(
                "POST",
                self._settings.endpoint_url,
                headers={
                    "Authorization": f"Bearer {self._settings.api_token}",
                    "Accept": "image/*, application/json",
                },
                json=self._payload(job.prompt),
                timeout=timeout,
            ) as response:
                chunks: list[bytes] = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if self._clock() > deadline:
                        raise self._timed_out(
                            timeout,
                            details=f"Body still arriving after {sum(map(len, chunks))} bytes",
                        )
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            raise ConfigError(
                f"Inference endpoint URL is unusable: {self._settings.endpoint_url}",
                details=str(e) or None,
            ) from e
        except httpx.TimeoutException as e:
            raise self._timed_out(timeout, details=str(e) or None) from e
        except httpx.RequestError as e:
            raise RetryableFailure(
                FailureKind.NETWORK,
                UpstreamTransientError(
                    "Network error while contacting the inference API",
                    details=str(e) or None,
                ),
            ) from e

        return self._classify(response, b"".join(chunks))

    def _classify(self, response: httpx.Response, content: bytes) -> bytes:
        """Return image bytes or raise the matching failure for a response."""
        status = response.status_code
        content_type = response.headers.get("content-type", "").lower()
        body = content.decode(response.charset_encoding or "utf-8", errors="replace")

        if response.is_success:
            if not content_type.startswith("image/"):
                raise UpstreamTerminalError(
                    f"Inference API returned non-image content ({content_type or 'unknown'})",
                    upstream_status=status,
                    body=_snippet(body),
                )
            return content

        if status in (401, 403):
            raise UpstreamTerminalError(
                f"Inference API rejected the credential ({status})",
                upstream_status=status,
                body=_snippet(body),
            )

        if _looks_like_html(content_type, body):
            raise UpstreamTerminalError(
                f"Inference API returned an HTML error page ({status})",
                upstream_status=status,
                body=_snippet(body),
            )

        if status == 503 and "loading" in body.lower():
            data = _parse_error_body(status, body)
            raise RetryableFailure(
                FailureKind.LOADING,
                UpstreamTransientError(
                    "Model is still loading",
                    upstream_status=status,
                    body=_snippet(body),
                ),
                estimated_time=_estimated_time(data),
            )

        if status == 429:
            data = _parse_error_body(status, body)
            quota = QUOTA_EXHAUSTED_MARKER.lower() in body.lower()
            message = str(data.get("error") or "Rate limit reached")
            raise RetryableFailure(
                FailureKind.QUOTA if quota else FailureKind.RATE_LIMITED,
                UpstreamRateLimitedError(
                    f"Inference API rate limit: {message}",
                    upstream_status=status,
                    body=_snippet(body),
                ),
            )

        message = f"API Error ({status})"
        if body.strip():
            message = f"{message}: {body.strip()[:200]}"
        raise UpstreamTerminalError(
            message,
            upstream_status=status,
            body=_snippet(body),
        )
