"""Retry budgets and wait computation for upstream inference calls.

The inference API fails in a handful of recognisable ways, each of which gets
its own retry budget and wait interval.  :class:`RetryPolicy` holds those
numbers; :class:`~flipbook.core.frame_generator.FrameGenerator` asks it how
long to wait and whether another attempt is allowed.

Default values
--------------
=================  ===========  =============================================
Failure kind       Max retries  Wait before the next attempt
=================  ===========  =============================================
``loading``        3            ``min(estimated_time, 20)`` seconds
``quota``          3            65 seconds (longer than the quota window)
``rate_limited``   2            10 seconds
``network``        3            ``5 * n`` seconds for the n-th retry
``timeout``        0            1 second
=================  ===========  =============================================

The budgets are counted per failure kind, so the total number of upstream
calls for one frame is bounded by ``1 + sum(max retries)``.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

#: Substring of a 429 body that signals the account-wide request quota is spent.
QUOTA_EXHAUSTED_MARKER = "Max requests total reached"


class FailureKind(str, Enum):
    """Retryable upstream failure classes."""

    LOADING = "loading"
    QUOTA = "quota"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    TIMEOUT = "timeout"


class RetryPolicy(BaseModel):
    """Per-failure-kind retry budgets and wait intervals.

    Args:
        loading_max_retries: Retries allowed while the model is cold-starting.
        loading_wait_cap_seconds: Upper bound on the wait derived from the
            upstream ``estimated_time`` field.  Also used when the field is
            missing.
        quota_max_retries: Retries allowed after the global quota is reached.
        quota_wait_seconds: Fixed wait after the global quota is reached.
        rate_limit_max_retries: Retries allowed for ordinary 429 responses.
        rate_limit_wait_seconds: Fixed wait after an ordinary 429 response.
        network_max_retries: Retries allowed for transport errors.
        network_wait_seconds: Base wait for transport errors; the n-th retry
            waits ``n * network_wait_seconds``.
        timeout_max_retries: Retries allowed after a request timeout.
        timeout_wait_seconds: Fixed wait after a request timeout.
    """

    model_config = {"frozen": True}

    loading_max_retries: int = Field(default=3, ge=0)
    loading_wait_cap_seconds: float = Field(default=20.0, ge=0.0)
    quota_max_retries: int = Field(default=3, ge=0)
    quota_wait_seconds: float = Field(default=65.0, ge=0.0)
    rate_limit_max_retries: int = Field(default=2, ge=0)
    rate_limit_wait_seconds: float = Field(default=10.0, ge=0.0)
    network_max_retries: int = Field(default=3, ge=0)
    network_wait_seconds: float = Field(default=5.0, ge=0.0)
    timeout_max_retries: int = Field(default=0, ge=0)
    timeout_wait_seconds: float = Field(default=1.0, ge=0.0)

    def max_retries(self, kind: FailureKind) -> int:
        """Return the retry budget for a failure kind."""
        return {
            FailureKind.LOADING: self.loading_max_retries,
            FailureKind.QUOTA: self.quota_max_retries,
            FailureKind.RATE_LIMITED: self.rate_limit_max_retries,
            FailureKind.NETWORK: self.network_max_retries,
            FailureKind.TIMEOUT: self.timeout_max_retries,
        }[kind]

    def wait_seconds(
        self,
        kind: FailureKind,
        retry_number: int,
        *,
        estimated_time: float | None = None,
    ) -> float:
        """Compute how long to wait before the next attempt.

        Args:
            kind: The failure kind that triggered the retry.
            retry_number: One-based count of retries already granted for
                this kind, including the one being scheduled.
            estimated_time: The upstream ``estimated_time`` hint, used only
                for :attr:`FailureKind.LOADING`.

        Returns:
            Delay in seconds, never negative.
        """
        if kind is FailureKind.LOADING:
            cap = self.loading_wait_cap_seconds
            if estimated_time is None:
                return cap
            return max(0.0, min(estimated_time, cap))
        if kind is FailureKind.QUOTA:
            return self.quota_wait_seconds
        if kind is FailureKind.RATE_LIMITED:
            return self.rate_limit_wait_seconds
        if kind is FailureKind.NETWORK:
            return self.network_wait_seconds * max(retry_number, 1)
        return self.timeout_wait_seconds

    def worst_case_wait_seconds(self) -> float:
        """Return the total sleep time if every budget is spent for one frame.

        Feeds :meth:`PipelineSettings.worst_case_duration_seconds`, which
        :meth:`PipelineSettings.from_config` logs at debug level.
        """
        network = sum(
            self.network_wait_seconds * n for n in range(1, self.network_max_retries + 1)
        )
        return (
            self.loading_max_retries * self.loading_wait_cap_seconds
            + self.quota_max_retries * self.quota_wait_seconds
            + self.rate_limit_max_retries * self.rate_limit_wait_seconds
            + network
            + self.timeout_max_retries * self.timeout_wait_seconds
        )
