"""Delivery attempt and retry configuration models."""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import utcnow

# Bodies kept on an outcome are truncated to this many characters
MAX_RESPONSE_BODY = 1000


class FailureKind(str, Enum):
    """Why a delivery attempt failed, independent of transport status."""

    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CONNECTION_FAILED = "connection_failed"
    SERVER_ERROR = "server_error"
    VALIDATION_FAILED = "validation_failed"
    AUTH_FAILED = "auth_failed"


class RetryPolicy(BaseModel):
    """Immutable backoff configuration.

    Attributes:
        max_attempts: Attempts made by the in-request executor (>= 1).
        base_delay: Delay before the first retry.
        max_delay: Cap applied to every computed delay.
        multiplier: Growth factor per attempt (> 1.0).
        jitter_fraction: Relative +/- randomization, 0.0 to 1.0.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: int = Field(default=5, ge=1)
    base_delay: timedelta = Field(default=timedelta(seconds=1))
    max_delay: timedelta = Field(default=timedelta(minutes=5))
    multiplier: float = Field(default=2.0, gt=1.0)
    jitter_fraction: float = Field(default=0.1, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_delays(self) -> RetryPolicy:
        if self.base_delay < timedelta(0):
            raise ValueError("base_delay must not be negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        return self

    @classmethod
    def default(cls) -> RetryPolicy:
        """5 attempts, 1s base, 5 minute cap, doubling, 10% jitter."""
        return cls()


class DeliveryOutcome(BaseModel):
    """Result of one delivery attempt.

    Attributes:
        success: Whether the target accepted the event.
        status_code: HTTP status returned (0 when no response was received).
        response_body: Response body, truncated.
        failure: Failure classification for unsuccessful attempts.
        execution_id: Identifier of the downstream execution, if any.
        error: Human-readable failure message.
    """

    model_config = ConfigDict(extra="forbid")

    success: bool
    status_code: int = Field(default=0, ge=0)
    response_body: str | None = None
    failure: FailureKind | None = None
    execution_id: str | None = None
    error: str | None = None

    @model_validator(mode="after")
    def _truncate_body(self) -> DeliveryOutcome:
        if self.response_body and len(self.response_body) > MAX_RESPONSE_BODY:
            self.response_body = self.response_body[:MAX_RESPONSE_BODY]
        return self

    @classmethod
    def succeeded(
        cls,
        status_code: int = 200,
        response_body: str | None = None,
        execution_id: str | None = None,
    ) -> DeliveryOutcome:
        """Create a successful outcome."""
        return cls(
            success=True,
            status_code=status_code,
            response_body=response_body,
            execution_id=execution_id,
        )

    @classmethod
    def failed(
        cls,
        failure: FailureKind | None,
        status_code: int = 0,
        error: str | None = None,
        response_body: str | None = None,
    ) -> DeliveryOutcome:
        """Create a failed outcome."""
        return cls(
            success=False,
            status_code=status_code,
            failure=failure,
            error=error,
            response_body=response_body,
        )

    def describe_failure(self) -> str:
        """Short message for retry_error columns and logs."""
        if self.error:
            return self.error
        if self.failure is not None:
            return f"{self.failure.value} (HTTP {self.status_code})"
        return f"HTTP {self.status_code}"


class InlineRetryState(BaseModel):
    """In-memory record of a bounded retry loop.

    Same shape as a persisted event's retry columns, but never stored.
    """

    model_config = ConfigDict(extra="forbid")

    attempts: int = 0
    last_failure: str | None = None
    next_retry_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def record_failure(self, error: str, next_retry_at: datetime | None) -> None:
        """Count a failed attempt."""
        self.attempts += 1
        self.last_failure = error
        self.next_retry_at = next_retry_at

    def record_success(self) -> None:
        """Count a successful attempt."""
        self.attempts += 1
        self.next_retry_at = None


__all__ = [
    "MAX_RESPONSE_BODY",
    "DeliveryOutcome",
    "FailureKind",
    "InlineRetryState",
    "RetryPolicy",
]
