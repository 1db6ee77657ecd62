"""Webhook event models with persisted retry state.

An event is created in ``received`` state. A failed delivery persists it as
``failed`` with retry metadata; the retry worker then moves it to
``processed`` or marks it permanently failed.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .base import generate_id, utcnow


class EventStatus(str, Enum):
    """Lifecycle status of a webhook event."""

    RECEIVED = "received"
    PROCESSED = "processed"
    FILTERED = "filtered"
    FAILED = "failed"


class WebhookTarget(BaseModel):
    """The parts of a webhook registration the delivery core needs.

    Attributes:
        id: Webhook identifier.
        url: Delivery target.
        enabled: Disabled webhooks never receive deliveries or retries.
        max_retries: Persisted retries allowed for this webhook's events;
            None defers to the service default.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("whk"))
    url: str = Field(description="Delivery target URL")
    enabled: bool = Field(default=True)
    max_retries: int | None = Field(default=None, ge=0)


class RetryableEvent(BaseModel):
    """A webhook event together with its persisted retry state.

    Attributes:
        id: Event identifier.
        webhook_id: Owning webhook.
        status: Lifecycle status.
        payload: Decoded JSON body of the event.
        retry_count: Persisted retries consumed so far.
        max_retries: Retries allowed before the event fails permanently.
        next_retry_at: When the worker should next pick the event up.
        last_retry_at: When the last retry was recorded.
        retry_error: Message from the latest failure.
        permanently_failed: Terminal failure; never retried again.
        execution_id: Downstream execution started by a successful delivery.
        processing_time_ms: Duration of the successful delivery.
        filter_reason: Why filters rejected the event, for filtered events.
        created_at: When the event was received.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("evt"))
    webhook_id: str
    status: EventStatus = EventStatus.RECEIVED
    payload: dict[str, Any] = Field(default_factory=dict)
    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    next_retry_at: datetime | None = None
    last_retry_at: datetime | None = None
    retry_error: str | None = None
    permanently_failed: bool = False
    execution_id: str | None = None
    processing_time_ms: int | None = None
    filter_reason: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _check_retry_invariants(self) -> RetryableEvent:
        if self.retry_count > self.max_retries:
            raise ValueError(
                f"retry_count {self.retry_count} exceeds max_retries {self.max_retries}"
            )
        if self.permanently_failed and self.next_retry_at is not None:
            raise ValueError("permanently failed events cannot have next_retry_at")
        if self.status == EventStatus.PROCESSED and (
            self.next_retry_at is not None or self.permanently_failed
        ):
            raise ValueError("processed events cannot be pending or permanently failed")
        return self

    @property
    def pending_retry(self) -> bool:
        """Failed, not terminal, and scheduled for another attempt."""
        return (
            self.status == EventStatus.FAILED
            and not self.permanently_failed
            and self.next_retry_at is not None
        )

    def is_due(self, now: datetime | None = None) -> bool:
        """Whether the worker should retry this event at ``now``."""
        if not self.pending_retry:
            return False
        assert self.next_retry_at is not None
        return self.next_retry_at <= (now or utcnow())


class RetryStatistics(BaseModel):
    """Aggregate retry figures for one webhook."""

    model_config = ConfigDict(extra="forbid")

    webhook_id: str
    total_retried_events: int = 0
    permanently_failed_events: int = 0
    pending_retries: int = 0
    max_retry_count: int = 0
    avg_retry_count: float = 0.0


__all__ = [
    "EventStatus",
    "RetryStatistics",
    "RetryableEvent",
    "WebhookTarget",
]
