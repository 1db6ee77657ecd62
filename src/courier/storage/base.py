"""Collaborator protocols for persistence.

The delivery core never talks to a database directly. A SQL repository (or
the in-memory store in this package) implements these protocols.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import Protocol, runtime_checkable

from courier.models import (
    FilterRule,
    RetryableEvent,
    RetryStatistics,
    WebhookTarget,
)


@runtime_checkable
class FilterSource(Protocol):
    """Provides the filter rules configured for a webhook."""

    @abstractmethod
    async def rules_for_webhook(self, webhook_id: str) -> list[FilterRule]:
        """Return every rule (enabled or not) for a webhook."""
        ...


@runtime_checkable
class RetryStore(Protocol):
    """Persistence operations the retry worker and event service need.

    Claiming due events is the store's concern: an implementation shared by
    several worker processes must claim rows atomically (for example with
    ``SELECT ... FOR UPDATE SKIP LOCKED``) or the same event can be
    delivered twice.
    """

    @abstractmethod
    async def fetch_due_retries(
        self, batch_size: int, now: datetime | None = None
    ) -> list[RetryableEvent]:
        """Return up to ``batch_size`` pending events whose next_retry_at has passed."""
        ...

    @abstractmethod
    async def mark_processed(
        self, event_id: str, execution_id: str | None, processing_time_ms: int
    ) -> None:
        """Mark an event delivered; clears next_retry_at and retry_error."""
        ...

    @abstractmethod
    async def mark_permanently_failed(
        self, event_id: str, reason: str, retry_count: int | None = None
    ) -> None:
        """Mark an event as terminally failed; clears next_retry_at.

        ``retry_count`` is recorded when the final failure consumed a retry.
        """
        ...

    @abstractmethod
    async def schedule_retry(
        self,
        event_id: str,
        reason: str,
        retry_count: int,
        next_retry_at: datetime,
    ) -> None:
        """Record a retryable failure and when to try again."""
        ...

    @abstractmethod
    async def lookup_webhook(self, webhook_id: str) -> WebhookTarget | None:
        """Return the webhook, or None if it no longer exists."""
        ...

    @abstractmethod
    async def save_event(self, event: RetryableEvent) -> None:
        """Insert or replace an event (on receipt and after its first failed delivery)."""
        ...

    @abstractmethod
    async def mark_filtered(self, event_id: str, reason: str) -> None:
        """Mark an event rejected by its webhook's filters."""
        ...

    @abstractmethod
    async def get_event(self, event_id: str) -> RetryableEvent | None:
        """Return an event by ID."""
        ...

    @abstractmethod
    async def get_retry_statistics(self, webhook_id: str) -> RetryStatistics:
        """Aggregate retry figures for a webhook."""
        ...
