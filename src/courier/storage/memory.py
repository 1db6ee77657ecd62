"""In-memory implementation of the persistence protocols.

Suitable for tests and single-process embedding. Events handed out by
fetch_due_retries are claimed until their next state change (or until the
claim goes stale), so two workers sharing one store never process the same
event concurrently.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any

from courier.exceptions import NotFoundError
from courier.models import (
    EventStatus,
    FilterRule,
    RetryableEvent,
    RetryStatistics,
    WebhookTarget,
    utcnow,
)

DEFAULT_CLAIM_TIMEOUT = timedelta(minutes=5)


class InMemoryWebhookStore:
    """Dictionary-backed RetryStore and FilterSource.

    Example:
        ```python
        store = InMemoryWebhookStore()
        await store.add_webhook(WebhookTarget(id="whk_1", url="https://example.com/hook"))
        worker = RetryWorker(store, deliverer, RetryPolicy.default())
        ```
    """

    def __init__(self, claim_timeout: timedelta = DEFAULT_CLAIM_TIMEOUT) -> None:
        self._lock = asyncio.Lock()
        self._webhooks: dict[str, WebhookTarget] = {}
        self._rules: dict[str, list[FilterRule]] = {}
        self._events: dict[str, RetryableEvent] = {}
        self._claims: dict[str, datetime] = {}
        self._claim_timeout = claim_timeout

    # Registration helpers

    async def add_webhook(self, webhook: WebhookTarget) -> str:
        """Register or replace a webhook."""
        async with self._lock:
            self._webhooks[webhook.id] = webhook
        return webhook.id

    async def remove_webhook(self, webhook_id: str) -> None:
        """Delete a webhook and its rules."""
        async with self._lock:
            self._webhooks.pop(webhook_id, None)
            self._rules.pop(webhook_id, None)

    async def add_rule(self, rule: FilterRule) -> str:
        """Attach a filter rule to its webhook."""
        if rule.webhook_id is None:
            raise ValueError("rule.webhook_id is required")
        async with self._lock:
            self._rules.setdefault(rule.webhook_id, []).append(rule)
        return rule.id

    # FilterSource

    async def rules_for_webhook(self, webhook_id: str) -> list[FilterRule]:
        """Return every rule for a webhook, in insertion order."""
        async with self._lock:
            return [rule.model_copy() for rule in self._rules.get(webhook_id, [])]

    # RetryStore

    async def lookup_webhook(self, webhook_id: str) -> WebhookTarget | None:
        """Return the webhook, or None if it does not exist."""
        async with self._lock:
            webhook = self._webhooks.get(webhook_id)
            return webhook.model_copy() if webhook else None

    async def get_event(self, event_id: str) -> RetryableEvent | None:
        """Return a copy of an event."""
        async with self._lock:
            event = self._events.get(event_id)
            return event.model_copy(deep=True) if event else None

    async def fetch_due_retries(
        self, batch_size: int, now: datetime | None = None
    ) -> list[RetryableEvent]:
        """Claim up to ``batch_size`` due events, oldest next_retry_at first."""
        now = now or utcnow()
        async with self._lock:
            due = [
                event
                for event in self._events.values()
                if event.is_due(now) and not self._is_claimed(event.id, now)
            ]
            due.sort(key=lambda e: e.next_retry_at or now)
            batch = due[:batch_size]
            for event in batch:
                self._claims[event.id] = now
            return [event.model_copy(deep=True) for event in batch]

    async def mark_processed(
        self, event_id: str, execution_id: str | None, processing_time_ms: int
    ) -> None:
        """Mark an event delivered."""
        await self._update(
            event_id,
            status=EventStatus.PROCESSED,
            next_retry_at=None,
            retry_error=None,
            permanently_failed=False,
            execution_id=execution_id,
            processing_time_ms=processing_time_ms,
        )

    async def mark_permanently_failed(
        self, event_id: str, reason: str, retry_count: int | None = None
    ) -> None:
        """Mark an event as terminally failed."""
        changes: dict[str, Any] = {
            "status": EventStatus.FAILED,
            "permanently_failed": True,
            "next_retry_at": None,
            "retry_error": reason,
            "last_retry_at": utcnow(),
        }
        if retry_count is not None:
            changes["retry_count"] = retry_count
        await self._update(event_id, **changes)

    async def schedule_retry(
        self,
        event_id: str,
        reason: str,
        retry_count: int,
        next_retry_at: datetime,
    ) -> None:
        """Record a retryable failure."""
        await self._update(
            event_id,
            status=EventStatus.FAILED,
            retry_count=retry_count,
            retry_error=reason,
            next_retry_at=next_retry_at,
            last_retry_at=utcnow(),
        )

    async def save_event(self, event: RetryableEvent) -> None:
        """Insert or replace an event."""
        async with self._lock:
            self._events[event.id] = event.model_copy(deep=True)
            self._claims.pop(event.id, None)

    async def mark_filtered(self, event_id: str, reason: str) -> None:
        """Mark an event rejected by filters."""
        await self._update(event_id, status=EventStatus.FILTERED, filter_reason=reason)

    async def get_retry_statistics(self, webhook_id: str) -> RetryStatistics:
        """Aggregate retry figures for a webhook."""
        async with self._lock:
            events = [e for e in self._events.values() if e.webhook_id == webhook_id]

        retried = [e for e in events if e.retry_count > 0]
        counts = [e.retry_count for e in retried]
        return RetryStatistics(
            webhook_id=webhook_id,
            total_retried_events=len(retried),
            permanently_failed_events=sum(1 for e in events if e.permanently_failed),
            pending_retries=sum(1 for e in events if e.pending_retry),
            max_retry_count=max(counts, default=0),
            avg_retry_count=sum(counts) / len(counts) if counts else 0.0,
        )

    # Internals

    def _is_claimed(self, event_id: str, now: datetime) -> bool:
        claimed_at = self._claims.get(event_id)
        if claimed_at is None:
            return False
        if now - claimed_at > self._claim_timeout:
            del self._claims[event_id]
            return False
        return True

    async def _update(self, event_id: str, **changes: Any) -> None:
        async with self._lock:
            event = self._events.get(event_id)
            if event is None:
                raise NotFoundError("event", event_id)
            # Re-validate so the event invariants hold after every transition
            self._events[event_id] = RetryableEvent.model_validate(
                {**event.model_dump(), **changes}
            )
            self._claims.pop(event_id, None)
