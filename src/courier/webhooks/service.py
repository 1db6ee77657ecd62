"""First-attempt handling of a webhook event.

An incoming event is stored as ``received``, checked against its webhook's
filters, then delivered with bounded in-request retries. If those fail the
event is persisted with retry metadata for the RetryWorker to pick up.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import TYPE_CHECKING, Any

from courier.exceptions import (
    DeliveryCancelledError,
    DeliveryError,
    FilterEvaluationError,
    MaxAttemptsExceededError,
    NotFoundError,
)
from courier.filters import FilterEvaluator
from courier.logging import event_context, get_logger
from courier.models import (
    DeliveryOutcome,
    EventStatus,
    FilterOutcome,
    InlineRetryState,
    JsonValue,
    RetryableEvent,
    RetryPolicy,
    RetryStatistics,
    WebhookTarget,
    utcnow,
)
from courier.retry import (
    WEBHOOK_UNAVAILABLE,
    BackoffPolicy,
    BoundedRetryExecutor,
    is_retryable_error,
)
from courier.storage import RetryStore

from .base import Deliverer

if TYPE_CHECKING:
    from courier.config import Settings

logger = get_logger(__name__)


class WebhookEventService:
    """Filters and delivers incoming webhook events.

    Example:
        ```python
        service = WebhookEventService(store, HttpDeliverer(), settings.retry_policy)
        event = await service.handle_event(
            RetryableEvent(webhook_id="whk_1", payload={"action": "opened"})
        )
        ```
    """

    def __init__(
        self,
        store: RetryStore,
        deliverer: Deliverer,
        policy: RetryPolicy,
        evaluator: FilterEvaluator | None = None,
        backoff: BackoffPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
        default_max_retries: int = 3,
    ) -> None:
        """Initialize the service.

        Args:
            store: Persistence collaborator; also used as the filter source
                when no evaluator is given.
            deliverer: Performs delivery attempts.
            policy: In-request attempts and backoff.
            evaluator: Filter evaluator; defaults to one reading from ``store``.
            backoff: Delay calculator; built from ``policy`` if omitted.
            cancel_event: Aborts in-request retries when set.
            default_max_retries: Persisted retries for events of webhooks
                that do not set their own.
        """
        self._store = store
        self._deliverer = deliverer
        self.policy = policy
        self._evaluator = evaluator or FilterEvaluator(store)  # type: ignore[arg-type]
        self._backoff = backoff or BackoffPolicy(policy)
        self._cancel_event = cancel_event
        self.default_max_retries = default_max_retries

    @classmethod
    def from_settings(
        cls, store: RetryStore, deliverer: Deliverer, settings: Settings
    ) -> WebhookEventService:
        """Build a service using the configured retry policy and allowance."""
        return cls(
            store,
            deliverer,
            settings.retry_policy,
            default_max_retries=settings.default_max_retries,
        )

    async def handle_event(self, event: RetryableEvent) -> RetryableEvent:
        """Filter and deliver a newly received event.

        Returns:
            The event as stored after handling.

        Raises:
            NotFoundError: If the event's webhook does not exist.
            FilterEvaluationError: If a filter rule is malformed; the event is
                stored as filtered with the error as its reason.
            DeliveryCancelledError: If cancelled mid-retry; the event is then
                left scheduled for the retry worker.
        """
        with event_context(event.id, event.webhook_id):
            webhook = await self._store.lookup_webhook(event.webhook_id)
            if webhook is None:
                raise NotFoundError("webhook", event.webhook_id)

            max_retries = webhook.max_retries
            if max_retries is None:
                max_retries = self.default_max_retries
            event = event.model_copy(update={"max_retries": max_retries})
            await self._store.save_event(event)

            if not webhook.enabled:
                await self._store.mark_permanently_failed(event.id, WEBHOOK_UNAVAILABLE)
                logger.warning("Event rejected", reason=WEBHOOK_UNAVAILABLE)
                return await self._reload(event.id)

            try:
                outcome = await self._evaluator.evaluate_webhook(webhook.id, event.payload)
            except FilterEvaluationError as e:
                await self._store.mark_filtered(event.id, e.message)
                logger.warning("Event filter evaluation failed", error=e.message)
                raise
            if not outcome.passed:
                await self._store.mark_filtered(event.id, outcome.reason)
                logger.info("Event filtered", reason=outcome.reason)
                return await self._reload(event.id)

            await self._deliver(webhook, event)
            return await self._reload(event.id)

    async def _deliver(self, webhook: WebhookTarget, event: RetryableEvent) -> None:
        tracker = InlineRetryState()
        executor = BoundedRetryExecutor(
            self.policy,
            backoff=self._backoff,
            cancel_event=self._cancel_event,
            tracker=tracker,
        )

        async def attempt() -> DeliveryOutcome:
            try:
                return await self._deliverer.deliver(webhook, event)
            except DeliveryError:
                raise
            except Exception as e:
                # Unclassified error without a response: transport failure
                raise DeliveryError(str(e) or type(e).__name__) from e

        started = time.monotonic()
        try:
            result = await executor.execute(attempt)
        except MaxAttemptsExceededError as e:
            await self._record_failure(event, e.last_error, retryable=True)
            return
        except DeliveryCancelledError:
            await self._record_failure(
                event,
                DeliveryError(tracker.last_failure or "delivery cancelled"),
                retryable=True,
            )
            raise
        except DeliveryError as e:
            await self._record_failure(event, e, retryable=is_retryable_error(e))
            return

        elapsed_ms = int((time.monotonic() - started) * 1000)
        await self._store.mark_processed(event.id, result.execution_id, elapsed_ms)
        logger.info("Event delivered", attempts=tracker.attempts, elapsed_ms=elapsed_ms)

    async def _record_failure(
        self, event: RetryableEvent, error: DeliveryError, retryable: bool
    ) -> None:
        changes: dict[str, Any] = {
            "status": EventStatus.FAILED,
            "retry_count": 0,
            "retry_error": str(error),
            "last_retry_at": utcnow(),
        }
        next_retry_at: datetime | None = None
        if retryable and event.max_retries > 0:
            next_retry_at = utcnow() + self._backoff.delay(0)
            changes.update(next_retry_at=next_retry_at, permanently_failed=False)
        else:
            changes.update(next_retry_at=None, permanently_failed=True)

        failed = RetryableEvent.model_validate({**event.model_dump(), **changes})
        await self._store.save_event(failed)
        logger.warning(
            "Event delivery failed",
            error=str(error),
            permanently_failed=failed.permanently_failed,
            next_retry_at=next_retry_at.isoformat() if next_retry_at else None,
        )

    async def _reload(self, event_id: str) -> RetryableEvent:
        event = await self._store.get_event(event_id)
        if event is None:
            raise NotFoundError("event", event_id)
        return event

    async def test_filters(self, webhook_id: str, payload: JsonValue) -> FilterOutcome:
        """Dry-run a webhook's filters against a sample payload."""
        if await self._store.lookup_webhook(webhook_id) is None:
            raise NotFoundError("webhook", webhook_id)
        return await self._evaluator.evaluate_webhook(webhook_id, payload)

    async def retry_statistics(self, webhook_id: str) -> RetryStatistics:
        """Aggregate retry figures for a webhook."""
        return await self._store.get_retry_statistics(webhook_id)
