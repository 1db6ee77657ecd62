"""Poll-driven retry worker for persisted webhook events.

Each poll claims a batch of failed events whose next_retry_at has passed
and makes exactly one delivery attempt per event. The outcome moves the
event to ``processed``, reschedules it with exponential backoff, or marks it
permanently failed. A failure while handling one event is logged and does
not affect the rest of the batch.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from courier.exceptions import DeliveryError, StorageError
from courier.logging import event_context, get_logger
from courier.models import DeliveryOutcome, RetryableEvent, RetryPolicy, WebhookTarget, utcnow

from .backoff import BackoffPolicy
from .classifier import classify

if TYPE_CHECKING:
    from courier.storage import RetryStore
    from courier.webhooks import Deliverer

logger = get_logger(__name__)

WEBHOOK_UNAVAILABLE = "webhook not found or disabled"


class RetryWorker:
    """Advances the retry state machine of persisted events.

    Example:
        ```python
        worker = RetryWorker(store, HttpDeliverer(), settings.retry_policy)

        # One poll
        processed = await worker.process_retries()

        # Or poll forever until stopped
        task = asyncio.create_task(worker.start(settings.poll_interval))
        ...
        worker.stop()
        await task
        ```
    """

    def __init__(
        self,
        store: RetryStore,
        deliverer: Deliverer,
        policy: RetryPolicy,
        batch_size: int = 10,
        backoff: BackoffPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the retry worker.

        Args:
            store: Persistence collaborator.
            deliverer: Performs one delivery attempt.
            policy: Backoff configuration for rescheduled events.
            batch_size: Default number of events claimed per poll.
            backoff: Delay calculator; built from ``policy`` if omitted.
            clock: Source of the current time.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._store = store
        self._deliverer = deliverer
        self.policy = policy
        self.batch_size = batch_size
        self._backoff = backoff or BackoffPolicy(policy)
        self._clock = clock
        self._stop_event: asyncio.Event | None = None

    async def process_retries(self, batch_size: int | None = None) -> int:
        """Run one poll.

        Args:
            batch_size: Events to claim; defaults to the worker's batch size.

        Returns:
            Number of events whose retry state was advanced.

        Raises:
            StorageError: If due events cannot be fetched.
        """
        limit = batch_size or self.batch_size
        try:
            events = await self._store.fetch_due_retries(limit, now=self._clock())
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"failed to fetch events for retry: {e}") from e

        if not events:
            return 0

        logger.debug("Processing retry batch", count=len(events))

        processed = 0
        for event in events:
            with event_context(event.id, event.webhook_id):
                try:
                    await self._process_event(event)
                except Exception:
                    logger.exception("Failed to process webhook retry")
                    continue
            processed += 1

        return processed

    async def _process_event(self, event: RetryableEvent) -> None:
        webhook = await self._store.lookup_webhook(event.webhook_id)
        if webhook is None or not webhook.enabled:
            await self._store.mark_permanently_failed(event.id, WEBHOOK_UNAVAILABLE)
            logger.warning("Webhook retry abandoned", reason=WEBHOOK_UNAVAILABLE)
            return

        started = time.monotonic()
        outcome = await self._deliver(webhook, event)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        if outcome.success:
            await self._store.mark_processed(event.id, outcome.execution_id, elapsed_ms)
            logger.info(
                "Webhook retry succeeded",
                retry_count=event.retry_count,
                status_code=outcome.status_code,
                elapsed_ms=elapsed_ms,
            )
            return

        await self._handle_failure(event, outcome)

    async def _deliver(self, webhook: WebhookTarget, event: RetryableEvent) -> DeliveryOutcome:
        try:
            return await self._deliverer.deliver(webhook, event)
        except DeliveryError as e:
            return DeliveryOutcome.failed(e.kind, status_code=e.status_code, error=str(e))
        except Exception as e:
            # Unclassified error without a response: treated as transport failure
            return DeliveryOutcome.failed(None, status_code=0, error=str(e) or type(e).__name__)

    async def _handle_failure(self, event: RetryableEvent, outcome: DeliveryOutcome) -> None:
        reason = outcome.describe_failure()

        if not classify(outcome.failure, outcome.status_code, failed=True):
            await self._store.mark_permanently_failed(event.id, reason)
            logger.warning(
                "Webhook retry failed permanently",
                reason=reason,
                status_code=outcome.status_code,
                retryable=False,
            )
            return

        retry_count = event.retry_count + 1
        if retry_count >= event.max_retries:
            await self._store.mark_permanently_failed(
                event.id,
                f"max retries exceeded: {reason}",
                retry_count=min(retry_count, event.max_retries),
            )
            logger.warning(
                "Webhook max retries exceeded",
                retry_count=retry_count,
                max_retries=event.max_retries,
                reason=reason,
            )
            return

        next_retry_at = self._clock() + self._backoff.delay(retry_count)
        await self._store.schedule_retry(event.id, reason, retry_count, next_retry_at)
        logger.info(
            "Webhook retry scheduled",
            retry_count=retry_count,
            max_retries=event.max_retries,
            next_retry_at=next_retry_at.isoformat(),
            reason=reason,
        )

    async def start(
        self,
        interval: timedelta | float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Poll for due retries every ``interval`` until stopped.

        Returns when ``stop_event`` is set (or stop() is called). Cancelling
        the task running this coroutine re-raises ``asyncio.CancelledError``.
        A failed poll is logged and the loop keeps going.

        Args:
            interval: Time between polls (timedelta or seconds).
            stop_event: Event that ends the loop when set.
        """
        seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
        if seconds <= 0:
            raise ValueError("interval must be positive")

        self._stop_event = stop_event or asyncio.Event()
        logger.info("Retry worker started", interval_seconds=seconds, batch_size=self.batch_size)

        try:
            while not self._stop_event.is_set():
                try:
                    await self.process_retries()
                except Exception:
                    logger.exception("Retry poll failed")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
                except TimeoutError:
                    continue
        except asyncio.CancelledError:
            logger.info("Retry worker cancelled")
            raise

        logger.info("Retry worker stopped")

    def stop(self) -> None:
        """Ask a running start() loop to exit after the current poll."""
        if self._stop_event is not None:
            self._stop_event.set()
