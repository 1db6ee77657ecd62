"""Bounded in-request retry around a single delivery.

Wraps an async delivery operation in a tenacity retry loop:
- at most ``policy.max_attempts`` calls
- non-retryable failures are raised unchanged after one call
- jittered exponential backoff between attempts, never after the last
- a cancel event aborts before the next attempt or during the backoff sleep
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
)

from courier.exceptions import DeliveryCancelledError, DeliveryError, MaxAttemptsExceededError
from courier.logging import get_logger
from courier.models import DeliveryOutcome, InlineRetryState, RetryPolicy, utcnow

from .backoff import BackoffPolicy
from .classifier import is_retryable_error

logger = get_logger(__name__)

DeliveryOperation = Callable[[], Awaitable[DeliveryOutcome]]


def outcome_error(outcome: DeliveryOutcome) -> DeliveryError:
    """Turn an unsuccessful outcome into the DeliveryError it represents."""
    return DeliveryError(
        outcome.describe_failure(),
        kind=outcome.failure,
        status_code=outcome.status_code,
    )


class BoundedRetryExecutor:
    """Retries a delivery operation a bounded number of times.

    Example:
        ```python
        executor = BoundedRetryExecutor(RetryPolicy(max_attempts=3))

        try:
            outcome = await executor.execute(lambda: deliverer.deliver(webhook, event))
        except MaxAttemptsExceededError as e:
            logger.warning("giving up", error=str(e.last_error))
        ```
    """

    def __init__(
        self,
        policy: RetryPolicy,
        backoff: BackoffPolicy | None = None,
        cancel_event: asyncio.Event | None = None,
        tracker: InlineRetryState | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            policy: Attempt limit and backoff configuration.
            backoff: Delay calculator; built from ``policy`` if omitted.
            cancel_event: When set, the loop stops with DeliveryCancelledError.
            tracker: Optional state object updated after every attempt.
        """
        self.policy = policy
        self._backoff = backoff or BackoffPolicy(policy)
        self._cancel_event = cancel_event
        self.tracker = tracker

    @property
    def cancelled(self) -> bool:
        """Whether the cancel event has fired."""
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _wait(self, retry_state: RetryCallState) -> float:
        # attempt_number is 1-based; backoff attempts are 0-based
        delay = self._backoff.delay_with_jitter(retry_state.attempt_number - 1)
        return delay.total_seconds()

    async def _sleep(self, seconds: float) -> None:
        if self._cancel_event is None:
            await asyncio.sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=seconds)
        except TimeoutError:
            return
        raise DeliveryCancelledError("delivery retry cancelled during backoff")

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        seconds = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if self.tracker is not None:
            self.tracker.next_retry_at = utcnow() + timedelta(seconds=seconds)
        logger.warning(
            "Retrying delivery",
            attempt=retry_state.attempt_number,
            max_attempts=self.policy.max_attempts,
            delay_seconds=round(seconds, 3),
            error=str(exc) if exc else None,
        )

    async def execute(self, operation: DeliveryOperation) -> DeliveryOutcome:
        """Run ``operation`` until it succeeds or attempts run out.

        Args:
            operation: Async callable performing one delivery attempt. It may
                return an unsuccessful DeliveryOutcome or raise DeliveryError.

        Returns:
            The first successful DeliveryOutcome.

        Raises:
            DeliveryError: A non-retryable failure, unchanged.
            MaxAttemptsExceededError: Every attempt failed; carries the last
                failure.
            DeliveryCancelledError: The cancel event fired.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable_error),
            sleep=self._sleep,
            before_sleep=self._before_sleep,
            reraise=False,
        )

        outcome: DeliveryOutcome | None = None
        try:
            async for attempt in retrying:
                with attempt:
                    if self.cancelled:
                        raise DeliveryCancelledError("delivery retry cancelled")
                    outcome = await self._attempt(operation)
        except RetryError as e:
            last_error = e.last_attempt.exception()
            assert isinstance(last_error, DeliveryError)
            logger.warning(
                "Delivery attempts exhausted",
                attempts=self.policy.max_attempts,
                error=str(last_error),
            )
            raise MaxAttemptsExceededError(self.policy.max_attempts, last_error) from last_error

        assert outcome is not None
        return outcome

    async def _attempt(self, operation: DeliveryOperation) -> DeliveryOutcome:
        try:
            outcome = await operation()
        except DeliveryError as e:
            self._record_failure(str(e))
            raise

        if not outcome.success:
            error = outcome_error(outcome)
            self._record_failure(str(error))
            raise error

        if self.tracker is not None:
            self.tracker.record_success()
        return outcome

    def _record_failure(self, message: str) -> None:
        if self.tracker is not None:
            self.tracker.record_failure(message, next_retry_at=None)
