"""Delivery retry: backoff, failure classification, bounded and persisted retries.

Example:
    ```python
    from courier.models import RetryPolicy
    from courier.retry import BoundedRetryExecutor, RetryWorker

    # Immediate retries inside one request
    executor = BoundedRetryExecutor(RetryPolicy(max_attempts=3))
    outcome = await executor.execute(lambda: deliverer.deliver(webhook, event))

    # Persisted retries, polled in the background
    worker = RetryWorker(store, deliverer, RetryPolicy.default())
    await worker.process_retries()
    ```
"""

from .backoff import BackoffPolicy, calculate_delay
from .classifier import (
    RETRYABLE_KINDS,
    classify,
    is_retryable,
    is_retryable_error,
    kind_for_status,
)
from .executor import BoundedRetryExecutor, outcome_error
from .worker import WEBHOOK_UNAVAILABLE, RetryWorker

__all__ = [
    "RETRYABLE_KINDS",
    "WEBHOOK_UNAVAILABLE",
    "BackoffPolicy",
    "BoundedRetryExecutor",
    "RetryWorker",
    "calculate_delay",
    "classify",
    "is_retryable",
    "is_retryable_error",
    "kind_for_status",
    "outcome_error",
]
