"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from courier.models import (
    DeliveryOutcome,
    EventStatus,
    RetryableEvent,
    RetryPolicy,
    RetryStatistics,
    WebhookTarget,
    utcnow,
)
from courier.storage import InMemoryWebhookStore


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Policy with millisecond delays so retry tests run quickly."""
    return RetryPolicy(
        max_attempts=3,
        base_delay=timedelta(milliseconds=1),
        max_delay=timedelta(milliseconds=10),
        multiplier=2.0,
        jitter_fraction=0.0,
    )


@pytest.fixture
def webhook() -> WebhookTarget:
    """An enabled webhook allowing three persisted retries."""
    return WebhookTarget(id="whk_test123", url="https://example.com/hook", max_retries=3)


@pytest.fixture
def store() -> InMemoryWebhookStore:
    """Empty in-memory store."""
    return InMemoryWebhookStore()


@pytest.fixture
def mock_store(webhook: WebhookTarget) -> AsyncMock:
    """Mock RetryStore returning the sample webhook."""
    storage = AsyncMock()
    storage.fetch_due_retries = AsyncMock(return_value=[])
    storage.lookup_webhook = AsyncMock(return_value=webhook)
    storage.mark_processed = AsyncMock()
    storage.mark_permanently_failed = AsyncMock()
    storage.schedule_retry = AsyncMock()
    storage.save_event = AsyncMock()
    storage.mark_filtered = AsyncMock()
    storage.get_event = AsyncMock(return_value=None)
    storage.rules_for_webhook = AsyncMock(return_value=[])
    storage.get_retry_statistics = AsyncMock(
        return_value=RetryStatistics(webhook_id=webhook.id)
    )
    return storage


@pytest.fixture
def mock_deliverer() -> AsyncMock:
    """Mock Deliverer that always succeeds."""
    deliverer = AsyncMock()
    deliverer.deliver = AsyncMock(
        return_value=DeliveryOutcome.succeeded(status_code=200, execution_id="exec_1")
    )
    return deliverer


@pytest.fixture
def make_failed_event():
    """Factory for events waiting on a persisted retry."""

    def factory(
        webhook_id: str = "whk_test123",
        retry_count: int = 0,
        max_retries: int = 3,
        due_in: timedelta = timedelta(seconds=-1),
        **overrides: object,
    ) -> RetryableEvent:
        fields: dict[str, object] = {
            "webhook_id": webhook_id,
            "status": EventStatus.FAILED,
            "payload": {"action": "opened"},
            "retry_count": retry_count,
            "max_retries": max_retries,
            "next_retry_at": utcnow() + due_in,
            "retry_error": "HTTP 503",
        }
        fields.update(overrides)
        return RetryableEvent.model_validate(fields)

    return factory
