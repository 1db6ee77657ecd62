"""Courier: reliable webhook filtering and delivery.

Decides whether an incoming webhook event should proceed, delivers it with
bounded in-request retries, and keeps retrying failed events in the
background with exponential backoff until they succeed or fail permanently.

Quick Start:
    from courier import RetryPolicy, RetryableEvent, get_settings
    from courier.storage import InMemoryWebhookStore
    from courier.webhooks import HttpDeliverer, WebhookEventService
    from courier.retry import RetryWorker

    settings = get_settings()
    store = InMemoryWebhookStore()
    deliverer = HttpDeliverer(settings.delivery_timeout_seconds)

    service = WebhookEventService.from_settings(store, deliverer, settings)
    event = await service.handle_event(
        RetryableEvent(webhook_id="whk_1", payload={"action": "opened"})
    )

    worker = RetryWorker(store, deliverer, settings.retry_policy)
    await worker.start(settings.poll_interval)

Components:
    - FilterEvaluator: AND within logic groups, OR across groups
    - BoundedRetryExecutor: immediate retries inside one request
    - RetryWorker: persisted retries driven by a polling loop
"""

__version__ = "0.1.0"

# Configuration
from .config import RetrySettings, Settings, get_settings

# Exceptions
from .exceptions import (
    CourierError,
    DeliveryCancelledError,
    DeliveryError,
    FilterEvaluationError,
    MaxAttemptsExceededError,
    NotFoundError,
    StorageError,
)

# Logging
from .logging import (
    bind_context,
    clear_context,
    configure_logging,
    event_context,
    get_logger,
    unbind_context,
)

# Models
from .models import (
    DeliveryOutcome,
    EventStatus,
    FailureKind,
    FilterOperator,
    FilterOutcome,
    FilterRule,
    RetryableEvent,
    RetryPolicy,
    RetryStatistics,
    WebhookTarget,
)

__all__ = [
    # Version
    "__version__",
    # Configuration
    "RetrySettings",
    "Settings",
    "get_settings",
    # Exceptions
    "CourierError",
    "NotFoundError",
    "StorageError",
    "FilterEvaluationError",
    "DeliveryError",
    "MaxAttemptsExceededError",
    "DeliveryCancelledError",
    # Logging
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "unbind_context",
    "event_context",
    # Models
    "DeliveryOutcome",
    "EventStatus",
    "FailureKind",
    "FilterOperator",
    "FilterOutcome",
    "FilterRule",
    "RetryPolicy",
    "RetryStatistics",
    "RetryableEvent",
    "WebhookTarget",
]
