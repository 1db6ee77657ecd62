"""Data models for Courier.

Filtering:
    - FilterRule: One declarative condition on a payload
    - FilterOperator: Supported comparisons
    - FilterOutcome: Result of evaluating a webhook's rules

Delivery:
    - FailureKind: Closed classification of delivery failures
    - DeliveryOutcome: Result of one delivery attempt
    - RetryPolicy: Immutable backoff configuration
    - InlineRetryState: Non-persisted tracker for bounded retries

Events:
    - RetryableEvent: Webhook event with persisted retry state
    - EventStatus: Event lifecycle status
    - WebhookTarget: Webhook registration as seen by the delivery core
    - RetryStatistics: Aggregate retry figures per webhook
"""

from .base import JsonValue, generate_id, utcnow
from .delivery import (
    MAX_RESPONSE_BODY,
    DeliveryOutcome,
    FailureKind,
    InlineRetryState,
    RetryPolicy,
)
from .event import EventStatus, RetryableEvent, RetryStatistics, WebhookTarget
from .filter import FilterOperator, FilterOutcome, FilterRule

__all__ = [
    # Base
    "JsonValue",
    "generate_id",
    "utcnow",
    # Filtering
    "FilterOperator",
    "FilterOutcome",
    "FilterRule",
    # Delivery
    "MAX_RESPONSE_BODY",
    "DeliveryOutcome",
    "FailureKind",
    "InlineRetryState",
    "RetryPolicy",
    # Events
    "EventStatus",
    "RetryStatistics",
    "RetryableEvent",
    "WebhookTarget",
]
