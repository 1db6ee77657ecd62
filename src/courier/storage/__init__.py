"""Persistence collaborators for Courier.

The SQL repository lives in the owning service; this package defines the
protocols it implements and an in-memory store for tests.
"""

from .base import FilterSource, RetryStore
from .memory import DEFAULT_CLAIM_TIMEOUT, InMemoryWebhookStore

__all__ = [
    "DEFAULT_CLAIM_TIMEOUT",
    "FilterSource",
    "InMemoryWebhookStore",
    "RetryStore",
]
