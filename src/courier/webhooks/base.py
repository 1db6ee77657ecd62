"""Deliverer protocol."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol, runtime_checkable

from courier.models import DeliveryOutcome, RetryableEvent, WebhookTarget


@runtime_checkable
class Deliverer(Protocol):
    """Performs a single delivery attempt of an event to its webhook.

    Implementations either return a DeliveryOutcome (successful or not) or
    raise DeliveryError carrying a FailureKind. They never retry themselves.
    """

    @abstractmethod
    async def deliver(self, webhook: WebhookTarget, event: RetryableEvent) -> DeliveryOutcome:
        """Deliver ``event`` to ``webhook`` once."""
        ...
