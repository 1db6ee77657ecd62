"""Webhook delivery for Courier.

Example:
    ```python
    from courier.webhooks import HttpDeliverer, WebhookEventService

    service = WebhookEventService(store, HttpDeliverer(), RetryPolicy.default())
    event = await service.handle_event(event)
    ```
"""

from .base import Deliverer
from .delivery import EXECUTION_ID_HEADER, HttpDeliverer
from .service import WebhookEventService

__all__ = [
    "EXECUTION_ID_HEADER",
    "Deliverer",
    "HttpDeliverer",
    "WebhookEventService",
]
