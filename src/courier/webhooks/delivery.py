"""HTTP delivery of webhook events.

Posts the event payload as JSON and turns the response (or the transport
error) into a DeliveryOutcome with a FailureKind:
- 2xx: success
- 5xx: server_error, 429: rate_limited, 401/403: auth_failed
- other 4xx: validation_failed
- timeouts: timeout, other transport errors: connection_failed
"""

from __future__ import annotations

import json
import logging

import httpx

from courier.models import (
    MAX_RESPONSE_BODY,
    DeliveryOutcome,
    FailureKind,
    RetryableEvent,
    WebhookTarget,
)
from courier.retry.classifier import kind_for_status

logger = logging.getLogger(__name__)

EXECUTION_ID_HEADER = "X-Execution-Id"


class HttpDeliverer:
    """Delivers events over HTTP with httpx.

    Example:
        ```python
        deliverer = HttpDeliverer(timeout_seconds=10.0)
        outcome = await deliverer.deliver(webhook, event)
        ```
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the deliverer.

        Args:
            timeout_seconds: HTTP request timeout.
            client: Shared client to reuse; a short-lived client is created
                per delivery when omitted.
        """
        self._timeout = timeout_seconds
        self._client = client

    def _headers(self, event: RetryableEvent) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Courier-Event-Id": event.id,
            "X-Courier-Webhook-Id": event.webhook_id,
            "X-Courier-Retry-Count": str(event.retry_count),
        }

    async def _post(self, url: str, body: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                url, content=body, headers=headers, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(url, content=body, headers=headers)

    async def deliver(self, webhook: WebhookTarget, event: RetryableEvent) -> DeliveryOutcome:
        """Deliver an event once.

        Args:
            webhook: Target webhook.
            event: Event whose payload is posted.

        Returns:
            DeliveryOutcome; transport failures are returned, not raised.
        """
        body = json.dumps(event.payload, default=str)

        try:
            response = await self._post(webhook.url, body, self._headers(event))
        except httpx.TimeoutException:
            logger.warning("Webhook delivery timed out: %s to %s", event.id, webhook.url)
            return DeliveryOutcome.failed(FailureKind.TIMEOUT, error="Request timeout")
        except httpx.RequestError as e:
            logger.warning("Webhook connection failed: %s to %s: %s", event.id, webhook.url, e)
            return DeliveryOutcome.failed(
                FailureKind.CONNECTION_FAILED, error=f"Connection failed: {e}"
            )

        text = response.text[:MAX_RESPONSE_BODY] if response.text else None
        kind = kind_for_status(response.status_code)

        if kind is None:
            logger.info(
                "Webhook delivered: %s to %s (status %d)",
                event.id,
                webhook.url,
                response.status_code,
            )
            return DeliveryOutcome.succeeded(
                status_code=response.status_code,
                response_body=text,
                execution_id=response.headers.get(EXECUTION_ID_HEADER),
            )

        logger.warning(
            "Webhook rejected: %s to %s (status %d)",
            event.id,
            webhook.url,
            response.status_code,
        )
        return DeliveryOutcome.failed(
            kind,
            status_code=response.status_code,
            error=f"HTTP {response.status_code}: {response.text[:200]}",
            response_body=text,
        )
