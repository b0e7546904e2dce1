"""
Product System Webhook — notification dispatcher.

After a waybill is created, edited, counted (when something changed) or
closed, the external product system is told which waybill to re-read:

    POST <webhook_url>  {"incomingId": "<waybill uuid>", "secret": "<shared secret>"}

Delivery is best effort. A failed call is logged and reported back as
``False``; it never rolls back or fails the operation that triggered it,
and nothing is retried.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID

import httpx
import structlog

from core.config import Settings
from core.errors import DeliveryFailure

logger = structlog.get_logger()


class WaybillEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    COUNTED = "counted"
    CLOSED = "closed"


@dataclass
class DeliveryRecord:
    waybill_id: UUID
    event: WaybillEvent
    delivered: bool
    status_code: int | None = None
    error: str | None = None
    sent_at: datetime = field(default_factory=datetime.utcnow)


class WebhookNotifier:
    """Posts waybill-change notifications to the product system."""

    def __init__(
        self,
        url: str,
        secret: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookNotifier":
        return cls(
            url=settings.webhook_url,
            secret=settings.webhook_secret,
            timeout=settings.webhook_timeout_seconds,
        )

    def payload(self, waybill_id: UUID) -> dict:
        return {"incomingId": str(waybill_id), "secret": self.secret}

    async def _post(self, waybill_id: UUID) -> httpx.Response:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=self.payload(waybill_id))
                response.raise_for_status()
                return response
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise DeliveryFailure(f"{type(e).__name__}: {e}") from e

    async def notify(self, waybill_id: UUID, event: WaybillEvent) -> DeliveryRecord:
        """Fire the webhook and log the outcome. Never raises."""
        if not self.url:
            logger.info("webhook.disabled", waybill_id=str(waybill_id), event=event.value)
            return DeliveryRecord(waybill_id=waybill_id, event=event, delivered=False, error="disabled")

        try:
            response = await self._post(waybill_id)
        except DeliveryFailure as e:
            logger.error(
                "webhook.delivery_failed",
                waybill_id=str(waybill_id),
                event=event.value,
                url=self.url,
                error=e.message,
            )
            return DeliveryRecord(waybill_id=waybill_id, event=event, delivered=False, error=e.message)

        logger.info(
            "webhook.delivered",
            waybill_id=str(waybill_id),
            event=event.value,
            status_code=response.status_code,
        )
        return DeliveryRecord(
            waybill_id=waybill_id,
            event=event,
            delivered=True,
            status_code=response.status_code,
        )
