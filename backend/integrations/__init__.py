"""
Outbound integrations.

The product system owns stock levels; this service only tells it which
waybill changed (see ``integrations.webhook``).
"""

from integrations.webhook import DeliveryRecord, WaybillEvent, WebhookNotifier

__all__ = [
    "DeliveryRecord",
    "WaybillEvent",
    "WebhookNotifier",
]
