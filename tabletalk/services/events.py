"""
Order event emission.

Events are queued on Celery only after the transaction that produced them
has committed. A broker outage must never fail a guest's turn, so queueing
errors are logged and dropped here.
"""

import enum
import logging
from typing import Optional

from kombu.exceptions import OperationalError

from tabletalk.core.config import get_settings
from tabletalk.models import Order

logger = logging.getLogger(__name__)


class OrderEvent(str, enum.Enum):
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_UPDATED = "ORDER_UPDATED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"


def order_event_payload(order: Order, table_label: Optional[str] = None) -> dict:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status.value,
        "paymentStatus": order.payment_status.value,
        "tableLabel": table_label,
        "total": order.total,
    }


def emit_order_event(tenant_id: str, event: OrderEvent, payload: dict) -> None:
    """Queue an event for the tenant channel, if realtime events are enabled."""
    if not get_settings().realtime_events_enabled:
        logger.debug(f"Realtime events disabled, skipping {event.value}")
        return

    # Imported lazily so the worker module is only loaded when events flow
    from tabletalk.tasks import publish_order_event

    try:
        publish_order_event.delay(tenant_id, event.value, payload)
    except OperationalError as e:
        logger.warning(f"Could not queue {event.value} for {payload.get('orderNumber')}: {e}")
