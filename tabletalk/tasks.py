"""
Celery Tasks
Background fan-out of order events to the per-tenant Redis channel that the
real-time push layer subscribes to.
"""

import json
import logging
import time
from datetime import datetime, timezone

import redis

from tabletalk.celery_worker import celery_app
from tabletalk.core.config import get_settings

logger = logging.getLogger(__name__)


def tenant_channel(tenant_id: str) -> str:
    return f"tenant-{tenant_id}"


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=2,
    autoretry_for=(redis.RedisError,),
    retry_backoff=True
)
def publish_order_event(self, tenant_id: str, event: str, payload: dict) -> dict:
    """
    Publish one order event.

    Args:
        tenant_id: Channel owner
        event: ORDER_CREATED, ORDER_UPDATED or ORDER_STATUS_CHANGED
        payload: Order summary (id, orderNumber, status, ...)

    Returns:
        dict: Number of subscribers that received it
    """
    task_id = self.request.id
    start_time = time.time()

    message = json.dumps({
        'event': event,
        'data': payload,
        'publishedAt': datetime.now(timezone.utc).isoformat(),
    })

    client = redis.Redis.from_url(get_settings().redis_url)
    try:
        receivers = client.publish(tenant_channel(tenant_id), message)
    finally:
        client.close()

    elapsed = round(time.time() - start_time, 3)
    logger.info(
        f"📣 Task {task_id}: {event} for order {payload.get('orderNumber')} "
        f"→ {receivers} subscriber(s) in {elapsed}s"
    )
    return {'success': True, 'receivers': receivers, 'task_id': task_id}

