"""
Celery app for order events
Redis carries both the broker queue and task results.
"""

from celery import Celery

from tabletalk.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'tabletalk_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['tabletalk.tasks']  # Module containing our tasks
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Events are fire-and-forget; keep results briefly for debugging
    result_expires=600,

    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
