"""
Celery Worker Configuration
Sets up Celery with Redis as message broker and result backend.

Run a worker and the scheduler with:
    celery -A foodapp.celery_worker worker --loglevel=info
    celery -A foodapp.celery_worker beat --loglevel=info
"""

from celery import Celery
from celery.schedules import crontab

from foodapp.core.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    'foodapp_worker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['foodapp.tasks']  # Module containing our tasks
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

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,

    beat_schedule={
        'cleanup-stale-carts': {
            'task': 'foodapp.tasks.cleanup_stale_carts',
            'schedule': crontab(hour=3, minute=0),
        },
        'daily-sales-report': {
            'task': 'foodapp.tasks.send_daily_sales_report',
            'schedule': crontab(hour=23, minute=55),
        },
    },
)


if __name__ == '__main__':
    celery_app.start()
