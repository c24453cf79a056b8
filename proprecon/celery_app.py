"""
PropRecon - Celery Configuration

Celery configuration for background task processing.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from proprecon.config import settings


# Create Celery app
celery_app = Celery(
    'proprecon',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['proprecon.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone=settings.timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=1800,  # 30 minutes
    task_soft_time_limit=1500,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Beat schedule for periodic tasks
    beat_schedule={
        # Move ended preview reconciliations to draft once a day
        'auto-finalize-previews': {
            'task': 'proprecon.tasks.celery_tasks.auto_finalize_previews_task',
            'schedule': crontab(hour=settings.auto_finalize_hour, minute=0),
        },
    },
)
