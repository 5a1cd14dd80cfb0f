"""
Celery application configuration for scheduled claim detection.

This module initializes the Celery app with Redis broker and result backend,
and registers the periodic processing run with Celery beat.
Tasks are defined in processing_tasks.py.
"""

from celery import Celery
from celery.signals import setup_logging

from claim_detection.config import settings
from claim_detection.logging_config import configure_logging

# Initialize Celery app
celery_app = Celery(
    "claim_detection",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    # Task execution
    task_time_limit=settings.CELERY_TASK_TIME_LIMIT,  # Hard limit (kills task)
    task_soft_time_limit=settings.CELERY_TASK_TIME_LIMIT - 30,  # Soft limit (raises exception)

    # Worker settings
    worker_concurrency=settings.CELERY_WORKER_CONCURRENCY,
    worker_prefetch_multiplier=1,  # Fetch one task at a time (runs are long)
    worker_max_tasks_per_child=100,

    # Serialization
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Result backend
    result_expires=3600,
    result_extended=True,

    # Task tracking
    task_track_started=True,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

if settings.ENABLE_SCHEDULED_PROCESSING:
    celery_app.conf.beat_schedule = {
        "process-mailbox": {
            "task": "process_mailbox",
            "schedule": settings.CHECK_INTERVAL_MINUTES * 60.0,
            # A run still in flight makes the next one redundant
            "options": {"expires": settings.CHECK_INTERVAL_MINUTES * 60.0},
        },
    }


@setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the service log format in workers instead of Celery's own handlers."""
    configure_logging(settings)


# Auto-discover tasks from tasks module
celery_app.autodiscover_tasks(["claim_detection.tasks"])
