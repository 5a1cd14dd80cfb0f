"""
Celery tasks for scheduled processing.

- celery_app.py: Celery application configuration and beat schedule
- processing_tasks.py: Task definitions (process_mailbox)
"""

from claim_detection.tasks.celery_app import celery_app
from claim_detection.tasks.processing_tasks import process_mailbox_task, run_pipeline_once

__all__ = [
    "celery_app",
    "process_mailbox_task",
    "run_pipeline_once",
]
