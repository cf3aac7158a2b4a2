# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and the scheduled
# notification jobs.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (email queue, reconciliation, daily digest)
# - config.py: Worker-specific settings and the beat schedule
#
# Usage:
#   # Start worker with the embedded beat scheduler
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Submit task (from a shell or another service)
#   from workers.tasks import process_email_queue
#   result = process_email_queue.delay()
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
