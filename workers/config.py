# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers, including the beat schedule for the
# notification jobs.
# =============================================================================

from celery.schedules import crontab

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    broker_url = settings.REDIS_URL
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    task_acks_late = True

    # Only prefetch one task at a time
    worker_prefetch_multiplier = 1

    # Task results expire after 1 hour
    result_expires = 3600

    # Default task timeout (5 minutes)
    task_time_limit = 300

    # Soft timeout (4 minutes) - gives task time to clean up
    task_soft_time_limit = 240

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "notifications": {
            "exchange": "notifications",
            "routing_key": "notifications",
        },
    }

    task_routes = {
        "workers.tasks.process_email_queue": {"queue": "notifications"},
        "workers.tasks.reconcile_failed_emails": {"queue": "notifications"},
        "workers.tasks.generate_daily_digest": {"queue": "notifications"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Schedule (celery beat)
    # -------------------------------------------------------------------------

    beat_schedule = {
        # Failed emails with attempts left go back to pending first
        "reconcile-failed-emails": {
            "task": "workers.tasks.reconcile_failed_emails",
            "schedule": crontab(minute="*/5"),
        },
        "process-email-queue": {
            "task": "workers.tasks.process_email_queue",
            "schedule": crontab(minute="*"),
        },
        # 03:30 UTC is 9:00 in India (IST)
        "daily-task-digest": {
            "task": "workers.tasks.generate_daily_digest",
            "schedule": crontab(hour=3, minute=30),
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = "UTC"
    enable_utc = True
