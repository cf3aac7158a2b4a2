# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Scheduled notification jobs (see CeleryConfig.beat_schedule).
#
# Tasks:
# - process_email_queue: Deliver pending rows of email_notifications
# - reconcile_failed_emails: Put failed emails with attempts left back to pending
# - generate_daily_digest: Queue the AR / PM daily digest emails
#
# Each run builds its own Supabase and HTTP clients and closes them after.
# =============================================================================

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import httpx
from celery import shared_task

from app.config import get_settings
from core.services.digest_service import DailyDigestService
from core.services.email_service import EmailQueueProcessor, ResendEmailSender
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


@contextmanager
def task_clients() -> Iterator[tuple[SupabaseClient, httpx.Client]]:
    """Supabase and HTTP clients scoped to one task run."""
    settings = get_settings()
    supabase = SupabaseClient.from_settings(settings)
    http_client = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        yield supabase, http_client
    finally:
        http_client.close()
        supabase.close()


def build_queue_processor(supabase: SupabaseClient, http_client: httpx.Client) -> EmailQueueProcessor:
    settings = get_settings()
    return EmailQueueProcessor(
        supabase,
        ResendEmailSender.from_settings(http_client, settings),
        batch_size=settings.EMAIL_QUEUE_BATCH_SIZE,
        max_attempts=settings.EMAIL_MAX_ATTEMPTS,
    )


# =============================================================================
# Email Queue
# =============================================================================

@shared_task(bind=True, name="workers.tasks.process_email_queue")
def process_email_queue(self) -> dict[str, Any]:
    """
    Deliver up to EMAIL_QUEUE_BATCH_SIZE pending emails.

    Returns:
        Dict with success, message, processed and failed counts
    """
    try:
        with task_clients() as (supabase, http_client):
            result = build_queue_processor(supabase, http_client).process_pending()
        return result.model_dump()

    except Exception as e:
        logger.exception(f"Email queue processing failed: {e}")
        return {"success": False, "error": str(e)}


@shared_task(bind=True, name="workers.tasks.reconcile_failed_emails")
def reconcile_failed_emails(self) -> dict[str, Any]:
    """
    Requeue failed emails whose attempts are below EMAIL_MAX_ATTEMPTS.

    The next process_email_queue run retries them.
    """
    try:
        with task_clients() as (supabase, http_client):
            requeued = build_queue_processor(supabase, http_client).requeue_failed()
        return {"success": True, "requeued": requeued}

    except Exception as e:
        logger.exception(f"Email reconciliation failed: {e}")
        return {"success": False, "error": str(e)}


# =============================================================================
# Daily Digest
# =============================================================================

@shared_task(bind=True, name="workers.tasks.generate_daily_digest")
def generate_daily_digest(self) -> dict[str, Any]:
    """
    Run the digest database functions; delivery happens through the queue.
    """
    try:
        with task_clients() as (supabase, _):
            result = DailyDigestService(supabase).generate()
        return result.model_dump(mode="json", by_alias=True)

    except Exception as e:
        logger.exception(f"Daily digest generation failed: {e}")
        return {"success": False, "error": str(e)}
