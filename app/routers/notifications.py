# =============================================================================
# app/routers/notifications.py - Notification Dispatch Endpoints
# =============================================================================
# POST /notifications/email-queue/process - Drain pending queued emails (admin)
# POST /notifications/teams               - Task status card to Teams
# POST /notifications/task-assignment     - Task assignment alert email
# POST /notifications/daily-digest        - Generate the daily digests (admin)
#
# The queue and the digest also run on the Celery beat schedule.
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth import CallerIdentity, get_current_user, require_admin
from app.dependencies import HttpClientDep, SettingsDep, SupabaseDep
from core.models.notification import (
    DeliveryResult,
    DigestResult,
    EmailQueueResult,
    TaskAssignmentEmailRequest,
    TeamsNotificationPayload,
)
from core.services.digest_service import DailyDigestService
from core.services.email_service import (
    EmailQueueProcessor,
    ResendEmailSender,
    TaskAssignmentNotifier,
)
from core.services.teams_service import TeamsNotifier

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/notifications/email-queue/process", response_model=EmailQueueResult)
def process_email_queue(
    supabase: SupabaseDep,
    http_client: HttpClientDep,
    settings: SettingsDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """
    Deliver pending emails now instead of waiting for the scheduled run.

    Without RESEND_API_KEY emails are only logged and marked sent.
    """
    processor = EmailQueueProcessor(
        supabase,
        ResendEmailSender.from_settings(http_client, settings),
        batch_size=settings.EMAIL_QUEUE_BATCH_SIZE,
        max_attempts=settings.EMAIL_MAX_ATTEMPTS,
    )
    logger.info(f"Email queue run requested by {caller.id} (simulate={processor.simulate_mode})")
    return processor.process_pending()


@router.post("/notifications/teams", response_model=DeliveryResult)
def send_teams_notification(
    payload: TeamsNotificationPayload,
    http_client: HttpClientDep,
    settings: SettingsDep,
    caller: CallerIdentity = Depends(get_current_user),
):
    """Post a task status change card to the Teams channel."""
    notifier = TeamsNotifier(http_client, settings.MS_TEAMS_WEBHOOK_URL, settings.TEAMS_TASK_URL)
    return notifier.send(payload)


@router.post("/notifications/task-assignment", response_model=DeliveryResult)
def send_task_assignment_email(
    request: TaskAssignmentEmailRequest,
    http_client: HttpClientDep,
    settings: SettingsDep,
    caller: CallerIdentity = Depends(get_current_user),
):
    """Email the admin inbox about a new task assignment."""
    notifier = TaskAssignmentNotifier(
        ResendEmailSender.from_settings(http_client, settings),
        admin_email=settings.ADMIN_NOTIFICATION_EMAIL,
    )
    return notifier.send(request)


@router.post("/notifications/daily-digest", response_model=DigestResult, response_model_by_alias=True)
def generate_daily_digest(
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """Queue today's AR and PM digest emails."""
    return DailyDigestService(supabase).generate()
