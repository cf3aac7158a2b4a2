# =============================================================================
# core/services/email_service.py - Email Delivery
# =============================================================================
# Email dispatchers built on the Resend HTTP API:
# - ResendEmailSender: one POST per message, maps the HTTP outcome
# - EmailQueueProcessor: drains pending rows of email_notifications and
#   records sent/failed state; requeue_failed() is the reconciliation pass
#   that puts failed rows back to pending until they run out of attempts
# - TaskAssignmentNotifier: immediate task assignment alert to the admin
#
# Without a Resend key the queue runs in simulate mode: emails are logged
# and marked sent.
# =============================================================================

import html
import logging
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import httpx
from pydantic import ValidationError

from app.exceptions import DeliveryFailedError, DeliveryNotConfiguredError, InvalidRequestError
from core.models.notification import (
    DeliveryResult,
    EmailNotification,
    EmailQueueResult,
    EmailStatus,
    TaskAssignmentEmailRequest,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import utc_now, utc_now_iso

logger = logging.getLogger(__name__)

PROVIDER = "Resend"
TASK_ASSIGNMENT_TIMEZONE = ZoneInfo("America/Los_Angeles")


class ResendEmailSender:
    """
    Sends single emails through the Resend API.

    Example:
        sender = ResendEmailSender(http_client, api_key="re_...", sender="App <a@b.c>")
        sender.send("to@example.com", "Subject", "<p>Hi</p>", "Hi")
    """

    def __init__(
        self,
        http_client: httpx.Client,
        api_key: str,
        sender: str,
        api_url: str = "https://api.resend.com/emails",
    ):
        self._http = http_client
        self._api_key = api_key
        self._sender = sender
        self._api_url = api_url

    @classmethod
    def from_settings(cls, http_client: httpx.Client, settings: Any) -> "ResendEmailSender | None":
        """Build a sender, or None when RESEND_API_KEY isn't set."""
        if not settings.RESEND_API_KEY:
            return None
        return cls(
            http_client,
            api_key=settings.RESEND_API_KEY,
            sender=settings.EMAIL_FROM,
            api_url=settings.RESEND_API_URL,
        )

    def send(
        self,
        to: str,
        subject: str,
        body_html: str | None,
        body_text: str | None = None,
    ) -> dict[str, Any]:
        """
        Send one email.

        Returns:
            Resend response JSON (contains the message id)

        Raises:
            DeliveryFailedError: Non-2xx response or transport error; the
                response body (or exception text) is in details["error"]
        """
        payload = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": body_html,
        }
        if body_text:
            payload["text"] = body_text

        try:
            response = self._http.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as e:
            raise DeliveryFailedError(PROVIDER, str(e)) from e

        if not response.is_success:
            raise DeliveryFailedError(PROVIDER, response.text, status=response.status_code)

        try:
            return response.json()
        except ValueError:
            return {}


class EmailQueueProcessor:
    """
    Processes the email_notifications queue.

    Each pending row gets one delivery attempt per run. Retries only happen
    when a later run (after requeue_failed) picks the row up again.
    """

    def __init__(
        self,
        supabase: SupabaseClient,
        sender: ResendEmailSender | None,
        batch_size: int = 10,
        max_attempts: int = 3,
    ):
        self._supabase = supabase
        self._sender = sender
        self._batch_size = batch_size
        self._max_attempts = max_attempts

    @property
    def simulate_mode(self) -> bool:
        return self._sender is None

    def process_pending(self) -> EmailQueueResult:
        """
        Deliver up to batch_size pending emails, oldest first.

        Every fetched row ends the run as sent or failed; a malformed row or
        a failed status update only affects that row.

        Raises:
            SupabaseClientError: If the queue can't be read
        """
        rows = self._supabase.fetch_emails_by_status(EmailStatus.PENDING.value, limit=self._batch_size)
        if not rows:
            return EmailQueueResult(message="No pending emails")

        logger.info(f"Processing {len(rows)} pending email(s)")

        processed = 0
        failed = 0
        for row in rows:
            try:
                email = EmailNotification.model_validate(row)
                self._deliver(email)
                self._mark_sent(email)
            except DeliveryFailedError as e:
                error_text = e.details.get("error") or e.message
                logger.error(f"Failed to send email {row.get('id')}: {error_text}")
                self._mark_failed(row, error_text)
                failed += 1
            except ValidationError as e:
                logger.error(f"Malformed email row {row.get('id')}: {e}")
                self._mark_failed(row, f"Invalid email row: {e.error_count()} validation error(s)")
                failed += 1
            except SupabaseClientError as e:
                logger.error(f"Failed to record delivery of email {row.get('id')}: {e.message}")
                self._mark_failed(row, e.message)
                failed += 1
            else:
                processed += 1

        return EmailQueueResult(
            message=f"Processed {processed} email(s), {failed} failed",
            processed=processed,
            failed=failed,
        )


    def requeue_failed(self) -> int:
        """
        Move failed emails that still have attempts left back to pending.

        Returns:
            Number of emails requeued
        """
        rows = self._supabase.fetch_emails_by_status(
            EmailStatus.FAILED.value,
            limit=self._batch_size,
            max_attempts=self._max_attempts,
        )
        requeued = 0
        for row in rows:
            email = EmailNotification.model_validate(row)
            self._supabase.update_email(email.id, {"status": EmailStatus.PENDING.value})
            requeued += 1

        if requeued:
            logger.info(f"Requeued {requeued} failed email(s) for another attempt")
        return requeued

    def _deliver(self, email: EmailNotification) -> None:
        if self._sender is None:
            logger.info(
                f"📧 Email to be sent (simulate mode): to={email.recipient_email}, "
                f"subject={email.subject!r}, type={email.email_type}, metadata={email.metadata}"
            )
            return

        result = self._sender.send(
            to=email.recipient_email,
            subject=email.subject,
            body_html=email.body_html,
            body_text=email.body_text,
        )
        logger.info(f"✅ Email sent successfully: {result}")

    def _mark_sent(self, email: EmailNotification) -> None:
        self._supabase.update_email(email.id, {
            "status": EmailStatus.SENT.value,
            "sent_at": utc_now_iso(),
            "attempts": email.attempts + 1,
        })

    def _mark_failed(self, row: dict[str, Any], error_message: str) -> None:
        """Record a failed attempt from the raw row, which may not have validated."""
        email_id = row.get("id")
        if not email_id:
            logger.error(f"Email row without id can't be marked failed: {error_message}")
            return

        attempts = row.get("attempts")
        try:
            self._supabase.update_email(email_id, {
                "status": EmailStatus.FAILED.value,
                "error_message": error_message,
                "attempts": (attempts if isinstance(attempts, int) else 0) + 1,
            })
        except SupabaseClientError as e:
            logger.error(f"Failed to mark email {email_id} as failed: {e.message}")


def format_due_date(value: str) -> str:
    """
    Format an ISO date for humans ("2025-01-15" -> "January 15, 2025").

    Unparseable values are returned unchanged.
    """
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


class TaskAssignmentNotifier:
    """Sends the task assignment alert to the admin inbox."""

    def __init__(self, sender: ResendEmailSender | None, admin_email: str):
        self._sender = sender
        self._admin_email = admin_email

    def send(self, request: TaskAssignmentEmailRequest) -> DeliveryResult:
        """
        Raises:
            InvalidRequestError: If any field is missing
            DeliveryNotConfiguredError: If no Resend key is configured
            DeliveryFailedError: If Resend rejects the message
        """
        fields = (request.assigned_user_name, request.project_name, request.task_name, request.due_date)
        if not all(field and field.strip() for field in fields):
            raise InvalidRequestError("All fields are required")

        if self._sender is None:
            raise DeliveryNotConfiguredError(PROVIDER, "RESEND_API_KEY")

        logger.info(f"Task assignment email: {request.task_name} -> {request.assigned_user_name}")

        result = self._sender.send(
            to=self._admin_email,
            subject=f"New Task Assignment: {request.task_name} - {request.project_name}",
            body_html=self._render_html(request),
        )
        return DeliveryResult(message="Email sent successfully", id=result.get("id"))

    @staticmethod
    def _render_html(request: TaskAssignmentEmailRequest) -> str:
        now = utc_now().astimezone(TASK_ASSIGNMENT_TIMEZONE)
        assigned_at = now.strftime("%A, %B %d, %Y at %I:%M:%S %p %Z")
        rows = [
            ("Assigned To", request.assigned_user_name),
            ("Project Name", request.project_name),
            ("Task Name", request.task_name),
            ("Due Date", format_due_date(request.due_date)),
            ("Assignment Time", assigned_at),
        ]
        info_rows = "\n".join(
            f'<div style="margin: 15px 0; padding: 10px; background-color: #f5f5f5; '
            f'border-left: 4px solid #4CAF50;"><strong>{label}:</strong> {html.escape(value or "")}</div>'
            for label, value in rows
        )
        return f"""<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9;">
    <div style="background-color: #4CAF50; color: white; padding: 20px; text-align: center;">
      <h1>🔔 New Task Assignment Notification</h1>
    </div>
    <div style="background-color: white; padding: 30px;">
      <p>Hello Admin,</p>
      <p>A new task has been assigned in the zHeight AI system. Here are the details:</p>
      {info_rows}
      <p style="margin-top: 30px;">This is an automated notification from the zHeight AI project management system.</p>
    </div>
    <p style="text-align: center; color: #777; font-size: 12px;">© {now.year} zHeight AI. All rights reserved.</p>
  </div>
</body>
</html>"""
