# =============================================================================
# tests/test_email_service.py - Email Delivery Tests
# =============================================================================
# This module contains tests for:
# - ResendEmailSender request/response handling
# - EmailQueueProcessor state transitions (simulate, sent, failed)
# - requeue_failed reconciliation
# - TaskAssignmentNotifier validation and rendering
#
# HTTP calls go through httpx.MockTransport; Supabase is mocked.
# =============================================================================

import json
from unittest.mock import MagicMock
from uuid import UUID

import httpx
import pytest

from app.exceptions import DeliveryFailedError, DeliveryNotConfiguredError, InvalidRequestError
from core.models.notification import TaskAssignmentEmailRequest
from core.services.email_service import (
    EmailQueueProcessor,
    ResendEmailSender,
    TaskAssignmentNotifier,
    format_due_date,
)
from lib.supabase_client import SupabaseClientError

EMAIL_ID = UUID("33333333-3333-3333-3333-333333333333")


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _sender(handler) -> ResendEmailSender:
    return ResendEmailSender(_client(handler), api_key="re_test", sender="App <noreply@example.com>")


# =============================================================================
# ResendEmailSender Tests
# =============================================================================

class TestResendEmailSender:
    """Test the Resend HTTP call."""

    def test_posts_message(self):
        """The payload and bearer key are sent; the response JSON is returned."""
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "msg_123"})

        result = _sender(handler).send("to@example.com", "Hello", "<p>Hi</p>", "Hi")

        assert result == {"id": "msg_123"}
        assert captured["auth"] == "Bearer re_test"
        assert captured["body"] == {
            "from": "App <noreply@example.com>",
            "to": ["to@example.com"],
            "subject": "Hello",
            "html": "<p>Hi</p>",
            "text": "Hi",
        }

    def test_non_2xx_raises_with_body(self):
        sender = _sender(lambda request: httpx.Response(422, text='{"message":"Invalid `to` field"}'))

        with pytest.raises(DeliveryFailedError) as exc_info:
            sender.send("bad", "Hello", "<p>Hi</p>")

        assert exc_info.value.details["status"] == 422
        assert "Invalid `to` field" in exc_info.value.details["error"]

    def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(DeliveryFailedError) as exc_info:
            _sender(handler).send("to@example.com", "Hello", "<p>Hi</p>")

        assert "connection refused" in exc_info.value.details["error"]

    def test_from_settings_without_key(self):
        settings = MagicMock(RESEND_API_KEY=None)

        assert ResendEmailSender.from_settings(MagicMock(), settings) is None


# =============================================================================
# EmailQueueProcessor Tests
# =============================================================================

class TestEmailQueueProcessor:
    """Test queue processing state transitions."""

    def test_empty_queue(self, mock_supabase):
        mock_supabase.fetch_emails_by_status.return_value = []

        result = EmailQueueProcessor(mock_supabase, sender=None).process_pending()

        assert result.message == "No pending emails"
        assert result.processed == 0
        mock_supabase.update_email.assert_not_called()

    def test_fetches_pending_oldest_first_batch(self, mock_supabase):
        mock_supabase.fetch_emails_by_status.return_value = []

        EmailQueueProcessor(mock_supabase, sender=None, batch_size=10).process_pending()

        mock_supabase.fetch_emails_by_status.assert_called_once_with("pending", limit=10)

    def test_simulate_mode_marks_sent(self, mock_supabase, pending_email_row):
        """Without a sender, emails are logged and marked sent."""
        mock_supabase.fetch_emails_by_status.return_value = [pending_email_row]
        processor = EmailQueueProcessor(mock_supabase, sender=None)

        result = processor.process_pending()

        assert processor.simulate_mode
        assert result.processed == 1
        assert result.failed == 0
        email_id, fields = mock_supabase.update_email.call_args.args
        assert email_id == EMAIL_ID
        assert fields["status"] == "sent"
        assert fields["attempts"] == 1
        assert "sent_at" in fields

    def test_success_marks_sent(self, mock_supabase, pending_email_row):
        mock_supabase.fetch_emails_by_status.return_value = [dict(pending_email_row, attempts=1)]
        sender = _sender(lambda request: httpx.Response(200, json={"id": "msg_1"}))

        result = EmailQueueProcessor(mock_supabase, sender).process_pending()

        assert result.processed == 1
        fields = mock_supabase.update_email.call_args.args[1]
        assert fields["status"] == "sent"
        assert fields["attempts"] == 2

    def test_rejection_marks_failed(self, mock_supabase, pending_email_row):
        """Non-2xx responses store the response body as the error."""
        mock_supabase.fetch_emails_by_status.return_value = [pending_email_row]
        sender = _sender(lambda request: httpx.Response(403, text="domain not verified"))

        result = EmailQueueProcessor(mock_supabase, sender).process_pending()

        assert result.processed == 0
        assert result.failed == 1
        assert result.message == "Processed 0 email(s), 1 failed"
        fields = mock_supabase.update_email.call_args.args[1]
        assert fields == {"status": "failed", "error_message": "domain not verified", "attempts": 1}

    def test_one_failure_does_not_stop_batch(self, mock_supabase, pending_email_row):
        second = dict(pending_email_row, id="55555555-5555-5555-5555-555555555555", recipient_email="b@x.com")
        mock_supabase.fetch_emails_by_status.return_value = [pending_email_row, second]

        def handler(request):
            to = json.loads(request.content)["to"][0]
            return httpx.Response(500, text="boom") if to == "new.user@example.com" else httpx.Response(200, json={})

        result = EmailQueueProcessor(mock_supabase, _sender(handler)).process_pending()

        assert result.processed == 1
        assert result.failed == 1
        assert mock_supabase.update_email.call_count == 2

    def test_malformed_row_does_not_block_queue(self, mock_supabase, pending_email_row):
        """A row that fails validation is marked failed and the next row is still sent."""
        bad = dict(pending_email_row, id="66666666-6666-6666-6666-666666666666", recipient_email=None)
        mock_supabase.fetch_emails_by_status.return_value = [bad, pending_email_row]

        result = EmailQueueProcessor(mock_supabase, sender=None).process_pending()

        assert result.processed == 1
        assert result.failed == 1
        (bad_id, bad_fields), (good_id, good_fields) = [
            call.args for call in mock_supabase.update_email.call_args_list
        ]
        assert bad_id == "66666666-6666-6666-6666-666666666666"
        assert bad_fields["status"] == "failed"
        assert bad_fields["attempts"] == 1
        assert "Invalid email row" in bad_fields["error_message"]
        assert good_id == EMAIL_ID
        assert good_fields["status"] == "sent"

    def test_status_update_failure_is_isolated(self, mock_supabase, pending_email_row):
        """A failed sent-marker records the row as failed and the run continues."""
        second = dict(pending_email_row, id="55555555-5555-5555-5555-555555555555")
        mock_supabase.fetch_emails_by_status.return_value = [pending_email_row, second]
        mock_supabase.update_email.side_effect = [SupabaseClientError("timeout"), None, None]

        result = EmailQueueProcessor(mock_supabase, sender=None).process_pending()

        assert result.processed == 1
        assert result.failed == 1
        statuses = [call.args[1]["status"] for call in mock_supabase.update_email.call_args_list]
        assert statuses == ["sent", "failed", "sent"]

    def test_requeue_failed(self, mock_supabase, pending_email_row):
        """Failed emails with attempts left go back to pending."""
        mock_supabase.fetch_emails_by_status.return_value = [dict(pending_email_row, status="failed", attempts=1)]
        processor = EmailQueueProcessor(mock_supabase, sender=None, batch_size=10, max_attempts=3)

        requeued = processor.requeue_failed()

        assert requeued == 1
        mock_supabase.fetch_emails_by_status.assert_called_once_with("failed", limit=10, max_attempts=3)
        mock_supabase.update_email.assert_called_once_with(EMAIL_ID, {"status": "pending"})

    def test_requeue_nothing(self, mock_supabase):
        mock_supabase.fetch_emails_by_status.return_value = []

        assert EmailQueueProcessor(mock_supabase, sender=None).requeue_failed() == 0
        mock_supabase.update_email.assert_not_called()


# =============================================================================
# TaskAssignmentNotifier Tests
# =============================================================================

def _assignment(**overrides) -> TaskAssignmentEmailRequest:
    data = {
        "assignedUserName": "Priya",
        "projectName": "123 Main St ADU",
        "taskName": "Site plan review",
        "dueDate": "2025-01-15",
    }
    data.update(overrides)
    return TaskAssignmentEmailRequest(**data)


class TestTaskAssignmentNotifier:
    """Test the admin task assignment alert."""

    def test_format_due_date(self):
        assert format_due_date("2025-01-15") == "January 15, 2025"
        assert format_due_date("next week") == "next week"

    @pytest.mark.parametrize("field", ["assignedUserName", "projectName", "taskName", "dueDate"])
    def test_missing_field(self, field):
        notifier = TaskAssignmentNotifier(sender=MagicMock(), admin_email="admin@example.com")

        with pytest.raises(InvalidRequestError) as exc_info:
            notifier.send(_assignment(**{field: ""}))

        assert exc_info.value.message == "All fields are required"

    def test_not_configured(self):
        notifier = TaskAssignmentNotifier(sender=None, admin_email="admin@example.com")

        with pytest.raises(DeliveryNotConfiguredError) as exc_info:
            notifier.send(_assignment())

        assert exc_info.value.status_code == 500

    def test_sends_to_admin(self):
        sender = MagicMock()
        sender.send.return_value = {"id": "msg_9"}
        notifier = TaskAssignmentNotifier(sender=sender, admin_email="admin@example.com")

        result = notifier.send(_assignment())

        assert result.id == "msg_9"
        assert result.message == "Email sent successfully"
        kwargs = sender.send.call_args.kwargs
        assert kwargs["to"] == "admin@example.com"
        assert kwargs["subject"] == "New Task Assignment: Site plan review - 123 Main St ADU"
        assert "January 15, 2025" in kwargs["body_html"]

    def test_html_is_escaped(self):
        sender = MagicMock()
        sender.send.return_value = {}
        notifier = TaskAssignmentNotifier(sender=sender, admin_email="admin@example.com")

        notifier.send(_assignment(taskName="<script>x</script>"))

        assert "<script>" not in sender.send.call_args.kwargs["body_html"]
