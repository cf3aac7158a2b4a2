# =============================================================================
# tests/test_tasks.py - Scheduled Task Tests
# =============================================================================
# Runs the Celery task bodies synchronously with the per-run clients patched.
# =============================================================================

from contextlib import contextmanager
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from lib.supabase_client import SupabaseClientError
from workers.config import CeleryConfig
from workers.tasks import generate_daily_digest, process_email_queue, reconcile_failed_emails

FAILED_ID = "44444444-4444-4444-4444-444444444444"


@pytest.fixture
def patched_clients(mock_supabase):
    @contextmanager
    def fake_clients():
        yield mock_supabase, MagicMock()

    with patch("workers.tasks.task_clients", fake_clients):
        yield mock_supabase


class TestEmailTasks:
    def test_process_queue_simulates_without_key(self, patched_clients, pending_email_row):
        patched_clients.fetch_emails_by_status.return_value = [pending_email_row]

        result = process_email_queue()

        assert result["success"] is True
        assert result["processed"] == 1
        fields = patched_clients.update_email.call_args.args[1]
        assert fields["status"] == "sent"

    def test_process_queue_reports_failure(self, patched_clients):
        patched_clients.fetch_emails_by_status.side_effect = SupabaseClientError("connection refused")

        result = process_email_queue()

        assert result["success"] is False
        assert "connection refused" in result["error"]

    def test_reconcile(self, patched_clients):
        patched_clients.fetch_emails_by_status.return_value = [
            {"id": FAILED_ID, "recipient_email": "a@b.com", "subject": "s", "status": "failed", "attempts": 1},
        ]

        result = reconcile_failed_emails()

        assert result == {"success": True, "requeued": 1}
        patched_clients.update_email.assert_called_once_with(UUID(FAILED_ID), {"status": "pending"})


class TestDigestTask:
    def test_generate(self, patched_clients):
        patched_clients.count_emails.return_value = 4

        result = generate_daily_digest()

        assert result["success"] is True
        assert result["queuedCount"] == 4


class TestSchedule:
    def test_beat_entries(self):
        tasks = {entry["task"] for entry in CeleryConfig.beat_schedule.values()}

        assert tasks == {
            "workers.tasks.process_email_queue",
            "workers.tasks.reconcile_failed_emails",
            "workers.tasks.generate_daily_digest",
        }
