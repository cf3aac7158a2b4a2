# =============================================================================
# tests/test_digest_service.py - Daily Digest Tests
# =============================================================================

import pytest

from app.exceptions import DigestGenerationError
from core.services.digest_service import DailyDigestService
from lib.supabase_client import SupabaseClientError


class TestDailyDigestService:
    """Test digest generation."""

    def test_runs_both_functions_in_order(self, mock_supabase):
        mock_supabase.count_emails.return_value = 4

        result = DailyDigestService(mock_supabase).generate()

        called = [call.args[0] for call in mock_supabase.rpc.call_args_list]
        assert called == ["generate_ar_daily_digest", "generate_pm_daily_digest"]
        assert result.queued_count == 4
        assert result.success

    def test_counts_todays_pending_digests(self, mock_supabase):
        mock_supabase.count_emails.return_value = 0

        DailyDigestService(mock_supabase).generate()

        email_type, status, since = mock_supabase.count_emails.call_args.args
        assert email_type == "daily_task_digest"
        assert status == "pending"
        assert (since.hour, since.minute, since.second) == (0, 0, 0)

    def test_ar_failure_stops_before_pm(self, mock_supabase):
        mock_supabase.rpc.side_effect = SupabaseClientError("function does not exist")

        with pytest.raises(DigestGenerationError) as exc_info:
            DailyDigestService(mock_supabase).generate()

        assert exc_info.value.details == {"digest": "AR", "error": "function does not exist"}
        assert mock_supabase.rpc.call_count == 1

    def test_pm_failure(self, mock_supabase):
        mock_supabase.rpc.side_effect = [None, SupabaseClientError("timeout")]

        with pytest.raises(DigestGenerationError) as exc_info:
            DailyDigestService(mock_supabase).generate()

        assert exc_info.value.details["digest"] == "PM"

    def test_count_failure_reports_zero(self, mock_supabase):
        mock_supabase.count_emails.side_effect = SupabaseClientError("permission denied")

        result = DailyDigestService(mock_supabase).generate()

        assert result.queued_count == 0
