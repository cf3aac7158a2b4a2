# =============================================================================
# tests/test_invitation_service.py - User Invitation Tests
# =============================================================================
# This module contains tests for:
# - Request validation and existing-account checks
# - Invitation row + queued email creation
# - Rollback of the invitation when the email can't be queued
# =============================================================================

import pytest

from app.auth.models import Role
from app.exceptions import InvalidRequestError, InvitationError
from core.models.user import InviteUserRequest
from core.services.invitation_service import (
    InvitationService,
    build_invite_link,
    render_invitation_text,
)
from lib.supabase_client import SupabaseClientError

APP_URL = "https://app.example.com"

INVITATION_ROW = {
    "id": "inv-1",
    "email": "new.user@example.com",
    "name": "New User",
    "role": "pm",
    "expires_at": "2025-01-22T10:00:00+00:00",
    "status": "pending",
}


@pytest.fixture
def service(mock_supabase):
    mock_supabase.list_auth_users.return_value = []
    mock_supabase.insert_row.side_effect = [INVITATION_ROW, {"id": "email-1"}]
    return InvitationService(mock_supabase, app_url=APP_URL)


def _request(**overrides) -> InviteUserRequest:
    data = {"email": "new.user@example.com", "name": "New User", "role": "pm"}
    data.update(overrides)
    return InviteUserRequest(**data)


class TestInviteLink:
    def test_encodes_query(self):
        link = build_invite_link("https://app.example.com/", "a+b@example.com", "inv-1")

        assert link == "https://app.example.com/invite?email=a%2Bb%40example.com&invitation_id=inv-1"

    def test_text_uses_role_display_name(self):
        text = render_invitation_text("Sam", Role.PM, "https://x/invite")

        assert "🏢 Project Manager" in text
        assert "https://x/invite" in text


class TestInvitationService:
    """Test the invitation flow."""

    @pytest.mark.parametrize("field", ["email", "name", "role"])
    def test_missing_fields(self, service, admin_caller, mock_supabase, field):
        with pytest.raises(InvalidRequestError) as exc_info:
            service.invite(_request(**{field: None}), admin_caller)

        assert exc_info.value.message == "Email, name, and role are required"
        mock_supabase.rpc.assert_not_called()

    def test_creates_invitation_and_queues_email(self, service, admin_caller, mock_supabase):
        invitation = service.invite(_request(), admin_caller)

        assert invitation.id == "inv-1"
        mock_supabase.rpc.assert_called_once_with("cleanup_expired_invitations")
        mock_supabase.expire_pending_invitations.assert_called_once_with("new.user@example.com")

        table, row = mock_supabase.insert_row.call_args_list[0].args
        assert table == "user_invitations"
        assert row == {
            "email": "new.user@example.com",
            "name": "New User",
            "role": "pm",
            "invited_by": str(admin_caller.id),
        }

        table, email = mock_supabase.insert_row.call_args_list[1].args
        assert table == "email_notifications"
        assert email["email_type"] == "user_invitation"
        assert email["status"] == "pending"
        assert email["recipient_email"] == "new.user@example.com"
        assert f"{APP_URL}/invite?email=new.user%40example.com&invitation_id=inv-1" in email["body_text"]
        assert email["metadata"]["invitation_id"] == "inv-1"
        assert email["metadata"]["invitee_role"] == "pm"

    def test_existing_account_rejected(self, service, admin_caller, mock_supabase):
        mock_supabase.list_auth_users.return_value = [{"id": "u-1", "email": "New.User@example.com"}]
        mock_supabase.find_invitations.return_value = []

        with pytest.raises(InvalidRequestError) as exc_info:
            service.invite(_request(), admin_caller)

        assert exc_info.value.message == "User with this email already exists"
        mock_supabase.insert_row.assert_not_called()

    def test_existing_account_with_prior_invitation_allowed(self, service, admin_caller, mock_supabase):
        """Re-inviting someone who was invited before is allowed."""
        mock_supabase.list_auth_users.return_value = [{"id": "u-1", "email": "new.user@example.com"}]
        mock_supabase.find_invitations.return_value = [{"id": "old-inv", "status": "accepted"}]

        invitation = service.invite(_request(), admin_caller)

        assert invitation.email == "new.user@example.com"

    def test_expire_failure_is_not_fatal(self, service, admin_caller, mock_supabase):
        mock_supabase.expire_pending_invitations.side_effect = SupabaseClientError("no rows")

        assert service.invite(_request(), admin_caller).id == "inv-1"

    def test_insert_failure(self, service, admin_caller, mock_supabase):
        mock_supabase.insert_row.side_effect = SupabaseClientError("duplicate key")

        with pytest.raises(InvitationError) as exc_info:
            service.invite(_request(), admin_caller)

        assert exc_info.value.message == "Failed to create invitation"

    def test_queue_failure_deletes_invitation(self, service, admin_caller, mock_supabase):
        mock_supabase.insert_row.side_effect = [INVITATION_ROW, SupabaseClientError("insert failed")]

        with pytest.raises(InvitationError) as exc_info:
            service.invite(_request(), admin_caller)

        mock_supabase.delete_invitation.assert_called_once_with("inv-1")
        assert exc_info.value.message == "Failed to queue invitation email: insert failed"
        assert exc_info.value.status_code == 500
