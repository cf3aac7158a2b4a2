# =============================================================================
# tests/test_user_admin_service.py - User Administration Tests
# =============================================================================

import pytest

from app.exceptions import InvalidRequestError, NotFoundError
from core.models.user import DeleteUserRequest
from core.services.user_admin_service import UserAdminService

AUTH_USERS = [
    {"id": "u-1", "email": "admin@example.com", "created_at": "2024-01-01", "last_sign_in_at": "2025-01-10"},
    {"id": "u-2", "email": "ar@example.com", "created_at": "2024-02-01", "last_sign_in_at": None},
]


class TestListUsers:
    def test_joins_profiles_roles_and_auth(self, mock_supabase):
        mock_supabase.select_rows.return_value = [
            {"user_id": "u-1", "name": "Admin", "company": "zHeight", "created_at": "2024-01-01", "active_status": True},
            {"user_id": "u-3", "name": "Ghost", "company": None, "created_at": "2024-03-01", "active_status": False},
        ]
        mock_supabase.fetch_all_roles.return_value = [{"user_id": "u-1", "role": "admin"}]
        mock_supabase.list_auth_users.return_value = AUTH_USERS

        users = UserAdminService(mock_supabase).list_users()

        assert [user.id for user in users] == ["u-1", "u-3"]
        assert users[0].email == "admin@example.com"
        assert users[0].role == "admin"
        assert users[0].last_sign_in_at == "2025-01-10"
        assert users[1].email == "Unknown"
        assert users[1].role == "user"


class TestDeleteAuthUser:
    def test_requires_identifier(self, mock_supabase):
        with pytest.raises(InvalidRequestError):
            UserAdminService(mock_supabase).delete_auth_user(DeleteUserRequest())

    def test_by_id(self, mock_supabase):
        deleted = UserAdminService(mock_supabase).delete_auth_user(DeleteUserRequest(userId="u-2"))

        assert deleted == "u-2"
        mock_supabase.delete_auth_user.assert_called_once_with("u-2")
        mock_supabase.list_auth_users.assert_not_called()

    def test_by_email(self, mock_supabase):
        mock_supabase.list_auth_users.return_value = AUTH_USERS

        deleted = UserAdminService(mock_supabase).delete_auth_user(DeleteUserRequest(email="AR@example.com"))

        assert deleted == "u-2"
        mock_supabase.delete_auth_user.assert_called_once_with("u-2")

    def test_unknown_email(self, mock_supabase):
        mock_supabase.list_auth_users.return_value = AUTH_USERS

        with pytest.raises(NotFoundError) as exc_info:
            UserAdminService(mock_supabase).delete_auth_user(DeleteUserRequest(email="nobody@example.com"))

        assert exc_info.value.status_code == 404
        mock_supabase.delete_auth_user.assert_not_called()


class TestFindOrphans:
    def test_reports_both_sides(self, mock_supabase):
        mock_supabase.list_auth_users.return_value = AUTH_USERS
        mock_supabase.select_rows.return_value = [
            {"user_id": "u-1", "name": "Admin"},
            {"user_id": "u-9", "name": "Deleted Account"},
        ]

        report = UserAdminService(mock_supabase).find_orphans()

        assert [user.id for user in report.orphaned_auth_users] == ["u-2"]
        assert [profile.user_id for profile in report.orphaned_profiles] == ["u-9"]
        assert report.total_auth_users == 2
        assert report.total_profiles == 2
        assert report.orphaned_auth_count == 1
        assert report.orphaned_profile_count == 1
