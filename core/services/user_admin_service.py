# =============================================================================
# core/services/user_admin_service.py - User Administration
# =============================================================================
# Admin-only views over auth users, profiles and roles:
# - list_users: profiles joined with role and auth metadata
# - delete_auth_user: remove an auth account by id or email
# - find_orphans: accounts present on only one side of auth/profiles
# =============================================================================

import logging

from app.exceptions import InvalidRequestError, NotFoundError
from core.models.user import (
    DeleteUserRequest,
    OrphanedAuthUser,
    OrphanedProfile,
    OrphanReport,
    UserWithAuth,
)
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class UserAdminService:
    """
    Service for admin user management.

    Callers are expected to have passed the AuthorizationGate as admin.
    """

    def __init__(self, supabase: SupabaseClient):
        self._supabase = supabase

    def list_users(self) -> list[UserWithAuth]:
        """
        Combine profiles, roles and auth users.

        Users without a role row are reported as "user"; profiles without an
        auth account get the email "Unknown".
        """
        profiles = self._supabase.select_rows(
            "profiles", "user_id, name, company, created_at, active_status"
        )
        roles = {row["user_id"]: row["role"] for row in self._supabase.fetch_all_roles()}
        auth_users = {user["id"]: user for user in self._supabase.list_auth_users()}

        users = []
        for profile in profiles:
            user_id = profile["user_id"]
            auth_user = auth_users.get(user_id, {})
            users.append(UserWithAuth(
                id=user_id,
                email=auth_user.get("email") or "Unknown",
                full_name=profile.get("name"),
                company=profile.get("company"),
                role=roles.get(user_id, "user"),
                created_at=profile.get("created_at"),
                last_sign_in_at=auth_user.get("last_sign_in_at"),
                active_status=profile.get("active_status"),
            ))
        return users

    def delete_auth_user(self, request: DeleteUserRequest) -> str:
        """
        Delete an auth user, resolving the id from the email if needed.

        Returns:
            The deleted user's id

        Raises:
            InvalidRequestError: Neither email nor userId given
            NotFoundError: No auth user has that email
            SupabaseClientError: The admin API call failed
        """
        if not request.email and not request.user_id:
            raise InvalidRequestError("Email or userId is required")

        target_id = request.user_id
        if not target_id:
            match = next(
                (user for user in self._supabase.list_auth_users()
                 if (user.get("email") or "").lower() == request.email.lower()),
                None,
            )
            if match is None:
                raise NotFoundError("User", request.email)
            target_id = match["id"]

        self._supabase.delete_auth_user(target_id)
        logger.info(f"Successfully deleted auth user: {target_id}")
        return target_id

    def find_orphans(self) -> OrphanReport:
        """Report auth users without profiles and profiles without auth users."""
        logger.info("Checking for orphaned auth users...")

        auth_users = self._supabase.list_auth_users()
        profiles = self._supabase.select_rows("profiles", "user_id, name")

        profile_ids = {profile["user_id"] for profile in profiles}
        auth_ids = {user["id"] for user in auth_users}

        orphaned_auth = [
            OrphanedAuthUser(**user) for user in auth_users if user["id"] not in profile_ids
        ]
        orphaned_profiles = [
            OrphanedProfile(user_id=profile["user_id"], name=profile.get("name"))
            for profile in profiles
            if profile["user_id"] not in auth_ids
        ]

        logger.info(
            f"Orphaned users check complete: auth={len(orphaned_auth)}, "
            f"profiles={len(orphaned_profiles)}"
        )
        return OrphanReport(
            orphaned_auth_users=orphaned_auth,
            orphaned_profiles=orphaned_profiles,
            total_auth_users=len(auth_users),
            total_profiles=len(profiles),
            orphaned_auth_count=len(orphaned_auth),
            orphaned_profile_count=len(orphaned_profiles),
        )
