# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for the hosted Supabase project, which
# serves as identity provider, role store and relational store:
# - Token verification and auth user administration
# - Role lookups (user_roles)
# - Ordinance bulk inserts and search (jurisdiction_ordinances)
# - Email queue reads/updates (email_notifications)
# - Invitations, profiles, feasibility analyses and RPC calls
# - Agent prompts, checklist items and plan file storage
#
# One instance is built at process startup and injected where needed:
#   client = SupabaseClient.from_settings(settings)
#   ...
#   client.close()
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from supabase import Client, ClientOptions, create_client

from lib.utils import normalize_uuid

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code returned by .single() when no row matches
NO_ROWS_CODE = "PGRST116"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages:
    "Errors should tell HOW to fix, not just WHAT failed."
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def _auth_user_to_dict(user: Any) -> dict[str, Any]:
    """Flatten a gotrue User object into the fields the API exposes."""

    def _iso(value: Any) -> str | None:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    return {
        "id": str(user.id),
        "email": getattr(user, "email", None),
        "created_at": _iso(getattr(user, "created_at", None)),
        "last_sign_in_at": _iso(getattr(user, "last_sign_in_at", None)),
    }


class SupabaseClient:
    """
    Typed wrapper for Supabase operations.

    Wraps one service-role `Client`. Instances are created explicitly
    (see `from_settings`) and passed to services, so tests can substitute
    a mock and each hosting process owns its client's lifecycle.

    Example:
        client = SupabaseClient.from_settings(settings)
        roles = client.fetch_user_roles(user_id)
        client.insert_rows("jurisdiction_ordinances", records)
    """

    def __init__(self, client: Client):
        self._client = client

    @classmethod
    def from_settings(cls, settings: Any) -> "SupabaseClient":
        """
        Build a client using the service_role key.

        The service key bypasses Row Level Security (RLS), so this client
        must only ever be used server-side.

        Raises:
            SupabaseClientError: If client creation fails
        """
        try:
            client = create_client(
                settings.SUPABASE_URL,
                settings.SUPABASE_SERVICE_KEY,
                options=ClientOptions(
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create Supabase client: {e}",
                code="CLIENT_INIT_FAILED",
                suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
            ) from e

        logger.info("Supabase client initialized successfully")
        return cls(client)

    @property
    def raw(self) -> Client:
        """The underlying supabase-py client."""
        return self._client

    def close(self) -> None:
        """Release the HTTP session held by the PostgREST client."""
        session = getattr(self._client.postgrest, "session", None)
        if session is not None:
            session.close()
        logger.info("Supabase client closed")

    # -------------------------------------------------------------------------
    # Identity Provider
    # -------------------------------------------------------------------------

    def get_user_by_token(self, token: str) -> dict[str, Any] | None:
        """
        Resolve an access token to its auth user.

        Returns:
            Dict with id, email, created_at, last_sign_in_at,
            or None if the token is invalid or expired
        """
        try:
            response = self._client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Token verification failed: {e}")
            return None

        if response is None or response.user is None:
            return None
        return _auth_user_to_dict(response.user)

    def list_auth_users(self, page: int = 1, per_page: int = 1000) -> list[dict[str, Any]]:
        """
        List auth users through the admin API.

        Raises:
            SupabaseClientError: If the admin API call fails
        """
        try:
            users = self._client.auth.admin.list_users(page=page, per_page=per_page)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to list auth users: {e}",
                code="LIST_USERS_FAILED",
                suggestion="Check that SUPABASE_SERVICE_KEY is the service_role key",
            ) from e

        return [_auth_user_to_dict(user) for user in users or []]

    def delete_auth_user(self, user_id: str | UUID) -> None:
        """
        Delete an auth user through the admin API.

        Raises:
            SupabaseClientError: If deletion fails
        """
        user_id_str = normalize_uuid(user_id)
        try:
            self._client.auth.admin.delete_user(user_id_str)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete auth user: {e}",
                code="DELETE_USER_FAILED",
                details={"user_id": user_id_str},
            ) from e

        logger.info(f"Deleted auth user {user_id_str}")

    # -------------------------------------------------------------------------
    # Role Store
    # -------------------------------------------------------------------------

    def fetch_user_roles(self, user_id: str | UUID) -> list[str]:
        """
        Fetch the role names assigned to a user.

        Returns:
            List of role strings (normally zero or one)

        Raises:
            SupabaseClientError: If query fails
        """
        user_id_str = normalize_uuid(user_id)
        try:
            response = (
                self._client.table("user_roles")
                .select("role")
                .eq("user_id", user_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to check user permissions: {e}",
                code="FETCH_ROLES_FAILED",
                suggestion="Check that the user_roles table is accessible",
                details={"user_id": user_id_str},
            ) from e

        return [row["role"] for row in response.data or [] if row.get("role")]

    def fetch_all_roles(self) -> list[dict[str, Any]]:
        """Fetch every user_id/role pair."""
        return self.select_rows("user_roles", "user_id, role")

    # -------------------------------------------------------------------------
    # Generic Table Operations
    # -------------------------------------------------------------------------

    def select_rows(self, table: str, columns: str = "*") -> list[dict[str, Any]]:
        """
        Select all rows of a table.

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            response = self._client.table(table).select(columns).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch {table}: {e}",
                code="SELECT_FAILED",
                details={"table": table},
            ) from e
        return response.data or []

    def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Insert rows in a single bulk request.

        The request either succeeds as a whole or fails as a whole.

        Returns:
            Inserted rows as returned by PostgREST

        Raises:
            SupabaseClientError: If the insert fails
        """
        try:
            response = self._client.table(table).insert(rows).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=getattr(e, "message", None) or str(e),
                code="INSERT_FAILED",
                suggestion=f"Check that the mapped columns exist in {table}",
                details={"table": table, "row_count": len(rows)},
            ) from e

        logger.debug(f"Inserted {len(rows)} rows into {table}")
        return response.data or []

    def insert_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it."""
        inserted = self.insert_rows(table, [row])
        if not inserted:
            raise SupabaseClientError(
                message=f"Insert into {table} returned no data",
                code="INSERT_FAILED",
                details={"table": table},
            )
        return inserted[0]

    def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """
        Call a Postgres function.

        Raises:
            SupabaseClientError: If the function call fails
        """
        try:
            response = self._client.rpc(function, params or {}).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=getattr(e, "message", None) or str(e),
                code="RPC_FAILED",
                details={"function": function},
            ) from e
        return response.data

    # -------------------------------------------------------------------------
    # Ordinances
    # -------------------------------------------------------------------------

    def search_ordinances(
        self,
        jurisdiction: str | None = None,
        zone: str | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """
        Case-insensitive substring search over jurisdiction and zone.

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            query = self._client.table("jurisdiction_ordinances").select("*")
            if jurisdiction:
                query = query.ilike("jurisdiction", f"%{jurisdiction}%")
            if zone:
                query = query.ilike("zone", f"%{zone}%")
            response = query.limit(limit).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to search ordinances: {e}",
                code="SEARCH_ORDINANCES_FAILED",
                details={"jurisdiction": jurisdiction, "zone": zone},
            ) from e

        return response.data or []

    # -------------------------------------------------------------------------
    # Email Queue
    # -------------------------------------------------------------------------

    def fetch_emails_by_status(
        self,
        status: str,
        limit: int = 10,
        max_attempts: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch queued emails in a given status, oldest first.

        Args:
            status: pending, sent or failed
            limit: Maximum rows to return
            max_attempts: If set, only rows with attempts below this value

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            query = (
                self._client.table("email_notifications")
                .select("*")
                .eq("status", status)
            )
            if max_attempts is not None:
                query = query.lt("attempts", max_attempts)
            response = (
                query
                .order("created_at", desc=False)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch {status} emails: {e}",
                code="FETCH_EMAILS_FAILED",
                suggestion="Check that the email_notifications table is accessible",
            ) from e

        return response.data or []

    def update_email(self, email_id: str | UUID, fields: dict[str, Any]) -> None:
        """
        Update one email queue entry.

        Raises:
            SupabaseClientError: If update fails
        """
        email_id_str = normalize_uuid(email_id)
        try:
            (
                self._client.table("email_notifications")
                .update(fields)
                .eq("id", email_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update email {email_id_str}: {e}",
                code="UPDATE_EMAIL_FAILED",
                details={"email_id": email_id_str, "fields": list(fields)},
            ) from e

    def count_emails(
        self,
        email_type: str,
        status: str,
        created_since: datetime,
    ) -> int:
        """Count queued emails of a type created since a timestamp."""
        try:
            response = (
                self._client.table("email_notifications")
                .select("*", count="exact", head=True)
                .eq("email_type", email_type)
                .eq("status", status)
                .gte("created_at", created_since.isoformat())
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count emails: {e}",
                code="COUNT_EMAILS_FAILED",
                details={"email_type": email_type, "status": status},
            ) from e

        return response.count or 0

    # -------------------------------------------------------------------------
    # Invitations
    # -------------------------------------------------------------------------

    def find_invitations(self, email: str, statuses: list[str]) -> list[dict[str, Any]]:
        """Fetch invitations for an email in any of the given statuses."""
        try:
            response = (
                self._client.table("user_invitations")
                .select("*")
                .eq("email", email)
                .in_("status", statuses)
                .limit(1)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch invitations: {e}",
                code="FETCH_INVITATIONS_FAILED",
                details={"email": email},
            ) from e

        return response.data or []

    def expire_pending_invitations(self, email: str) -> None:
        """Mark every pending invitation for an email as expired."""
        try:
            (
                self._client.table("user_invitations")
                .update({"status": "expired"})
                .eq("email", email)
                .eq("status", "pending")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to expire invitations: {e}",
                code="EXPIRE_INVITATIONS_FAILED",
                details={"email": email},
            ) from e

    def delete_invitation(self, invitation_id: str | UUID) -> None:
        """Delete an invitation by id."""
        invitation_id_str = normalize_uuid(invitation_id)
        try:
            (
                self._client.table("user_invitations")
                .delete()
                .eq("id", invitation_id_str)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete invitation: {e}",
                code="DELETE_INVITATION_FAILED",
                details={"invitation_id": invitation_id_str},
            ) from e

    # -------------------------------------------------------------------------
    # Plan Review Agents
    # -------------------------------------------------------------------------

    def fetch_agent_prompt(self, name: str) -> dict[str, Any] | None:
        """
        Fetch one stored agent prompt by name.

        Returns:
            The agent_prompts row, or None if no prompt with that name exists

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            response = (
                self._client.table("agent_prompts")
                .select("*")
                .eq("name", name)
                .single()
                .execute()
            )
        except Exception as e:
            if getattr(e, "code", None) == NO_ROWS_CODE:
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch agent prompt {name}: {e}",
                code="FETCH_PROMPT_FAILED",
                details={"name": name},
            ) from e

        return response.data or None

    def save_agent_prompt(self, name: str, prompt: str) -> dict[str, Any]:
        """
        Update the named prompt, inserting it when it doesn't exist yet.

        Raises:
            SupabaseClientError: If the update or insert fails
        """
        try:
            response = (
                self._client.table("agent_prompts")
                .update({"prompt": prompt})
                .eq("name", name)
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update agent prompt {name}: {e}",
                code="SAVE_PROMPT_FAILED",
                details={"name": name},
            ) from e

        if response.data:
            return response.data[0]
        return self.insert_row("agent_prompts", {"name": name, "prompt": prompt})

    def fetch_checklist_items(
        self,
        user_id: str | UUID | None = None,
        city: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch checklist items, optionally for one user and one city.

        The city match is case-insensitive but otherwise exact.

        Raises:
            SupabaseClientError: If query fails
        """
        try:
            query = self._client.table("checklist_items").select("*")
            if user_id is not None:
                query = query.eq("user_id", normalize_uuid(user_id))
            if city:
                query = query.ilike("city", city)
            if limit is not None:
                query = query.limit(limit)
            response = query.execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch checklist items: {e}",
                code="FETCH_CHECKLIST_FAILED",
                details={"city": city},
            ) from e

        return response.data or []

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def upload_file(self, bucket: str, path: str, content: bytes, content_type: str) -> str:
        """
        Upload a file to a storage bucket.

        Returns:
            The storage path

        Raises:
            SupabaseClientError: If upload fails
        """
        try:
            self._client.storage.from_(bucket).upload(
                path=path,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upload file: {e}",
                code="UPLOAD_FAILED",
                suggestion=f"Check that the {bucket} storage bucket exists",
                details={"bucket": bucket, "path": path},
            ) from e

        logger.info(f"Uploaded {path} to {bucket} ({len(content)} bytes)")
        return path

    def create_signed_url(self, bucket: str, path: str, expires_in: int = 3600) -> str | None:
        """
        Create a temporary download URL for a stored file.

        Returns:
            The signed URL, or None if it couldn't be created
        """
        try:
            response = self._client.storage.from_(bucket).create_signed_url(path, expires_in)
        except Exception as e:
            logger.warning(f"Failed to create signed URL for {bucket}/{path}: {e}")
            return None
        return response.get("signedURL") or response.get("signedUrl")

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def ping(self) -> bool:
        """Cheap connectivity check against the role table."""
        try:
            self._client.table("user_roles").select("user_id").limit(1).execute()
            return True
        except Exception as e:
            logger.warning(f"Supabase ping failed: {e}")
            return False
