# =============================================================================
# app/auth/gate.py - Authorization Gate
# =============================================================================
# Single place where a bearer token becomes a CallerIdentity and the caller's
# role is checked. Every privileged operation (CSV ingestion, invitations,
# user deletion, queue processing) goes through AuthorizationGate.authorize.
#
# Decisions are never cached: each call re-resolves the token with Supabase
# Auth and re-reads the role from user_roles.
# =============================================================================

import logging
from uuid import UUID

from app.auth.models import CallerIdentity, Role
from app.exceptions import ForbiddenError, UnauthenticatedError
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


class AuthorizationGate:
    """
    Resolves callers and enforces role requirements.

    Example:
        gate = AuthorizationGate(supabase)
        caller = gate.authorize(token)                      # admin required
        caller = gate.authorize(token, required_role=None)  # any signed-in user
    """

    def __init__(self, supabase: SupabaseClient):
        self._supabase = supabase

    def authorize(
        self,
        token: str | None,
        required_role: Role | None = Role.ADMIN,
    ) -> CallerIdentity:
        """
        Authenticate the token and check the caller's role.

        Args:
            token: Raw bearer token (without the "Bearer " prefix)
            required_role: Role the caller must hold, or None to accept any
                authenticated caller

        Returns:
            CallerIdentity with the caller's id, email and role

        Raises:
            UnauthenticatedError: Token missing, invalid or expired
            ForbiddenError: No role assignment, or not the required role
            SupabaseClientError: Role lookup failed
        """
        if not token or not token.strip():
            raise UnauthenticatedError("Authorization header required")

        user = self._supabase.get_user_by_token(token.strip())
        if not user:
            raise UnauthenticatedError("Invalid authentication token")

        try:
            user_id = UUID(str(user["id"]))
        except ValueError:
            logger.warning(f"Invalid user id from identity provider: {user['id']}")
            raise UnauthenticatedError("Invalid token: malformed user ID")

        role = self._resolve_role(self._supabase.fetch_user_roles(user_id))

        if required_role is not None and role != required_role:
            logger.warning(
                f"Rejected user {user_id}: role={role.value if role else None}, "
                f"required={required_role.value}"
            )
            raise ForbiddenError(
                required_role=required_role.value,
                actual_role=role.value if role else None,
            )

        logger.debug(f"Authorized user {user_id} as {role.value if role else 'no role'}")
        return CallerIdentity(
            id=user_id,
            token=token.strip(),
            email=user.get("email"),
            role=role,
        )

    @staticmethod
    def _resolve_role(role_names: list[str]) -> Role | None:
        """
        Pick the caller's role from their assignments.

        One active role per user is expected; if several rows exist, admin
        wins, otherwise the first recognised role is used.
        """
        roles = []
        for name in role_names:
            try:
                roles.append(Role(name))
            except ValueError:
                logger.warning(f"Ignoring unknown role value: {name}")

        if Role.ADMIN in roles:
            return Role.ADMIN
        return roles[0] if roles else None
