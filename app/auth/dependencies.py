# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Wraps the AuthorizationGate as route dependencies.
#
# Usage:
#   from app.auth import require_admin, CallerIdentity
#
#   @router.post("/privileged")
#   def privileged(caller: CallerIdentity = Depends(require_admin)):
#       return {"user_id": caller.id}
# =============================================================================

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.models import CallerIdentity, Role
from app.dependencies import GateDep

logger = logging.getLogger(__name__)

# auto_error=False: a missing header reaches the gate, which raises the
# structured UnauthenticatedError instead of FastAPI's default 403.
security = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[str]:
    """Extract the raw bearer token, or None when the header is absent."""
    if credentials is None:
        return None
    return credentials.credentials


def get_current_user(
    gate: GateDep,
    token: Optional[str] = Depends(get_bearer_token),
) -> CallerIdentity:
    """
    Resolve any authenticated caller, whatever their role.

    Raises:
        UnauthenticatedError: 401 if the token is missing or invalid
    """
    return gate.authorize(token, required_role=None)


def require_admin(
    gate: GateDep,
    token: Optional[str] = Depends(get_bearer_token),
) -> CallerIdentity:
    """
    Resolve the caller and require the admin role.

    Raises:
        UnauthenticatedError: 401 if the token is missing or invalid
        ForbiddenError: 403 if the caller is not an admin
    """
    return gate.authorize(token, required_role=Role.ADMIN)
