# =============================================================================
# app/auth/__init__.py - Authentication Module
# =============================================================================
# Token verification and role checks backed by Supabase Auth.
#
# Usage:
#   from app.auth import require_admin, get_current_user, CallerIdentity
# =============================================================================

from app.auth.dependencies import get_bearer_token, get_current_user, require_admin
from app.auth.gate import AuthorizationGate
from app.auth.models import CallerIdentity, Role

__all__ = [
    "AuthorizationGate",
    "CallerIdentity",
    "Role",
    "get_bearer_token",
    "get_current_user",
    "require_admin",
]
