# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for the caller identity and role assignment.
# =============================================================================

from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    """
    Role enumeration stored in the user_roles table.

    Only ADMIN is privileged; the other roles gate UI screens.
    """
    ADMIN = "admin"
    PM = "pm"
    AR1_PLANNING = "ar1_planning"
    AR2_FIELD = "ar2_field"
    USER = "user"
    MODERATOR = "moderator"

    @property
    def display_name(self) -> str:
        """Label used in invitation emails."""
        return ROLE_DISPLAY_NAMES.get(self, self.value)


ROLE_DISPLAY_NAMES = {
    Role.ADMIN: "👑 Admin",
    Role.PM: "🏢 Project Manager",
    Role.AR1_PLANNING: "📋 AR1 - Planning",
    Role.AR2_FIELD: "🔧 AR2 - Field",
    Role.USER: "👤 User",
}


class CallerIdentity(BaseModel):
    """
    Authenticated caller resolved from a bearer token.

    Produced by the AuthorizationGate for one request and used to
    attribute writes (e.g. last_updated_by, invited_by). Never persisted.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    token: str
    email: Optional[str] = None
    role: Optional[Role] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
