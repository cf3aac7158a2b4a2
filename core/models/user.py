# =============================================================================
# core/models/user.py - User Administration Schemas
# =============================================================================
# Models for invitations and admin user management:
# - InviteUserRequest / Invitation / InviteResponse
# - DeleteUserRequest / DeleteUserResponse
# - UserWithAuth / UserList
# - OrphanReport (auth users without profiles and vice versa)
# =============================================================================

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.auth.models import Role


class InviteUserRequest(BaseModel):
    """
    Invitation request from an admin.

    Fields are optional at the schema level so the service can answer
    "Email, name, and role are required" as one INVALID_REQUEST error.
    """
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[Role] = None


class Invitation(BaseModel):
    """Invitation row as returned to the client."""
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    name: str
    role: str
    expires_at: Optional[datetime] = None


class InviteResponse(BaseModel):
    success: bool = True
    message: str = "Invitation sent successfully"
    invitation: Invitation


class DeleteUserRequest(BaseModel):
    """Identify the auth user to delete by id or by email."""
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class DeleteUserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str = "Auth user deleted successfully"
    user_id: str = Field(..., alias="userId")


class UserWithAuth(BaseModel):
    """Profile joined with role and auth metadata."""
    id: str
    email: str = "Unknown"
    full_name: Optional[str] = None
    company: Optional[str] = None
    role: str = Role.USER.value
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None
    active_status: Optional[bool] = None


class UserList(BaseModel):
    success: bool = True
    users: list[UserWithAuth] = Field(default_factory=list)


class OrphanedAuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None


class OrphanedProfile(BaseModel):
    user_id: str
    name: Optional[str] = None


class OrphanReport(BaseModel):
    """Accounts that exist on only one side of auth/profiles."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    orphaned_auth_users: list[OrphanedAuthUser] = Field(default_factory=list, alias="orphanedAuthUsers")
    orphaned_profiles: list[OrphanedProfile] = Field(default_factory=list, alias="orphanedProfiles")
    total_auth_users: int = Field(default=0, alias="totalAuthUsers")
    total_profiles: int = Field(default=0, alias="totalProfiles")
    orphaned_auth_count: int = Field(default=0, alias="orphanedAuthCount")
    orphaned_profile_count: int = Field(default=0, alias="orphanedProfileCount")
