# =============================================================================
# app/routers/users.py - User Administration Endpoints
# =============================================================================
# All endpoints require the admin role.
#
# POST   /users/invite   - Invite a new user (queues the invitation email)
# GET    /users          - Profiles joined with roles and auth metadata
# DELETE /users          - Delete an auth user by id or email
# GET    /users/orphans  - Auth users / profiles missing their counterpart
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth import CallerIdentity, require_admin
from app.dependencies import SettingsDep, SupabaseDep
from core.models.user import (
    DeleteUserRequest,
    DeleteUserResponse,
    InviteResponse,
    InviteUserRequest,
    OrphanReport,
    UserList,
)
from core.services.invitation_service import InvitationService
from core.services.user_admin_service import UserAdminService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/users/invite", response_model=InviteResponse)
def invite_user(
    request: InviteUserRequest,
    supabase: SupabaseDep,
    settings: SettingsDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """
    Invite a user by email.

    The invitation email is queued and delivered by the email queue
    processor; the invitation expires after 7 days.
    """
    invitation = InvitationService(supabase, app_url=settings.APP_URL).invite(request, inviter=caller)
    return InviteResponse(invitation=invitation)


@router.get("/users", response_model=UserList)
def list_users(
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """List all users with their role and last sign-in."""
    return UserList(users=UserAdminService(supabase).list_users())


@router.delete("/users", response_model=DeleteUserResponse, response_model_by_alias=True)
def delete_user(
    request: DeleteUserRequest,
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """Delete an auth account. Profile and role rows are left to the caller."""
    user_id = UserAdminService(supabase).delete_auth_user(request)
    logger.info(f"Auth user {user_id} deleted by admin {caller.id}")
    return DeleteUserResponse(user_id=user_id)


@router.get("/users/orphans", response_model=OrphanReport, response_model_by_alias=True)
def find_orphaned_users(
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """Report accounts present in only one of auth users and profiles."""
    return UserAdminService(supabase).find_orphans()
