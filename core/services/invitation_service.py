# =============================================================================
# core/services/invitation_service.py - User Invitations
# =============================================================================
# Creates an invitation row and queues the invitation email. Delivery itself
# happens later through the email queue processor.
#
# Flow:
#   1. Clean up expired invitations (database function)
#   2. Refuse emails that already belong to an account, unless a previous
#      invitation exists for them (re-invite after account deletion)
#   3. Expire pending invitations for the email
#   4. Insert the invitation, then queue the email; if queueing fails the
#      invitation is deleted again
# =============================================================================

import html
import logging
from urllib.parse import quote

from app.auth.models import CallerIdentity, Role
from app.exceptions import InvalidRequestError, InvitationError
from core.models.notification import EmailStatus
from core.models.user import Invitation, InviteUserRequest
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

INVITATION_EMAIL_TYPE = "user_invitation"
INVITATION_SUBJECT = "You've been invited to join zHeight Internal AI"
PRIOR_INVITATION_STATUSES = ["pending", "expired", "accepted"]


def build_invite_link(app_url: str, email: str, invitation_id: str) -> str:
    return (
        f"{app_url.rstrip('/')}/invite"
        f"?email={quote(email, safe='')}&invitation_id={quote(invitation_id, safe='')}"
    )


def render_invitation_text(name: str, role: Role, invite_link: str) -> str:
    return (
        "Welcome to zHeight Internal AI\n\n"
        f"Hi {name},\n\n"
        "You have been invited to join the zHeight Internal AI project management system as:\n"
        f"{role.display_name}\n\n"
        "Accept your invitation here:\n"
        f"{invite_link}\n\n"
        "This invitation expires in 7 days.\n\n"
        "If you have any questions, please contact your administrator."
    )


def render_invitation_html(name: str, role: Role, invite_link: str) -> str:
    safe_name = html.escape(name)
    safe_link = html.escape(invite_link, quote=True)
    return f"""<html>
<body style="font-family: Arial, sans-serif; background-color: #f5f5f5;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #667eea; color: white; padding: 30px; text-align: center;">
      <h1 style="margin: 0;">Welcome to zHeight Internal AI</h1>
      <p style="margin: 10px 0 0 0;">You've been invited to join</p>
    </div>
    <div style="background-color: white; padding: 30px;">
      <p>Hi <strong>{safe_name}</strong>,</p>
      <p>You have been invited to join the zHeight Internal AI project management system as:</p>
      <div style="background-color: #f0f0f0; padding: 12px 15px; font-weight: bold; color: #667eea; text-align: center;">
        {role.display_name}
      </div>
      <p style="text-align: center; margin: 20px 0;">
        <a href="{safe_link}" style="background-color: #667eea; color: white; padding: 12px 30px; text-decoration: none;">
          Accept Invitation &amp; Create Account
        </a>
      </p>
      <p style="color: #777; font-size: 14px;">Link: {safe_link}</p>
      <p style="color: #999; font-size: 13px;"><strong>Note:</strong> This invitation expires in 7 days.</p>
    </div>
  </div>
</body>
</html>"""


class InvitationService:
    """Creates invitations on behalf of an admin."""

    def __init__(self, supabase: SupabaseClient, app_url: str):
        self._supabase = supabase
        self._app_url = app_url

    def invite(self, request: InviteUserRequest, inviter: CallerIdentity) -> Invitation:
        """
        Create an invitation and queue its email.

        Args:
            request: email, name and role of the invitee
            inviter: Admin caller (already authorized)

        Raises:
            InvalidRequestError: Missing fields, or the account already exists
            InvitationError: The invitation or its email couldn't be stored
        """
        email = (request.email or "").strip()
        name = (request.name or "").strip()
        if not email or not name or request.role is None:
            raise InvalidRequestError("Email, name, and role are required")

        logger.info(f"Invite user request: email={email}, role={request.role.value}")

        self._supabase.rpc("cleanup_expired_invitations")
        self._ensure_can_invite(email)

        try:
            self._supabase.expire_pending_invitations(email)
        except SupabaseClientError as e:
            # Nothing to expire is the common case; the insert below decides
            logger.info(f"Note: could not expire old invitations for {email}: {e.message}")

        try:
            row = self._supabase.insert_row("user_invitations", {
                "email": email,
                "name": name,
                "role": request.role.value,
                "invited_by": str(inviter.id),
            })
        except SupabaseClientError as e:
            logger.error(f"Error creating invitation: {e}")
            raise InvitationError("Failed to create invitation") from e

        invitation = Invitation.model_validate(row)
        self._queue_email(invitation, name, request.role, inviter)

        logger.info(f"Successfully queued invitation for {email}")
        return invitation

    def _ensure_can_invite(self, email: str) -> None:
        existing = [
            user for user in self._supabase.list_auth_users()
            if (user.get("email") or "").lower() == email.lower()
        ]
        if not existing:
            return

        if not self._supabase.find_invitations(email, PRIOR_INVITATION_STATUSES):
            raise InvalidRequestError("User with this email already exists")

    def _queue_email(
        self,
        invitation: Invitation,
        name: str,
        role: Role,
        inviter: CallerIdentity,
    ) -> None:
        invite_link = build_invite_link(self._app_url, invitation.email, invitation.id)
        try:
            self._supabase.insert_row("email_notifications", {
                "recipient_email": invitation.email,
                "email_type": INVITATION_EMAIL_TYPE,
                "subject": INVITATION_SUBJECT,
                "body_html": render_invitation_html(name, role, invite_link),
                "body_text": render_invitation_text(name, role, invite_link),
                "status": EmailStatus.PENDING.value,
                "metadata": {
                    "invitation_id": invitation.id,
                    "invitee_name": name,
                    "invitee_role": role.value,
                    "invited_by": str(inviter.id),
                    "expires_at": invitation.expires_at.isoformat() if invitation.expires_at else None,
                },
            })
        except SupabaseClientError as e:
            logger.error(f"Error queuing invitation email: {e}")
            self._supabase.delete_invitation(invitation.id)
            raise InvitationError(f"Failed to queue invitation email: {e.message}") from e
