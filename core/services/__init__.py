# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .ingestion_service import OrdinanceIngestionService
from .email_service import EmailQueueProcessor, ResendEmailSender, TaskAssignmentNotifier
from .teams_service import TeamsNotifier
from .invitation_service import InvitationService
from .user_admin_service import UserAdminService
from .digest_service import DailyDigestService
from .checklist_service import ChecklistExtractor
from .plan_check_service import PlanChecker
from .feasibility_service import FeasibilityAnalyzer

__all__ = [
    "OrdinanceIngestionService",
    "EmailQueueProcessor",
    "ResendEmailSender",
    "TaskAssignmentNotifier",
    "TeamsNotifier",
    "InvitationService",
    "UserAdminService",
    "DailyDigestService",
    "FeasibilityAnalyzer",
    "ChecklistExtractor",
    "PlanChecker",
]
