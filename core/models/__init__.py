# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - ingestion.py: CSV ingestion request/report and parse results
# - notification.py: Email queue, Teams and task assignment schemas
# - user.py: Invitations and user administration schemas
# - feasibility.py: Property feasibility lookup schemas
# - checklist.py: Checklist extraction, plan check and agent prompt schemas
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Ingestion Models
# -----------------------------------------------------------------------------
from .ingestion import (
    ATTRIBUTION_COLUMN,
    ORDINANCE_COLUMNS,
    ORDINANCE_TABLE,
    REQUIRED_ORDINANCE_COLUMNS,
    ColumnMapping,
    CSVData,
    IngestionReport,
    IngestRequest,
    ParsedCSV,
    SuggestedMapping,
)

# -----------------------------------------------------------------------------
# Notification Models
# -----------------------------------------------------------------------------
from .notification import (
    DeliveryResult,
    DigestResult,
    EmailNotification,
    EmailQueueResult,
    EmailStatus,
    TaskAssignmentEmailRequest,
    TeamsNotificationPayload,
)

# -----------------------------------------------------------------------------
# User Administration Models
# -----------------------------------------------------------------------------
from .user import (
    DeleteUserRequest,
    DeleteUserResponse,
    Invitation,
    InviteResponse,
    InviteUserRequest,
    OrphanedAuthUser,
    OrphanedProfile,
    OrphanReport,
    UserList,
    UserWithAuth,
)

# -----------------------------------------------------------------------------
# Feasibility Models
# -----------------------------------------------------------------------------
from .feasibility import (
    PROPERTY_FIELDS,
    AddressValidation,
    ExtractedPropertyData,
    FeasibilityAnalytics,
    FeasibilityRequest,
    FeasibilityResult,
    FeasibilityWarnings,
)

# -----------------------------------------------------------------------------
# Plan Review Models
# -----------------------------------------------------------------------------
from .checklist import (
    AGENT_PROMPT_NAMES,
    CHECKLIST_FIELDS,
    AgentPrompt,
    AgentPromptUpdate,
    ArchitecturalIssue,
    ChecklistExtractionData,
    ChecklistExtractionResult,
    PlanCheckResponse,
    PlanCheckResult,
    PlanCheckSummary,
    SourceDocument,
)

__all__ = [
    # Ingestion
    "ATTRIBUTION_COLUMN",
    "ORDINANCE_COLUMNS",
    "ORDINANCE_TABLE",
    "REQUIRED_ORDINANCE_COLUMNS",
    "ColumnMapping",
    "CSVData",
    "IngestionReport",
    "IngestRequest",
    "ParsedCSV",
    "SuggestedMapping",
    # Notifications
    "DeliveryResult",
    "DigestResult",
    "EmailNotification",
    "EmailQueueResult",
    "EmailStatus",
    "TaskAssignmentEmailRequest",
    "TeamsNotificationPayload",
    # Users
    "DeleteUserRequest",
    "DeleteUserResponse",
    "Invitation",
    "InviteResponse",
    "InviteUserRequest",
    "OrphanedAuthUser",
    "OrphanedProfile",
    "OrphanReport",
    "UserList",
    "UserWithAuth",
    # Feasibility
    "PROPERTY_FIELDS",
    "AddressValidation",
    "ExtractedPropertyData",
    "FeasibilityAnalytics",
    "FeasibilityRequest",
    "FeasibilityResult",
    "FeasibilityWarnings",
    # Plan review
    "AGENT_PROMPT_NAMES",
    "CHECKLIST_FIELDS",
    "AgentPrompt",
    "AgentPromptUpdate",
    "ArchitecturalIssue",
    "ChecklistExtractionData",
    "ChecklistExtractionResult",
    "PlanCheckResponse",
    "PlanCheckResult",
    "PlanCheckSummary",
    "SourceDocument",
]
