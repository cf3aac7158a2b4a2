# =============================================================================
# core/models/checklist.py - Plan Review Agent Schemas
# =============================================================================
# Two AI agents share the checklist_items table:
# - The checklist extractor reads plans and correction letters and stores
#   one row per correction item
# - The plan checker draws on those rows to report likely issues in a plan set
#
# Both agents can be steered with prompts stored in agent_prompts.
# =============================================================================

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

CHECKLIST_TABLE = "checklist_items"
ISSUE_REPORT_TABLE = "architectural_issue_reports"

# Stored prompt names
CHECKLIST_PROMPT_NAME = "default_checklist_extractor"
PLAN_CHECKER_PROMPT_NAME = "default_plan_checker"
AGENT_PROMPT_NAMES = (CHECKLIST_PROMPT_NAME, PLAN_CHECKER_PROMPT_NAME)

# Fields the extractor asks for, in output order
CHECKLIST_FIELDS = (
    "sheet_name",
    "issue_to_check",
    "location",
    "type_of_issue",
    "code_source",
    "code_identifier",
    "short_code_requirement",
    "long_code_requirement",
    "source_link",
    "project_type",
    "city",
    "zip_code",
    "reviewer_name",
    "type_of_correction",
    "zone_primary",
    "occupancy_group",
    "natural_hazard_zone",
)

UNSPECIFIED = "unspecified"

ConfidenceLevel = Literal["High", "Medium", "Low"]


class SourceDocument(BaseModel):
    """One uploaded file, held in memory for the duration of a request."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


# -----------------------------------------------------------------------------
# Checklist Extraction
# -----------------------------------------------------------------------------

class ChecklistExtractionData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extracted_items: int = Field(..., alias="extractedItems")
    inserted_items: int = Field(..., alias="insertedItems")
    execution_time_ms: int = Field(..., alias="executionTimeMs")
    items: list[dict[str, Any]] = Field(default_factory=list)


class ChecklistExtractionResult(BaseModel):
    success: bool = True
    message: str
    data: ChecklistExtractionData


# -----------------------------------------------------------------------------
# Plan Checking
# -----------------------------------------------------------------------------

class ArchitecturalIssue(BaseModel):
    checklist_item_id: Optional[str] = None
    plan_sheet_name: str
    issue_description: str
    location_in_sheet: str
    issue_type: str
    compliance_source: str
    specific_code_identifier: str
    short_code_requirement: str
    long_code_requirement: str
    source_link: str
    confidence_level: ConfidenceLevel
    confidence_rationale: str = "Generated from checklist item analysis"


class PlanCheckSummary(BaseModel):
    total_checked: int
    issues_found: int
    high_confidence: int
    medium_confidence: int
    low_confidence: int


class PlanCheckResult(BaseModel):
    analysis_session_id: str
    city_detected: str
    checklist_items_analyzed: int
    issues: list[ArchitecturalIssue] = Field(default_factory=list)
    analysis_summary: PlanCheckSummary
    file_url: Optional[str] = None


class PlanCheckResponse(BaseModel):
    success: bool = True
    data: PlanCheckResult


# -----------------------------------------------------------------------------
# Agent Prompts
# -----------------------------------------------------------------------------

class AgentPrompt(BaseModel):
    name: str
    prompt: str
    updated_at: Optional[str] = None


class AgentPromptUpdate(BaseModel):
    prompt: str = Field(..., min_length=1)
