# =============================================================================
# app/routers/checklists.py - Plan Review Agent Endpoints
# =============================================================================
# POST /checklists/extract     - Extract checklist items from plans and letters
# POST /plan-checks            - Check a plan set against the stored checklist
# GET  /agent-prompts/{name}   - Read a stored agent prompt
# PUT  /agent-prompts/{name}   - Replace a stored agent prompt (admin)
# =============================================================================

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool

from app.auth import CallerIdentity, get_current_user, require_admin
from app.dependencies import OpenAIDep, SettingsDep, SupabaseDep
from app.exceptions import NotFoundError
from core.models.checklist import (
    AGENT_PROMPT_NAMES,
    AgentPrompt,
    AgentPromptUpdate,
    ChecklistExtractionResult,
    PlanCheckResponse,
    SourceDocument,
)
from core.services.checklist_service import ChecklistExtractor
from core.services.plan_check_service import PlanChecker

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_documents(files: Optional[list[UploadFile]]) -> list[SourceDocument]:
    documents = []
    for upload in files or []:
        documents.append(SourceDocument(
            filename=upload.filename or "upload",
            content=await upload.read(),
            content_type=upload.content_type or "application/octet-stream",
        ))
    return documents


def _require_known_prompt(name: str) -> None:
    if name not in AGENT_PROMPT_NAMES:
        raise NotFoundError("Agent prompt", name)


# =============================================================================
# Agents
# =============================================================================

@router.post("/checklists/extract", response_model=ChecklistExtractionResult, response_model_by_alias=True)
async def extract_checklist(
    supabase: SupabaseDep,
    llm: OpenAIDep,
    settings: SettingsDep,
    files: Annotated[Optional[list[UploadFile]], File(description="Plans and correction letters")] = None,
    prompt: Annotated[Optional[str], Form(description="Replaces the stored extraction prompt")] = None,
    caller: CallerIdentity = Depends(get_current_user),
):
    """
    Extract every correction item from plans and city correction letters.

    Items are stored in checklist_items for the caller. Up to 10 files are
    accepted; blank fields are stored as 'unspecified'.
    """
    documents = await _read_documents(files)
    extractor = ChecklistExtractor(
        supabase,
        llm,
        model=settings.CHECKLIST_MODEL,
        max_files=settings.CHECKLIST_MAX_FILES,
        max_file_size=settings.checklist_max_file_size_bytes,
    )
    result = await run_in_threadpool(extractor.extract, documents, caller, prompt)
    return result.model_dump(by_alias=True)


@router.post("/plan-checks", response_model=PlanCheckResponse)
async def check_plans(
    supabase: SupabaseDep,
    llm: OpenAIDep,
    settings: SettingsDep,
    files: Annotated[Optional[list[UploadFile]], File(description="Plan set PDF files")] = None,
    caller: CallerIdentity = Depends(get_current_user),
):
    """
    Report likely issues in a plan set using the caller's checklist items.

    The first file is stored in the plan files bucket and its first page is
    used to detect the project city.
    """
    documents = await _read_documents(files)
    checker = PlanChecker(
        supabase,
        llm,
        city_model=settings.PLAN_CITY_MODEL,
        bucket=settings.PLAN_FILES_BUCKET,
    )
    result = await run_in_threadpool(checker.check, documents, caller)
    return PlanCheckResponse(data=result)


# =============================================================================
# Agent Prompts
# =============================================================================

@router.get("/agent-prompts/{name}", response_model=AgentPrompt)
def get_agent_prompt(
    name: str,
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(get_current_user),
):
    """Read the stored prompt for one agent."""
    _require_known_prompt(name)
    row = supabase.fetch_agent_prompt(name)
    if row is None:
        raise NotFoundError("Agent prompt", name)
    return AgentPrompt(name=name, prompt=row.get("prompt") or "", updated_at=row.get("updated_at"))


@router.put("/agent-prompts/{name}", response_model=AgentPrompt)
def save_agent_prompt(
    name: str,
    body: AgentPromptUpdate,
    supabase: SupabaseDep,
    caller: CallerIdentity = Depends(require_admin),
):
    """Replace the stored prompt for one agent, creating it if needed. Admin only."""
    _require_known_prompt(name)
    row = supabase.save_agent_prompt(name, body.prompt)
    logger.info(f"Agent prompt {name} updated by {caller.id}")
    return AgentPrompt(name=name, prompt=row.get("prompt") or body.prompt, updated_at=row.get("updated_at"))
