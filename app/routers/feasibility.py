# =============================================================================
# app/routers/feasibility.py - Property Feasibility Endpoint
# =============================================================================
# POST /feasibility - Research an address and match zoning ordinances
# =============================================================================

import logging

from fastapi import APIRouter, Depends

from app.auth import CallerIdentity, get_current_user
from app.dependencies import FeasibilityLLMDep, SettingsDep, SupabaseDep
from core.models.feasibility import FeasibilityRequest, FeasibilityResult
from core.services.feasibility_service import FeasibilityAnalyzer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/feasibility", response_model=FeasibilityResult, response_model_by_alias=True)
def analyze_feasibility(
    request: FeasibilityRequest,
    supabase: SupabaseDep,
    llm: FeasibilityLLMDep,
    settings: SettingsDep,
    caller: CallerIdentity = Depends(get_current_user),
):
    """
    Find lot size, zoning and jurisdiction for an address.

    Returns the stored analysis, the matching ordinances and extraction
    analytics. Missing fields are listed under `warnings`.
    """
    analyzer = FeasibilityAnalyzer(supabase, llm, model=settings.FEASIBILITY_MODEL)
    return analyzer.analyze(request, caller)
