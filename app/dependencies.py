# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# The handles are built once in the lifespan handler (app/main.py) and stored
# on app.state; tests replace them with app.dependency_overrides.
# =============================================================================

from typing import Annotated, Optional

import httpx
from fastapi import Depends, Request
from openai import OpenAI

from app.auth.gate import AuthorizationGate
from app.config import Settings, get_settings
from lib.supabase_client import SupabaseClient


def get_supabase_client(request: Request) -> SupabaseClient:
    """Get the process-wide Supabase client handle."""
    return request.app.state.supabase


def get_http_client(request: Request) -> httpx.Client:
    """Get the shared HTTP client used for delivery APIs."""
    return request.app.state.http_client


def get_authorization_gate(request: Request) -> AuthorizationGate:
    """Get the AuthorizationGate bound to the Supabase client."""
    return request.app.state.gate


def get_feasibility_llm(request: Request) -> Optional[OpenAI]:
    """Get the Perplexity client, or None when no key is configured."""
    return getattr(request.app.state, "feasibility_llm", None)


def get_openai_client(request: Request) -> Optional[OpenAI]:
    """Get the OpenAI client for the plan review agents, or None when no key is configured."""
    return getattr(request.app.state, "openai_client", None)


# Type aliases for dependency injection
SupabaseDep = Annotated[SupabaseClient, Depends(get_supabase_client)]
HttpClientDep = Annotated[httpx.Client, Depends(get_http_client)]
GateDep = Annotated[AuthorizationGate, Depends(get_authorization_gate)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
FeasibilityLLMDep = Annotated[Optional[OpenAI], Depends(get_feasibility_llm)]
OpenAIDep = Annotated[Optional[OpenAI], Depends(get_openai_client)]
