# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the CodeCheck API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.auth.gate import AuthorizationGate
from app.config import settings
from app.exceptions import (
    CodeCheckException,
    codecheck_exception_handler,
    supabase_exception_handler,
    validation_exception_handler,
)
from app.routers import checklists, feasibility, health, notifications, ordinances, users
from lib.llm_clients import build_openai_client, build_perplexity_client, close_client
from lib.supabase_client import SupabaseClient, SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Headers sent with every OPTIONS answer
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Build the Supabase, HTTP and model provider clients and the
      AuthorizationGate
    - Shutdown: Close every client
    """
    # Startup
    logger.info(f"Starting CodeCheck API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if settings.email_simulate_mode:
        logger.warning("RESEND_API_KEY not set, queued emails will only be logged")

    supabase = SupabaseClient.from_settings(settings)
    http_client = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    app.state.supabase = supabase
    app.state.http_client = http_client
    app.state.gate = AuthorizationGate(supabase)
    app.state.feasibility_llm = build_perplexity_client(settings)
    app.state.openai_client = build_openai_client(settings)

    yield

    # Shutdown
    logger.info("Shutting down CodeCheck API")
    http_client.close()
    close_client(app.state.feasibility_llm)
    close_client(app.state.openai_client)
    supabase.close()


# Create FastAPI application
app = FastAPI(
    title="CodeCheck API",
    description="""
## Building-Code Compliance Service

Backend for the compliance review and project management web app.

### Features

- **Ordinance Ingestion**: Admin bulk import of jurisdiction ordinances from CSV
- **Notifications**: Queued email delivery, Teams status cards, task alerts
- **User Administration**: Invitations, user listing and cleanup
- **Feasibility Lookup**: Lot size, zoning and jurisdiction for an address
- **Plan Review Agents**: Checklist extraction from plans and correction letters, plan checks

### Authentication

Send the Supabase access token as `Authorization: Bearer <token>`.
Admin endpoints additionally require the `admin` role in `user_roles`.
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Ordinances",
            "description": "CSV ingestion and search of jurisdiction ordinances",
        },
        {
            "name": "Notifications",
            "description": "Email queue, Teams and digest dispatch",
        },
        {
            "name": "Users",
            "description": "Invitations and admin user management",
        },
        {
            "name": "Feasibility",
            "description": "Property research for a project address",
        },
        {
            "name": "Plan Review",
            "description": "Checklist extraction, plan checks and agent prompts",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - answers browser preflight requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def answer_options(request: Request, call_next):
    """
    Answer every non-preflight OPTIONS request with the CORS headers and an
    empty body, before routing and before any auth check.
    """
    is_preflight = (
        "origin" in request.headers
        and "access-control-request-method" in request.headers
    )
    if request.method == "OPTIONS" and not is_preflight:
        return Response(status_code=200, headers=CORS_HEADERS)
    return await call_next(request)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(CodeCheckException)
async def handle_codecheck_exception(request: Request, exc: CodeCheckException):
    """Handle custom CodeCheck exceptions."""
    return await codecheck_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_exception(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported as 400 INVALID_REQUEST."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_supabase_exception(request: Request, exc: SupabaseClientError):
    """Handle database errors that escaped the service layer."""
    return await supabase_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Ordinance ingestion endpoints
app.include_router(
    ordinances.router,
    prefix="/api/v1",
    tags=["Ordinances"]
)

# Notification endpoints
app.include_router(
    notifications.router,
    prefix="/api/v1",
    tags=["Notifications"]
)

# User administration endpoints
app.include_router(
    users.router,
    prefix="/api/v1",
    tags=["Users"]
)

# Feasibility endpoint
app.include_router(
    feasibility.router,
    prefix="/api/v1",
    tags=["Feasibility"]
)


# Plan review agent endpoints
app.include_router(
    checklists.router,
    prefix="/api/v1",
    tags=["Plan Review"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "CodeCheck API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
