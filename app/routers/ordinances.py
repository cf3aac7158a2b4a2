# =============================================================================
# app/routers/ordinances.py - Ordinance Ingestion Endpoints
# =============================================================================
# POST /ordinances/upload  - Admin bulk import of mapped CSV rows
# POST /ordinances/parse   - Parse a CSV file and suggest column mappings
# GET  /ordinances         - Search ordinances by jurisdiction / zone
#
# The upload endpoint keeps a report-shaped body for every outcome, errors
# included: {error, code, successCount: 0, errorCount: 0}.
# =============================================================================

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.auth import CallerIdentity, Role, get_bearer_token, get_current_user
from app.config import settings
from app.dependencies import GateDep, SupabaseDep
from app.exceptions import CodeCheckException, InvalidRequestError
from core.models.ingestion import IngestionReport, IngestRequest, ParsedCSV
from core.services.ingestion_service import OrdinanceIngestionService
from lib.csv_reader import CSVParseError, parse_csv_upload

logger = logging.getLogger(__name__)

router = APIRouter()

ALLOWED_EXTENSIONS = (".csv",)


def _error_report(message: str, code: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": message,
            "code": code,
            "successCount": 0,
            "errorCount": 0,
        },
    )


def _parse_ingest_request(raw: bytes) -> IngestRequest:
    try:
        return IngestRequest.model_validate_json(raw or b"{}")
    except ValidationError as e:
        raise InvalidRequestError(
            "Request body must be JSON with csvData and columnMappings",
            details={"errors": [error.get("msg") for error in e.errors()]},
        ) from e


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/ordinances/upload", response_model=IngestionReport, response_model_by_alias=True)
async def upload_ordinances(
    request: Request,
    supabase: SupabaseDep,
    gate: GateDep,
    token: Optional[str] = Depends(get_bearer_token),
):
    """
    Import mapped CSV rows into jurisdiction_ordinances.

    Admin only. Rows are validated and written in batches of 100; row and
    batch failures are counted in the report rather than failing the call.
    A malformed body is rejected before the caller is looked up.
    """
    try:
        body = _parse_ingest_request(await request.body())
        OrdinanceIngestionService.validate_request(body.csv_data, body.column_mappings)

        # Identity lookup and inserts use the blocking Supabase SDK
        caller = await run_in_threadpool(gate.authorize, token, Role.ADMIN)

        service = OrdinanceIngestionService(
            supabase,
            batch_size=settings.INGEST_BATCH_SIZE,
            max_reported_errors=settings.INGEST_MAX_REPORTED_ERRORS,
        )
        report = await run_in_threadpool(service.ingest, body.csv_data, body.column_mappings, caller)

    except CodeCheckException as e:
        logger.warning(f"Ordinance upload rejected: {e.code}: {e.message}")
        return _error_report(e.message, e.code, e.status_code)
    except Exception as e:
        logger.exception(f"Error in CSV upload: {e}")
        return _error_report("An unexpected error occurred", "INTERNAL_ERROR", 500)

    return report.model_dump(by_alias=True)


@router.post("/ordinances/parse", response_model=ParsedCSV, response_model_by_alias=True)
async def parse_ordinance_csv(
    file: Annotated[UploadFile, File(description="Ordinance CSV file")],
    caller: CallerIdentity = Depends(get_current_user),
):
    """
    Parse a CSV file into headers and rows and suggest column mappings.

    The result can be edited and sent to /ordinances/upload.
    """
    filename = file.filename or "ordinances.csv"
    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        raise InvalidRequestError(
            "Please select a CSV file",
            details={"filename": filename, "allowed": list(ALLOWED_EXTENSIONS)},
        )

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise InvalidRequestError(
            f"File exceeds the {settings.MAX_UPLOAD_SIZE_MB}MB upload limit",
            details={"size_bytes": len(content)},
        )

    logger.info(f"Parsing ordinance CSV {filename} ({len(content)} bytes) for user {caller.id}")

    try:
        parsed = await run_in_threadpool(parse_csv_upload, filename, content)
    except CSVParseError as e:
        raise InvalidRequestError(str(e), details={"filename": filename}) from e

    return parsed.model_dump(by_alias=True)


@router.get("/ordinances")
def search_ordinances(
    supabase: SupabaseDep,
    jurisdiction: Annotated[Optional[str], Query(description="Jurisdiction substring")] = None,
    zone: Annotated[Optional[str], Query(description="Zone substring")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    caller: CallerIdentity = Depends(get_current_user),
) -> dict[str, Any]:
    """Case-insensitive substring search over jurisdiction and zone."""
    ordinances = supabase.search_ordinances(jurisdiction=jurisdiction, zone=zone, limit=limit)
    return {"ordinances": ordinances, "count": len(ordinances)}
