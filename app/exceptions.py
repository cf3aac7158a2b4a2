# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Errors should tell HOW to fix, not just WHAT failed.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lib.supabase_client import SupabaseClientError

logger = logging.getLogger(__name__)


class CodeCheckException(Exception):
    """
    Base exception for the CodeCheck API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "CODECHECK_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Request / Authorization Exceptions
# =============================================================================

class InvalidRequestError(CodeCheckException):
    """Raised when required request fields are missing or malformed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            status_code=400,
            suggestion="Check the request body against the endpoint documentation",
            details=details,
        )


class UnauthenticatedError(CodeCheckException):
    """Raised when the bearer token is missing or rejected."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            code="UNAUTHENTICATED",
            status_code=401,
            suggestion="Sign in again and send the access token as 'Authorization: Bearer <token>'",
        )


class ForbiddenError(CodeCheckException):
    """Raised when the caller is authenticated but lacks the required role."""

    def __init__(self, required_role: str, actual_role: str | None = None):
        super().__init__(
            message=f"{required_role.capitalize()} role required",
            code="FORBIDDEN",
            status_code=403,
            suggestion="Ask an administrator to grant you the required role",
            details={"required_role": required_role, "role": actual_role},
        )


class NotFoundError(CodeCheckException):
    """Raised when a referenced record doesn't exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            code="NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {resource.lower()} identifier is correct",
            details={"resource": resource, "identifier": identifier},
        )


# =============================================================================
# Delivery Exceptions
# =============================================================================

class DeliveryNotConfiguredError(CodeCheckException):
    """Raised when a delivery provider credential or URL is missing."""

    def __init__(self, provider: str, setting: str):
        super().__init__(
            message=f"{provider} delivery is not configured",
            code="DELIVERY_NOT_CONFIGURED",
            status_code=500,
            suggestion=f"Set {setting} in the server environment",
            details={"provider": provider, "setting": setting},
        )


class DeliveryFailedError(CodeCheckException):
    """Raised when an external delivery API rejects a message."""

    def __init__(self, provider: str, error: str, status: int | None = None):
        super().__init__(
            message=f"Failed to deliver via {provider}",
            code="DELIVERY_FAILED",
            status_code=502,
            suggestion="Check the provider credentials and try again later",
            details={"provider": provider, "error": error, "status": status},
        )


# =============================================================================
# Workflow Exceptions
# =============================================================================

class InvitationError(CodeCheckException):
    """Raised when an invitation can't be created or its email queued."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            code="INVITATION_FAILED",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
        )


class DigestGenerationError(CodeCheckException):
    """Raised when a daily digest database function fails."""

    def __init__(self, digest: str, error: str):
        super().__init__(
            message=f"Failed to generate {digest} daily digest",
            code="DIGEST_FAILED",
            status_code=500,
            suggestion="Check the digest database functions and the email queue table",
            details={"digest": digest, "error": error},
        )


class ExtractionFailedError(CodeCheckException):
    """Raised when no property data could be extracted for an address."""

    def __init__(self, address: str):
        super().__init__(
            message=f'No valid data could be extracted for address: "{address}" after multiple attempts',
            code="EXTRACTION_FAILED",
            status_code=422,
            suggestion="Check address formatting (e.g., \"123 Main St, City, State ZIP\")",
            details={
                "missingFields": ["lot_size", "zone", "jurisdiction"],
                "suggestions": [
                    "Verify the address exists in public records (try Zillow/Redfin)",
                    "Ensure it's a valid US property address",
                    "Try with additional context (unit numbers, etc.)",
                    "Check if the property is newly constructed or subdivided",
                ],
            },
        )


class NoChecklistItemsError(CodeCheckException):
    """Raised when a plan review step ends up with no checklist items to work with."""

    def __init__(self, message: str, suggestion: str):
        super().__init__(
            message=message,
            code="NO_CHECKLIST_ITEMS",
            status_code=422,
            suggestion=suggestion,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def codecheck_exception_handler(
    request: Request,
    exc: CodeCheckException
) -> JSONResponse:
    """
    Convert CodeCheckException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request body validation errors.

    Malformed bodies are invalid requests, reported as 400.
    """
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Validation error",
            "code": "INVALID_REQUEST",
            "errors": [
                {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
                for error in exc.errors()
            ],
        }
    )


async def supabase_exception_handler(
    request: Request,
    exc: SupabaseClientError
) -> JSONResponse:
    """Database failures that escaped a service are server errors."""
    logger.error(f"{exc.code}: {exc.message}")
    content = {
        "detail": "Database operation failed",
        "code": exc.code,
    }
    if exc.suggestion:
        content["suggestion"] = exc.suggestion
    return JSONResponse(status_code=500, content=content)
