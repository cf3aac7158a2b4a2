# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common helpers used across services and the Supabase wrapper.
# =============================================================================

from datetime import datetime, timezone
from typing import Any
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Example:
        user_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        user_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Time Utilities
# =============================================================================

def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string (for timestamptz columns)."""
    return utc_now().isoformat()


# =============================================================================
# String Utilities
# =============================================================================

def clean_cell(value: Any) -> str | None:
    """
    Trim a cell value, returning None when nothing is left.

    Example:
        clean_cell("  R-1 ") -> "R-1"
        clean_cell("   ")    -> None
        clean_cell(None)     -> None
    """
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_field(value: Any) -> str | None:
    """Like clean_cell, but also treats the literal 'unknown' as missing."""
    text = clean_cell(value)
    if text is None or text.lower() == "unknown":
        return None
    return text


def capitalize_first(value: str | None) -> str:
    """Upper-case the first character only ("on hold" -> "On hold")."""
    if not value:
        return "Unknown"
    return value[:1].upper() + value[1:]
