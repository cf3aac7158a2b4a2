# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides a mocked SupabaseClient and caller identities
# - Provides sample ordinance CSV data
# =============================================================================

import os
from unittest.mock import MagicMock
from uuid import UUID

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

# Delivery providers stay unconfigured unless a test sets them
for _key in ("RESEND_API_KEY", "MS_TEAMS_WEBHOOK_URL", "PERPLEXITY_API_KEY", "OPENAI_API_KEY"):
    os.environ.pop(_key, None)

import pytest

from app.auth.models import CallerIdentity, Role
from core.models.ingestion import ColumnMapping, CSVData
from lib.supabase_client import SupabaseClient

ADMIN_ID = UUID("11111111-1111-1111-1111-111111111111")
USER_ID = UUID("22222222-2222-2222-2222-222222222222")


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def mock_supabase():
    """SupabaseClient double; every method is a MagicMock."""
    return MagicMock(spec=SupabaseClient)


@pytest.fixture
def admin_caller():
    """Authenticated admin identity."""
    return CallerIdentity(id=ADMIN_ID, token="admin-token", email="admin@example.com", role=Role.ADMIN)


@pytest.fixture
def user_caller():
    """Authenticated non-admin identity."""
    return CallerIdentity(id=USER_ID, token="user-token", email="ar@example.com", role=Role.AR1_PLANNING)


@pytest.fixture
def sample_csv_data():
    """Two rows, the second missing its zone."""
    return CSVData(
        headers=["Jurisdiction", "Zone", "Notes"],
        rows=[["CityA", "R-1", "ok"], ["CityB", "", ""]],
    )


@pytest.fixture
def sample_mappings():
    """Jurisdiction and Zone mapped; Notes left unmapped."""
    return [
        ColumnMapping(csv_column="Jurisdiction", db_column="jurisdiction"),
        ColumnMapping(csv_column="Zone", db_column="zone"),
    ]


@pytest.fixture
def pending_email_row():
    """One pending row of email_notifications."""
    return {
        "id": "33333333-3333-3333-3333-333333333333",
        "recipient_email": "new.user@example.com",
        "email_type": "user_invitation",
        "subject": "You've been invited",
        "body_html": "<p>Hello</p>",
        "body_text": "Hello",
        "status": "pending",
        "attempts": 0,
        "metadata": {"invitation_id": "inv-1"},
        "created_at": "2025-01-15T10:00:00Z",
    }
