# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the CodeCheck API:
# - test_*_service.py: Unit tests for the core services (Supabase mocked)
# - test_csv_reader.py: CSV decoding and mapping suggestions
# - test_authorization_gate.py: Token and role checks
# - test_api.py: Endpoint tests through FastAPI's TestClient
# - test_tasks.py: Celery task bodies and the beat schedule
#
# Run tests with: pytest
# =============================================================================
