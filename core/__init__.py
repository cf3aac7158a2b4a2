# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the business logic behind the API and the workers:
# - models/: Pydantic schemas for data validation
# - services/: Ingestion, notification, user admin and feasibility services
#
# Services take a SupabaseClient (and an httpx.Client where they call out)
# in their constructor, so they run the same under FastAPI and Celery.
# =============================================================================
