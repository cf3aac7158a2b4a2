# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database and auth operations
# - csv_reader.py: CSV upload parsing and column mapping suggestions
#   (imported directly; it depends on core.models)
# - utils.py: Shared helpers (UUIDs, timestamps, cell normalization)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import clean_cell, normalize_field, normalize_uuid, utc_now

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Utils
    "clean_cell",
    "normalize_field",
    "normalize_uuid",
    "utc_now",
]
