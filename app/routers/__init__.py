# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - ordinances.py: CSV ordinance ingestion, parsing and search
# - notifications.py: Email queue, Teams, task assignment and digest dispatch
# - users.py: Invitations and admin user management
# - feasibility.py: Property feasibility lookup
# - checklists.py: Checklist extraction, plan checks and agent prompts
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import ordinances
from . import notifications
from . import users
from . import feasibility
from . import checklists

__all__ = [
    "health",
    "ordinances",
    "notifications",
    "users",
    "feasibility",
    "checklists",
]
