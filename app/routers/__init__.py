# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - areas.py: Life area CRUD, signals and snapshots
# - journal.py: Journal submission and AI scoring
# - jobs.py: Scheduler trigger for the pattern jobs
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import areas
from . import health
from . import jobs
from . import journal

__all__ = [
    "areas",
    "health",
    "jobs",
    "journal",
]
