# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable infrastructure:
# - supabase_client.py: Supabase-backed AreaRepository
# - memory_store.py: In-process AreaRepository for tests and local runs
# - utils.py: Shared utilities (error base class, time helpers, period keys)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.utils import ApplicationError

__all__ = [
    "ApplicationError",
]
