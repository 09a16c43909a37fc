# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .aggregation_service import AggregationEngine
from .journal_service import JournalService
from .pattern_service import PatternJobRunner, PatternPolicy, generate_weekly_summary

__all__ = [
    "AggregationEngine",
    "JournalService",
    "PatternJobRunner",
    "PatternPolicy",
    "generate_weekly_summary",
]
