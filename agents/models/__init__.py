# =============================================================================
# agents/models/ - Agent Communication Schemas
# =============================================================================
# This package contains Pydantic models that define agent contracts:
# - analysis.py: JournalAnalysis schema (JournalAnalyst -> JournalService)
# =============================================================================

from agents.models.analysis import (
    AnalyzedScore,
    JournalAnalysis,
    TokenUsage,
)

__all__ = [
    "AnalyzedScore",
    "JournalAnalysis",
    "TokenUsage",
]
