# =============================================================================
# agents/ - AI Agent Definitions
# =============================================================================
# This package contains the journal analysis pipeline:
# - journal_analyst.py: JournalAnalyst - journal text -> life-area scores
# - cost.py: CostGuard - token estimates, budgets, concurrency slots
#
# Models:
# - models/analysis.py: AnalyzedScore / JournalAnalysis schemas
#
# Prompts:
# - prompts/journal_system.py: System prompt with the life-area taxonomy
# =============================================================================

from agents.cost import CostGuard, CostPlan, estimate_tokens
from agents.journal_analyst import JournalAnalyst
from agents.models.analysis import AnalyzedScore, JournalAnalysis, TokenUsage

__all__ = [
    # Agent
    "JournalAnalyst",
    # Cost control
    "CostGuard",
    "CostPlan",
    "estimate_tokens",
    # Models
    "AnalyzedScore",
    "JournalAnalysis",
    "TokenUsage",
]
