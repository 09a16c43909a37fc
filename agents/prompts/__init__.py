# =============================================================================
# agents/prompts/ - System Prompts for AI Agents
# =============================================================================
# This package contains system prompts for each agent:
# - journal_system.py: JournalAnalyst prompt with the life-area taxonomy
#
# Organized with XML tags for clear structure.
# =============================================================================

from agents.prompts.journal_system import (
    JOURNAL_SYSTEM_PROMPT,
    build_journal_prompt,
    build_user_message,
)

__all__ = [
    "JOURNAL_SYSTEM_PROMPT",
    "build_journal_prompt",
    "build_user_message",
]
