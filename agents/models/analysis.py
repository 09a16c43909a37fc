# =============================================================================
# agents/models/analysis.py - Journal Analysis Schemas
# =============================================================================
# This module defines the contract between the JournalAnalyst and the
# journal service:
# - AnalyzedScore: one confidence-weighted score for one life area
# - TokenUsage: estimated and actual token counts for a call
# - JournalAnalysis: the full result (scores, sentiment, summary, usage)
#
# Example:
#   analysis = analyst.analyze_entry("Slept badly again, skipped the gym...")
#   for score in analysis.scores:
#       print(f"{score.area_code}: {score.value} ({score.confidence:.0%})")
# =============================================================================

from __future__ import annotations

from pydantic import BaseModel, Field

from core.models import DimensionKey


class AnalyzedScore(BaseModel):
    """
    One area score extracted from journal text.

    `value` is an absolute metric (0-5) unless `is_delta` is set, in which
    case it is a change (-5 to 5).
    """

    area_code: str = Field(
        ...,
        description="Taxonomy code, e.g. HLT"
    )

    dimension: DimensionKey = Field(
        default=DimensionKey.BEING,
        description="Facet the text speaks to"
    )

    value: float = Field(
        ...,
        description="Absolute 0-5 metric or -5..5 delta"
    )

    is_delta: bool = Field(
        default=False,
        description="True if value is a change rather than a level"
    )

    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="How certain the model is (0-1)"
    )

    reasoning: str = Field(
        default="",
        description="Why the model gave this score"
    )


class TokenUsage(BaseModel):
    """Token counts for one analysis call."""

    estimated_input: int = 0
    estimated_output: int = 0
    prompt: int = 0
    completion: int = 0
    total: int = 0


class JournalAnalysis(BaseModel):
    """
    Complete result of analyzing one journal entry.

    `skipped_reason` is set when no call was made (too short, over budget,
    oversized under the skip policy); `scores` is then empty.
    """

    scores: list[AnalyzedScore] = Field(default_factory=list)
    sentiment: float = Field(default=0.0, ge=-1.0, le=1.0)
    summary: str = ""
    dropped: int = Field(
        default=0,
        description="Items discarded as unknown, malformed, out of range or low confidence"
    )
    truncated: bool = False
    usage: TokenUsage = Field(default_factory=TokenUsage)
    estimated_cost_usd: float = 0.0
    model: str | None = None
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None
