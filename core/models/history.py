# =============================================================================
# core/models/history.py - History & Digest Schemas
# =============================================================================
# Records written by the pattern jobs and the journal pipeline:
# - DailySummary: per (area, day) history point (daily job)
# - PatternAlert: decline, drift, trend and correlation findings (daily job)
# - WeeklyReport: week-over-week delta per area (weekly job)
# - Snapshot: immutable monthly rollup per (area, period) (monthly job)
# - JournalEntry: raw journal content, persisted before it is scored
#
# All job outputs are unique per (area, period key) so reruns are no-ops.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from lib.utils import utc_now
from .area import AreaStatus
from .signal import UpdatedAggregate


class DailySummary(BaseModel):
    """One history point per area per day."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    user_id: str
    area_id: str
    day: str = Field(..., description="Period key YYYY-MM-DD")
    score: float | None = None
    status: AreaStatus | None = None
    drift: float = 0.0
    signal_count: int = 0
    mean_confidence: float | None = None
    captured_at: datetime = Field(default_factory=utc_now)


class AlertType(str, Enum):
    """Kinds of pattern the daily job reports."""
    SUSTAINED_DECLINE = "sustained_decline"
    DRIFT_WARNING = "drift_warning"
    TREND = "trend"
    CROSS_AREA_CORRELATION = "cross_area_correlation"


class AlertStatus(str, Enum):
    """Alerts older than the retention window are archived, never deleted."""
    ACTIVE = "active"
    ARCHIVED = "archived"


class PatternAlert(BaseModel):
    """A pattern finding for one area on one day."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    area_id: str
    alert_type: AlertType
    period_key: str
    title: str
    description: str
    momentum: float | None = None
    evidence: list[float] = Field(default_factory=list)
    # Confidence of the finding, 0-1; set by the signal-log detectors
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    # Second area of a cross-area correlation (the one that follows)
    related_area_id: str | None = None
    status: AlertStatus = AlertStatus.ACTIVE
    created_at: datetime = Field(default_factory=utc_now)


class TrendDirection(str, Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class WeeklyReport(BaseModel):
    """Week-over-week delta for one area."""

    model_config = ConfigDict(frozen=True)

    tenant_id: str
    user_id: str
    area_id: str
    week_key: str = Field(..., description="ISO week key YYYY-Www")
    current_mean: float | None = None
    previous_mean: float | None = None
    delta: float | None = None
    trend: TrendDirection = TrendDirection.STABLE
    days_observed: int = 0
    summary: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class Snapshot(BaseModel):
    """
    Immutable monthly rollup of an area's aggregate state.

    Written once per (area_id, period_key) by the monthly job and never
    updated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    area_id: str
    period_key: str = Field(..., description="Period key YYYY-MM")
    score: float | None = None
    status: AreaStatus | None = None
    momentum: float | None = None
    drift: float = 0.0
    signal_count: int = 0
    captured_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# Journal
# =============================================================================

class JournalEntryCreate(BaseModel):
    """
    Request body for POST /journal.

    Example:
        {
            "content": "Slept badly again, skipped the gym, but dinner with my sister was lovely.",
            "area_hint": "HLT"
        }
    """

    content: str = Field(..., min_length=1, max_length=50_000)
    area_hint: str | None = Field(default=None, max_length=8)


class JournalEntry(BaseModel):
    """A stored journal entry. Content is kept even when scoring fails."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    content: str
    area_hint: str | None = None
    scored: bool = False
    scoring_error: str | None = None
    created_at: datetime = Field(default_factory=utc_now)


class ScoreFailure(BaseModel):
    """An analysed score the engine refused or could not write."""

    area_code: str
    code: str
    message: str


class JournalResult(BaseModel):
    """
    Outcome of submitting one journal entry.

    `applied` holds one UpdatedAggregate per AI signal that landed;
    `failed` the scores that matched an area but were not written;
    `unmatched_codes` lists analysed areas the user doesn't track.
    """

    entry: JournalEntry
    applied: list[UpdatedAggregate] = Field(default_factory=list)
    failed: list[ScoreFailure] = Field(default_factory=list)
    unmatched_codes: list[str] = Field(default_factory=list)
    skipped_reason: str | None = None
    sentiment: float = 0.0
    summary: str = ""
