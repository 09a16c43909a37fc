# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - area.py: LifeArea -> Subdomain -> Dimension hierarchy and request variants
# - signal.py: Immutable Signal records and the engine's result
# - history.py: Daily summaries, alerts, weekly reports, snapshots, journal
# - jobs.py: Scheduled job results and trigger response
#
# These models define the "contract" between API, engine and storage.
# =============================================================================

# -----------------------------------------------------------------------------
# Hierarchy Models
# -----------------------------------------------------------------------------
from .area import (
    AreaStatus,
    Dimension,
    DimensionKey,
    LifeArea,
    LifeAreaCreate,
    LifeAreaPatch,
    Subdomain,
    SubdomainCreate,
    TrafficLight,
)

# -----------------------------------------------------------------------------
# Signal Models
# -----------------------------------------------------------------------------
from .signal import (
    BoundaryEvent,
    Signal,
    SignalCreate,
    SignalKind,
    SignalSource,
    UpdatedAggregate,
)

# -----------------------------------------------------------------------------
# History Models
# -----------------------------------------------------------------------------
from .history import (
    AlertStatus,
    AlertType,
    DailySummary,
    JournalEntry,
    JournalEntryCreate,
    JournalResult,
    PatternAlert,
    ScoreFailure,
    Snapshot,
    TrendDirection,
    WeeklyReport,
)

# -----------------------------------------------------------------------------
# Job Models
# -----------------------------------------------------------------------------
from .jobs import (
    JobName,
    JobResult,
    TenantOutcome,
    TriggerResponse,
)

__all__ = [
    # Hierarchy
    "AreaStatus",
    "Dimension",
    "DimensionKey",
    "LifeArea",
    "LifeAreaCreate",
    "LifeAreaPatch",
    "Subdomain",
    "SubdomainCreate",
    "TrafficLight",
    # Signals
    "BoundaryEvent",
    "Signal",
    "SignalCreate",
    "SignalKind",
    "SignalSource",
    "UpdatedAggregate",
    # History
    "AlertStatus",
    "AlertType",
    "DailySummary",
    "JournalEntry",
    "JournalEntryCreate",
    "JournalResult",
    "PatternAlert",
    "ScoreFailure",
    "Snapshot",
    "TrendDirection",
    "WeeklyReport",
    # Jobs
    "JobName",
    "JobResult",
    "TenantOutcome",
    "TriggerResponse",
]
