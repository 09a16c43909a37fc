# =============================================================================
# core/models/signal.py - Signal Schemas
# =============================================================================
# A Signal is an atomic, immutable observation about one dimension of one
# life area. Signals are only ever appended; newer signals supersede older
# ones through the aggregate, never by mutation.
#
# SignalCreate is the request body. Its ranges are deliberately NOT
# enforced by pydantic: the engine validates them and raises a typed
# ValidationError so out-of-range input is rejected, never clamped.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from lib.utils import utc_now
from .area import AreaStatus, DimensionKey, LifeArea


class SignalSource(str, Enum):
    """Where a signal came from."""
    MANUAL = "manual"
    AI = "ai"
    RITUAL = "ritual"


class SignalKind(str, Enum):
    """
    How `value` is interpreted.

    - absolute: the new metric, 0-5
    - delta: a change to add to the current metric, -5 to 5
    """
    ABSOLUTE = "absolute"
    DELTA = "delta"


class BoundaryEvent(str, Enum):
    """Boundary events move drift toward +1 (violation) or -1 (restoration)."""
    VIOLATION = "violation"
    RESTORATION = "restoration"


class Signal(BaseModel):
    """Immutable signal record as stored in the append-only log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    area_id: str
    subdomain_id: str | None = None
    dimension: DimensionKey
    kind: SignalKind = SignalKind.ABSOLUTE
    value: float
    confidence: float = 1.0
    source: SignalSource = SignalSource.MANUAL
    broken_commitment: bool = False
    boundary: BoundaryEvent | None = None
    note: str | None = None
    reasoning: str | None = None
    journal_entry_id: str | None = None
    occurred_at: datetime = Field(default_factory=utc_now)


class SignalCreate(BaseModel):
    """
    Request body for POST /areas/{area_id}/signals.

    Example:
        {
            "dimension": "doing",
            "kind": "delta",
            "value": -1.5,
            "source": "manual",
            "broken_commitment": true,
            "note": "Skipped the third workout this week"
        }
    """

    subdomain_id: str | None = None
    dimension: DimensionKey
    kind: SignalKind = SignalKind.ABSOLUTE
    value: float
    confidence: float = 1.0
    source: SignalSource = SignalSource.MANUAL
    broken_commitment: bool = False
    boundary: BoundaryEvent | None = None
    note: str | None = Field(default=None, max_length=2000)
    occurred_at: datetime | None = None

    def to_signal(self, tenant_id: str, user_id: str, area_id: str) -> Signal:
        """Bind the request to its owner and area."""
        data = self.model_dump(exclude_none=True)
        return Signal(tenant_id=tenant_id, user_id=user_id, area_id=area_id, **data)


class UpdatedAggregate(BaseModel):
    """
    Result of applying one signal.

    Carries the persisted area plus the headline numbers callers usually
    want without digging into the hierarchy.
    """

    area: LifeArea
    signal: Signal
    subdomain_id: str
    dimension_metric: float | None
    subdomain_score: float | None
    area_score: float | None
    status: AreaStatus | None
    previous_status: AreaStatus | None
    momentum: float | None
    drift: float
    attempts: int = 1

    @property
    def status_changed(self) -> bool:
        return self.status != self.previous_status
