# =============================================================================
# core/models/area.py - Life Area Hierarchy Schemas
# =============================================================================
# These models define the LifeArea -> Subdomain -> Dimension hierarchy:
# - DimensionKey: the five fixed facets every subdomain is rated on
# - AreaStatus: canonical status classification (with traffic-light aliases)
# - Dimension / Subdomain / LifeArea: the aggregate persisted per
#   (tenant_id, user_id, area_id) and guarded by `version`
# - LifeAreaCreate / LifeAreaPatch: request variants validated before they
#   reach the engine
# =============================================================================

from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class DimensionKey(str, Enum):
    """
    The five facets every subdomain is rated on.

    Order matters: subdomains always list dimensions in this order.
    """
    BEING = "being"
    DOING = "doing"
    HAVING = "having"
    RELATING = "relating"
    BECOMING = "becoming"


class TrafficLight(str, Enum):
    """Dashboard colour labels. Aliases of AreaStatus, never computed separately."""
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


class AreaStatus(str, Enum):
    """
    Canonical status classification of a scored area or subdomain.

    - thriving: score >= 70
    - needs_attention: 40 <= score < 70
    - breakdown: score < 40, or a broken commitment override
    """
    THRIVING = "thriving"
    NEEDS_ATTENTION = "needs_attention"
    BREAKDOWN = "breakdown"

    @property
    def label(self) -> str:
        """Human-readable label ("Needs Attention")."""
        return self.value.replace("_", " ").title()

    @property
    def traffic_light(self) -> TrafficLight:
        """The GREEN/YELLOW/RED alias for this status."""
        return {
            AreaStatus.THRIVING: TrafficLight.GREEN,
            AreaStatus.NEEDS_ATTENTION: TrafficLight.YELLOW,
            AreaStatus.BREAKDOWN: TrafficLight.RED,
        }[self]


# =============================================================================
# Hierarchy
# =============================================================================

class Dimension(BaseModel):
    """
    One facet rating inside a subdomain.

    `metric` is None until the first signal lands; when set it is always
    within [0, 5].
    """

    key: DimensionKey
    metric: float | None = Field(default=None, ge=0.0, le=5.0)
    notes: str | None = None
    updated_at: datetime | None = None


def _default_dimensions() -> list[Dimension]:
    return [Dimension(key=key) for key in DimensionKey]


class Subdomain(BaseModel):
    """A named subdivision of a life area with its five dimensions."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    area_id: str
    name: str
    # Relative weight in the parent area average
    weight: float = Field(default=1.0, gt=0.0)
    score: float | None = Field(default=None, ge=0.0, le=100.0)
    dimensions: list[Dimension] = Field(default_factory=_default_dimensions)

    def dimension(self, key: DimensionKey) -> Dimension:
        """Return the dimension with the given key."""
        for dimension in self.dimensions:
            if dimension.key == key:
                return dimension
        raise KeyError(key)


class LifeArea(BaseModel):
    """
    The aggregate for one life area of one user.

    Everything the engine recomputes when a signal lands lives here, along
    with the inputs status is derived from (score, broken-commitment
    timestamp and the hysteresis counters). `version` is bumped on every
    successful write and drives optimistic concurrency.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    tenant_id: str
    user_id: str
    code: str = Field(..., description="Taxonomy code, e.g. HLT")
    name: str
    is_active: bool = True

    score: float | None = Field(default=None, ge=0.0, le=100.0)
    status: AreaStatus | None = None
    momentum: float | None = None
    drift: float = Field(default=0.0, ge=-1.0, le=1.0)
    drift_updated_at: datetime | None = None
    broken_commitment_at: datetime | None = None

    # Hysteresis inputs: a candidate status and how many consecutive
    # recomputations have agreed on it
    pending_status: AreaStatus | None = None
    pending_count: int = 0

    version: int = 0
    subdomains: list[Subdomain] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def subdomain(self, subdomain_id: str) -> Subdomain | None:
        """Find a subdomain by id."""
        for subdomain in self.subdomains:
            if subdomain.id == subdomain_id:
                return subdomain
        return None


# =============================================================================
# Request Variants
# =============================================================================

class SubdomainCreate(BaseModel):
    """Subdomain definition supplied when creating an area."""

    name: str = Field(..., min_length=1, max_length=120)
    weight: float = Field(default=1.0, gt=0.0)


class LifeAreaCreate(BaseModel):
    """
    Create variant: every field an area needs.

    If no subdomains are given the area gets a single subdomain named
    after itself.

    Example:
        {
            "code": "HLT",
            "name": "Health & Vitality",
            "subdomains": [{"name": "Sleep"}, {"name": "Fitness", "weight": 2}]
        }
    """

    code: str = Field(..., min_length=2, max_length=8)
    name: str = Field(..., min_length=1, max_length=120)
    subdomains: list[SubdomainCreate] = Field(default_factory=list)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class LifeAreaPatch(BaseModel):
    """
    Patch variant: all fields optional, only provided ones change.

    `subdomain_weights` maps subdomain id -> new weight.
    """

    name: str | None = Field(default=None, min_length=1, max_length=120)
    is_active: bool | None = None
    subdomain_weights: dict[str, float] | None = None

    @field_validator("subdomain_weights")
    @classmethod
    def weights_positive(cls, v: dict[str, float] | None) -> dict[str, float] | None:
        if v is not None:
            for subdomain_id, weight in v.items():
                if weight <= 0:
                    raise ValueError(f"weight for {subdomain_id} must be > 0")
        return v

    def is_empty(self) -> bool:
        return self.name is None and self.is_active is None and not self.subdomain_weights
