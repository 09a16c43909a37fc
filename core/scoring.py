# =============================================================================
# core/scoring.py - Scoring Rules
# =============================================================================
# Pure functions that turn dimension metrics into scores, statuses, trend
# momentum and drift. Nothing in here touches storage or the clock; callers
# pass `now` explicitly so every rule is deterministic and testable.
#
# Scales:
# - dimension metric: 0-5
# - subdomain / area score: 0-100 (metric mean x 20)
# - drift: -1 (restoring) .. +1 (accumulating boundary violations)
# - momentum: score units per day
#
# Status uses ONE numeric classification. The traffic-light colours
# (GREEN / YELLOW / RED) are labels over it, see AreaStatus.traffic_light.
# =============================================================================

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from core.models.area import AreaStatus, Dimension, Subdomain
from core.models.signal import BoundaryEvent, SignalKind

METRIC_MIN = 0.0
METRIC_MAX = 5.0
SCORE_MIN = 0.0
SCORE_MAX = 100.0
METRIC_TO_SCORE = 20.0


class ScoringPolicy(BaseModel):
    """
    Tunable constants for the aggregation engine.

    Built from Settings at startup (Settings.scoring_policy()) and passed
    to the engine; the defaults are the canonical values.
    """

    model_config = ConfigDict(frozen=True)

    thriving_min: float = 70.0
    attention_min: float = 40.0
    hysteresis_recomputations: int = Field(default=2, ge=1)
    drift_half_life_days: float = Field(default=7.0, gt=0.0)
    drift_step: float = Field(default=0.25, gt=0.0, le=1.0)
    momentum_window_days: int = Field(default=7, ge=1)
    broken_commitment_window_days: float = Field(default=7.0, ge=0.0)
    max_concurrency_retries: int = Field(default=3, ge=0)


DEFAULT_POLICY = ScoringPolicy()


# =============================================================================
# Helpers
# =============================================================================

def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float, digits: int = 0) -> float:
    """Round like a dashboard would (2.5 -> 3), not banker's rounding."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def average(values: Mapping[str, float | None] | Iterable[float | None]) -> float:
    """
    Mean of the values that are set, rounded to 2 decimals.

    None entries are ignored; if nothing is set the result is 0.

    Example:
        average({"q1": 4, "q2": 3.5, "q3": 5})            # 4.17
        average({"q1": 4, "q2": None, "q3": None, "q4": 2})  # 3.0
        average({"q1": None})                             # 0
    """
    items = values.values() if isinstance(values, Mapping) else values
    present = [float(v) for v in items if v is not None]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present), 2)


# =============================================================================
# Metric Updates
# =============================================================================

def update_metric(
    current: float | None,
    kind: SignalKind,
    value: float,
    confidence: float = 1.0,
    weighted: bool = False,
) -> float:
    """
    New dimension metric after a signal.

    - absolute: overwrites the metric
    - delta: adds to the metric (unset counts as 0) and clamps to [0, 5]

    With `weighted=True` (AI signals) an absolute value only moves the
    metric `confidence` of the way toward it, and a delta is scaled by
    `confidence`.

    Inputs are assumed validated; only the derived result is clamped.
    """
    if kind == SignalKind.ABSOLUTE:
        if weighted and current is not None:
            updated = current + (value - current) * confidence
        else:
            updated = value
    else:
        step = value * confidence if weighted else value
        updated = (current or 0.0) + step
    return round_half_up(clamp(updated, METRIC_MIN, METRIC_MAX), 3)


# =============================================================================
# Scores
# =============================================================================

def subdomain_score(dimensions: Sequence[Dimension]) -> float | None:
    """
    round(mean(rated metrics) x 20), clamped to [0, 100].

    Returns None when no dimension is rated, so the subdomain drops out of
    its parent's average instead of dragging it to 0.
    """
    metrics = [d.metric for d in dimensions if d.metric is not None]
    if not metrics:
        return None
    raw = sum(metrics) / len(metrics) * METRIC_TO_SCORE
    return clamp(round_half_up(raw), SCORE_MIN, SCORE_MAX)


def area_score(subdomains: Sequence[Subdomain]) -> float | None:
    """
    Weighted mean of scored subdomains, rounded to 2 decimals.

    Returns None when no subdomain has a score; such areas are excluded
    from cross-area summaries.
    """
    scored = [(s.score, s.weight) for s in subdomains if s.score is not None]
    if not scored:
        return None
    total_weight = sum(weight for _, weight in scored)
    raw = sum(score * weight for score, weight in scored) / total_weight
    return clamp(round_half_up(raw, 2), SCORE_MIN, SCORE_MAX)


# =============================================================================
# Status
# =============================================================================

def broken_commitment_active(
    broken_commitment_at: datetime | None,
    now: datetime,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> bool:
    """True while a broken-commitment signal is within the override window."""
    if broken_commitment_at is None:
        return False
    window = timedelta(days=policy.broken_commitment_window_days)
    return now - broken_commitment_at <= window


def classify_status(
    score: float | None,
    broken_commitment: bool = False,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> AreaStatus | None:
    """
    Canonical status for a score.

    >= 70 thriving, 40..70 needs attention, < 40 breakdown. A broken
    commitment forces breakdown regardless of score. An unscored area has
    no status unless the override applies.
    """
    if broken_commitment:
        return AreaStatus.BREAKDOWN
    if score is None:
        return None
    if score >= policy.thriving_min:
        return AreaStatus.THRIVING
    if score >= policy.attention_min:
        return AreaStatus.NEEDS_ATTENTION
    return AreaStatus.BREAKDOWN


def apply_hysteresis(
    published: AreaStatus | None,
    pending: AreaStatus | None,
    pending_count: int,
    candidate: AreaStatus | None,
    override: bool = False,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> tuple[AreaStatus | None, AreaStatus | None, int]:
    """
    Decide which status to publish after a recomputation.

    A change is only published once `candidate` has been seen on
    `policy.hysteresis_recomputations` consecutive recomputations. Overrides
    and the first classification of an unscored area publish at once.

    Returns:
        (published status, pending status, pending count)
    """
    if candidate == published:
        return published, None, 0
    if override or published is None or candidate is None:
        return candidate, None, 0

    count = pending_count + 1 if pending == candidate else 1
    if count >= policy.hysteresis_recomputations:
        return candidate, None, 0
    return published, candidate, count


# =============================================================================
# Momentum
# =============================================================================

def momentum(
    points: Iterable[tuple[datetime, float | None]],
    now: datetime,
    window_days: int,
    current_score: float | None = None,
) -> float | None:
    """
    Rate of score change over the window, in score units per day.

    (latest score - earliest score within [now - window, now]) / window.
    Points without a score are ignored. Momentum is undefined (None) unless
    at least two historical points lie in the window. A live
    `current_score` never counts toward that minimum; when given it stands
    in for the latest point.
    """
    start = now - timedelta(days=window_days)
    in_window = sorted(
        (ts, score) for ts, score in points
        if score is not None and start <= ts <= now
    )
    if len(in_window) < 2:
        return None
    earliest, latest = in_window[0][1], in_window[-1][1]
    if current_score is not None:
        latest = current_score
    return round_half_up((latest - earliest) / window_days, 3)


def is_sustained_decline(
    daily_scores: Iterable[tuple[date, float | None]],
    streak_days: int = 3,
) -> bool:
    """
    True when the most recent `streak_days` scored days are consecutive
    calendar days with a strictly falling score.

    Example:
        80 -> 70 -> 55 on three consecutive days  -> True
        80 -> 70 -> 75 (one-day dip)              -> False
    """
    scored = sorted((d, s) for d, s in daily_scores if s is not None)
    if len(scored) < streak_days:
        return False
    run = scored[-streak_days:]
    for (prev_day, prev_score), (day, score) in zip(run, run[1:]):
        if (day - prev_day).days != 1 or not score < prev_score:
            return False
    return True


# =============================================================================
# Drift
# =============================================================================

def decay_drift(drift: float, elapsed_days: float, half_life_days: float) -> float:
    """Exponential decay of drift toward 0 with the given half-life."""
    if elapsed_days <= 0:
        return drift
    return drift * 0.5 ** (elapsed_days / half_life_days)


def apply_boundary_event(drift: float, event: BoundaryEvent | None, step: float) -> float:
    """
    Push drift toward +1 on a violation or -1 on a restoration.

    Each event closes `step` of the remaining distance, so repeated
    violations approach +1 without ever leaving [-1, 1].
    """
    if event == BoundaryEvent.VIOLATION:
        drift = drift + (1.0 - drift) * step
    elif event == BoundaryEvent.RESTORATION:
        drift = drift + (-1.0 - drift) * step
    return clamp(drift, -1.0, 1.0)


def drift_at(
    drift: float,
    updated_at: datetime | None,
    now: datetime,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> float:
    """Drift as of `now`, decayed from its last update."""
    if updated_at is None:
        return drift
    elapsed = (now - updated_at).total_seconds() / 86400
    return round_half_up(decay_drift(drift, elapsed, policy.drift_half_life_days), 4)
