# =============================================================================
# core/services/aggregation_service.py - Score Aggregation Engine
# =============================================================================
# Applies signals to the LifeArea -> Subdomain -> Dimension hierarchy and
# recomputes everything derived from it: subdomain and area scores,
# status (with hysteresis and the broken-commitment override), momentum
# and drift.
#
# Writes use optimistic concurrency: read the aggregate and its version,
# recompute, write only if the version is unchanged. A mismatch triggers
# a fresh read and another attempt, up to the policy's retry limit.
#
# Usage:
#   engine = AggregationEngine(repository, settings.scoring_policy())
#   result = engine.apply_signal(signal)
#   print(result.area_score, result.status)
# =============================================================================

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta

from core.errors import AreaNotFoundError, ConcurrencyConflict, ValidationError
from core.models import (
    LifeArea,
    LifeAreaCreate,
    LifeAreaPatch,
    Signal,
    SignalKind,
    SignalSource,
    Snapshot,
    Subdomain,
    UpdatedAggregate,
)
from core.repository import AreaRepository, VersionMismatch
from core.scoring import (
    DEFAULT_POLICY,
    ScoringPolicy,
    apply_boundary_event,
    apply_hysteresis,
    area_score,
    broken_commitment_active,
    classify_status,
    drift_at,
    momentum,
    subdomain_score,
    update_metric,
)
from lib.utils import day_key, ensure_utc, utc_now

logger = logging.getLogger(__name__)


class AggregationEngine:
    """
    Recomputes area aggregates whenever a signal lands.

    The repository and policy are injected; `clock` is injectable so tests
    can pin "now".

    Example:
        engine = AggregationEngine(InMemoryRepository())
        area = engine.create_area("tenant-a", "user-1", LifeAreaCreate(code="HLT", name="Health"))
        result = engine.apply_signal(Signal(
            tenant_id="tenant-a", user_id="user-1", area_id=area.id,
            dimension="doing", value=4,
        ))
    """

    def __init__(
        self,
        repository: AreaRepository,
        policy: ScoringPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.policy = policy
        self.clock = clock

    # -------------------------------------------------------------------------
    # Area CRUD
    # -------------------------------------------------------------------------

    def create_area(self, tenant_id: str, user_id: str, payload: LifeAreaCreate) -> LifeArea:
        """
        Create a life area from a validated create request.

        An area created without subdomains gets one subdomain named after
        the area, so signals always have somewhere to land.
        """
        area = LifeArea(tenant_id=tenant_id, user_id=user_id, code=payload.code, name=payload.name)
        definitions = payload.subdomains or []
        if definitions:
            area.subdomains = [
                Subdomain(area_id=area.id, name=d.name, weight=d.weight) for d in definitions
            ]
        else:
            area.subdomains = [Subdomain(area_id=area.id, name=payload.name)]

        created = self.repository.create_area(area)
        logger.info(f"Created area {created.code} ({created.id}) for user {user_id}")
        return created

    def get_area(self, tenant_id: str, user_id: str, area_id: str) -> LifeArea:
        """
        Fetch an area owned by the user.

        Raises:
            AreaNotFoundError: If it doesn't exist or belongs to someone else
        """
        area = self.repository.get_area(tenant_id, user_id, area_id)
        if area is None:
            raise AreaNotFoundError(area_id)
        return area

    def list_areas(self, tenant_id: str, user_id: str, active_only: bool = True) -> list[LifeArea]:
        return self.repository.list_areas(tenant_id, user_id, active_only=active_only)

    def list_snapshots(self, tenant_id: str, user_id: str, area_id: str) -> list[Snapshot]:
        self.get_area(tenant_id, user_id, area_id)
        return self.repository.list_snapshots(tenant_id, area_id)

    def patch_area(
        self,
        tenant_id: str,
        user_id: str,
        area_id: str,
        patch: LifeAreaPatch,
    ) -> LifeArea:
        """
        Apply a patch (rename, activate/deactivate, reweight subdomains).

        Reweighting recomputes the area score. Runs under the same
        read-recompute-write protocol as apply_signal.

        Raises:
            AreaNotFoundError: If the area doesn't exist
            ValidationError: If a weight refers to an unknown subdomain
            ConcurrencyConflict: If the area kept changing across retries
        """
        attempts = 0
        while True:
            attempts += 1
            area = self.get_area(tenant_id, user_id, area_id)
            expected_version = area.version

            if patch.name is not None:
                area.name = patch.name
            if patch.is_active is not None:
                area.is_active = patch.is_active
            if patch.subdomain_weights:
                for subdomain_id, weight in patch.subdomain_weights.items():
                    subdomain = area.subdomain(subdomain_id)
                    if subdomain is None:
                        raise ValidationError(
                            f"Unknown subdomain for area {area_id}: {subdomain_id}",
                            field="subdomain_weights",
                            value=subdomain_id,
                        )
                    subdomain.weight = weight
                self._recompute(area, self.clock())

            try:
                saved = self.repository.save_area(area, expected_version)
            except VersionMismatch as e:
                self._check_retry(area_id, attempts, e)
                continue

            logger.info(f"Patched area {area_id} (version {saved.version})")
            return saved

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    @staticmethod
    def validate_signal(signal: Signal) -> None:
        """
        Reject out-of-range input before anything is read or written.

        Raises:
            ValidationError: If value or confidence is outside its range
        """
        if not math.isfinite(signal.value):
            raise ValidationError("Signal value must be a finite number", field="value", value=signal.value)
        if signal.kind == SignalKind.ABSOLUTE and not 0.0 <= signal.value <= 5.0:
            raise ValidationError(
                f"Metric must be between 0 and 5, got {signal.value}",
                field="value",
                value=signal.value,
            )
        if signal.kind == SignalKind.DELTA and not -5.0 <= signal.value <= 5.0:
            raise ValidationError(
                f"Delta must be between -5 and 5, got {signal.value}",
                field="value",
                value=signal.value,
            )
        if not math.isfinite(signal.confidence) or not 0.0 <= signal.confidence <= 1.0:
            raise ValidationError(
                f"Confidence must be between 0 and 1, got {signal.confidence}",
                field="confidence",
                value=signal.confidence,
            )

    def apply_signal(self, signal: Signal) -> UpdatedAggregate:
        """
        Apply one signal and persist the recomputed aggregate.

        Args:
            signal: The signal to apply (appended to the log on success)

        Returns:
            UpdatedAggregate with the saved area and headline numbers

        Raises:
            ValidationError: Out-of-range value/confidence or unknown subdomain
            AreaNotFoundError: The area doesn't exist for this user
            ConcurrencyConflict: Version mismatch on every attempt
        """
        self.validate_signal(signal)

        attempts = 0
        while True:
            attempts += 1
            area = self.get_area(signal.tenant_id, signal.user_id, signal.area_id)
            expected_version = area.version
            previous_status = area.status
            now = self.clock()

            subdomain = self._fold_signal(area, signal, now)
            area.momentum = self._momentum(area, now)

            try:
                saved = self.repository.save_area(area, expected_version, signal)
            except VersionMismatch as e:
                self._check_retry(signal.area_id, attempts, e)
                continue

            if saved.status != previous_status:
                logger.info(
                    f"Area {saved.id} status {previous_status} -> {saved.status} "
                    f"(score {saved.score})"
                )
            saved_subdomain = saved.subdomain(subdomain.id)
            return UpdatedAggregate(
                area=saved,
                signal=signal,
                subdomain_id=subdomain.id,
                dimension_metric=saved_subdomain.dimension(signal.dimension).metric,
                subdomain_score=saved_subdomain.score,
                area_score=saved.score,
                status=saved.status,
                previous_status=previous_status,
                momentum=saved.momentum,
                drift=saved.drift,
                attempts=attempts,
            )

    def state_at(self, area: LifeArea, signals: Iterable[Signal], as_of: datetime) -> LifeArea:
        """
        Rebuild an area as it stood at `as_of` by replaying its signal log.

        The subdomain structure and weights come from `area`; metrics,
        scores, status, drift and the broken-commitment timestamp come only
        from signals that occurred at or before `as_of`, folded in
        occurrence order. Nothing is written.

        Args:
            area: Current aggregate (used for its structure)
            signals: The area's signals; later ones are ignored
            as_of: Point in time to rebuild

        Returns:
            A detached LifeArea copy (momentum left unset)
        """
        replayed = area.model_copy(deep=True)
        replayed.score = None
        replayed.status = None
        replayed.pending_status = None
        replayed.pending_count = 0
        replayed.momentum = None
        replayed.drift = 0.0
        replayed.drift_updated_at = None
        replayed.broken_commitment_at = None
        for subdomain in replayed.subdomains:
            subdomain.score = None
            for dimension in subdomain.dimensions:
                dimension.metric = None
                dimension.notes = None
                dimension.updated_at = None

        ordered = sorted(
            (s for s in signals if ensure_utc(s.occurred_at) <= as_of),
            key=lambda s: ensure_utc(s.occurred_at),
        )
        for signal in ordered:
            if signal.subdomain_id is not None and replayed.subdomain(signal.subdomain_id) is None:
                logger.warning(f"Replay of area {area.id} skipped signal {signal.id}: unknown subdomain")
                continue
            self._fold_signal(replayed, signal, ensure_utc(signal.occurred_at))
        return replayed

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _fold_signal(self, area: LifeArea, signal: Signal, now: datetime) -> Subdomain:
        """Apply `signal` to `area` in place as of `now`; returns the touched subdomain."""
        subdomain = self._target_subdomain(area, signal)
        dimension = subdomain.dimension(signal.dimension)
        dimension.metric = update_metric(
            dimension.metric,
            signal.kind,
            signal.value,
            confidence=signal.confidence,
            weighted=signal.source == SignalSource.AI,
        )
        dimension.updated_at = now
        if signal.note:
            dimension.notes = signal.note

        if signal.broken_commitment:
            occurred = ensure_utc(signal.occurred_at)
            if area.broken_commitment_at is None or occurred > area.broken_commitment_at:
                area.broken_commitment_at = occurred

        area.drift = apply_boundary_event(
            drift_at(area.drift, area.drift_updated_at, now, self.policy),
            signal.boundary,
            self.policy.drift_step,
        )
        area.drift_updated_at = now
        self._refresh_status(area, now)
        return subdomain

    @staticmethod
    def _target_subdomain(area: LifeArea, signal: Signal) -> Subdomain:
        if signal.subdomain_id is None:
            if not area.subdomains:
                raise ValidationError(f"Area {area.id} has no subdomains", field="subdomain_id")
            return area.subdomains[0]
        subdomain = area.subdomain(signal.subdomain_id)
        if subdomain is None:
            raise ValidationError(
                f"Unknown subdomain for area {area.id}: {signal.subdomain_id}",
                field="subdomain_id",
                value=signal.subdomain_id,
            )
        return subdomain

    def _recompute(self, area: LifeArea, now: datetime) -> None:
        """Refresh scores, status and momentum on `area` in place."""
        self._refresh_status(area, now)
        area.momentum = self._momentum(area, now)

    def _refresh_status(self, area: LifeArea, now: datetime) -> None:
        for subdomain in area.subdomains:
            subdomain.score = subdomain_score(subdomain.dimensions)
        area.score = area_score(area.subdomains)

        override = broken_commitment_active(area.broken_commitment_at, now, self.policy)
        candidate = classify_status(area.score, override, self.policy)
        area.status, area.pending_status, area.pending_count = apply_hysteresis(
            area.status,
            area.pending_status,
            area.pending_count,
            candidate,
            override=override,
            policy=self.policy,
        )

    def _momentum(self, area: LifeArea, now: datetime) -> float | None:
        window = self.policy.momentum_window_days
        history = self.repository.list_daily_summaries(
            area.tenant_id,
            area.id,
            since_day=day_key(now - timedelta(days=window)),
            until_day=day_key(now),
        )
        points = [(ensure_utc(s.captured_at), s.score) for s in history]
        return momentum(points, now, window, current_score=area.score)

    def _check_retry(self, area_id: str, attempts: int, error: VersionMismatch) -> None:
        if attempts > self.policy.max_concurrency_retries:
            logger.error(f"Giving up on area {area_id} after {attempts} attempts: {error}")
            raise ConcurrencyConflict(area_id, attempts)
        logger.warning(f"Version conflict on area {area_id} (attempt {attempts}), retrying")
