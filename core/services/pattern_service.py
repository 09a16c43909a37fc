# =============================================================================
# core/services/pattern_service.py - Pattern Detection Jobs
# =============================================================================
# Batch passes over every tenant's areas:
# - daily:   write a DailySummary per area, then detect sustained decline,
#            drift build-up, signal trends and cross-area correlations and
#            emit PatternAlerts
# - weekly:  week-over-week delta report per area from daily summaries
# - monthly: one immutable Snapshot per area for the month
# - archive: mark alerts older than the retention window archived
#
# Each job defaults to the most recent COMPLETE period (yesterday, last
# ISO week, last month); keys for periods that haven't finished are
# rejected. Daily summaries and snapshots record the area as it stood at
# the END of their period, rebuilt from the append-only signal log, so a
# late run or a backfill writes the same history an on-time run would.
# Every write is insert-if-absent, so rerunning a job for the same period
# key changes nothing.
#
# Tenants are isolated: an exception inside one tenant becomes a failed
# TenantOutcome and the loop moves on. A set cancel_event stops the loop
# before the next tenant; tenants already processed keep their writes.
#
# Usage:
#   runner = PatternJobRunner(repository, settings.pattern_policy(), settings.scoring_policy())
#   result = runner.run(JobName.DAILY)
#   print(result.summary())
# =============================================================================

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, defaultdict
from collections.abc import Callable
from datetime import date, datetime, time as dt_time, timedelta, timezone

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from core.errors import JobError, ValidationError
from core.models import (
    AlertType,
    DailySummary,
    JobName,
    JobResult,
    LifeArea,
    PatternAlert,
    Signal,
    SignalKind,
    Snapshot,
    TenantOutcome,
    TrendDirection,
    WeeklyReport,
)
from core.repository import AreaRepository
from core.scoring import (
    DEFAULT_POLICY,
    ScoringPolicy,
    drift_at,
    is_sustained_decline,
    momentum,
    round_half_up,
)
from core.services.aggregation_service import AggregationEngine
from lib.utils import (
    day_key,
    ensure_utc,
    month_bounds,
    previous_month_key,
    utc_now,
    week_bounds,
    week_key,
)

logger = logging.getLogger(__name__)

# Occurrences at which a correlation is reported with full confidence
CORRELATION_FULL_CONFIDENCE = 5
# Metric spread (0-5 scale) at which a trend is reported with full confidence
TREND_FULL_CONFIDENCE = 2.5


class PatternPolicy(BaseModel):
    """Thresholds for the pattern jobs."""

    model_config = ConfigDict(frozen=True)

    decline_streak_days: int = Field(default=3, ge=2)
    drift_alert_threshold: float = Field(default=0.5, gt=0.0, le=1.0)
    weekly_trend_threshold: float = Field(default=4.0, ge=0.0)
    momentum_window_days: int = Field(default=7, ge=1)
    pattern_window_days: int = Field(default=90, ge=1)
    trend_min_signals: int = Field(default=4, ge=2)
    trend_min_difference: float = Field(default=1.0, gt=0.0)
    correlation_min_occurrences: int = Field(default=3, ge=2)
    correlation_gap_days: float = Field(default=7.0, gt=0.0)
    alert_retention_days: int = Field(default=365, ge=1)


def _start_of(day: date) -> datetime:
    return datetime.combine(day, dt_time.min, tzinfo=timezone.utc)


def _occurred(signal: Signal) -> datetime:
    return ensure_utc(signal.occurred_at)


def generate_weekly_summary(
    area_name: str,
    days_observed: int,
    alert_count: int,
    current_mean: float | None,
    delta: float | None,
    trend: TrendDirection,
) -> str:
    """
    One short paragraph describing an area's week.

    Example:
        "This week you logged 5 days of Health & Vitality scores (mean 62.4)
         with a downward trend of -6.2 points. 1 pattern was detected.
         Consider reviewing your boundaries and commitments in this area."
    """
    mood = {
        TrendDirection.UP: "an upward",
        TrendDirection.DOWN: "a downward",
        TrendDirection.STABLE: "a steady",
    }[trend]

    text = f"This week you logged {days_observed} day{'s' if days_observed != 1 else ''} of {area_name} scores"
    if current_mean is not None:
        text += f" (mean {current_mean:.1f})"
    text += f" with {mood} trend"
    if delta is not None:
        text += f" of {delta:+.1f} points"
    text += ". "
    text += f"{alert_count} pattern{'s were' if alert_count != 1 else ' was'} detected. "

    if trend == TrendDirection.UP:
        text += "Keep building on this momentum!"
    elif trend == TrendDirection.DOWN:
        text += "Consider reviewing your boundaries and commitments in this area."
    else:
        text += "Continue tracking your progress and stay mindful of emerging patterns."
    return text


class PatternJobRunner:
    """
    Runs the daily, weekly, monthly and archive jobs across all tenants.

    Example:
        runner = PatternJobRunner(InMemoryRepository(tenants=["t1"]))
        result = runner.run("monthly", period_key="2026-09")
        assert result.success
    """

    def __init__(
        self,
        repository: AreaRepository,
        policy: PatternPolicy | None = None,
        scoring_policy: ScoringPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.repository = repository
        self.policy = policy or PatternPolicy()
        self.scoring_policy = scoring_policy
        self.clock = clock
        # Only used to rebuild past area state; it never writes
        self.engine = AggregationEngine(repository, scoring_policy, clock=clock)

        self._handlers: dict[JobName, Callable[[str, str, datetime, TenantOutcome], None]] = {
            JobName.DAILY: self._run_daily,
            JobName.WEEKLY: self._run_weekly,
            JobName.MONTHLY: self._run_monthly,
            JobName.ARCHIVE: self._run_archive,
        }

    # -------------------------------------------------------------------------
    # Main Entry Point
    # -------------------------------------------------------------------------

    def run(
        self,
        job: JobName | str,
        now: datetime | None = None,
        period_key: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> JobResult:
        """
        Run one job for every tenant.

        Args:
            job: "daily", "weekly", "monthly" or "archive"
            now: Reference time (defaults to the clock)
            period_key: Explicit period; defaults to the last complete one
            cancel_event: When set, remaining tenants are skipped

        Returns:
            JobResult with one TenantOutcome per tenant

        Raises:
            ValidationError: Unknown job name, malformed period key, or a
                period that hasn't finished yet
        """
        try:
            job = JobName(job)
        except ValueError as e:
            raise ValidationError(f"Unknown job: {job}", field="job", value=str(job)) from e

        now = now or self.clock()
        period_key = period_key or self.default_period(job, now)
        self.validate_period(job, period_key, now)

        tenants = self.repository.list_tenants()
        logger.info(f"Starting {job.value} job for {period_key} across {len(tenants)} tenants")

        outcomes: list[TenantOutcome] = []
        cancelled = False
        for tenant_id in tenants:
            if cancel_event is not None and cancel_event.is_set():
                if not cancelled:
                    logger.warning(f"{job.value} job cancelled before tenant {tenant_id}")
                cancelled = True
                outcomes.append(TenantOutcome(tenant_id=tenant_id, success=False, cancelled=True))
                continue
            outcomes.append(self._run_tenant(job, tenant_id, period_key, now))

        result = JobResult(job=job, period_key=period_key, outcomes=outcomes, cancelled=cancelled)
        if result.success:
            logger.info(result.summary())
        else:
            logger.error(result.summary())
        return result

    @staticmethod
    def default_period(job: JobName, now: datetime) -> str:
        """Key of the most recent complete period for the job."""
        if job in (JobName.DAILY, JobName.ARCHIVE):
            return day_key(now - timedelta(days=1))
        if job == JobName.WEEKLY:
            return week_key(now - timedelta(days=7))
        return previous_month_key(now)

    @classmethod
    def validate_period(cls, job: JobName, period_key: str, now: datetime) -> None:
        """
        Raises:
            ValidationError: If the key doesn't match the job's period format
                or names a period that hasn't finished by `now`
        """
        try:
            if job in (JobName.DAILY, JobName.ARCHIVE):
                date.fromisoformat(period_key)
            elif job == JobName.WEEKLY:
                week_bounds(period_key)
            else:
                month_bounds(period_key)
        except ValueError as e:
            raise ValidationError(
                f"Invalid period key for {job.value} job: {period_key}",
                field="period_key",
                value=period_key,
            ) from e

        # Zero-padded keys of one job sort chronologically
        latest = cls.default_period(job, now)
        if period_key > latest:
            raise ValidationError(
                f"Period {period_key} has not finished yet; latest complete period is {latest}",
                field="period_key",
                value=period_key,
            )

    def _run_tenant(self, job: JobName, tenant_id: str, period_key: str, now: datetime) -> TenantOutcome:
        outcome = TenantOutcome(tenant_id=tenant_id, success=True)
        started = time.perf_counter()
        try:
            self._handlers[job](tenant_id, period_key, now, outcome)
        except Exception as e:
            error = JobError(job.value, tenant_id, str(e))
            logger.exception(error.message)
            outcome.success = False
            outcome.error = error.message
            outcome.error_code = error.code
        outcome.execution_ms = int((time.perf_counter() - started) * 1000)

        if outcome.success:
            logger.info(
                f"[{job.value}] {tenant_id}: {outcome.areas_processed} areas, "
                f"{outcome.records_written} written, {outcome.records_skipped} skipped, "
                f"{outcome.alerts_emitted} alerts in {outcome.execution_ms}ms"
            )
        return outcome

    # -------------------------------------------------------------------------
    # Daily
    # -------------------------------------------------------------------------

    def _run_daily(self, tenant_id: str, period_key: str, now: datetime, outcome: TenantOutcome) -> None:
        day = date.fromisoformat(period_key)
        until = min(_start_of(day + timedelta(days=1)), now)
        since = until - timedelta(hours=24)
        window_start = until - timedelta(days=self.policy.pattern_window_days)

        areas = self.repository.list_areas(tenant_id, active_only=True)
        window_signals: dict[str, list[Signal]] = {}

        for area in areas:
            log = self.repository.list_signals(tenant_id, area.id, until=until)
            state = self.engine.state_at(area, log, until)
            signals = [s for s in log if _occurred(s) >= since]
            window_signals[area.id] = [s for s in log if _occurred(s) >= window_start]
            drift = drift_at(state.drift, state.drift_updated_at, until, self.scoring_policy)
            confidences = [s.confidence for s in signals]

            summary = DailySummary(
                tenant_id=tenant_id,
                user_id=area.user_id,
                area_id=area.id,
                day=period_key,
                score=state.score,
                status=state.status,
                drift=drift,
                signal_count=len(signals),
                mean_confidence=round_half_up(sum(confidences) / len(confidences), 3) if confidences else None,
                captured_at=until,
            )
            if self.repository.insert_daily_summary(summary):
                outcome.records_written += 1
            else:
                outcome.records_skipped += 1

            alerts = self._detect_patterns(state, day, until, drift)
            if signals:
                alerts.extend(self._detect_trend(state, day, window_signals[area.id]))
            for alert in alerts:
                if self.repository.insert_alert(alert):
                    outcome.alerts_emitted += 1
            outcome.areas_processed += 1

        by_user: dict[str, list[LifeArea]] = defaultdict(list)
        for area in areas:
            by_user[area.user_id].append(area)
        for user_areas in by_user.values():
            for alert in self._detect_correlations(user_areas, window_signals, day, since):
                if self.repository.insert_alert(alert):
                    outcome.alerts_emitted += 1

    def _detect_patterns(
        self,
        area: LifeArea,
        day: date,
        until: datetime,
        drift: float,
    ) -> list[PatternAlert]:
        """Sustained decline over daily summaries, and drift build-up."""
        streak = self.policy.decline_streak_days
        window = self.policy.momentum_window_days
        lookback = max(streak, window)
        history = self.repository.list_daily_summaries(
            area.tenant_id,
            area.id,
            since_day=day_key(day - timedelta(days=lookback)),
            until_day=day_key(day),
        )
        alerts: list[PatternAlert] = []
        trend = momentum(((s.captured_at, s.score) for s in history), until, window)
        scored_today = any(s.day == day_key(day) and s.score is not None for s in history)

        if scored_today and is_sustained_decline(
            ((date.fromisoformat(s.day), s.score) for s in history), streak
        ):
            recent = [s.score for s in history if s.score is not None][-streak:]
            path = " -> ".join(f"{score:g}" for score in recent)
            alerts.append(
                PatternAlert(
                    tenant_id=area.tenant_id,
                    user_id=area.user_id,
                    area_id=area.id,
                    alert_type=AlertType.SUSTAINED_DECLINE,
                    period_key=day_key(day),
                    title=f"Sustained decline in {area.name}",
                    description=f"Score fell {streak} days in a row: {path}",
                    momentum=trend,
                    evidence=recent,
                )
            )

        if drift >= self.policy.drift_alert_threshold:
            alerts.append(
                PatternAlert(
                    tenant_id=area.tenant_id,
                    user_id=area.user_id,
                    area_id=area.id,
                    alert_type=AlertType.DRIFT_WARNING,
                    period_key=day_key(day),
                    title=f"Boundary drift building in {area.name}",
                    description=f"Drift is {drift:.2f}; repeated boundary violations are accumulating",
                    momentum=trend,
                    evidence=[drift],
                )
            )
        return alerts

    def _detect_trend(self, area: LifeArea, day: date, signals: list[Signal]) -> list[PatternAlert]:
        """
        Compare the mean absolute rating in the older and newer half of the
        pattern window.

        Deltas are relative and can't be averaged against ratings, so only
        absolute signals count.
        """
        ratings = [s.value for s in sorted(signals, key=_occurred) if s.kind == SignalKind.ABSOLUTE]
        if len(ratings) < self.policy.trend_min_signals:
            return []

        midpoint = len(ratings) // 2
        earlier = sum(ratings[:midpoint]) / midpoint
        recent = sum(ratings[midpoint:]) / (len(ratings) - midpoint)
        difference = recent - earlier
        if abs(difference) < self.policy.trend_min_difference:
            return []

        improving = difference > 0
        if improving:
            description = (
                f"Recent ratings in {area.name} average {recent:.1f}, up from {earlier:.1f}. "
                "Notice what is working and keep it going."
            )
        else:
            description = (
                f"Recent ratings in {area.name} average {recent:.1f}, down from {earlier:.1f}. "
                "Consider reviewing your boundaries and commitments in this area."
            )
        return [
            PatternAlert(
                tenant_id=area.tenant_id,
                user_id=area.user_id,
                area_id=area.id,
                alert_type=AlertType.TREND,
                period_key=day_key(day),
                title=f"{'Upward' if improving else 'Downward'} trend in {area.name}",
                description=description,
                evidence=[round_half_up(earlier, 2), round_half_up(recent, 2)],
                confidence=round_half_up(min(1.0, abs(difference) / TREND_FULL_CONFIDENCE), 2),
            )
        ]

    def _detect_correlations(
        self,
        areas: list[LifeArea],
        window_signals: dict[str, list[Signal]],
        day: date,
        since: datetime,
    ) -> list[PatternAlert]:
        """
        Find pairs of one user's areas where activity in the first is
        repeatedly followed by activity in the second.

        Walks the user's signals in time order and counts consecutive
        (A, B) pairs with A != B no more than `correlation_gap_days` apart.
        A pair is reported when it reaches `correlation_min_occurrences`
        and it occurred again on `day`; each leading area reports only its
        most frequent follower.
        """
        timeline = sorted(
            (s for area in areas for s in window_signals.get(area.id, [])),
            key=_occurred,
        )
        gap = timedelta(days=self.policy.correlation_gap_days)
        counts: Counter[tuple[str, str]] = Counter()
        seen_today: set[tuple[str, str]] = set()

        for first, second in zip(timeline, timeline[1:]):
            if first.area_id == second.area_id or _occurred(second) - _occurred(first) > gap:
                continue
            pair = (first.area_id, second.area_id)
            counts[pair] += 1
            if _occurred(second) >= since:
                seen_today.add(pair)

        best: dict[str, tuple[str, int]] = {}
        for (leader, follower), count in sorted(counts.items()):
            if count < self.policy.correlation_min_occurrences or (leader, follower) not in seen_today:
                continue
            if leader not in best or count > best[leader][1]:
                best[leader] = (follower, count)

        names = {area.id: area for area in areas}
        alerts: list[PatternAlert] = []
        for leader_id, (follower_id, count) in best.items():
            leader, follower = names[leader_id], names[follower_id]
            alerts.append(
                PatternAlert(
                    tenant_id=leader.tenant_id,
                    user_id=leader.user_id,
                    area_id=leader.id,
                    related_area_id=follower.id,
                    alert_type=AlertType.CROSS_AREA_CORRELATION,
                    period_key=day_key(day),
                    title=f"{leader.name} and {follower.name} move together",
                    description=(
                        f"Activity in {leader.name} was followed by activity in {follower.name} "
                        f"{count} times in the last {self.policy.pattern_window_days} days. "
                        "These areas may be interconnected."
                    ),
                    evidence=[float(count)],
                    confidence=round_half_up(min(1.0, count / CORRELATION_FULL_CONFIDENCE), 2),
                )
            )
        return alerts

    # -------------------------------------------------------------------------
    # Weekly
    # -------------------------------------------------------------------------

    def _run_weekly(self, tenant_id: str, period_key: str, now: datetime, outcome: TenantOutcome) -> None:
        monday, sunday = week_bounds(period_key)
        previous_monday = monday - timedelta(days=7)

        for area in self.repository.list_areas(tenant_id, active_only=True):
            outcome.areas_processed += 1
            history = self.repository.list_daily_summaries(
                tenant_id,
                area.id,
                since_day=day_key(previous_monday),
                until_day=day_key(sunday),
            )
            report = self._weekly_report(area, period_key, monday, sunday, history)
            if report is None:
                outcome.records_skipped += 1
                continue
            if self.repository.insert_weekly_report(report):
                outcome.records_written += 1
            else:
                outcome.records_skipped += 1

    def _weekly_report(
        self,
        area: LifeArea,
        period_key: str,
        monday: date,
        sunday: date,
        history: list[DailySummary],
    ) -> WeeklyReport | None:
        """Week-over-week report, or None when the week has no scored days."""
        df = pd.DataFrame(
            [{"day": pd.Timestamp(s.day), "score": s.score} for s in history],
            columns=["day", "score"],
        ).dropna(subset=["score"])
        if df.empty:
            return None

        df["week"] = (df["day"] >= pd.Timestamp(monday)).map({True: "current", False: "previous"})
        stats = df.groupby("week")["score"].agg(["mean", "count"])
        if "current" not in stats.index:
            return None

        current_mean = round_half_up(float(stats.loc["current", "mean"]), 2)
        previous_mean = (
            round_half_up(float(stats.loc["previous", "mean"]), 2) if "previous" in stats.index else None
        )
        delta = round_half_up(current_mean - previous_mean, 2) if previous_mean is not None else None

        threshold = self.policy.weekly_trend_threshold
        if delta is not None and delta >= threshold:
            trend = TrendDirection.UP
        elif delta is not None and delta <= -threshold:
            trend = TrendDirection.DOWN
        else:
            trend = TrendDirection.STABLE

        days_observed = int(stats.loc["current", "count"])
        alert_count = sum(
            1 for alert in self.repository.list_alerts(area.tenant_id, area.id)
            if day_key(monday) <= alert.period_key <= day_key(sunday)
        )
        return WeeklyReport(
            tenant_id=area.tenant_id,
            user_id=area.user_id,
            area_id=area.id,
            week_key=period_key,
            current_mean=current_mean,
            previous_mean=previous_mean,
            delta=delta,
            trend=trend,
            days_observed=days_observed,
            summary=generate_weekly_summary(
                area.name, days_observed, alert_count, current_mean, delta, trend
            ),
        )

    # -------------------------------------------------------------------------
    # Monthly
    # -------------------------------------------------------------------------

    def _run_monthly(self, tenant_id: str, period_key: str, now: datetime, outcome: TenantOutcome) -> None:
        first, last = month_bounds(period_key)
        month_start = _start_of(first)
        month_end = min(_start_of(last + timedelta(days=1)), now)
        window = self.policy.momentum_window_days

        for area in self.repository.list_areas(tenant_id, active_only=False):
            outcome.areas_processed += 1
            if self.repository.get_snapshot(tenant_id, area.id, period_key) is not None:
                outcome.records_skipped += 1
                continue

            log = self.repository.list_signals(tenant_id, area.id, until=month_end)
            state = self.engine.state_at(area, log, month_end)
            history = self.repository.list_daily_summaries(
                tenant_id,
                area.id,
                since_day=day_key(month_end - timedelta(days=window)),
                until_day=day_key(last),
            )
            snapshot = Snapshot(
                tenant_id=tenant_id,
                user_id=area.user_id,
                area_id=area.id,
                period_key=period_key,
                score=state.score,
                status=state.status,
                momentum=momentum(((s.captured_at, s.score) for s in history), month_end, window),
                drift=drift_at(state.drift, state.drift_updated_at, month_end, self.scoring_policy),
                signal_count=sum(1 for s in log if _occurred(s) >= month_start),
                captured_at=now,
            )
            # Insert-if-absent also covers a concurrent run writing first
            if self.repository.insert_snapshot(snapshot):
                outcome.records_written += 1
            else:
                outcome.records_skipped += 1

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    def _run_archive(self, tenant_id: str, period_key: str, now: datetime, outcome: TenantOutcome) -> None:
        day = date.fromisoformat(period_key)
        cutoff = _start_of(day + timedelta(days=1)) - timedelta(days=self.policy.alert_retention_days)
        archived = self.repository.archive_alerts(tenant_id, cutoff)
        outcome.records_written += archived
        if archived:
            logger.info(f"Archived {archived} alerts for {tenant_id} created before {cutoff.isoformat()}")
