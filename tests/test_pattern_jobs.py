# =============================================================================
# tests/test_pattern_jobs.py - Pattern Job Tests
# =============================================================================
# Tests for PatternJobRunner:
# - default periods and period validation, unfinished periods rejected
# - daily summaries rebuilt from the signal log, on time or backfilled
# - sustained-decline, drift, trend and cross-area correlation alerts
# - weekly week-over-week reports
# - immutable monthly snapshots
# - alert archiving past the retention window
# - idempotent reruns, per-tenant isolation and cancellation
#
# Run with: pytest tests/test_pattern_jobs.py -v
# =============================================================================

import threading
from datetime import datetime, timedelta, timezone

import pytest

from core.errors import ValidationError
from core.models import (
    AlertStatus,
    AlertType,
    DailySummary,
    JobName,
    LifeAreaCreate,
    LifeAreaPatch,
    PatternAlert,
    TrendDirection,
)
from core.services import AggregationEngine, PatternJobRunner, PatternPolicy, generate_weekly_summary
from lib.memory_store import InMemoryRepository
from tests.conftest import NOW, TENANT, USER, FakeClock, make_signal

# Inside the 2026-10-18 day the default daily run covers
YESTERDAY = NOW - timedelta(hours=20)


def _summary(area_id, day, score):
    """A stored daily summary captured at the end of `day`."""
    captured = datetime.fromisoformat(day).replace(tzinfo=timezone.utc) + timedelta(days=1)
    return DailySummary(
        tenant_id=TENANT, user_id=USER, area_id=area_id, day=day, score=score, captured_at=captured
    )


class BrokenTenantRepository(InMemoryRepository):
    """Fails every area listing for one tenant."""

    def list_areas(self, tenant_id, user_id=None, active_only=True):
        if tenant_id == "tenant-broken":
            raise RuntimeError("connection lost")
        return super().list_areas(tenant_id, user_id, active_only)


# =============================================================================
# Periods
# =============================================================================

class TestPeriods:

    @pytest.mark.parametrize(
        "job,expected",
        [
            (JobName.DAILY, "2026-10-18"),
            (JobName.WEEKLY, "2026-W42"),
            (JobName.MONTHLY, "2026-09"),
        ],
    )
    def test_default_is_last_complete_period(self, job, expected):
        assert PatternJobRunner.default_period(job, NOW) == expected

    def test_monthly_default_across_year_boundary(self):
        now = datetime(2027, 1, 1, 1, 0, tzinfo=timezone.utc)
        assert PatternJobRunner.default_period(JobName.MONTHLY, now) == "2026-12"

    @pytest.mark.parametrize(
        "job,key",
        [("daily", "2026-13-01"), ("weekly", "2026-10"), ("monthly", "October")],
    )
    def test_malformed_period_rejected(self, runner, job, key):
        with pytest.raises(ValidationError):
            runner.run(job, period_key=key)

    def test_unknown_job_rejected(self, runner):
        with pytest.raises(ValidationError):
            runner.run("hourly")

    @pytest.mark.parametrize(
        "job,key",
        [
            ("daily", "2026-10-19"),
            ("daily", "2027-01-01"),
            ("weekly", "2026-W43"),
            ("monthly", "2026-10"),
            ("archive", "2026-10-20"),
        ],
    )
    def test_unfinished_period_rejected(self, runner, repository, job, key):
        with pytest.raises(ValidationError) as exc_info:
            runner.run(job, period_key=key)

        assert exc_info.value.details["field"] == "period_key"
        assert "has not finished yet" in exc_info.value.message

    def test_latest_complete_period_accepted(self, runner):
        assert runner.run("daily", period_key="2026-10-18").success
        assert runner.run("weekly", period_key="2026-W42").success


# =============================================================================
# Daily Job
# =============================================================================

class TestDailyJob:

    def test_writes_one_summary_per_active_area(self, runner, repository, engine, health_area):
        engine.apply_signal(make_signal(health_area.id, value=3.5, occurred_at=YESTERDAY))
        inactive = engine.create_area(TENANT, USER, LifeAreaCreate(code="FIN", name="Finance"))
        engine.patch_area(TENANT, USER, inactive.id, LifeAreaPatch(is_active=False))

        result = runner.run(JobName.DAILY)

        assert result.success
        assert result.period_key == "2026-10-18"
        [summary] = repository.list_daily_summaries(TENANT, health_area.id)
        assert summary.day == "2026-10-18"
        assert summary.score == 70
        assert summary.signal_count == 1
        assert summary.mean_confidence == 1.0
        assert repository.list_daily_summaries(TENANT, inactive.id) == []

    def test_rerun_is_idempotent(self, runner, repository, engine, health_area):
        engine.apply_signal(make_signal(health_area.id))

        first = runner.run(JobName.DAILY)
        second = runner.run(JobName.DAILY)

        assert first.outcomes[0].records_written == 1
        assert second.outcomes[0].records_written == 0
        assert second.outcomes[0].records_skipped == 1
        assert len(repository.list_daily_summaries(TENANT, health_area.id)) == 1

    def test_sustained_decline_alert(self, runner, repository, engine, health_area):
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-16", 80.0))
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-17", 70.0))
        engine.apply_signal(make_signal(health_area.id, value=2.75, occurred_at=YESTERDAY))

        result = runner.run(JobName.DAILY)

        assert result.outcomes[0].alerts_emitted == 1
        [alert] = repository.list_alerts(TENANT, health_area.id)
        assert alert.alert_type == AlertType.SUSTAINED_DECLINE
        assert alert.period_key == "2026-10-18"
        assert alert.evidence == [80.0, 70.0, 55.0]
        assert "80 -> 70 -> 55" in alert.description
        assert alert.momentum is not None and alert.momentum < 0

    def test_one_day_dip_is_not_a_pattern(self, runner, repository, engine, health_area):
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-16", 80.0))
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-17", 50.0))
        engine.apply_signal(make_signal(health_area.id, value=3.0, occurred_at=YESTERDAY))

        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT, health_area.id) == []

    def test_alert_not_duplicated_on_rerun(self, runner, repository, engine, health_area):
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-16", 80.0))
        repository.insert_daily_summary(_summary(health_area.id, "2026-10-17", 70.0))
        engine.apply_signal(make_signal(health_area.id, value=2.75, occurred_at=YESTERDAY))

        runner.run(JobName.DAILY)
        second = runner.run(JobName.DAILY)

        assert second.outcomes[0].alerts_emitted == 0
        assert len(repository.list_alerts(TENANT, health_area.id)) == 1

    def test_drift_warning(self, runner, repository, engine, health_area):
        for _ in range(3):
            engine.apply_signal(make_signal(health_area.id, boundary="violation", occurred_at=YESTERDAY))

        runner.run(JobName.DAILY)

        alerts = repository.list_alerts(TENANT, health_area.id)
        assert [a.alert_type for a in alerts] == [AlertType.DRIFT_WARNING]
        assert alerts[0].evidence[0] >= 0.5


class TestDailyHistory:
    """Summaries record each day's own state, whenever the job runs."""

    DAYS = ["2026-10-16", "2026-10-17", "2026-10-18"]
    VALUES = [4.0, 3.5, 2.75]

    def _signal_on(self, engine, area, day, value):
        occurred = datetime.fromisoformat(day).replace(hour=10, tzinfo=timezone.utc)
        engine.apply_signal(make_signal(area.id, value=value, occurred_at=occurred))

    def _assert_decline(self, repository, area):
        summaries = repository.list_daily_summaries(TENANT, area.id)
        assert [(s.day, s.score) for s in summaries] == list(zip(self.DAYS, [80.0, 70.0, 55.0]))

        [alert] = repository.list_alerts(TENANT, area.id)
        assert alert.alert_type == AlertType.SUSTAINED_DECLINE
        assert alert.period_key == "2026-10-18"
        assert alert.evidence == [80.0, 70.0, 55.0]

    def test_on_time_runs_on_consecutive_days(self, repository, health_area):
        clock = FakeClock(datetime(2026, 10, 16, 12, 0, tzinfo=timezone.utc))
        engine = AggregationEngine(repository, clock=clock)
        runner = PatternJobRunner(repository, clock=clock)

        for day, value in zip(self.DAYS, self.VALUES):
            self._signal_on(engine, health_area, day, value)
            clock.advance(days=1)
            result = runner.run(JobName.DAILY)
            assert result.period_key == day

        self._assert_decline(repository, health_area)

    def test_backfill_after_the_fact(self, runner, repository, engine, health_area):
        for day, value in zip(self.DAYS, self.VALUES):
            self._signal_on(engine, health_area, day, value)

        for day in self.DAYS:
            assert runner.run(JobName.DAILY, period_key=day).success

        self._assert_decline(repository, health_area)

    def test_later_signals_do_not_leak_into_past_day(self, runner, repository, engine, health_area):
        self._signal_on(engine, health_area, "2026-10-17", 4.0)
        engine.apply_signal(make_signal(health_area.id, value=1.0, occurred_at=NOW))

        runner.run(JobName.DAILY, period_key="2026-10-17")

        [summary] = repository.list_daily_summaries(TENANT, health_area.id)
        assert summary.score == 80
        assert summary.signal_count == 1

    def test_day_without_signals_carries_previous_state(self, runner, repository, engine, health_area):
        self._signal_on(engine, health_area, "2026-10-16", 3.5)

        runner.run(JobName.DAILY, period_key="2026-10-18")

        [summary] = repository.list_daily_summaries(TENANT, health_area.id)
        assert summary.score == 70
        assert summary.signal_count == 0


# =============================================================================
# Signal-Log Detectors
# =============================================================================

class TestTrendDetection:

    def _ratings(self, engine, area, values):
        start = NOW - timedelta(days=len(values))
        for offset, value in enumerate(values):
            engine.apply_signal(make_signal(area.id, value=value, occurred_at=start + timedelta(days=offset)))

    def test_downward_trend(self, runner, repository, engine, health_area):
        self._ratings(engine, health_area, [4.0, 4.0, 2.0, 2.0])

        runner.run(JobName.DAILY)

        [alert] = repository.list_alerts(TENANT, health_area.id)
        assert alert.alert_type == AlertType.TREND
        assert alert.title == "Downward trend in Health & Vitality"
        assert alert.evidence == [4.0, 2.0]
        assert alert.confidence == 0.8

    def test_upward_trend(self, runner, repository, engine, health_area):
        self._ratings(engine, health_area, [1.0, 2.0, 3.0, 4.0, 4.5])

        runner.run(JobName.DAILY)

        [alert] = repository.list_alerts(TENANT, health_area.id)
        assert alert.alert_type == AlertType.TREND
        assert alert.title.startswith("Upward trend")
        assert alert.evidence == [1.5, 3.83]

    def test_too_few_ratings(self, runner, repository, engine, health_area):
        self._ratings(engine, health_area, [4.0, 4.0, 1.0])
        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT, health_area.id) == []

    def test_small_difference_ignored(self, runner, repository, engine, health_area):
        self._ratings(engine, health_area, [3.0, 3.5, 3.5, 3.0])
        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT, health_area.id) == []

    def test_quiet_day_reports_nothing(self, runner, repository, engine, health_area):
        start = NOW - timedelta(days=10)
        for offset, value in enumerate([4.0, 4.0, 2.0, 2.0]):
            engine.apply_signal(make_signal(health_area.id, value=value, occurred_at=start + timedelta(days=offset)))

        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT, health_area.id) == []


class TestCorrelationDetection:

    def _alternate(self, engine, first, second, start, rounds):
        for offset in range(rounds):
            at = start + timedelta(days=2 * offset)
            engine.apply_signal(make_signal(first.id, user_id=first.user_id, value=3.0, occurred_at=at))
            engine.apply_signal(
                make_signal(second.id, user_id=second.user_id, value=3.0, occurred_at=at + timedelta(hours=1))
            )

    def test_leading_area_reports_follower(self, runner, repository, engine, health_area):
        work = engine.create_area(TENANT, USER, LifeAreaCreate(code="WRK", name="Work"))
        # Health then Work on 10-14, 10-16 and 10-18
        self._alternate(engine, health_area, work, datetime(2026, 10, 14, 8, 0, tzinfo=timezone.utc), 3)

        runner.run(JobName.DAILY)

        [alert] = repository.list_alerts(TENANT, health_area.id)
        assert alert.alert_type == AlertType.CROSS_AREA_CORRELATION
        assert alert.related_area_id == work.id
        assert alert.evidence == [3.0]
        assert alert.confidence == 0.6
        assert alert.title == "Health & Vitality and Work move together"
        # Work -> Health happened only twice
        assert repository.list_alerts(TENANT, work.id) == []

    def test_pair_must_recur_on_the_day(self, runner, repository, engine, health_area):
        work = engine.create_area(TENANT, USER, LifeAreaCreate(code="WRK", name="Work"))
        self._alternate(engine, health_area, work, datetime(2026, 10, 10, 8, 0, tzinfo=timezone.utc), 3)

        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT) == []

    def test_distant_signals_not_paired(self, runner, repository, engine, health_area):
        work = engine.create_area(TENANT, USER, LifeAreaCreate(code="WRK", name="Work"))
        for day in ["2026-08-01", "2026-09-01", "2026-10-08"]:
            at = datetime.fromisoformat(day).replace(tzinfo=timezone.utc)
            engine.apply_signal(make_signal(health_area.id, value=3.0, occurred_at=at))
            engine.apply_signal(make_signal(work.id, value=3.0, occurred_at=at + timedelta(days=10)))

        runner.run(JobName.DAILY)
        correlations = [
            a for a in repository.list_alerts(TENANT) if a.alert_type == AlertType.CROSS_AREA_CORRELATION
        ]
        assert correlations == []

    def test_other_users_areas_not_paired(self, runner, repository, engine, health_area):
        other = engine.create_area(TENANT, "another-user", LifeAreaCreate(code="WRK", name="Work"))
        self._alternate(engine, health_area, other, datetime(2026, 10, 14, 8, 0, tzinfo=timezone.utc), 3)

        runner.run(JobName.DAILY)
        assert repository.list_alerts(TENANT) == []


# =============================================================================
# Weekly Job
# =============================================================================

class TestWeeklyJob:

    def _seed(self, repository, area_id, previous, current):
        for offset, score in enumerate(previous):
            repository.insert_daily_summary(_summary(area_id, f"2026-10-{5 + offset:02d}", score))
        for offset, score in enumerate(current):
            repository.insert_daily_summary(_summary(area_id, f"2026-10-{12 + offset:02d}", score))

    def test_upward_week(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [50, 50], [60, 62])

        result = runner.run(JobName.WEEKLY)

        assert result.period_key == "2026-W42"
        [report] = repository.list_weekly_reports(TENANT, health_area.id)
        assert report.current_mean == 61.0
        assert report.previous_mean == 50.0
        assert report.delta == 11.0
        assert report.trend == TrendDirection.UP
        assert report.days_observed == 2
        assert "upward" in report.summary
        assert "Health & Vitality" in report.summary

    def test_small_change_is_stable(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [60], [63])
        runner.run(JobName.WEEKLY)
        [report] = repository.list_weekly_reports(TENANT, health_area.id)
        assert report.trend == TrendDirection.STABLE

    def test_downward_week(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [70, 72], [60])
        runner.run(JobName.WEEKLY)
        [report] = repository.list_weekly_reports(TENANT, health_area.id)
        assert report.trend == TrendDirection.DOWN
        assert report.delta == -11.0

    def test_no_previous_week(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [], [60])
        runner.run(JobName.WEEKLY)
        [report] = repository.list_weekly_reports(TENANT, health_area.id)
        assert report.previous_mean is None
        assert report.delta is None
        assert report.trend == TrendDirection.STABLE

    def test_week_without_data_skipped(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [50], [])
        result = runner.run(JobName.WEEKLY)

        assert repository.list_weekly_reports(TENANT, health_area.id) == []
        assert result.outcomes[0].records_skipped == 1

    def test_rerun_is_idempotent(self, runner, repository, health_area):
        self._seed(repository, health_area.id, [50], [60])
        runner.run(JobName.WEEKLY)
        second = runner.run(JobName.WEEKLY)

        assert second.outcomes[0].records_written == 0
        assert len(repository.list_weekly_reports(TENANT, health_area.id)) == 1

    def test_custom_trend_threshold(self, repository, clock, health_area):
        self._seed(repository, health_area.id, [60], [63])
        runner = PatternJobRunner(repository, PatternPolicy(weekly_trend_threshold=2.0), clock=clock)
        runner.run(JobName.WEEKLY)
        [report] = repository.list_weekly_reports(TENANT, health_area.id)
        assert report.trend == TrendDirection.UP


class TestWeeklySummaryText:

    def test_mentions_days_alerts_and_trend(self):
        text = generate_weekly_summary("Family", 5, 1, 62.4, -6.2, TrendDirection.DOWN)
        assert text.startswith("This week you logged 5 days of Family scores (mean 62.4)")
        assert "-6.2 points" in text
        assert "1 pattern was detected" in text
        assert "boundaries and commitments" in text

    def test_singular_day_plural_alerts(self):
        text = generate_weekly_summary("Family", 1, 0, None, None, TrendDirection.STABLE)
        assert "1 day of Family scores with a steady trend." in text
        assert "0 patterns were detected" in text


# =============================================================================
# Monthly Job
# =============================================================================

class TestMonthlyJob:

    def test_snapshot_per_area_including_inactive(self, runner, repository, engine, health_area):
        engine.apply_signal(make_signal(health_area.id, value=4.0, occurred_at=datetime(2026, 9, 15, tzinfo=timezone.utc)))
        inactive = engine.create_area(TENANT, USER, LifeAreaCreate(code="FIN", name="Finance"))
        engine.patch_area(TENANT, USER, inactive.id, LifeAreaPatch(is_active=False))

        result = runner.run(JobName.MONTHLY)

        assert result.period_key == "2026-09"
        assert result.outcomes[0].records_written == 2
        snapshot = repository.get_snapshot(TENANT, health_area.id, "2026-09")
        assert snapshot.score == 80
        assert snapshot.signal_count == 1
        assert repository.get_snapshot(TENANT, inactive.id, "2026-09") is not None

    def test_snapshot_is_immutable(self, runner, repository, engine, health_area):
        engine.apply_signal(make_signal(health_area.id, value=4.0, occurred_at=datetime(2026, 9, 20, tzinfo=timezone.utc)))
        runner.run(JobName.MONTHLY)

        engine.apply_signal(make_signal(health_area.id, value=1.0))
        second = runner.run(JobName.MONTHLY)

        assert second.outcomes[0].records_skipped == 1
        assert repository.get_snapshot(TENANT, health_area.id, "2026-09").score == 80
        assert len(engine.list_snapshots(TENANT, USER, health_area.id)) == 1

    def test_late_run_records_month_end_state(self, runner, repository, engine, health_area):
        engine.apply_signal(make_signal(health_area.id, value=4.0, occurred_at=datetime(2026, 9, 10, tzinfo=timezone.utc)))
        engine.apply_signal(make_signal(health_area.id, value=1.0, occurred_at=datetime(2026, 10, 5, tzinfo=timezone.utc)))
        engine.apply_signal(
            make_signal(health_area.id, boundary="violation", occurred_at=datetime(2026, 10, 6, tzinfo=timezone.utc))
        )

        runner.run(JobName.MONTHLY)

        snapshot = repository.get_snapshot(TENANT, health_area.id, "2026-09")
        assert snapshot.score == 80
        assert snapshot.signal_count == 1
        assert snapshot.drift == 0.0

    def test_explicit_period(self, runner, repository, health_area):
        result = runner.run("monthly", period_key="2026-08")
        assert result.period_key == "2026-08"
        assert repository.get_snapshot(TENANT, health_area.id, "2026-08") is not None


# =============================================================================
# Archive Job
# =============================================================================

class TestArchiveJob:

    def _alert(self, area_id, period_key, created_at, tenant_id=TENANT):
        return PatternAlert(
            tenant_id=tenant_id,
            user_id=USER,
            area_id=area_id,
            alert_type=AlertType.DRIFT_WARNING,
            period_key=period_key,
            title="Boundary drift",
            description="Drift is 0.60",
            created_at=created_at,
        )

    def test_old_alerts_archived(self, runner, repository, health_area):
        repository.insert_alert(self._alert(health_area.id, "2025-09-01", datetime(2025, 9, 1, tzinfo=timezone.utc)))
        repository.insert_alert(self._alert(health_area.id, "2026-10-01", datetime(2026, 10, 1, tzinfo=timezone.utc)))

        result = runner.run(JobName.ARCHIVE)

        assert result.period_key == "2026-10-18"
        assert result.outcomes[0].records_written == 1
        old, recent = repository.list_alerts(TENANT, health_area.id)
        assert old.status == AlertStatus.ARCHIVED
        assert recent.status == AlertStatus.ACTIVE

    def test_rerun_archives_nothing_new(self, runner, repository, health_area):
        repository.insert_alert(self._alert(health_area.id, "2025-09-01", datetime(2025, 9, 1, tzinfo=timezone.utc)))

        runner.run(JobName.ARCHIVE)
        second = runner.run(JobName.ARCHIVE)

        assert second.outcomes[0].records_written == 0

    def test_retention_window_is_configurable(self, repository, clock, health_area):
        repository.insert_alert(self._alert(health_area.id, "2026-10-01", datetime(2026, 10, 1, tzinfo=timezone.utc)))
        runner = PatternJobRunner(repository, PatternPolicy(alert_retention_days=7), clock=clock)

        runner.run(JobName.ARCHIVE)

        [alert] = repository.list_alerts(TENANT, health_area.id)
        assert alert.status == AlertStatus.ARCHIVED

    def test_each_tenant_archived_separately(self, clock):
        repository = InMemoryRepository(tenants=["t1", "t2"])
        repository.insert_alert(self._alert("area-1", "2025-01-01", datetime(2025, 1, 1, tzinfo=timezone.utc), "t1"))
        repository.insert_alert(self._alert("area-2", "2026-10-10", datetime(2026, 10, 10, tzinfo=timezone.utc), "t2"))

        result = PatternJobRunner(repository, clock=clock).run(JobName.ARCHIVE)

        assert [o.records_written for o in result.outcomes] == [1, 0]
        assert repository.list_alerts("t1")[0].status == AlertStatus.ARCHIVED
        assert repository.list_alerts("t2")[0].status == AlertStatus.ACTIVE


# =============================================================================
# Tenant Isolation & Cancellation
# =============================================================================

class TestTenantIsolation:

    def test_failing_tenant_does_not_stop_others(self, clock):
        repository = BrokenTenantRepository(tenants=["tenant-broken", TENANT])
        runner = PatternJobRunner(repository, clock=clock)

        result = runner.run(JobName.DAILY)

        broken, healthy = result.outcomes
        assert not broken.success
        assert broken.error_code == "JOB_ERROR"
        assert "connection lost" in broken.error
        assert healthy.success
        assert not result.success
        assert result.partial
        assert "failed: tenant-broken" in result.summary()

    def test_cancelled_run_skips_remaining_tenants(self, clock):
        repository = InMemoryRepository(tenants=["t1", "t2"])
        runner = PatternJobRunner(repository, clock=clock)
        cancel = threading.Event()
        cancel.set()

        result = runner.run(JobName.DAILY, cancel_event=cancel)

        assert result.cancelled
        assert not result.success
        assert all(o.cancelled for o in result.outcomes)
        assert "run cancelled" in result.summary()
