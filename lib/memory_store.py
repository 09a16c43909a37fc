# =============================================================================
# lib/memory_store.py - In-Memory Repository
# =============================================================================
# A lock-guarded, process-local implementation of AreaRepository.
# Used by the test suite and for running the API without Supabase
# (STORAGE_BACKEND=memory).
#
# Stored objects are deep-copied on the way in and out so callers can never
# mutate stored state behind the repository's back.
# =============================================================================

from __future__ import annotations

import logging
import threading
from datetime import datetime

from core.models import (
    AlertStatus,
    DailySummary,
    JournalEntry,
    LifeArea,
    PatternAlert,
    Signal,
    Snapshot,
    WeeklyReport,
)
from core.repository import AreaRepository, VersionMismatch
from lib.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


class InMemoryRepository(AreaRepository):
    """
    Dict-backed repository.

    Example:
        repo = InMemoryRepository(tenants=["tenant-a"])
        area = repo.create_area(LifeArea(tenant_id="tenant-a", user_id="u1", code="HLT", name="Health"))
    """

    def __init__(self, tenants: list[str] | None = None):
        self._lock = threading.RLock()
        self._tenants: list[str] = list(tenants or [])
        self._areas: dict[tuple[str, str], LifeArea] = {}
        self._signals: list[Signal] = []
        self._daily: dict[tuple[str, str, str], DailySummary] = {}
        self._alerts: dict[tuple[str, str, str, str], PatternAlert] = {}
        self._weekly: dict[tuple[str, str, str], WeeklyReport] = {}
        self._snapshots: dict[tuple[str, str, str], Snapshot] = {}
        self._journal: dict[str, JournalEntry] = {}

    # -------------------------------------------------------------------------
    # Tenants
    # -------------------------------------------------------------------------

    def add_tenant(self, tenant_id: str) -> None:
        with self._lock:
            if tenant_id not in self._tenants:
                self._tenants.append(tenant_id)

    def list_tenants(self) -> list[str]:
        with self._lock:
            return list(self._tenants)

    # -------------------------------------------------------------------------
    # Areas
    # -------------------------------------------------------------------------

    def create_area(self, area: LifeArea) -> LifeArea:
        with self._lock:
            key = (area.tenant_id, area.id)
            if key in self._areas:
                raise ValueError(f"Area already exists: {area.id}")
            now = utc_now()
            stored = area.model_copy(
                update={"version": 0, "created_at": area.created_at or now, "updated_at": now},
                deep=True,
            )
            self._areas[key] = stored
            self.add_tenant(area.tenant_id)
            return stored.model_copy(deep=True)

    def get_area(self, tenant_id: str, user_id: str, area_id: str) -> LifeArea | None:
        with self._lock:
            area = self._areas.get((tenant_id, area_id))
            if area is None or area.user_id != user_id:
                return None
            return area.model_copy(deep=True)

    def list_areas(
        self,
        tenant_id: str,
        user_id: str | None = None,
        active_only: bool = True,
    ) -> list[LifeArea]:
        with self._lock:
            areas = [
                a for (t, _), a in self._areas.items()
                if t == tenant_id
                and (user_id is None or a.user_id == user_id)
                and (a.is_active or not active_only)
            ]
            return [a.model_copy(deep=True) for a in sorted(areas, key=lambda a: a.code)]

    def save_area(
        self,
        area: LifeArea,
        expected_version: int,
        signal: Signal | None = None,
    ) -> LifeArea:
        with self._lock:
            key = (area.tenant_id, area.id)
            current = self._areas.get(key)
            if current is None:
                raise VersionMismatch(area.id, expected_version, None)
            if current.version != expected_version:
                raise VersionMismatch(area.id, expected_version, current.version)

            stored = area.model_copy(
                update={"version": expected_version + 1, "updated_at": utc_now()},
                deep=True,
            )
            self._areas[key] = stored
            if signal is not None:
                self._signals.append(signal)
            return stored.model_copy(deep=True)

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    def list_signals(
        self,
        tenant_id: str,
        area_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Signal]:
        with self._lock:
            signals = [
                s for s in self._signals
                if s.tenant_id == tenant_id
                and s.area_id == area_id
                and (since is None or ensure_utc(s.occurred_at) >= since)
                and (until is None or ensure_utc(s.occurred_at) <= until)
            ]
            return sorted(signals, key=lambda s: s.occurred_at)

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def insert_daily_summary(self, summary: DailySummary) -> bool:
        with self._lock:
            key = (summary.tenant_id, summary.area_id, summary.day)
            if key in self._daily:
                return False
            self._daily[key] = summary
            return True

    def list_daily_summaries(
        self,
        tenant_id: str,
        area_id: str,
        since_day: str | None = None,
        until_day: str | None = None,
    ) -> list[DailySummary]:
        with self._lock:
            rows = [
                s for (t, a, day), s in self._daily.items()
                if t == tenant_id
                and a == area_id
                and (since_day is None or day >= since_day)
                and (until_day is None or day <= until_day)
            ]
            return sorted(rows, key=lambda s: s.day)

    def insert_alert(self, alert: PatternAlert) -> bool:
        with self._lock:
            key = (alert.tenant_id, alert.area_id, alert.alert_type.value, alert.period_key)
            if key in self._alerts:
                return False
            self._alerts[key] = alert
            return True

    def list_alerts(self, tenant_id: str, area_id: str | None = None) -> list[PatternAlert]:
        with self._lock:
            return sorted(
                (
                    a for a in self._alerts.values()
                    if a.tenant_id == tenant_id and (area_id is None or a.area_id == area_id)
                ),
                key=lambda a: (a.period_key, a.area_id),
            )

    def archive_alerts(self, tenant_id: str, created_before: datetime) -> int:
        with self._lock:
            stale = [
                key for key, alert in self._alerts.items()
                if alert.tenant_id == tenant_id
                and alert.status == AlertStatus.ACTIVE
                and ensure_utc(alert.created_at) < created_before
            ]
            for key in stale:
                self._alerts[key] = self._alerts[key].model_copy(update={"status": AlertStatus.ARCHIVED})
            return len(stale)

    def insert_weekly_report(self, report: WeeklyReport) -> bool:
        with self._lock:
            key = (report.tenant_id, report.area_id, report.week_key)
            if key in self._weekly:
                return False
            self._weekly[key] = report
            return True

    def list_weekly_reports(self, tenant_id: str, area_id: str | None = None) -> list[WeeklyReport]:
        with self._lock:
            return sorted(
                (
                    r for r in self._weekly.values()
                    if r.tenant_id == tenant_id and (area_id is None or r.area_id == area_id)
                ),
                key=lambda r: (r.week_key, r.area_id),
            )

    def get_snapshot(self, tenant_id: str, area_id: str, period_key: str) -> Snapshot | None:
        with self._lock:
            return self._snapshots.get((tenant_id, area_id, period_key))

    def insert_snapshot(self, snapshot: Snapshot) -> bool:
        with self._lock:
            key = (snapshot.tenant_id, snapshot.area_id, snapshot.period_key)
            if key in self._snapshots:
                logger.debug(f"Snapshot exists for {snapshot.area_id} {snapshot.period_key}")
                return False
            self._snapshots[key] = snapshot
            return True

    def list_snapshots(self, tenant_id: str, area_id: str) -> list[Snapshot]:
        with self._lock:
            return sorted(
                (s for (t, a, _), s in self._snapshots.items() if t == tenant_id and a == area_id),
                key=lambda s: s.period_key,
            )

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    def save_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        with self._lock:
            self._journal[entry.id] = entry.model_copy(deep=True)
            return entry

    def get_journal_entry(self, entry_id: str) -> JournalEntry | None:
        with self._lock:
            entry = self._journal.get(entry_id)
            return entry.model_copy(deep=True) if entry else None
