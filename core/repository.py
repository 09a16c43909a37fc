# =============================================================================
# core/repository.py - Persistence Collaborator Interface
# =============================================================================
# The engine, journal pipeline and pattern jobs only talk to storage
# through this interface. Implementations:
# - lib/supabase_client.py: SupabaseRepository (production)
# - lib/memory_store.py: InMemoryRepository (tests, local development)
#
# Everything is keyed by (tenant_id, user_id, area_id). Writes that the
# jobs perform are insert-if-absent so each job is idempotent per period.
# =============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from core.models import (
    DailySummary,
    JournalEntry,
    LifeArea,
    PatternAlert,
    Signal,
    Snapshot,
    WeeklyReport,
)


class VersionMismatch(Exception):
    """
    The aggregate changed since it was read.

    Internal to the persistence layer and the engine, which retries with a
    fresh read and only surfaces ConcurrencyConflict once retries run out.
    """

    def __init__(self, area_id: str, expected: int, actual: int | None = None):
        super().__init__(f"Version mismatch on area {area_id}: expected {expected}, found {actual}")
        self.area_id = area_id
        self.expected = expected
        self.actual = actual


class AreaRepository(ABC):
    """Storage operations the fulfillment engine depends on."""

    # -------------------------------------------------------------------------
    # Tenants
    # -------------------------------------------------------------------------

    @abstractmethod
    def list_tenants(self) -> list[str]:
        """Ids of all active tenants."""

    # -------------------------------------------------------------------------
    # Areas
    # -------------------------------------------------------------------------

    @abstractmethod
    def create_area(self, area: LifeArea) -> LifeArea:
        """Insert a new area (version 0)."""

    @abstractmethod
    def get_area(self, tenant_id: str, user_id: str, area_id: str) -> LifeArea | None:
        """Current state of one area, or None."""

    @abstractmethod
    def list_areas(
        self,
        tenant_id: str,
        user_id: str | None = None,
        active_only: bool = True,
    ) -> list[LifeArea]:
        """Areas of a tenant, optionally restricted to one user."""

    @abstractmethod
    def save_area(
        self,
        area: LifeArea,
        expected_version: int,
        signal: Signal | None = None,
    ) -> LifeArea:
        """
        Write the area if its stored version still equals `expected_version`.

        When `signal` is given it is appended to the signal log in the same
        atomic step. The stored area comes back with version + 1.

        Raises:
            VersionMismatch: If the stored version moved on
        """

    # -------------------------------------------------------------------------
    # Signals (append-only)
    # -------------------------------------------------------------------------

    @abstractmethod
    def list_signals(
        self,
        tenant_id: str,
        area_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[Signal]:
        """Signals for an area ordered by occurred_at."""

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    @abstractmethod
    def insert_daily_summary(self, summary: DailySummary) -> bool:
        """Insert unless (area, day) exists. Returns True if written."""

    @abstractmethod
    def list_daily_summaries(
        self,
        tenant_id: str,
        area_id: str,
        since_day: str | None = None,
        until_day: str | None = None,
    ) -> list[DailySummary]:
        """Daily summaries ordered by day, bounds inclusive."""

    @abstractmethod
    def insert_alert(self, alert: PatternAlert) -> bool:
        """Insert unless (area, alert_type, period_key) exists."""

    @abstractmethod
    def list_alerts(self, tenant_id: str, area_id: str | None = None) -> list[PatternAlert]:
        """Alerts for a tenant, optionally for one area."""

    @abstractmethod
    def archive_alerts(self, tenant_id: str, created_before: datetime) -> int:
        """Mark active alerts created before the cutoff archived. Returns how many changed."""

    @abstractmethod
    def insert_weekly_report(self, report: WeeklyReport) -> bool:
        """Insert unless (area, week_key) exists."""

    @abstractmethod
    def list_weekly_reports(self, tenant_id: str, area_id: str | None = None) -> list[WeeklyReport]:
        """Weekly reports for a tenant, optionally for one area."""

    @abstractmethod
    def get_snapshot(self, tenant_id: str, area_id: str, period_key: str) -> Snapshot | None:
        """The snapshot for (area, period), if any."""

    @abstractmethod
    def insert_snapshot(self, snapshot: Snapshot) -> bool:
        """Insert unless (area, period_key) exists. Never updates."""

    @abstractmethod
    def list_snapshots(self, tenant_id: str, area_id: str) -> list[Snapshot]:
        """Snapshots of an area ordered by period."""

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    @abstractmethod
    def save_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        """Insert or replace a journal entry by id."""
