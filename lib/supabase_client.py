# =============================================================================
# lib/supabase_client.py - Supabase Repository
# =============================================================================
# Production implementation of AreaRepository on top of Supabase
# (PostgREST). The client is created from an explicit url/key pair by the
# app factory or the Celery worker; there is no module-level singleton.
#
# Tables:
#   tenants, life_areas, signals, daily_summaries, pattern_alerts,
#   weekly_reports, snapshots, journal_entries
#
# The area aggregate (including its subdomains and dimensions) lives in
# one life_areas row with a JSONB `subdomains` column. Conditional writes go
# through the `apply_area_update` RPC, which updates the row only when
# `version` still matches and appends the signal in the same transaction.
#
# Usage:
#   from lib.supabase_client import SupabaseRepository
#   repo = SupabaseRepository.from_credentials(url, service_key)
#   areas = repo.list_areas(tenant_id, user_id)
# =============================================================================

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel
from supabase import Client, create_client

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
from lib.utils import ApplicationError

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows" on .single()
NOT_FOUND_CODE = "PGRST116"


class SupabaseClientError(ApplicationError):
    """
    Error during Supabase operations.

    Provides actionable error messages: what failed and how to fix it.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)


def _row(model: BaseModel) -> dict[str, Any]:
    """JSON-safe dict for a pydantic model."""
    return model.model_dump(mode="json")


class SupabaseRepository(AreaRepository):
    """
    AreaRepository backed by Supabase.

    Uses the service_role key, which bypasses Row Level Security; every
    query therefore filters on tenant_id explicitly.

    Example:
        repo = SupabaseRepository.from_credentials(
            settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY
        )
        area = repo.get_area("tenant-a", "user-1", "550e8400-...")
    """

    def __init__(self, client: Client):
        self.client = client

    @classmethod
    def from_credentials(cls, url: str, key: str) -> "SupabaseRepository":
        """
        Create a repository with a fresh Supabase client.

        Raises:
            SupabaseClientError: If client creation fails
        """
        try:
            client = create_client(url, key)
            logger.info("Supabase client initialized successfully")
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create Supabase client: {e}",
                code="CLIENT_INIT_FAILED",
                suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file",
            ) from e
        return cls(client)

    def _insert_if_absent(self, table: str, row: dict[str, Any], conflict: str) -> bool:
        """Insert `row` unless the unique key `conflict` exists. True if written."""
        try:
            response = (
                self.client.table(table)
                .upsert(row, on_conflict=conflict, ignore_duplicates=True)
                .execute()
            )
            return bool(response.data)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert into {table}: {e}",
                code="INSERT_FAILED",
                details={"table": table, "conflict": conflict},
            ) from e

    # -------------------------------------------------------------------------
    # Tenants
    # -------------------------------------------------------------------------

    def list_tenants(self) -> list[str]:
        try:
            response = (
                self.client.table("tenants")
                .select("id")
                .eq("is_active", True)
                .order("id")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to list tenants: {e}",
                code="FETCH_TENANTS_FAILED",
                suggestion="Check that the tenants table is accessible",
            ) from e
        return [row["id"] for row in response.data or []]

    # -------------------------------------------------------------------------
    # Areas
    # -------------------------------------------------------------------------

    def create_area(self, area: LifeArea) -> LifeArea:
        data = _row(area)
        data["version"] = 0
        try:
            response = self.client.table("life_areas").insert(data).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create life area: {e}",
                code="INSERT_AREA_FAILED",
                details={"tenant_id": area.tenant_id, "code": area.code},
            ) from e

        if not response.data:
            raise SupabaseClientError(message="Insert returned no data", code="INSERT_NO_DATA")
        logger.info(f"Created life area {area.code} ({area.id}) for tenant {area.tenant_id}")
        return LifeArea.model_validate(response.data[0])

    def get_area(self, tenant_id: str, user_id: str, area_id: str) -> LifeArea | None:
        try:
            response = (
                self.client.table("life_areas")
                .select("*")
                .eq("tenant_id", tenant_id)
                .eq("user_id", user_id)
                .eq("id", area_id)
                .single()
                .execute()
            )
        except Exception as e:
            if NOT_FOUND_CODE in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch life area: {e}",
                code="FETCH_AREA_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return LifeArea.model_validate(response.data) if response.data else None

    def list_areas(
        self,
        tenant_id: str,
        user_id: str | None = None,
        active_only: bool = True,
    ) -> list[LifeArea]:
        try:
            query = self.client.table("life_areas").select("*").eq("tenant_id", tenant_id)
            if user_id is not None:
                query = query.eq("user_id", user_id)
            if active_only:
                query = query.eq("is_active", True)
            response = query.order("code").execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to list life areas: {e}",
                code="FETCH_AREAS_FAILED",
                details={"tenant_id": tenant_id, "user_id": user_id},
            ) from e
        return [LifeArea.model_validate(row) for row in response.data or []]

    def save_area(
        self,
        area: LifeArea,
        expected_version: int,
        signal: Signal | None = None,
    ) -> LifeArea:
        params = {
            "p_area": _row(area),
            "p_expected_version": expected_version,
            "p_signal": _row(signal) if signal is not None else None,
        }
        try:
            response = self.client.rpc("apply_area_update", params).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to save life area: {e}",
                code="SAVE_AREA_FAILED",
                suggestion="Check that the apply_area_update function is deployed",
                details={"area_id": area.id, "expected_version": expected_version},
            ) from e

        # The RPC returns no row when the version guard did not match
        rows = response.data
        if isinstance(rows, dict):
            rows = [rows]
        if not rows:
            raise VersionMismatch(area.id, expected_version)
        return LifeArea.model_validate(rows[0])

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
        try:
            query = (
                self.client.table("signals")
                .select("*")
                .eq("tenant_id", tenant_id)
                .eq("area_id", area_id)
            )
            if since is not None:
                query = query.gte("occurred_at", since.isoformat())
            if until is not None:
                query = query.lte("occurred_at", until.isoformat())
            response = query.order("occurred_at").execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch signals: {e}",
                code="FETCH_SIGNALS_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return [Signal.model_validate(row) for row in response.data or []]

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def insert_daily_summary(self, summary: DailySummary) -> bool:
        return self._insert_if_absent("daily_summaries", _row(summary), "tenant_id,area_id,day")

    def list_daily_summaries(
        self,
        tenant_id: str,
        area_id: str,
        since_day: str | None = None,
        until_day: str | None = None,
    ) -> list[DailySummary]:
        try:
            query = (
                self.client.table("daily_summaries")
                .select("*")
                .eq("tenant_id", tenant_id)
                .eq("area_id", area_id)
            )
            if since_day is not None:
                query = query.gte("day", since_day)
            if until_day is not None:
                query = query.lte("day", until_day)
            response = query.order("day").execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch daily summaries: {e}",
                code="FETCH_SUMMARIES_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return [DailySummary.model_validate(row) for row in response.data or []]

    def insert_alert(self, alert: PatternAlert) -> bool:
        return self._insert_if_absent(
            "pattern_alerts", _row(alert), "tenant_id,area_id,alert_type,period_key"
        )

    def list_alerts(self, tenant_id: str, area_id: str | None = None) -> list[PatternAlert]:
        try:
            query = self.client.table("pattern_alerts").select("*").eq("tenant_id", tenant_id)
            if area_id is not None:
                query = query.eq("area_id", area_id)
            response = query.order("period_key").execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch alerts: {e}",
                code="FETCH_ALERTS_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return [PatternAlert.model_validate(row) for row in response.data or []]

    def archive_alerts(self, tenant_id: str, created_before: datetime) -> int:
        try:
            response = (
                self.client.table("pattern_alerts")
                .update({"status": AlertStatus.ARCHIVED.value})
                .eq("tenant_id", tenant_id)
                .eq("status", AlertStatus.ACTIVE.value)
                .lt("created_at", created_before.isoformat())
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to archive alerts: {e}",
                code="ARCHIVE_ALERTS_FAILED",
                details={"tenant_id": tenant_id, "created_before": created_before.isoformat()},
            ) from e
        return len(response.data or [])

    def insert_weekly_report(self, report: WeeklyReport) -> bool:
        return self._insert_if_absent("weekly_reports", _row(report), "tenant_id,area_id,week_key")

    def list_weekly_reports(self, tenant_id: str, area_id: str | None = None) -> list[WeeklyReport]:
        try:
            query = self.client.table("weekly_reports").select("*").eq("tenant_id", tenant_id)
            if area_id is not None:
                query = query.eq("area_id", area_id)
            response = query.order("week_key").execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch weekly reports: {e}",
                code="FETCH_REPORTS_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return [WeeklyReport.model_validate(row) for row in response.data or []]

    def get_snapshot(self, tenant_id: str, area_id: str, period_key: str) -> Snapshot | None:
        try:
            response = (
                self.client.table("snapshots")
                .select("*")
                .eq("tenant_id", tenant_id)
                .eq("area_id", area_id)
                .eq("period_key", period_key)
                .single()
                .execute()
            )
        except Exception as e:
            if NOT_FOUND_CODE in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch snapshot: {e}",
                code="FETCH_SNAPSHOT_FAILED",
                details={"area_id": area_id, "period_key": period_key},
            ) from e
        return Snapshot.model_validate(response.data) if response.data else None

    def insert_snapshot(self, snapshot: Snapshot) -> bool:
        return self._insert_if_absent("snapshots", _row(snapshot), "tenant_id,area_id,period_key")

    def list_snapshots(self, tenant_id: str, area_id: str) -> list[Snapshot]:
        try:
            response = (
                self.client.table("snapshots")
                .select("*")
                .eq("tenant_id", tenant_id)
                .eq("area_id", area_id)
                .order("period_key")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch snapshots: {e}",
                code="FETCH_SNAPSHOTS_FAILED",
                details={"tenant_id": tenant_id, "area_id": area_id},
            ) from e
        return [Snapshot.model_validate(row) for row in response.data or []]

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    def save_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        try:
            response = (
                self.client.table("journal_entries")
                .upsert(_row(entry), on_conflict="id")
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to save journal entry: {e}",
                code="SAVE_JOURNAL_FAILED",
                details={"entry_id": entry.id, "tenant_id": entry.tenant_id},
            ) from e
        if response.data:
            return JournalEntry.model_validate(response.data[0])
        return entry
