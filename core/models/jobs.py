# =============================================================================
# core/models/jobs.py - Scheduled Job Schemas
# =============================================================================
# Result shapes for the daily / weekly / monthly pattern jobs, the alert
# archival job and the scheduler trigger endpoint response.
# =============================================================================

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class JobName(str, Enum):
    """The scheduled jobs."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    # Archives alerts older than the retention window
    ARCHIVE = "archive"


class TenantOutcome(BaseModel):
    """What one job run did for one tenant."""

    tenant_id: str
    success: bool
    cancelled: bool = False
    areas_processed: int = 0
    records_written: int = 0
    records_skipped: int = 0
    alerts_emitted: int = 0
    error: str | None = None
    error_code: str | None = None
    execution_ms: int = 0


class JobResult(BaseModel):
    """
    Aggregated outcome of one job run across all tenants.

    `success` is true only when every tenant succeeded; a partial run
    still lists every tenant's outcome.
    """

    job: JobName
    period_key: str
    outcomes: list[TenantOutcome] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.success and not outcome.cancelled)

    @property
    def success(self) -> bool:
        return not self.cancelled and all(outcome.success for outcome in self.outcomes)

    @property
    def partial(self) -> bool:
        return 0 < self.succeeded < len(self.outcomes)

    def summary(self) -> str:
        """One-line human summary used for logs and the trigger response."""
        total = len(self.outcomes)
        message = f"{self.job.value} job for {self.period_key}: {self.succeeded}/{total} tenants succeeded"
        if self.failed:
            failed_ids = [o.tenant_id for o in self.outcomes if not o.success and not o.cancelled]
            message += f"; failed: {', '.join(failed_ids)}"
        if self.cancelled:
            message += "; run cancelled"
        return message


class TriggerResponse(BaseModel):
    """Response body of POST /jobs/{job}."""

    success: bool
    message: str
    timestamp: str
