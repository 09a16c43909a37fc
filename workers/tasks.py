# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Scheduled pattern jobs. Each task builds a PatternJobRunner from settings
# and runs one job across every tenant.
#
# Tasks:
# - run_daily_job:   daily summaries + pattern alerts
# - run_weekly_job:  weekly reports
# - run_monthly_job: monthly snapshots
# - run_archive_job: archive alerts past the retention window
# =============================================================================

import logging
from typing import Any

from celery import shared_task

from app.config import get_settings
from app.main import build_repository
from core.models import JobName
from core.services import PatternJobRunner

logger = logging.getLogger(__name__)


def build_runner() -> PatternJobRunner:
    """PatternJobRunner wired from environment settings."""
    settings = get_settings()
    return PatternJobRunner(
        build_repository(settings),
        policy=settings.pattern_policy(),
        scoring_policy=settings.scoring_policy(),
    )


def run_job(job: JobName, period_key: str | None = None) -> dict[str, Any]:
    """
    Run one job and return a JSON-serializable result.

    A partial failure is reported in the result, not raised, so Celery
    does not retry tenants that already succeeded.
    """
    result = build_runner().run(job, period_key=period_key)
    if not result.success:
        logger.warning(result.summary())

    payload = result.model_dump(mode="json")
    payload["success"] = result.success
    payload["summary"] = result.summary()
    return payload


@shared_task(bind=True, name="workers.tasks.run_daily_job")
def run_daily_job(self, period_key: str | None = None) -> dict[str, Any]:
    """Daily summaries and alerts for the previous UTC day."""
    return run_job(JobName.DAILY, period_key)


@shared_task(bind=True, name="workers.tasks.run_weekly_job")
def run_weekly_job(self, period_key: str | None = None) -> dict[str, Any]:
    """Weekly reports for the previous ISO week."""
    return run_job(JobName.WEEKLY, period_key)


@shared_task(bind=True, name="workers.tasks.run_monthly_job")
def run_monthly_job(self, period_key: str | None = None) -> dict[str, Any]:
    """Snapshots for the previous month."""
    return run_job(JobName.MONTHLY, period_key)


@shared_task(bind=True, name="workers.tasks.run_archive_job")
def run_archive_job(self, period_key: str | None = None) -> dict[str, Any]:
    """Archive alerts older than the retention window."""
    return run_job(JobName.ARCHIVE, period_key)
