# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# Scheduled execution of the pattern jobs.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Daily / weekly / monthly job tasks
# - config.py: Worker settings and beat schedule
#
# Usage:
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Run a job by hand
#   from workers.tasks import run_monthly_job
#   run_monthly_job.delay("2026-09")
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
