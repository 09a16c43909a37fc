# =============================================================================
# app/routers/jobs.py - Scheduler Trigger Endpoints
# =============================================================================
# Internal endpoint the scheduler calls to run a pattern job:
#
#   POST /api/v1/jobs/{daily|weekly|monthly|archive}
#   X-Scheduler-Secret: <SCHEDULER_SECRET>
#
# The secret is checked by a dependency before the handler runs, so an
# unauthenticated call does no work. The job runs inline; 200 when every
# tenant succeeded, 500 on partial or total failure.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.dependencies import JobRunnerDep, verify_scheduler_secret
from core.models import JobName, TriggerResponse
from lib.utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_scheduler_secret)])


@router.post("/{job}", response_model=TriggerResponse)
def trigger_job(
    job: JobName,
    runner: JobRunnerDep,
    period_key: Annotated[
        str | None,
        Query(description="Explicit period (YYYY-MM-DD, YYYY-Www or YYYY-MM)"),
    ] = None,
):
    """
    Run one pattern job across all tenants.

    Returns {success, message, timestamp}.
    """
    logger.info(f"Scheduler triggered {job.value} job")
    result = runner.run(job, period_key=period_key)

    response = TriggerResponse(
        success=result.success,
        message=result.summary(),
        timestamp=utc_now().isoformat(),
    )
    return JSONResponse(
        status_code=200 if result.success else 500,
        content=response.model_dump(),
    )
