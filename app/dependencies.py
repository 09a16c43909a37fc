# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# Services are built once by create_app() and stored on app.state; these
# functions hand them to route handlers via Depends().
# =============================================================================

import hmac
import logging
from typing import Annotated

from fastapi import Depends, Header, Request

from app.auth import AuthUser, get_current_user
from app.config import Settings
from core.errors import AuthorizationError
from core.services import AggregationEngine, JournalService, PatternJobRunner

logger = logging.getLogger(__name__)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_engine(request: Request) -> AggregationEngine:
    return request.app.state.engine


def get_journal_service(request: Request) -> JournalService:
    return request.app.state.journal_service


def get_job_runner(request: Request) -> PatternJobRunner:
    return request.app.state.job_runner


def get_tenant_id(
    x_tenant_id: Annotated[str, Header(alias="X-Tenant-ID", min_length=1)],
) -> str:
    """Tenant the caller is acting in, from the X-Tenant-ID header."""
    return x_tenant_id


def verify_scheduler_secret(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_scheduler_secret: Annotated[str | None, Header(alias="X-Scheduler-Secret")] = None,
) -> None:
    """
    Reject scheduler calls without the shared secret.

    Compared in constant time. Runs as a dependency, so a bad secret is
    rejected before the job runner is touched.

    Raises:
        AuthorizationError: If the header is missing or wrong
    """
    if not x_scheduler_secret or not hmac.compare_digest(
        x_scheduler_secret.encode(), settings.SCHEDULER_SECRET.encode()
    ):
        logger.warning("Rejected scheduler trigger with missing or invalid secret")
        raise AuthorizationError()


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
EngineDep = Annotated[AggregationEngine, Depends(get_engine)]
JournalServiceDep = Annotated[JournalService, Depends(get_journal_service)]
JobRunnerDep = Annotated[PatternJobRunner, Depends(get_job_runner)]
TenantDep = Annotated[str, Depends(get_tenant_id)]
UserDep = Annotated[AuthUser, Depends(get_current_user)]
