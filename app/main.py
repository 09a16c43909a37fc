# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Fulfillment Engine API.
# create_app() wires storage, the scoring engine, the journal analyst and
# the pattern job runner onto app.state; nothing is built at import time.
#
# Usage:
#   uvicorn app.main:create_app --factory --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agents import JournalAnalyst
from app.auth import SupabaseTokenVerifier
from app.config import Settings, get_settings
from app.exceptions import fulfillment_exception_handler, validation_exception_handler
from app.routers import areas, health, jobs, journal
from core.errors import FulfillmentError
from core.repository import AreaRepository
from core.services import AggregationEngine, JournalService, PatternJobRunner
from lib.memory_store import InMemoryRepository
from lib.supabase_client import SupabaseRepository

logger = logging.getLogger(__name__)


def build_repository(settings: Settings) -> AreaRepository:
    """Storage backend selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "memory":
        logger.info("Using in-memory storage backend")
        return InMemoryRepository()
    return SupabaseRepository.from_credentials(
        settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Logs startup configuration and shutdown.
    """
    settings: Settings = app.state.settings
    logger.info(f"Starting Fulfillment Engine API in {settings.ENVIRONMENT} mode")
    logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")
    logger.info(f"CORS origins: {settings.cors_origins_list}")

    yield

    logger.info("Shutting down Fulfillment Engine API")


def create_app(
    settings: Settings | None = None,
    repository: AreaRepository | None = None,
    analyst: JournalAnalyst | None = None,
) -> FastAPI:
    """
    Build the API with its services.

    Args:
        settings: Configuration (defaults to environment-loaded settings)
        repository: Storage override, e.g. an InMemoryRepository in tests
        analyst: Journal analyst override, e.g. one with a fake OpenAI client

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    app = FastAPI(
        title="Fulfillment Engine API",
        description="""
## Life-Area Fulfillment Scoring

Scores a user's life areas from self-reported signals and journal entries,
and detects patterns over time.

### How It Works

1. **Create Areas** - One per life area you track (Health, Career, ...)
2. **Send Signals** - Manual ratings, ritual check-ins or journal entries
3. **Read Scores** - Each area carries a 0-100 score, status, momentum and drift
4. **Scheduled Jobs** - Daily summaries and alerts, weekly reports, monthly snapshots

### Status Bands

| Score | Status |
|-------|--------|
| >= 70 | Thriving |
| 40-69 | Needs Attention |
| < 40  | Breakdown |

A broken commitment forces Breakdown for seven days.

### Quick Start

```bash
curl -X POST http://localhost:8000/api/v1/areas \\
  -H "Authorization: Bearer $TOKEN" -H "X-Tenant-ID: $TENANT" \\
  -H "Content-Type: application/json" \\
  -d '{"code": "HLT", "name": "Health & Vitality"}'
```
""",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=[
            {
                "name": "Areas",
                "description": "Life areas, signals and snapshot history",
            },
            {
                "name": "Journal",
                "description": "Journal entries scored by the AI analyst",
            },
            {
                "name": "Jobs",
                "description": "Scheduler triggers for the pattern jobs",
            },
            {
                "name": "Health",
                "description": "API health and readiness checks",
            },
        ],
    )

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------
    repository = repository or build_repository(settings)
    engine = AggregationEngine(repository, policy=settings.scoring_policy())
    analyst = analyst or JournalAnalyst.from_settings(settings)

    app.state.settings = settings
    app.state.repository = repository
    app.state.engine = engine
    app.state.journal_service = JournalService(repository, engine, analyst)
    app.state.job_runner = PatternJobRunner(
        repository,
        policy=settings.pattern_policy(),
        scoring_policy=settings.scoring_policy(),
    )
    app.state.token_verifier = SupabaseTokenVerifier(
        settings.SUPABASE_JWT_SECRET, settings.SUPABASE_URL
    )

    # -------------------------------------------------------------------------
    # Middleware
    # -------------------------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Exception Handlers
    # -------------------------------------------------------------------------
    app.add_exception_handler(FulfillmentError, fulfillment_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.exception_handler(Exception)
    async def handle_general_exception(request: Request, exc: Exception):
        """Handle unexpected exceptions."""
        logger.exception(f"Unexpected error: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            }
        )

    # -------------------------------------------------------------------------
    # Routers
    # -------------------------------------------------------------------------
    app.include_router(health.router, prefix="/api/v1", tags=["Health"])
    app.include_router(areas.router, prefix="/api/v1/areas", tags=["Areas"])
    app.include_router(journal.router, prefix="/api/v1/journal", tags=["Journal"])
    app.include_router(jobs.router, prefix="/api/v1/jobs", tags=["Jobs"])

    @app.get("/", tags=["Root"])
    async def root():
        """
        Root endpoint - returns API info.
        """
        return {
            "name": "Fulfillment Engine API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app
