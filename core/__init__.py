# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: Pydantic schemas for the area hierarchy, signals and history
# - scoring.py: Pure scoring, status, momentum and drift rules
# - repository.py: Persistence interface the services depend on
# - services/: Aggregation engine, journal pipeline, pattern jobs
# - taxonomy.py: The 16 canonical life-area codes
# - errors.py: Typed domain errors
#
# Code in this package should NOT import from FastAPI or Celery.
# This keeps the logic testable and reusable.
# =============================================================================
