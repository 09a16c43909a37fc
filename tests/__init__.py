# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Fulfillment Engine:
# - test_scoring.py: Pure scoring rules (scores, status, momentum, drift)
# - test_aggregation.py: Signal application and optimistic concurrency
# - test_cost.py / test_journal_analyst.py: AI analysis and its guards
# - test_journal_service.py: Journal submission pipeline
# - test_pattern_jobs.py: Daily / weekly / monthly jobs
# - test_models.py: Pydantic model validation
# - test_api.py: HTTP endpoints end to end
#
# Run tests with: pytest
# =============================================================================
