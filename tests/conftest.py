# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up test environment variables before any app import
# - In-memory repository and an engine with a pinned clock
# - A fake OpenAI client builder for the journal analyst
# =============================================================================

import json
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-at-least-32-characters")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("SCHEDULER_SECRET", "test-scheduler-secret-123")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest

from core.models import LifeAreaCreate, Signal
from core.services import AggregationEngine, PatternJobRunner
from lib.memory_store import InMemoryRepository

TENANT = "tenant-a"
USER = "5b0e6e7c-3f7a-4c2e-9a51-0c1f2d3e4f50"

# Monday 2026-10-19 12:00 UTC
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for engine / runner tests."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_signal(area_id: str, **overrides) -> Signal:
    """Manual absolute 'being' signal unless overridden."""
    data = {
        "tenant_id": TENANT,
        "user_id": USER,
        "area_id": area_id,
        "dimension": "being",
        "value": 4.0,
        "occurred_at": NOW,
    }
    data.update(overrides)
    return Signal(**data)


def make_openai_client(payload=None, content=None, error=None):
    """
    MagicMock standing in for openai.OpenAI.

    Args:
        payload: Dict the model "returns" as JSON
        content: Raw message content (overrides payload)
        error: Exception raised by chat.completions.create
    """
    client = MagicMock()
    if error is not None:
        client.chat.completions.create.side_effect = error
        return client

    if content is None:
        content = json.dumps(payload if payload is not None else {"scores": []})
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    response.usage = MagicMock(prompt_tokens=900, completion_tokens=120, total_tokens=1020)
    client.chat.completions.create.return_value = response
    return client


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository():
    return InMemoryRepository(tenants=[TENANT])


@pytest.fixture
def engine(repository, clock):
    return AggregationEngine(repository, clock=clock)


@pytest.fixture
def runner(repository, clock):
    return PatternJobRunner(repository, clock=clock)


@pytest.fixture
def health_area(engine):
    """A Health area with a single default subdomain."""
    return engine.create_area(TENANT, USER, LifeAreaCreate(code="HLT", name="Health & Vitality"))
