# =============================================================================
# tests/test_models.py - Pydantic Model Tests
# =============================================================================
# Unit tests for the Pydantic models to ensure:
# - Valid data is accepted and parsed correctly
# - Invalid data raises ValidationError
# - Default values work as expected
#
# Run with: pytest tests/test_models.py -v
# =============================================================================

import pytest
from pydantic import ValidationError

from agents.models import AnalyzedScore, JournalAnalysis
from core.models import (
    AlertStatus,
    AlertType,
    DimensionKey,
    JobName,
    JobResult,
    JournalEntryCreate,
    LifeArea,
    LifeAreaCreate,
    LifeAreaPatch,
    PatternAlert,
    SignalCreate,
    SignalKind,
    SignalSource,
    Snapshot,
    TenantOutcome,
)
from core.taxonomy import LIFE_AREAS, area_name, is_known_code


# =============================================================================
# Area Models
# =============================================================================

class TestLifeAreaCreate:

    def test_code_normalized(self):
        payload = LifeAreaCreate(code=" hlt ", name="Health")
        assert payload.code == "HLT"
        assert payload.subdomains == []

    def test_name_required(self):
        with pytest.raises(ValidationError):
            LifeAreaCreate(code="HLT", name="")

    def test_subdomain_weight_must_be_positive(self):
        with pytest.raises(ValidationError):
            LifeAreaCreate(code="HLT", name="Health", subdomains=[{"name": "Sleep", "weight": 0}])


class TestLifeAreaPatch:

    def test_empty_patch(self):
        assert LifeAreaPatch().is_empty()
        assert not LifeAreaPatch(is_active=False).is_empty()

    def test_non_positive_weight_rejected(self):
        with pytest.raises(ValidationError):
            LifeAreaPatch(subdomain_weights={"s1": -1.0})


class TestLifeArea:

    def test_defaults(self):
        area = LifeArea(tenant_id="t", user_id="u", code="HLT", name="Health")
        assert area.is_active
        assert area.drift == 0.0
        assert area.version == 0
        assert area.subdomain("missing") is None

    def test_score_bounded(self):
        with pytest.raises(ValidationError):
            LifeArea(tenant_id="t", user_id="u", code="HLT", name="Health", score=101)


# =============================================================================
# Signal Models
# =============================================================================

class TestSignalCreate:

    def test_to_signal_binds_owner(self):
        payload = SignalCreate(dimension="doing", kind="delta", value=-1.5, broken_commitment=True)
        signal = payload.to_signal("t1", "u1", "a1")

        assert (signal.tenant_id, signal.user_id, signal.area_id) == ("t1", "u1", "a1")
        assert signal.dimension == DimensionKey.DOING
        assert signal.kind == SignalKind.DELTA
        assert signal.source == SignalSource.MANUAL
        assert signal.broken_commitment
        assert signal.occurred_at is not None

    def test_range_not_enforced_by_schema(self):
        # The engine rejects these with a typed error instead
        assert SignalCreate(dimension="being", value=9).value == 9

    def test_unknown_dimension_rejected(self):
        with pytest.raises(ValidationError):
            SignalCreate(dimension="feeling", value=3)

    def test_signal_is_immutable(self):
        signal = SignalCreate(dimension="being", value=3).to_signal("t", "u", "a")
        with pytest.raises(ValidationError):
            signal.value = 1


# =============================================================================
# History & Jobs
# =============================================================================

class TestHistoryModels:

    def test_snapshot_is_frozen(self):
        snapshot = Snapshot(tenant_id="t", user_id="u", area_id="a", period_key="2026-09", score=70)
        with pytest.raises(ValidationError):
            snapshot.score = 10

    def test_journal_content_required(self):
        with pytest.raises(ValidationError):
            JournalEntryCreate(content="")

    def _alert(self, **overrides):
        data = {
            "tenant_id": "t",
            "user_id": "u",
            "area_id": "a",
            "alert_type": "trend",
            "period_key": "2026-10-18",
            "title": "Downward trend",
            "description": "Ratings fell",
        }
        data.update(overrides)
        return PatternAlert(**data)

    def test_alert_active_by_default(self):
        alert = self._alert()
        assert alert.alert_type == AlertType.TREND
        assert alert.status == AlertStatus.ACTIVE
        assert alert.confidence is None
        assert alert.related_area_id is None

    def test_alert_confidence_bounded(self):
        with pytest.raises(ValidationError):
            self._alert(confidence=1.5)


class TestJobResult:

    def _result(self, *successes):
        return JobResult(
            job=JobName.DAILY,
            period_key="2026-10-18",
            outcomes=[TenantOutcome(tenant_id=f"t{i}", success=ok) for i, ok in enumerate(successes)],
        )

    def test_all_succeeded(self):
        result = self._result(True, True)
        assert result.success
        assert not result.partial
        assert result.summary() == "daily job for 2026-10-18: 2/2 tenants succeeded"

    def test_partial(self):
        result = self._result(True, False)
        assert not result.success
        assert result.partial
        assert result.failed == 1
        assert result.summary().endswith("failed: t1")

    def test_no_tenants_is_success(self):
        assert self._result().success


# =============================================================================
# Analysis Models & Taxonomy
# =============================================================================

class TestAnalysisModels:

    def test_confidence_bounded(self):
        with pytest.raises(ValidationError):
            AnalyzedScore(area_code="HLT", value=3, confidence=1.2)

    def test_skipped(self):
        assert JournalAnalysis(skipped_reason="too_short").skipped
        assert not JournalAnalysis().skipped


class TestTaxonomy:

    def test_sixteen_areas(self):
        assert len(LIFE_AREAS) == 16

    def test_lookup(self):
        assert is_known_code("HLT")
        assert not is_known_code("XYZ")
        assert area_name("FAM") == "Family"
        assert area_name("XYZ") == "XYZ"
