# =============================================================================
# tests/test_cost.py - Cost Guard Tests
# =============================================================================
# Token estimation, truncation / skip policy, budgets and call slots.
#
# Run with: pytest tests/test_cost.py -v
# =============================================================================

import threading

import pytest

from agents.cost import CostGuard, estimate_tokens
from core.errors import ExternalServiceError
from tests.conftest import FakeClock

SYSTEM_PROMPT = "x" * 400  # 100 tokens


class TestEstimateTokens:

    def test_four_chars_per_token(self):
        assert estimate_tokens("abcd" * 10) == 10

    def test_rounds_up(self):
        assert estimate_tokens("abcde") == 2

    def test_empty(self):
        assert estimate_tokens("") == 0


class TestPlan:

    def test_small_text_passes_unchanged(self):
        guard = CostGuard()
        plan = guard.plan("Slept well and ran 5k.", SYSTEM_PROMPT)

        assert plan.skip_reason is None
        assert not plan.truncated
        assert plan.text == "Slept well and ran 5k."
        assert plan.input_tokens == 100 + estimate_tokens("Slept well and ran 5k.")
        assert plan.output_tokens == 1000

    def test_oversized_text_truncated(self):
        guard = CostGuard(max_input_tokens=150)
        plan = guard.plan("y" * 1000, SYSTEM_PROMPT)

        assert plan.skip_reason is None
        assert plan.truncated
        assert len(plan.text) == 200
        assert plan.input_tokens == 150

    def test_oversized_text_skipped_under_skip_policy(self):
        guard = CostGuard(max_input_tokens=150, oversize_policy="skip")
        plan = guard.plan("y" * 1000, SYSTEM_PROMPT)
        assert plan.skip_reason == "input_too_large"

    def test_prompt_alone_over_ceiling_skips(self):
        guard = CostGuard(max_input_tokens=50)
        assert guard.plan("hello", SYSTEM_PROMPT).skip_reason == "input_too_large"

    def test_call_cost_ceiling(self):
        guard = CostGuard(max_cost_per_call=0.01)
        plan = guard.plan("some text", SYSTEM_PROMPT)
        assert plan.skip_reason == "over_call_cost_ceiling"
        assert plan.projected_cost_usd > 0.01


class TestBudget:

    def test_daily_budget_exhausted(self):
        guard = CostGuard(daily_budget=0.1)
        guard.record(2000)  # 0.09
        assert guard.spent_today() == pytest.approx(0.09)
        assert guard.plan("some text", SYSTEM_PROMPT).skip_reason == "daily_budget_exhausted"

    def test_budget_resets_next_day(self):
        clock = FakeClock()
        guard = CostGuard(daily_budget=0.1, clock=clock)
        guard.record(2000)

        clock.advance(days=1)
        assert guard.spent_today() == 0.0
        assert guard.plan("some text", SYSTEM_PROMPT).skip_reason is None

    def test_planned_calls_reserve_budget(self):
        # Each plan projects ~0.0496; two fit in 0.1, a third does not
        guard = CostGuard(daily_budget=0.1)
        first = guard.plan("some text", SYSTEM_PROMPT)
        second = guard.plan("some text", SYSTEM_PROMPT)
        third = guard.plan("some text", SYSTEM_PROMPT)

        assert first.skip_reason is None
        assert second.skip_reason is None
        assert third.skip_reason == "daily_budget_exhausted"
        assert guard.reserved_today() == pytest.approx(2 * first.projected_cost_usd)

    def test_record_settles_reservation(self):
        guard = CostGuard(daily_budget=0.1)
        plan = guard.plan("some text", SYSTEM_PROMPT)
        guard.record(500, plan)

        assert guard.reserved_today() == 0.0
        assert guard.spent_today() == pytest.approx(guard.cost_of(500))

    def test_release_frees_reservation(self):
        guard = CostGuard(daily_budget=0.06)
        plan = guard.plan("some text", SYSTEM_PROMPT)
        assert guard.plan("some text", SYSTEM_PROMPT).skip_reason == "daily_budget_exhausted"

        guard.release(plan)
        assert guard.reserved_today() == 0.0
        assert guard.plan("some text", SYSTEM_PROMPT).skip_reason is None

    def test_concurrent_plans_never_exceed_budget(self):
        guard = CostGuard(daily_budget=0.5)
        barrier = threading.Barrier(20)
        accepted = []

        def worker():
            barrier.wait()
            plan = guard.plan("some text", SYSTEM_PROMPT)
            if plan.skip_reason is None:
                accepted.append(plan)

        threads = [threading.Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        committed = sum(plan.projected_cost_usd for plan in accepted)
        assert len(accepted) == 10
        assert committed <= 0.5


class TestSlots:

    def test_slot_released_after_use(self):
        guard = CostGuard(max_concurrency=1, slot_timeout=0.01)
        with guard.slot():
            pass
        with guard.slot():
            pass

    def test_no_slot_within_timeout(self):
        guard = CostGuard(max_concurrency=1, slot_timeout=0.01)
        with guard.slot():
            with pytest.raises(ExternalServiceError) as exc_info:
                with guard.slot():
                    pass
        assert exc_info.value.details["reason"] == "concurrency_limit"
