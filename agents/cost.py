# =============================================================================
# agents/cost.py - Token Estimation, Budgets and Call Slots
# =============================================================================
# CostGuard decides, before any model call, whether the call may happen:
# - estimate tokens (1 token ~ 4 characters) for prompt, text and output
# - truncate or skip text above the input ceiling
# - skip calls whose projected cost exceeds the per-call ceiling or the
#   remaining daily budget
# - reserve the projected cost of an accepted call until it is settled,
#   so concurrent callers cannot overshoot the daily budget together
#
# It also bounds in-flight calls per process with a semaphore. A caller
# that cannot get a slot within the timeout gets an ExternalServiceError,
# the same failure as a model timeout.
#
# Usage:
#   guard = CostGuard.from_settings(settings)
#   plan = guard.plan(text, system_prompt)
#   if plan.skip_reason is None:
#       try:
#           with guard.slot():
#               ...call the model...
#       except Exception:
#           guard.release(plan)
#           raise
#       guard.record(actual_tokens, plan)
# =============================================================================

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel

from core.errors import ExternalServiceError
from lib.utils import day_key, utc_now

if TYPE_CHECKING:
    from app.config import Settings

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4

OversizePolicy = Literal["truncate", "skip"]


def estimate_tokens(text: str) -> int:
    """Rough token count: ceil(characters / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class CostPlan(BaseModel):
    """What CostGuard.plan() decided for one piece of text."""

    text: str
    truncated: bool = False
    input_tokens: int = 0
    output_tokens: int = 0
    projected_cost_usd: float = 0.0
    skip_reason: str | None = None


class CostGuard:
    """
    Per-process cost and concurrency guard for model calls.

    Attributes:
        max_input_tokens: Ceiling for prompt + text tokens
        max_output_tokens: Output tokens reserved per call
        cost_per_1k_tokens: Blended USD price per 1K tokens
        max_cost_per_call: Calls projected above this are skipped
        daily_budget: USD allowed per UTC day across all calls
        oversize_policy: "truncate" or "skip" for text over the ceiling
    """

    def __init__(
        self,
        max_input_tokens: int = 6000,
        max_output_tokens: int = 1000,
        cost_per_1k_tokens: float = 0.045,
        max_cost_per_call: float = 0.5,
        daily_budget: float = 25.0,
        oversize_policy: OversizePolicy = "truncate",
        max_concurrency: int = 4,
        slot_timeout: float = 10.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.max_input_tokens = max_input_tokens
        self.max_output_tokens = max_output_tokens
        self.cost_per_1k_tokens = cost_per_1k_tokens
        self.max_cost_per_call = max_cost_per_call
        self.daily_budget = daily_budget
        self.oversize_policy = oversize_policy
        self.slot_timeout = slot_timeout
        self.clock = clock

        self._slots = threading.BoundedSemaphore(max_concurrency)
        self._lock = threading.Lock()
        self._spend_day: str | None = None
        self._spent = 0.0
        self._reserved = 0.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "CostGuard":
        return cls(
            max_input_tokens=settings.ANALYSIS_MAX_INPUT_TOKENS,
            max_output_tokens=settings.ANALYSIS_MAX_OUTPUT_TOKENS,
            cost_per_1k_tokens=settings.ANALYSIS_COST_PER_1K_TOKENS_USD,
            max_cost_per_call=settings.ANALYSIS_MAX_COST_PER_CALL_USD,
            daily_budget=settings.ANALYSIS_DAILY_BUDGET_USD,
            oversize_policy=settings.ANALYSIS_OVERSIZE_POLICY,
            max_concurrency=settings.ANALYSIS_MAX_CONCURRENCY,
            slot_timeout=settings.ANALYSIS_SLOT_TIMEOUT_SECONDS,
        )

    # -------------------------------------------------------------------------
    # Estimation
    # -------------------------------------------------------------------------

    def cost_of(self, tokens: int) -> float:
        return round(tokens / 1000 * self.cost_per_1k_tokens, 6)

    def plan(self, text: str, system_prompt: str) -> CostPlan:
        """
        Decide whether `text` can be sent, and in what form.

        Args:
            text: Journal text
            system_prompt: The system prompt that will accompany it

        Returns:
            CostPlan; `skip_reason` is set when the call must not happen
        """
        prompt_tokens = estimate_tokens(system_prompt)
        text_tokens = estimate_tokens(text)
        truncated = False

        if prompt_tokens + text_tokens > self.max_input_tokens:
            allowed = self.max_input_tokens - prompt_tokens
            if self.oversize_policy == "skip" or allowed <= 0:
                logger.info(
                    f"Skipping analysis: {prompt_tokens + text_tokens} input tokens "
                    f"exceed ceiling {self.max_input_tokens}"
                )
                return CostPlan(
                    text=text,
                    input_tokens=prompt_tokens + text_tokens,
                    output_tokens=self.max_output_tokens,
                    skip_reason="input_too_large",
                )
            text = text[: allowed * CHARS_PER_TOKEN]
            text_tokens = estimate_tokens(text)
            truncated = True
            logger.info(f"Truncated journal text to {len(text)} characters")

        input_tokens = prompt_tokens + text_tokens
        projected = self.cost_of(input_tokens + self.max_output_tokens)
        plan = CostPlan(
            text=text,
            truncated=truncated,
            input_tokens=input_tokens,
            output_tokens=self.max_output_tokens,
            projected_cost_usd=projected,
        )

        if projected > self.max_cost_per_call:
            plan.skip_reason = "over_call_cost_ceiling"
        else:
            # Check and reserve in one step; record() or release() settles it
            with self._lock:
                self._roll_day()
                if self._spent + self._reserved + projected > self.daily_budget:
                    plan.skip_reason = "daily_budget_exhausted"
                else:
                    self._reserved += projected

        if plan.skip_reason:
            logger.warning(f"Skipping analysis ({plan.skip_reason}): projected ${projected:.4f}")
        return plan

    # -------------------------------------------------------------------------
    # Budget
    # -------------------------------------------------------------------------

    def spent_today(self) -> float:
        with self._lock:
            if self._spend_day != day_key(self.clock()):
                return 0.0
            return self._spent

    def reserved_today(self) -> float:
        """Projected cost of planned calls that have not been settled yet."""
        with self._lock:
            if self._spend_day != day_key(self.clock()):
                return 0.0
            return self._reserved

    def record(self, tokens: int, plan: CostPlan | None = None) -> float:
        """
        Add the cost of `tokens` to today's spend and return it.

        Args:
            tokens: Tokens the call actually used
            plan: The plan that reserved budget for this call, if any;
                its reservation is released in the same step
        """
        cost = self.cost_of(tokens)
        with self._lock:
            self._roll_day()
            if plan is not None:
                self._unreserve(plan)
            self._spent += cost
        return cost

    def release(self, plan: CostPlan) -> None:
        """Drop the reservation of a planned call that never completed."""
        with self._lock:
            self._roll_day()
            self._unreserve(plan)

    def _roll_day(self) -> None:
        # Caller holds _lock
        today = day_key(self.clock())
        if self._spend_day != today:
            self._spend_day = today
            self._spent = 0.0
            self._reserved = 0.0

    def _unreserve(self, plan: CostPlan) -> None:
        if plan.skip_reason is None:
            self._reserved = max(0.0, self._reserved - plan.projected_cost_usd)

    # -------------------------------------------------------------------------
    # Concurrency
    # -------------------------------------------------------------------------

    @contextmanager
    def slot(self) -> Iterator[None]:
        """
        Hold one of the in-flight call slots.

        Raises:
            ExternalServiceError: If no slot frees up within slot_timeout
        """
        if not self._slots.acquire(timeout=self.slot_timeout):
            raise ExternalServiceError(
                f"No analysis capacity available within {self.slot_timeout}s",
                details={"reason": "concurrency_limit"},
            )
        try:
            yield
        finally:
            self._slots.release()
