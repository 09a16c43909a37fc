# =============================================================================
# agents/journal_analyst.py - Journal Analysis Agent
# =============================================================================
# Turns free-text journal content into confidence-weighted life-area
# scores using OpenAI in JSON mode.
#
# The analyst's job:
# 1. Refuse text too short to mean anything (no call)
# 2. Ask CostGuard whether the call may happen, truncating if allowed
# 3. Call the model deterministically (temperature 0, fixed seed)
# 4. Keep only well-formed items for known areas above the confidence
#    floor; never clamp or invent a score
#
# Failures (timeout, API error, empty or non-JSON output) raise
# ExternalServiceError so the caller can fail open.
#
# Usage:
#   from agents.journal_analyst import JournalAnalyst
#   analyst = JournalAnalyst.from_settings(settings)
#   scores = analyst.analyze("Slept badly again and skipped the gym...")
# =============================================================================

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from openai import APITimeoutError, OpenAI

from agents.cost import CostGuard
from agents.models.analysis import AnalyzedScore, JournalAnalysis, TokenUsage
from agents.prompts.journal_system import build_journal_prompt, build_user_message
from core.errors import ExternalServiceError
from core.models import DimensionKey
from core.scoring import clamp
from core.taxonomy import LIFE_AREAS

if TYPE_CHECKING:
    from app.config import Settings

# Set up logging for this module
logger = logging.getLogger(__name__)


class JournalAnalyst:
    """
    Extracts life-area scores from journal text.

    The OpenAI client is injected so tests can pass a double.

    Example:
        analyst = JournalAnalyst(client=OpenAI(api_key="sk-..."))
        analysis = analyst.analyze_entry("Great week at work, shipped the release.")
        print(analysis.scores[0].area_code)  # "WRK"

    Attributes:
        model: OpenAI model to use
        temperature: Always 0 unless overridden, for reproducible output
        seed: Fixed sampling seed
        confidence_floor: Items below this confidence are dropped
        min_chars: Text shorter than this (stripped) is not analyzed
    """

    def __init__(
        self,
        client: OpenAI,
        model: str = "gpt-4o",
        temperature: float = 0.0,
        seed: int = 7,
        max_output_tokens: int = 1000,
        timeout: float = 30.0,
        confidence_floor: float = 0.3,
        min_chars: int = 20,
        cost_guard: CostGuard | None = None,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.seed = seed
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.confidence_floor = confidence_floor
        self.min_chars = min_chars
        self.cost_guard = cost_guard or CostGuard(max_output_tokens=max_output_tokens)

        logger.info(f"JournalAnalyst initialized with model={self.model}, temp={self.temperature}")

    @classmethod
    def from_settings(cls, settings: "Settings", client: OpenAI | None = None) -> "JournalAnalyst":
        """Build an analyst (and its OpenAI client, unless given) from settings."""
        if client is None:
            client = OpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
                max_retries=settings.ANALYSIS_MAX_RETRIES,
            )
        return cls(
            client=client,
            model=settings.OPENAI_MODEL,
            temperature=settings.ANALYSIS_TEMPERATURE,
            seed=settings.ANALYSIS_SEED,
            max_output_tokens=settings.ANALYSIS_MAX_OUTPUT_TOKENS,
            timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
            confidence_floor=settings.ANALYSIS_CONFIDENCE_FLOOR,
            min_chars=settings.ANALYSIS_MIN_CHARS,
            cost_guard=CostGuard.from_settings(settings),
        )

    # -------------------------------------------------------------------------
    # Main Entry Points
    # -------------------------------------------------------------------------

    def analyze(self, text: str, area_hint: str | None = None) -> list[AnalyzedScore]:
        """
        Scores for the areas the text talks about.

        Args:
            text: Journal entry content
            area_hint: Optional taxonomy code the entry is mostly about

        Returns:
            Scores sorted by area code; empty for ambiguous or short text

        Raises:
            ExternalServiceError: If the model call fails
        """
        return self.analyze_entry(text, area_hint).scores

    def analyze_entry(self, text: str, area_hint: str | None = None) -> JournalAnalysis:
        """
        Full analysis including sentiment, summary, usage and cost.

        Raises:
            ExternalServiceError: If the model call fails
        """
        if len(text.strip()) < self.min_chars:
            logger.debug(f"Journal text too short for analysis ({len(text.strip())} chars)")
            return JournalAnalysis(skipped_reason="too_short", model=self.model)

        system_prompt = build_journal_prompt(area_hint)
        plan = self.cost_guard.plan(text, system_prompt)
        usage = TokenUsage(estimated_input=plan.input_tokens, estimated_output=plan.output_tokens)
        if plan.skip_reason:
            return JournalAnalysis(
                skipped_reason=plan.skip_reason,
                usage=usage,
                estimated_cost_usd=plan.projected_cost_usd,
                model=self.model,
            )

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": build_user_message(plan.text)},
        ]

        try:
            with self.cost_guard.slot():
                response_text, usage = self._call(messages, usage)
        except Exception:
            self.cost_guard.release(plan)
            raise

        total = usage.total or plan.input_tokens + plan.output_tokens
        cost = self.cost_guard.record(total, plan)

        data = self._parse_response(response_text)
        scores, dropped = self._filter_scores(data["scores"])

        sentiment = data.get("sentiment")
        summary = data.get("summary")
        analysis = JournalAnalysis(
            scores=scores,
            sentiment=clamp(float(sentiment), -1.0, 1.0) if _is_number(sentiment) else 0.0,
            summary=summary if isinstance(summary, str) else "",
            dropped=dropped,
            truncated=plan.truncated,
            usage=usage,
            estimated_cost_usd=cost,
            model=self.model,
        )
        logger.info(
            f"Analyzed journal text: {len(scores)} scores, {dropped} dropped, "
            f"{usage.total} tokens, ${cost:.4f}"
        )
        return analysis

    # -------------------------------------------------------------------------
    # OpenAI Call
    # -------------------------------------------------------------------------

    def _call(self, messages: list[dict[str, str]], usage: TokenUsage) -> tuple[str, TokenUsage]:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                seed=self.seed,
                max_tokens=self.max_output_tokens,
                response_format={"type": "json_object"},  # Force JSON output
                messages=messages,
                timeout=self.timeout,
            )
        except APITimeoutError as e:
            raise ExternalServiceError(
                f"OpenAI call timed out after {self.timeout}s",
                details={"model": self.model},
            ) from e
        except Exception as e:
            raise ExternalServiceError(
                f"OpenAI API call failed: {e}",
                details={"model": self.model},
            ) from e

        response_text = response.choices[0].message.content if response.choices else None
        if not response_text:
            raise ExternalServiceError("OpenAI returned an empty response", details={"model": self.model})

        if response.usage is not None:
            usage = usage.model_copy(update={
                "prompt": response.usage.prompt_tokens or 0,
                "completion": response.usage.completion_tokens or 0,
                "total": response.usage.total_tokens or 0,
            })
        logger.debug(f"OpenAI response: {response_text[:200]}...")
        return response_text, usage

    # -------------------------------------------------------------------------
    # Response Parsing
    # -------------------------------------------------------------------------

    def _parse_response(self, response_text: str) -> dict[str, Any]:
        """
        Parse the model's JSON object.

        Raises:
            ExternalServiceError: If it isn't JSON or has no scores list
        """
        try:
            data = json.loads(response_text)
        except json.JSONDecodeError as e:
            raise ExternalServiceError(
                f"Invalid JSON response from model: {e}",
                details={"raw_response": response_text[:500]},
            ) from e

        if not isinstance(data, dict) or not isinstance(data.get("scores"), list):
            raise ExternalServiceError(
                "Model response has no scores list",
                details={"raw_response": response_text[:500]},
            )
        return data

    def _filter_scores(self, items: list[Any]) -> tuple[list[AnalyzedScore], int]:
        """
        Keep valid, confident items; one per area; sorted by area code.

        Returns:
            (kept scores, number of items dropped)
        """
        best: dict[str, AnalyzedScore] = {}
        dropped = 0

        for item in items:
            score = self._to_score(item)
            if score is None:
                dropped += 1
                continue
            current = best.get(score.area_code)
            if current is not None:
                dropped += 1
                if score.confidence <= current.confidence:
                    continue
            best[score.area_code] = score

        return [best[code] for code in sorted(best)], dropped

    def _to_score(self, item: Any) -> AnalyzedScore | None:
        if not isinstance(item, dict):
            return None

        code = item.get("area_code")
        if not isinstance(code, str) or code.strip().upper() not in LIFE_AREAS:
            return None

        value = item.get("value", item.get("score"))
        confidence = item.get("confidence")
        if not _is_number(value) or not _is_number(confidence):
            return None

        is_delta = item.get("is_delta") is True
        low, high = (-5.0, 5.0) if is_delta else (0.0, 5.0)
        if not low <= value <= high:
            return None
        if not 0.0 <= confidence <= 1.0 or confidence < self.confidence_floor:
            return None

        try:
            dimension = DimensionKey(item.get("dimension"))
        except ValueError:
            dimension = DimensionKey.BEING

        reasoning = item.get("reasoning")
        return AnalyzedScore(
            area_code=code.strip().upper(),
            dimension=dimension,
            value=float(value),
            is_delta=is_delta,
            confidence=float(confidence),
            reasoning=reasoning.strip() if isinstance(reasoning, str) else "",
        )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value == value
