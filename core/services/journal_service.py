# =============================================================================
# core/services/journal_service.py - Journal Submission
# =============================================================================
# Persists a journal entry, runs AI analysis on it and applies the
# resulting scores to the user's life areas as AI signals.
#
# The entry is always written BEFORE analysis. If analysis fails the entry
# is kept (unscored, with the error recorded) and the ExternalServiceError
# is re-raised carrying the entry id, so content is never lost. Scores the
# engine rejects are reported per area instead of aborting the rest.
# =============================================================================

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from core.errors import ExternalServiceError, FulfillmentError
from core.models import (
    JournalEntry,
    JournalEntryCreate,
    JournalResult,
    ScoreFailure,
    Signal,
    SignalKind,
    SignalSource,
)
from core.repository import AreaRepository
from core.services.aggregation_service import AggregationEngine

if TYPE_CHECKING:
    from agents.journal_analyst import JournalAnalyst

logger = logging.getLogger(__name__)


class JournalService:
    """
    Journal text -> analysis -> signals -> updated areas.

    Example:
        service = JournalService(repository, engine, analyst)
        result = service.submit("tenant-a", "user-1", JournalEntryCreate(content="..."))
        print([a.area.code for a in result.applied])
    """

    def __init__(
        self,
        repository: AreaRepository,
        engine: AggregationEngine,
        analyst: "JournalAnalyst",
    ):
        self.repository = repository
        self.engine = engine
        self.analyst = analyst

    def submit(self, tenant_id: str, user_id: str, payload: JournalEntryCreate) -> JournalResult:
        """
        Store and score one journal entry.

        Analysed area codes are matched to the user's active areas by
        `code`; codes the user doesn't track are reported, not applied.

        A score the engine rejects (conflict, validation) doesn't stop the
        others: it is listed in `failed` and summarised in the entry's
        `scoring_error`, and the entry stays unscored. Signals that landed
        are durable, so the error is only raised when none did.

        Raises:
            ExternalServiceError: Analysis failed; the entry is stored unscored
            FulfillmentError: Every matched score failed to apply
        """
        entry = self.repository.save_journal_entry(
            JournalEntry(
                tenant_id=tenant_id,
                user_id=user_id,
                content=payload.content,
                area_hint=payload.area_hint,
            )
        )
        logger.info(f"Saved journal entry {entry.id} for user {user_id}")

        try:
            analysis = self.analyst.analyze_entry(entry.content, entry.area_hint)
        except ExternalServiceError as e:
            entry.scoring_error = e.message
            self.repository.save_journal_entry(entry)
            e.details["journal_entry_id"] = entry.id
            logger.warning(f"Journal entry {entry.id} kept unscored: {e.message}")
            raise

        areas = {area.code: area for area in self.engine.list_areas(tenant_id, user_id)}
        result = JournalResult(
            entry=entry,
            skipped_reason=analysis.skipped_reason,
            sentiment=analysis.sentiment,
            summary=analysis.summary,
        )

        first_error: FulfillmentError | None = None
        for score in analysis.scores:
            area = areas.get(score.area_code)
            if area is None:
                result.unmatched_codes.append(score.area_code)
                continue

            signal = Signal(
                tenant_id=tenant_id,
                user_id=user_id,
                area_id=area.id,
                dimension=score.dimension,
                kind=SignalKind.DELTA if score.is_delta else SignalKind.ABSOLUTE,
                value=score.value,
                confidence=score.confidence,
                source=SignalSource.AI,
                reasoning=score.reasoning,
                journal_entry_id=entry.id,
            )
            try:
                result.applied.append(self.engine.apply_signal(signal))
            except FulfillmentError as e:
                logger.warning(f"Journal entry {entry.id}: {score.area_code} not applied: {e.message}")
                result.failed.append(ScoreFailure(area_code=score.area_code, code=e.code, message=e.message))
                first_error = first_error or e

        if result.failed:
            failed_codes = ", ".join(f.area_code for f in result.failed)
            entry.scoring_error = (
                f"{len(result.failed)} of {len(result.failed) + len(result.applied)} scores "
                f"not applied ({failed_codes}): {result.failed[0].message}"
            )
        entry.scored = analysis.skipped_reason is None and not result.failed
        result.entry = self.repository.save_journal_entry(entry)

        # Nothing landed, so the caller can safely resubmit
        if first_error is not None and not result.applied:
            first_error.details["journal_entry_id"] = entry.id
            raise first_error

        logger.info(
            f"Journal entry {entry.id}: {len(result.applied)} signals applied, "
            f"{len(result.failed)} failed, {len(result.unmatched_codes)} unmatched"
        )
        return result
