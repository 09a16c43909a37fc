# =============================================================================
# app/routers/journal.py - Journal Endpoints
# =============================================================================
# Submitting a journal entry stores it, analyzes it and applies the
# resulting AI signals. If analysis fails the entry is still stored and
# the response is 502 with the entry id in `details.journal_entry_id`.
# =============================================================================

from fastapi import APIRouter, status

from app.dependencies import JournalServiceDep, TenantDep, UserDep
from core.models import JournalEntryCreate, JournalResult

router = APIRouter()


@router.post("", response_model=JournalResult, status_code=status.HTTP_201_CREATED)
def submit_entry(
    payload: JournalEntryCreate,
    service: JournalServiceDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """
    Submit a journal entry.

    Example request:
        {"content": "Slept badly again and skipped the gym.", "area_hint": "HLT"}
    """
    return service.submit(tenant_id, str(user.id), payload)
