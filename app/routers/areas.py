# =============================================================================
# app/routers/areas.py - Life Area Endpoints
# =============================================================================
# Area CRUD, signal application and snapshot history.
# All endpoints require authentication and an X-Tenant-ID header.
# =============================================================================

from typing import Annotated

from fastapi import APIRouter, Path, Query, status

from app.dependencies import EngineDep, TenantDep, UserDep
from core.errors import ValidationError
from core.models import (
    LifeArea,
    LifeAreaCreate,
    LifeAreaPatch,
    SignalCreate,
    Snapshot,
    UpdatedAggregate,
)

router = APIRouter()

AreaId = Annotated[str, Path(description="Life area UUID")]


# =============================================================================
# Areas
# =============================================================================

@router.post("", response_model=LifeArea, status_code=status.HTTP_201_CREATED)
def create_area(
    payload: LifeAreaCreate,
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """
    Create a life area.

    Without explicit subdomains the area gets one subdomain named after it.
    """
    return engine.create_area(tenant_id, str(user.id), payload)


@router.get("", response_model=list[LifeArea])
def list_areas(
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
    include_inactive: Annotated[bool, Query(description="Include deactivated areas")] = False,
):
    """List the current user's areas, ordered by code."""
    return engine.list_areas(tenant_id, str(user.id), active_only=not include_inactive)


@router.get("/{area_id}", response_model=LifeArea)
def get_area(
    area_id: AreaId,
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """Get one area with its subdomains and dimensions."""
    return engine.get_area(tenant_id, str(user.id), area_id)


@router.patch("/{area_id}", response_model=LifeArea)
def patch_area(
    area_id: AreaId,
    patch: LifeAreaPatch,
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """
    Rename, (de)activate or reweight an area.

    Only the fields present in the body change.
    """
    if patch.is_empty():
        raise ValidationError("Patch must change at least one field")
    return engine.patch_area(tenant_id, str(user.id), area_id, patch)


# =============================================================================
# Signals & History
# =============================================================================

@router.post(
    "/{area_id}/signals",
    response_model=UpdatedAggregate,
    status_code=status.HTTP_201_CREATED,
)
def apply_signal(
    area_id: AreaId,
    payload: SignalCreate,
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """
    Apply a signal to one dimension of the area.

    Returns the recomputed aggregate. Out-of-range values are rejected
    with 422 and nothing is written.
    """
    signal = payload.to_signal(tenant_id, str(user.id), area_id)
    return engine.apply_signal(signal)


@router.get("/{area_id}/snapshots", response_model=list[Snapshot])
def list_snapshots(
    area_id: AreaId,
    engine: EngineDep,
    tenant_id: TenantDep,
    user: UserDep,
):
    """Monthly snapshots for the area, oldest first."""
    return engine.list_snapshots(tenant_id, str(user.id), area_id)
