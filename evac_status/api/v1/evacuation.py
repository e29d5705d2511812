"""
Evacuation status APIs.

Read endpoints feed the report builder; the override endpoints take human
corrections (e.g. from an uploaded roster sheet); ``/refresh`` runs one
refresh cycle on demand.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response

from ...core.errors import ManualOverrideError
from ...core.pagination import DEFAULT_PAGE_SIZE, clamp_page_size, set_pagination_headers
from ...schemas.evacuation import (
    ActiveIdsOut,
    ManualStatusBatchIn,
    ManualStatusIn,
    RefreshOut,
    StatusRecord,
)
from ...services.evacuation_refresh import EvacuationRefresher
from ...services.evacuation_store import EvacuationStatusStore


router = APIRouter(prefix="/api/v1/evacuation", tags=["evacuation"])


def get_store(request: Request) -> EvacuationStatusStore:
    return request.app.state.evacuation_store


def get_refresher(request: Request) -> EvacuationRefresher:
    refresher = getattr(request.app.state, "evacuation_refresher", None)
    if refresher is None:
        raise HTTPException(status_code=503, detail="Evacuation refresh is not configured")
    return refresher


@router.get("/lists/{list_id}/active-ids", response_model=ActiveIdsOut)
def active_ids(list_id: int, store: EvacuationStatusStore = Depends(get_store)) -> ActiveIdsOut:
    return ActiveIdsOut(list_id=list_id, items=sorted(store.active_person_ids(list_id)))


@router.get("/lists/{list_id}/active")
def active_statuses(list_id: int, store: EvacuationStatusStore = Depends(get_store)) -> dict:
    statuses = store.active_statuses(list_id)
    return {
        "list_id": list_id,
        "items": [record.model_dump() for record in statuses.values()],
        "total": len(statuses),
    }


@router.get("/lists/{list_id}/statuses")
def list_statuses(
    list_id: int,
    response: Response,
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    store: EvacuationStatusStore = Depends(get_store),
) -> dict:
    page_size = clamp_page_size(page_size)
    total, records = store.find_page_by_list(list_id, (page - 1) * page_size, page_size)
    set_pagination_headers(response, total=total, page=page, page_size=page_size)
    return {
        "items": [record.model_dump() for record in records],
        "total": total,
        "page": page,
        "page_size": page_size,
    }


@router.put("/lists/{list_id}/items/{item_id}/status", response_model=StatusRecord)
def set_manual_status(
    list_id: int,
    item_id: int,
    payload: ManualStatusIn,
    store: EvacuationStatusStore = Depends(get_store),
) -> StatusRecord:
    try:
        return store.set_manual_status(list_id, item_id, payload.status, payload.effective_time_ms)
    except ManualOverrideError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.post("/lists/{list_id}/manual-statuses")
def set_manual_statuses(
    list_id: int,
    payload: ManualStatusBatchIn,
    store: EvacuationStatusStore = Depends(get_store),
) -> dict:
    statuses = {item.list_item_id: item.status for item in payload.items}
    try:
        records = store.set_manual_statuses(list_id, statuses, payload.effective_time_ms)
    except ManualOverrideError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"items": [record.model_dump() for record in records], "total": len(records)}


@router.post("/refresh", response_model=RefreshOut)
def trigger_refresh(refresher: EvacuationRefresher = Depends(get_refresher)) -> RefreshOut:
    report = refresher.refresh()
    if report.skipped:
        raise HTTPException(status_code=409, detail="Evacuation refresh already running")
    return RefreshOut.model_validate(report, from_attributes=True)
