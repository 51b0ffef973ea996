from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from clinica.core.dependencies import (
    get_actor, get_store, load_store, raise_store_error, refresh_store, require_approved, require_capability
)
from clinica.database.supabase_client import Tables
from clinica.modules.audit.schemas import Actor
from clinica.modules.shifts.hours import calculate_staff_hours, staff_hours_csv, staff_hours_summary_csv
from clinica.modules.shifts.schemas import (
    Shift, ShiftCreate, ShiftExceptionCreate, ShiftOccurrence, ShiftUpdate, StaffHoursReport, StaffType
)
from clinica.modules.shifts.service import ShiftStore
from clinica.modules.users.schemas import UserProfile
from datetime import date
from typing import Dict, List, Literal, Optional, Union
import uuid

router = APIRouter(prefix="/shifts", tags=["shifts"])

get_shift_store = get_store(Tables.SHIFTS)


def _check_window(start: date, end: date) -> None:
    if end < start:
        raise HTTPException(status_code=400, detail="end must not be before start")


def _lookup(request: Request, table: str, record_id):
    if not record_id:
        return None
    store = request.app.state.stores[table]
    store.ensure_loaded()
    return store.get(record_id)


@router.get("", response_model=List[Shift])
async def list_shifts(
    profile: UserProfile = Depends(require_approved),
    store: ShiftStore = Depends(get_shift_store)
):
    """List stored shifts (recurring shifts appear once)"""
    refresh_store(store)
    return store.data


@router.get("/occurrences", response_model=List[ShiftOccurrence])
async def list_occurrences(
    start: date = Query(...),
    end: date = Query(...),
    profile: UserProfile = Depends(require_approved),
    store: ShiftStore = Depends(get_shift_store)
):
    """Expand shifts into the calendar days they occupy between start and end"""
    _check_window(start, end)
    refresh_store(store)
    return store.occurrences(start, end)


@router.get("/conflicts", response_model=Dict[str, List[str]])
async def list_conflicts(
    start: date = Query(...),
    end: date = Query(...),
    profile: UserProfile = Depends(require_approved),
    store: ShiftStore = Depends(get_shift_store)
):
    """Ids of shifts overlapping another shift of the same provider"""
    _check_window(start, end)
    refresh_store(store)
    return {"shiftIds": store.conflicting_shift_ids(start, end)}


@router.post("/check-conflicts", response_model=List[Shift])
async def check_conflicts(
    shift_data: ShiftCreate,
    start: date = Query(...),
    end: date = Query(...),
    profile: UserProfile = Depends(require_approved),
    store: ShiftStore = Depends(get_shift_store)
):
    """Existing shifts a proposed shift would overlap"""
    _check_window(start, end)
    load_store(store)
    candidate = Shift(id=str(uuid.uuid4()), **shift_data.model_dump())
    return store.conflicts_for(candidate, start, end)


@router.get("/hours", response_model=None)
async def staff_hours(
    request: Request,
    start: date = Query(...),
    end: date = Query(...),
    staff_type: Optional[StaffType] = None,
    include_vacations: bool = False,
    output: Literal["json", "csv", "summary"] = "json",
    profile: UserProfile = Depends(require_capability("can_export_data")),
    store: ShiftStore = Depends(get_shift_store)
) -> Union[List[StaffHoursReport], Response]:
    """Hours per provider and medical assistant between start and end, as JSON or CSV"""
    _check_window(start, end)
    refresh_store(store)
    providers = load_store(request.app.state.stores[Tables.PROVIDERS])
    assistants = load_store(request.app.state.stores[Tables.MEDICAL_ASSISTANTS])
    reports = calculate_staff_hours(store.data, providers, assistants, start, end, staff_type, include_vacations)
    if output == "json":
        return reports

    if output == "summary":
        content, name = staff_hours_summary_csv(reports), "staff_hours_summary"
    else:
        content, name = staff_hours_csv(reports), "staff_hours_report"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={name}_{start}_to_{end}.csv"}
    )


@router.post("", response_model=Shift, status_code=201)
async def create_shift(
    request: Request,
    shift_data: ShiftCreate,
    profile: UserProfile = Depends(require_capability("can_manage_shifts")),
    actor: Actor = Depends(get_actor),
    store: ShiftStore = Depends(get_shift_store)
):
    load_store(store)
    provider = _lookup(request, Tables.PROVIDERS, shift_data.provider_id)
    clinic = _lookup(request, Tables.CLINIC_TYPES, shift_data.clinic_type_id)
    shift = store.add_shift(shift_data, provider=provider, clinic=clinic, actor=actor)
    if shift is None:
        raise_store_error(store)
    return shift


@router.get("/{shift_id}", response_model=Shift)
async def get_shift(
    shift_id: str,
    profile: UserProfile = Depends(require_approved),
    store: ShiftStore = Depends(get_shift_store)
):
    load_store(store)
    shift = store.get(shift_id)
    if shift is None:
        raise HTTPException(status_code=404, detail="Shift not found")
    return shift


@router.put("/{shift_id}", response_model=Shift)
async def update_shift(
    shift_id: str,
    shift_data: ShiftUpdate,
    profile: UserProfile = Depends(require_capability("can_manage_shifts")),
    actor: Actor = Depends(get_actor),
    store: ShiftStore = Depends(get_shift_store)
):
    load_store(store)
    shift = store.update_shift(shift_id, shift_data, actor=actor)
    if shift is None:
        raise_store_error(store)
    return shift


@router.delete("/{shift_id}", status_code=204)
async def delete_shift(
    shift_id: str,
    all_occurrences: bool = False,
    profile: UserProfile = Depends(require_capability("can_manage_shifts")),
    actor: Actor = Depends(get_actor),
    store: ShiftStore = Depends(get_shift_store)
):
    """Delete a shift, or with all_occurrences every shift of its series"""
    load_store(store)
    shift = store.get(shift_id)
    series_id = shift.series_id if shift is not None else None
    if not store.delete_shift(shift_id, series_id, all_occurrences, actor=actor):
        raise_store_error(store)
    return None


@router.post("/{shift_id}/exceptions", response_model=Shift, status_code=201)
async def create_exception(
    shift_id: str,
    exception_data: ShiftExceptionCreate,
    profile: UserProfile = Depends(require_capability("can_manage_shifts")),
    actor: Actor = Depends(get_actor),
    store: ShiftStore = Depends(get_shift_store)
):
    """Replace one occurrence of a recurring shift"""
    load_store(store)
    shift = store.create_exception(shift_id, exception_data, actor=actor)
    if shift is None:
        raise_store_error(store)
    return shift
