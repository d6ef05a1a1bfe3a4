from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
import logging

from ..application.ports.identity import Actor
from ..application.services.scheduling_service import SchedulingService
from ..application.services.shift_service import ShiftService
from ..auth import get_current_actor
from ..schemas import (
    ErrorResponse,
    ShiftCreate,
    ShiftListResponse,
    ShiftResponse,
    ShiftUpdate,
    SlotCreate,
    SlotResponse,
)
from .dependencies import get_scheduling_service, get_shift_service

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Scheduling"],
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


@router.post("/shifts", response_model=ShiftResponse, status_code=201)
def create_shift(
    payload: ShiftCreate,
    actor: Actor = Depends(get_current_actor),
    shifts: ShiftService = Depends(get_shift_service),
):
    shift = shifts.create_shift(actor, payload.doctor_id, payload.room_id, payload.from_time, payload.to_time)
    return ShiftResponse.model_validate(shift)


@router.get("/shifts", response_model=ShiftListResponse)
def list_shifts(
    doctor_id: Optional[int] = None,
    room_id: Optional[int] = None,
    status: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    shifts: ShiftService = Depends(get_shift_service),
):
    result = shifts.list_shifts(
        actor,
        doctor_id=doctor_id,
        room_id=room_id,
        status=status,
        from_date=from_date,
        to_date=to_date,
        page=page,
        limit=limit,
    )
    return ShiftListResponse(
        items=[ShiftResponse.model_validate(s) for s in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.patch("/shifts/{shift_id}", response_model=ShiftResponse)
def update_shift(
    shift_id: int,
    payload: ShiftUpdate,
    actor: Actor = Depends(get_current_actor),
    shifts: ShiftService = Depends(get_shift_service),
):
    shift = shifts.update_shift(
        actor,
        shift_id,
        doctor_id=payload.doctor_id,
        room_id=payload.room_id,
        from_time=payload.from_time,
        to_time=payload.to_time,
    )
    return ShiftResponse.model_validate(shift)


@router.delete("/shifts/{shift_id}", status_code=204)
def delete_shift(
    shift_id: int,
    actor: Actor = Depends(get_current_actor),
    shifts: ShiftService = Depends(get_shift_service),
):
    shifts.delete_shift(actor, shift_id)
    return Response(status_code=204)


@router.post("/slots", response_model=SlotResponse, status_code=201)
def create_slot(
    payload: SlotCreate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    slot = service.create_slot(actor, payload.room_id, payload.from_time, payload.to_time, doctor_id=payload.doctor_id)
    return SlotResponse.model_validate(slot)


@router.get("/slots/available", response_model=List[SlotResponse])
def list_available_slots(
    room_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return [SlotResponse.model_validate(s) for s in service.list_available_slots(room_id=room_id, doctor_id=doctor_id)]
