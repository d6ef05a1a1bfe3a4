from typing import List, Optional
from fastapi import APIRouter, Depends, Query
import logging

from ..application.ports.identity import Actor
from ..application.services.scheduling_service import SchedulingService
from ..auth import get_current_actor
from ..schemas import (
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatusUpdate,
    DiagnosisSuggestionCreate,
    DiagnosisSuggestionResponse,
    ErrorResponse,
    StatusLogResponse,
)
from .dependencies import get_scheduling_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/appointments",
    tags=["Appointments"],
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


@router.post("", response_model=AppointmentResponse, status_code=201)
def book_appointment(
    payload: AppointmentCreate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.book_appointment(actor, payload.medical_room_time_id, payload.patient_id, payload.notes)
    return AppointmentResponse.model_validate(appointment)


@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    patient_id: Optional[int] = None,
    status: Optional[str] = None,
    room_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    result = service.list_appointments(
        actor,
        patient_id=patient_id,
        status=status,
        room_id=room_id,
        doctor_id=doctor_id,
        page=page,
        limit=limit,
    )
    return AppointmentListResponse(
        items=[AppointmentResponse.model_validate(a) for a in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    return AppointmentResponse.model_validate(service.get_appointment(actor, appointment_id))


@router.post("/{appointment_id}/status", response_model=AppointmentResponse)
def change_status(
    appointment_id: int,
    payload: AppointmentStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    appointment = service.change_status(actor, appointment_id, payload.status, reason=payload.reason)
    return AppointmentResponse.model_validate(appointment)


@router.get("/{appointment_id}/history", response_model=List[StatusLogResponse])
def get_appointment_history(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    entries = service.get_appointment_history(appointment_id, actor=actor)
    return [StatusLogResponse.model_validate(e) for e in entries]


@router.post("/{appointment_id}/diagnosis-suggestions", response_model=DiagnosisSuggestionResponse, status_code=201)
def add_diagnosis_suggestion(
    appointment_id: int,
    payload: DiagnosisSuggestionCreate,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    suggestion = service.add_diagnosis_suggestion(
        appointment_id,
        payload.disease_id,
        payload.confidence,
        ai_suggested=payload.ai_suggested,
        description=payload.description,
        actor=actor,
    )
    return DiagnosisSuggestionResponse.model_validate(suggestion)


@router.get("/{appointment_id}/diagnosis-suggestions", response_model=List[DiagnosisSuggestionResponse])
def list_diagnosis_suggestions(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    service: SchedulingService = Depends(get_scheduling_service),
):
    suggestions = service.list_diagnosis_suggestions(appointment_id, actor=actor)
    return [DiagnosisSuggestionResponse.model_validate(s) for s in suggestions]
