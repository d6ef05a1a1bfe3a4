from fastapi import Request

from ..application.services.scheduling_service import SchedulingService
from ..application.services.shift_service import ShiftService


def get_scheduling_service(request: Request) -> SchedulingService:
    return request.app.state.scheduling_service


def get_shift_service(request: Request) -> ShiftService:
    return request.app.state.shift_service
