import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Base for expected, caller-recoverable scheduling failures."""

    status_code = 400
    code = "scheduling_error"

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class ValidationError(SchedulingError):
    status_code = 422
    code = "validation_error"


class Forbidden(SchedulingError):
    status_code = 403
    code = "forbidden"


class NotFound(SchedulingError):
    status_code = 404
    code = "not_found"


class SlotConflict(SchedulingError):
    status_code = 409
    code = "slot_conflict"


class SlotOverlap(SchedulingError):
    status_code = 409
    code = "slot_overlap"


class NoActiveShift(SchedulingError):
    status_code = 409
    code = "no_active_shift"


class ShiftConflict(SchedulingError):
    status_code = 409
    code = "shift_conflict"


class IllegalTransition(SchedulingError):
    status_code = 409
    code = "illegal_transition"


class NoOp(SchedulingError):
    status_code = 409
    code = "no_op"


class StaleStatus(SchedulingError):
    status_code = 409
    code = "stale_status"


class InvalidConfidence(SchedulingError):
    status_code = 422
    code = "invalid_confidence"


def create_error_response(code: str, message: str) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": {"code": code, "message": message},
    }


async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.code}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.code, exc.detail),
    )
