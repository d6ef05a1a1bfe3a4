"""Two-axis access control: organizational role plus clinical position.

Every permission the scheduling core enforces is listed in ``CAPABILITIES``.
For each action, a role maps either to ``ANY_POSITION`` (the role alone is
enough) or to the set of positions of which the actor must hold at least one.
Roles absent from an action's entry are denied.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from ...db.models import Position, Role
from ...exceptions import Forbidden
from ..ports.identity import Actor


class Action(str, Enum):
    BOOK_APPOINTMENT = "book_appointment"
    CONFIRM_APPOINTMENT = "confirm_appointment"
    START_APPOINTMENT = "start_appointment"
    COMPLETE_APPOINTMENT = "complete_appointment"
    CANCEL_APPOINTMENT = "cancel_appointment"
    MARK_NO_SHOW = "mark_no_show"
    RECORD_DIAGNOSIS_SUGGESTION = "record_diagnosis_suggestion"
    VIEW_APPOINTMENTS = "view_appointments"
    VIEW_APPOINTMENT_HISTORY = "view_appointment_history"
    VIEW_SHIFTS = "view_shifts"
    MANAGE_SHIFTS = "manage_shifts"
    MANAGE_SLOTS = "manage_slots"


ANY_POSITION: Optional[FrozenSet[Position]] = None

_FRONT_DESK = frozenset({Position.RECEPTIONIST, Position.DOCTOR, Position.DEPARTMENT_HEAD})

CAPABILITIES: Dict[Action, Dict[Role, Optional[FrozenSet[Position]]]] = {
    Action.BOOK_APPOINTMENT: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: _FRONT_DESK,
        Role.PATIENT: ANY_POSITION,
    },
    Action.CONFIRM_APPOINTMENT: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: _FRONT_DESK,
    },
    Action.START_APPOINTMENT: {
        Role.STAFF: frozenset({Position.DOCTOR, Position.NURSE, Position.MEDICAL_STAFF}),
    },
    Action.COMPLETE_APPOINTMENT: {
        Role.STAFF: frozenset({Position.DOCTOR}),
    },
    Action.CANCEL_APPOINTMENT: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: _FRONT_DESK,
        Role.PATIENT: ANY_POSITION,
    },
    Action.MARK_NO_SHOW: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: frozenset({Position.RECEPTIONIST, Position.DOCTOR}),
    },
    Action.RECORD_DIAGNOSIS_SUGGESTION: {
        Role.STAFF: frozenset({Position.DOCTOR}),
    },
    Action.VIEW_APPOINTMENTS: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: ANY_POSITION,
        Role.PATIENT: ANY_POSITION,
    },
    Action.VIEW_APPOINTMENT_HISTORY: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: ANY_POSITION,
    },
    Action.VIEW_SHIFTS: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: ANY_POSITION,
    },
    Action.MANAGE_SHIFTS: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: frozenset({Position.DEPARTMENT_HEAD}),
    },
    Action.MANAGE_SLOTS: {
        Role.ADMIN: ANY_POSITION,
        Role.STAFF: frozenset({Position.DEPARTMENT_HEAD, Position.RECEPTIONIST}),
    },
}


def _coerce(enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def is_allowed(
    role,
    positions: Iterable,
    action,
    table: Mapping[Action, Mapping[Role, Optional[FrozenSet[Position]]]] = CAPABILITIES,
) -> bool:
    """Total over any input: unknown roles, positions and actions deny."""
    action = _coerce(Action, action)
    role = _coerce(Role, role)
    if action is None or role is None:
        return False
    grants = table.get(action)
    if not grants or role not in grants:
        return False
    required = grants[role]
    if required is ANY_POSITION:
        return True
    held = {p for p in (_coerce(Position, p) for p in positions or ()) if p is not None}
    return bool(held & required)


@dataclass
class AccessPolicy:
    table: Mapping[Action, Mapping[Role, Optional[FrozenSet[Position]]]] = field(default_factory=lambda: CAPABILITIES)

    def is_allowed(self, role, positions: Iterable, action) -> bool:
        return is_allowed(role, positions, action, self.table)

    def require(self, actor: Actor, action: Action) -> None:
        if not self.is_allowed(actor.role, actor.positions, action):
            raise Forbidden(f"Action '{action.value}' is not permitted for this account")
