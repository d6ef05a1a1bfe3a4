import pytest

from clinic_scheduler.application.ports.identity import Actor
from clinic_scheduler.application.services.access_policy import (
    ANY_POSITION,
    CAPABILITIES,
    AccessPolicy,
    Action,
    is_allowed,
)
from clinic_scheduler.db.models import Position, Role
from clinic_scheduler.exceptions import Forbidden


@pytest.mark.parametrize(
    "role,positions,action,expected",
    [
        (Role.PATIENT, set(), Action.BOOK_APPOINTMENT, True),
        (Role.PATIENT, set(), Action.CONFIRM_APPOINTMENT, False),
        (Role.PATIENT, set(), Action.CANCEL_APPOINTMENT, True),
        (Role.PATIENT, set(), Action.VIEW_APPOINTMENT_HISTORY, False),
        (Role.STAFF, {Position.RECEPTIONIST}, Action.CONFIRM_APPOINTMENT, True),
        (Role.STAFF, {Position.MEDICAL_STAFF}, Action.CONFIRM_APPOINTMENT, False),
        (Role.STAFF, {Position.NURSE}, Action.START_APPOINTMENT, True),
        (Role.STAFF, {Position.RECEPTIONIST}, Action.START_APPOINTMENT, False),
        (Role.STAFF, {Position.DOCTOR}, Action.COMPLETE_APPOINTMENT, True),
        (Role.STAFF, {Position.NURSE}, Action.COMPLETE_APPOINTMENT, False),
        (Role.ADMIN, set(), Action.COMPLETE_APPOINTMENT, False),
        (Role.STAFF, {Position.NURSE, Position.DOCTOR}, Action.COMPLETE_APPOINTMENT, True),
        (Role.STAFF, set(), Action.VIEW_APPOINTMENT_HISTORY, True),
        (Role.STAFF, {Position.DEPARTMENT_HEAD}, Action.MANAGE_SHIFTS, True),
        (Role.STAFF, {Position.DOCTOR}, Action.MANAGE_SHIFTS, False),
        (Role.ADMIN, set(), Action.MANAGE_SHIFTS, True),
        (Role.STAFF, set(), Action.VIEW_SHIFTS, True),
        (Role.PATIENT, set(), Action.VIEW_SHIFTS, False),
        (Role.STAFF, {Position.DOCTOR}, Action.RECORD_DIAGNOSIS_SUGGESTION, True),
        (Role.STAFF, {Position.NURSE}, Action.RECORD_DIAGNOSIS_SUGGESTION, False),
    ],
)
def test_capability_matrix(role, positions, action, expected):
    assert is_allowed(role, positions, action) is expected


def test_unknown_inputs_deny():
    assert is_allowed(Role.ADMIN, set(), "drop_database") is False
    assert is_allowed("superuser", set(), Action.BOOK_APPOINTMENT) is False
    assert is_allowed(Role.STAFF, {"janitor"}, Action.CONFIRM_APPOINTMENT) is False
    assert is_allowed(None, None, None) is False


def test_accepts_plain_string_values():
    assert is_allowed("staff", ["doctor"], "complete_appointment") is True
    assert is_allowed("staff", ["nurse"], "complete_appointment") is False


def test_every_action_has_table_entry():
    assert set(CAPABILITIES) == set(Action)


def test_any_position_grants_role_without_positions():
    for action, grants in CAPABILITIES.items():
        for role, required in grants.items():
            if required is ANY_POSITION:
                assert is_allowed(role, set(), action)
            else:
                assert not is_allowed(role, set(), action)
                assert is_allowed(role, {next(iter(required))}, action)


def test_policy_with_custom_table():
    policy = AccessPolicy(table={Action.BOOK_APPOINTMENT: {Role.STAFF: frozenset({Position.NURSE})}})
    assert policy.is_allowed(Role.STAFF, {Position.NURSE}, Action.BOOK_APPOINTMENT)
    assert not policy.is_allowed(Role.PATIENT, set(), Action.BOOK_APPOINTMENT)
    assert not policy.is_allowed(Role.STAFF, {Position.NURSE}, Action.CANCEL_APPOINTMENT)


def test_require_raises_forbidden():
    policy = AccessPolicy()
    nurse = Actor(account_id=1, role=Role.STAFF, positions=frozenset({Position.NURSE}))
    policy.require(nurse, Action.START_APPOINTMENT)
    with pytest.raises(Forbidden):
        policy.require(nurse, Action.CONFIRM_APPOINTMENT)
