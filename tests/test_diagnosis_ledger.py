import math
from datetime import datetime
from fractions import Fraction

import pytest

from clinic_scheduler.application.services.diagnosis_ledger import DiagnosisSuggestionLedger, validate_confidence
from clinic_scheduler.db.models import Appointment
from clinic_scheduler.exceptions import InvalidConfidence, NotFound, ValidationError


@pytest.fixture
def appointment_id(scheduling, clinic, actors):
    return scheduling.book_appointment(actors["receptionist"], clinic.slot, clinic.patient_p).id


@pytest.mark.parametrize("value", [0, 1, 0.0, 1.0, 0.5, Fraction(1, 3)])
def test_accepts_closed_unit_interval(value):
    assert validate_confidence(value) == pytest.approx(float(value))


@pytest.mark.parametrize("value", [-0.01, 1.0001, 1.5, math.nan, math.inf, -math.inf, True, False, "0.5", None])
def test_rejects_everything_else(value):
    with pytest.raises(InvalidConfidence):
        validate_confidence(value)


def test_record_stamps_and_stores(store, appointment_id):
    ledger = DiagnosisSuggestionLedger(clock=lambda: datetime(2030, 1, 15, 9, 5))
    with store.atomic() as tx:
        suggestion = ledger.record(tx, appointment_id, " K21 ", 0.4, ai_suggested=False, description="reflux")
    assert suggestion.disease_id == "K21"
    assert suggestion.created_at == datetime(2030, 1, 15, 9, 5)
    assert suggestion.ai_suggested is False

    with store.atomic() as tx:
        assert [s.id for s in ledger.for_appointment(tx, appointment_id)] == [suggestion.id]


def test_record_does_not_touch_appointment(store, appointment_id):
    with store.atomic() as tx:
        before = tx.get(Appointment, appointment_id)
        DiagnosisSuggestionLedger().record(tx, appointment_id, "J45", 0.9)
        after = tx.get(Appointment, appointment_id)
    assert (after.status, after.version, after.updated_at) == (before.status, before.version, before.updated_at)


def test_record_requires_disease_and_appointment(store, appointment_id):
    ledger = DiagnosisSuggestionLedger()
    with pytest.raises(ValidationError):
        with store.atomic() as tx:
            ledger.record(tx, appointment_id, "  ", 0.5)
    with pytest.raises(NotFound):
        with store.atomic() as tx:
            ledger.record(tx, appointment_id + 100, "J45", 0.5)


def test_invalid_confidence_leaves_no_row(store, scheduling, appointment_id):
    with pytest.raises(InvalidConfidence):
        scheduling.add_diagnosis_suggestion(appointment_id, "J45", -0.2)
    assert scheduling.list_diagnosis_suggestions(appointment_id) == []
