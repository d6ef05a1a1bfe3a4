from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from clinic_scheduler.application.ports.identity import Actor
from clinic_scheduler.config import Settings
from clinic_scheduler.db.models import (
    Account,
    MedicalRoom,
    MedicalRoomTime,
    Patient,
    Position,
    PositionRecord,
    PositionStaff,
    Role,
    ShiftWorking,
    Staff,
)
from clinic_scheduler.infrastructure.persistence.memory.store_memory import InMemoryStore
from clinic_scheduler.main import build_services

SHIFT_START = datetime(2030, 1, 15, 8, 0)
SHIFT_END = datetime(2030, 1, 15, 12, 0)


class RecordingAuditLogger:
    def __init__(self):
        self.entries = []

    def log(self, action, actor_id, appointment_id=None, success=True, details=None):
        self.entries.append({
            "action": action,
            "actor_id": actor_id,
            "appointment_id": appointment_id,
            "success": success,
            "details": details or {},
        })


@dataclass
class Clinic:
    patient_p: int
    patient_q: int
    doctor: int
    nurse: int
    room: int
    other_room: int
    slot: int
    second_slot: int
    off_shift_slot: int


def seed_clinic(store) -> Clinic:
    with store.atomic() as tx:
        for name in Position:
            tx.add(PositionRecord(name=name.value))
        doctor_position = tx.find(PositionRecord, name=Position.DOCTOR.value)[0]
        nurse_position = tx.find(PositionRecord, name=Position.NURSE.value)[0]

        tx.add(Account(username="p", role=Role.PATIENT.value))
        tx.add(Account(username="q", role=Role.PATIENT.value))
        patient_p = tx.add(Patient(full_name="Patient P", account_id=1))
        patient_q = tx.add(Patient(full_name="Patient Q", account_id=2))

        doctor = tx.add(Staff(firstname="Dana", lastname="Doctor"))
        tx.add(PositionStaff(staff_id=doctor.id, position_id=doctor_position.id))
        nurse = tx.add(Staff(firstname="Nico", lastname="Nurse"))
        tx.add(PositionStaff(staff_id=nurse.id, position_id=nurse_position.id))

        room = tx.add(MedicalRoom(name="Room R", floor=1))
        other_room = tx.add(MedicalRoom(name="Room X", floor=2))
        tx.add(ShiftWorking(doctor_id=doctor.id, room_id=room.id, from_time=SHIFT_START, to_time=SHIFT_END))

        slot = tx.add(MedicalRoomTime(
            room_id=room.id,
            doctor_id=doctor.id,
            from_time=SHIFT_START + timedelta(hours=1),
            to_time=SHIFT_START + timedelta(hours=1, minutes=30),
        ))
        second_slot = tx.add(MedicalRoomTime(
            room_id=room.id,
            doctor_id=doctor.id,
            from_time=SHIFT_START + timedelta(hours=2),
            to_time=SHIFT_START + timedelta(hours=2, minutes=30),
        ))
        off_shift_slot = tx.add(MedicalRoomTime(
            room_id=room.id,
            doctor_id=doctor.id,
            from_time=SHIFT_END + timedelta(hours=1),
            to_time=SHIFT_END + timedelta(hours=2),
        ))
    return Clinic(
        patient_p=patient_p.id,
        patient_q=patient_q.id,
        doctor=doctor.id,
        nurse=nurse.id,
        room=room.id,
        other_room=other_room.id,
        slot=slot.id,
        second_slot=second_slot.id,
        off_shift_slot=off_shift_slot.id,
    )


@pytest.fixture
def settings():
    return Settings(
        SECRET_KEY="test-secret-key-with-enough-length-for-hs256",
        DATABASE_URL="sqlite://",
        ATOMIC_RETRY_ATTEMPTS=3,
        ATOMIC_RETRY_BACKOFF_SEC=0,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clinic(store):
    return seed_clinic(store)


@pytest.fixture
def audit_logger():
    return RecordingAuditLogger()


@pytest.fixture
def services(store, settings, audit_logger):
    return build_services(store, settings, audit_logger=audit_logger)


@pytest.fixture
def scheduling(services):
    return services[0]


@pytest.fixture
def shifts(services):
    return services[1]


@pytest.fixture
def actors(clinic):
    return {
        "admin": Actor(account_id=100, role=Role.ADMIN),
        "receptionist": Actor(account_id=101, role=Role.STAFF, positions=frozenset({Position.RECEPTIONIST})),
        "doctor": Actor(account_id=102, role=Role.STAFF, positions=frozenset({Position.DOCTOR})),
        "nurse": Actor(account_id=103, role=Role.STAFF, positions=frozenset({Position.NURSE})),
        "medical_staff": Actor(account_id=104, role=Role.STAFF, positions=frozenset({Position.MEDICAL_STAFF})),
        "head": Actor(account_id=105, role=Role.STAFF, positions=frozenset({Position.DEPARTMENT_HEAD})),
        "patient_p": Actor(account_id=1, role=Role.PATIENT, patient_id=clinic.patient_p),
        "patient_q": Actor(account_id=2, role=Role.PATIENT, patient_id=clinic.patient_q),
    }
