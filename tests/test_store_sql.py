import threading

import pytest
from sqlalchemy.exc import OperationalError

from clinic_scheduler.application.ports.store import StorageUnavailable, TransientStorageError
from clinic_scheduler.database import build_engine, create_db_and_tables
from clinic_scheduler.db.models import Appointment, MedicalRoomTime, Patient
from clinic_scheduler.exceptions import NoOp, SlotConflict, StaleStatus
from clinic_scheduler.infrastructure.persistence.sqlalchemy import store_sql
from clinic_scheduler.infrastructure.persistence.sqlalchemy.store_sql import SqlStore
from clinic_scheduler.main import build_services

from conftest import seed_clinic


@pytest.fixture
def sql_store(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'clinic.db'}")
    create_db_and_tables(engine)
    yield SqlStore(engine)
    engine.dispose()


@pytest.fixture
def sql_clinic(sql_store):
    return seed_clinic(sql_store)


def test_find_treats_none_as_is_null(sql_store, sql_clinic):
    with sql_store.atomic() as tx:
        free = tx.find(MedicalRoomTime, appointment_id=None)
    assert [s.id for s in free] == [sql_clinic.slot, sql_clinic.second_slot, sql_clinic.off_shift_slot]


def test_compare_and_set_only_matches_expected(sql_store, sql_clinic):
    with sql_store.atomic() as tx:
        assert tx.compare_and_set(MedicalRoomTime, sql_clinic.slot, {"appointment_id": None}, {"appointment_id": 7})
        assert not tx.compare_and_set(MedicalRoomTime, sql_clinic.slot, {"appointment_id": None}, {"appointment_id": 8})
        assert not tx.compare_and_set(MedicalRoomTime, 999, {}, {"appointment_id": 8})
    with sql_store.atomic() as tx:
        assert tx.get(MedicalRoomTime, sql_clinic.slot).appointment_id == 7


def test_failed_unit_rolls_back(sql_store, sql_clinic):
    with pytest.raises(RuntimeError):
        with sql_store.atomic() as tx:
            tx.add(Patient(full_name="Ghost"))
            raise RuntimeError("abort")
    with sql_store.atomic() as tx:
        assert [p.full_name for p in tx.find(Patient)] == ["Patient P", "Patient Q"]


def test_booking_and_cancel_through_sql(settings, sql_store, sql_clinic, actors):
    scheduling, _ = build_services(sql_store, settings)
    appt = scheduling.book_appointment(actors["receptionist"], sql_clinic.slot, sql_clinic.patient_p)
    with pytest.raises(SlotConflict):
        scheduling.book_appointment(actors["receptionist"], sql_clinic.slot, sql_clinic.patient_q)

    scheduling.change_status(actors["receptionist"], appt.id, "cancelled")
    with sql_store.atomic() as tx:
        assert tx.get(MedicalRoomTime, sql_clinic.slot).appointment_id is None
        assert tx.get(Appointment, appt.id).version == 1
    assert [h.new_status for h in scheduling.get_appointment_history(appt.id)] == ["pending", "cancelled"]


def test_concurrent_bookings_exactly_one_wins(settings, sql_store, sql_clinic, actors):
    scheduling, _ = build_services(sql_store, settings)
    barrier = threading.Barrier(4)
    outcomes = []

    def attempt(patient_id):
        barrier.wait()
        try:
            outcomes.append(scheduling.book_appointment(actors["admin"], sql_clinic.slot, patient_id))
        except SlotConflict as e:
            outcomes.append(e)

    threads = [
        threading.Thread(target=attempt, args=(sql_clinic.patient_p if i % 2 else sql_clinic.patient_q,))
        for i in range(4)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [o for o in outcomes if isinstance(o, Appointment)]
    assert len(winners) == 1
    assert len(outcomes) == 4
    with sql_store.atomic() as tx:
        assert tx.get(MedicalRoomTime, sql_clinic.slot).appointment_id == winners[0].id
        assert len(tx.find(Appointment)) == 1


class _Orig(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


@pytest.mark.parametrize("orig,transient", [
    (_Orig("database is locked"), True),
    (_Orig("could not serialize access", pgcode="40001"), True),
    (_Orig("deadlock detected", pgcode="40P01"), True),
    (_Orig("no such table: appointments"), False),
])
def test_transient_classification(orig, transient):
    assert store_sql._is_transient(OperationalError("SELECT 1", {}, orig)) is transient


def test_operational_errors_are_mapped(sql_store):
    with pytest.raises(TransientStorageError):
        with sql_store.atomic():
            raise OperationalError("UPDATE", {}, _Orig("database is locked"))
    with pytest.raises(StorageUnavailable):
        with sql_store.atomic():
            raise OperationalError("SELECT", {}, _Orig("unable to open database file"))


def test_concurrent_transitions_exactly_one_wins(settings, sql_store, sql_clinic, actors):
    scheduling, _ = build_services(sql_store, settings)
    appt = scheduling.book_appointment(actors["receptionist"], sql_clinic.slot, sql_clinic.patient_p)
    barrier = threading.Barrier(4)
    outcomes = []

    def attempt():
        barrier.wait()
        try:
            outcomes.append(scheduling.change_status(actors["receptionist"], appt.id, "confirmed"))
        except (StaleStatus, NoOp) as e:
            outcomes.append(e)

    threads = [threading.Thread(target=attempt) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outcomes) == 4
    assert sum(isinstance(o, Appointment) for o in outcomes) == 1
    assert all(o.status_code == 409 for o in outcomes if not isinstance(o, Appointment))
    with sql_store.atomic() as tx:
        current = tx.get(Appointment, appt.id)
    assert (current.status, current.version) == ("confirmed", 1)
    assert [h.new_status for h in scheduling.get_appointment_history(appt.id)] == ["pending", "confirmed"]


def test_delete_removes_row(sql_store, sql_clinic):
    with sql_store.atomic() as tx:
        assert tx.delete(MedicalRoomTime, sql_clinic.off_shift_slot)
        assert not tx.delete(MedicalRoomTime, 999)
    with sql_store.atomic() as tx:
        assert tx.get(MedicalRoomTime, sql_clinic.off_shift_slot) is None
