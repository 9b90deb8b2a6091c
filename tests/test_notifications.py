from datetime import timedelta

from conftest import T0, minutes

from patient_tracker.database import get_db_session
from patient_tracker.errors import NotificationDeliveryFailure
from patient_tracker.models import Patient, PatientNotification, WardScanLog
from patient_tracker.services.notifications import (
    StoreNotificationEmitter,
    dispatch,
    evaluate_early_discharge,
    evaluate_scan_after_discharge,
    on_patient_discharged,
    on_scan_logged,
)
from patient_tracker.services.patients import discharge_patient
from patient_tracker.services.qr_payload import WRISTBAND, encode
from patient_tracker.services.scan_recorder import process_scan


def _patient(discharged_after: timedelta) -> Patient:
    return Patient(id="row-1", registration_date=T0, discharge_date=T0 + discharged_after)


def test_discharge_at_exactly_five_minutes_is_early() -> None:
    notification = evaluate_early_discharge(_patient(minutes(5)))

    assert notification is not None
    assert notification.notification_type == "early_discharge"
    assert notification.patient_id == "row-1"


def test_discharge_one_second_past_five_minutes_is_not_early() -> None:
    assert evaluate_early_discharge(_patient(minutes(5) + timedelta(seconds=1))) is None


def test_missing_discharge_date_is_ignored() -> None:
    assert evaluate_early_discharge(Patient(id="row-1", registration_date=T0)) is None


def test_scan_of_discharged_patient_notifies_with_ward() -> None:
    patient = Patient(id="row-1", status="discharged")

    notification = evaluate_scan_after_discharge(WardScanLog(ward="ward_c"), patient)

    assert notification.notification_type == "scan_after_discharge"
    assert notification.ward == "ward_c"


def test_scan_of_admitted_patient_does_not_notify() -> None:
    patient = Patient(id="row-1", status="admitted")

    assert evaluate_scan_after_discharge(WardScanLog(ward="ward_c"), patient) is None
    assert evaluate_scan_after_discharge(WardScanLog(ward="ward_c"), None) is None


class _BrokenEmitter:
    def emit(self, notification: PatientNotification) -> PatientNotification:
        raise NotificationDeliveryFailure("notification table unavailable")


def test_dispatch_swallows_delivery_failures() -> None:
    notification = evaluate_early_discharge(_patient(minutes(1)))

    assert dispatch(_BrokenEmitter(), notification) is None


def test_dispatch_of_nothing_is_a_no_op(store) -> None:
    assert dispatch(StoreNotificationEmitter(store), None) is None
    assert store.query(PatientNotification) == []


def test_store_emitter_wraps_write_failures(flaky_store) -> None:
    emitter = StoreNotificationEmitter(flaky_store(fail_writes_on=[PatientNotification]))

    assert dispatch(emitter, evaluate_early_discharge(_patient(minutes(1)))) is None


def test_discharge_handler_fires_for_early_discharge(store, make_patient) -> None:
    patient = make_patient(registered_at=T0)
    discharge_patient(store, "P100", T0 + minutes(4))

    on_patient_discharged(get_db_session, patient.id)

    notifications = store.query(PatientNotification)
    assert len(notifications) == 1
    assert notifications[0].notification_type == "early_discharge"
    assert notifications[0].patient_id == patient.id


def test_discharge_handler_ignores_normal_stay(store, make_patient) -> None:
    patient = make_patient(registered_at=T0)
    discharge_patient(store, "P100", T0 + timedelta(days=2))

    on_patient_discharged(get_db_session, patient.id)

    assert store.query(PatientNotification) == []


def test_every_scan_after_discharge_notifies(store, make_patient) -> None:
    make_patient(registered_at=T0)
    discharge_patient(store, "P100", T0 + timedelta(days=1))
    tag = encode("P100", WRISTBAND)

    for offset, ward in ((1, "ward_a"), (2, "ward_a"), (3, "ward_b")):
        outcome = process_scan(store, tag, ward, "nurse", T0 + timedelta(days=1, minutes=offset))
        on_scan_logged(get_db_session, outcome.entry.id)

    notifications = store.query(PatientNotification, order_by=PatientNotification.created_at)
    assert [n.notification_type for n in notifications] == ["scan_after_discharge"] * 3
    assert sorted(n.ward for n in notifications) == ["ward_a", "ward_a", "ward_b"]


def test_scan_of_admitted_patient_handler_is_silent(store, make_patient) -> None:
    make_patient(registered_at=T0)
    outcome = process_scan(store, encode("P100", WRISTBAND), "ward_a", "nurse", T0 + minutes(1))

    on_scan_logged(get_db_session, outcome.entry.id)

    assert store.query(PatientNotification) == []


def test_handlers_ignore_missing_rows(store) -> None:
    on_patient_discharged(get_db_session, "missing")
    on_scan_logged(get_db_session, "missing")

    assert store.query(PatientNotification) == []
