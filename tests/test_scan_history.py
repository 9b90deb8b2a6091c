import pytest
from conftest import T0, minutes

from patient_tracker.errors import RecordNotFound
from patient_tracker.models import LocationInconsistency, PatientNotification
from patient_tracker.services.qr_payload import OTHER, WRISTBAND, encode
from patient_tracker.services.scan_history import (
    RECENT_SCANS_LIMIT,
    clear_inconsistency,
    clear_notification,
    list_notifications,
    open_inconsistencies,
    patient_location_history,
    recent_ward_scans,
)
from patient_tracker.services.scan_recorder import process_scan


def test_recent_ward_scans_are_newest_first_and_limited(store, make_patient) -> None:
    make_patient()
    tag = encode("P100", WRISTBAND)
    for i in range(RECENT_SCANS_LIMIT + 2):
        process_scan(store, tag, "ward_a", "nurse_a", T0 + minutes(i))

    scans = recent_ward_scans(store, "ward_a")

    assert len(scans) == RECENT_SCANS_LIMIT
    assert scans[0].scanned_at == T0 + minutes(RECENT_SCANS_LIMIT + 1)
    assert recent_ward_scans(store, "ward_b") == []


def test_location_history_matches_every_tag_format(store, make_patient) -> None:
    make_patient("P100")
    make_patient("P200")
    process_scan(store, encode("P100", WRISTBAND), "ward_a", "nurse", T0)
    process_scan(store, "P100", "ward_a", "nurse", T0 + minutes(10))
    process_scan(store, encode("P100", OTHER), "ward_b", "nurse", T0 + minutes(20))
    process_scan(store, encode("P200", WRISTBAND), "ward_b", "nurse", T0 + minutes(30))

    history = patient_location_history(store, "P100")

    assert [scan.ward for scan in history] == ["ward_b", "ward_a", "ward_a"]


def _inconsistency(store) -> LocationInconsistency:
    return store.insert(LocationInconsistency(
        patient_id="P100",
        first_ward="ward_a",
        second_ward="ward_b",
        time_difference_mins=2.0,
        detected_at=T0
    ))


def test_clear_inconsistency(store) -> None:
    inconsistency = _inconsistency(store)
    assert [i.id for i in open_inconsistencies(store)] == [inconsistency.id]

    cleared = clear_inconsistency(store, inconsistency.id, "Administrator", T0 + minutes(5), notes="File moved")

    assert cleared.cleared is True
    assert cleared.cleared_by == "Administrator"
    assert cleared.cleared_at == T0 + minutes(5)
    assert cleared.notes == "File moved"
    assert open_inconsistencies(store) == []


def test_clear_missing_inconsistency(store) -> None:
    with pytest.raises(RecordNotFound):
        clear_inconsistency(store, "missing", "Administrator", T0)


def test_clear_notification(store) -> None:
    notification = store.insert(PatientNotification(
        patient_id="row-1",
        notification_type="early_discharge",
        message="Patient discharged within 5 minutes of registration.",
        created_at=T0
    ))

    cleared = clear_notification(store, notification.id, T0 + minutes(1))

    assert cleared.is_cleared is True
    assert cleared.cleared_at == T0 + minutes(1)
    assert list_notifications(store, include_cleared=False) == []
    assert len(list_notifications(store)) == 1


def test_clear_missing_notification(store) -> None:
    with pytest.raises(RecordNotFound):
        clear_notification(store, "missing", T0)
