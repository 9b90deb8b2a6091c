from datetime import datetime
from typing import List, Optional
import logging

from patient_tracker.errors import RecordNotFound
from patient_tracker.models import LocationInconsistency, PatientNotification, WardScanLog
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)

RECENT_SCANS_LIMIT = 10


def recent_ward_scans(store: DataStore, ward: str, limit: int = RECENT_SCANS_LIMIT) -> List[WardScanLog]:
    """Latest scans taken at a ward station, newest first."""
    return store.query(
        WardScanLog,
        WardScanLog.ward == ward,
        order_by=WardScanLog.scanned_at.desc(),
        limit=limit
    )


def patient_location_history(store: DataStore, patient_id: str) -> List[WardScanLog]:
    """Every scan of a patient across all tag formats, newest first."""
    return store.query(
        WardScanLog,
        WardScanLog.patient_id == patient_id,
        order_by=WardScanLog.scanned_at.desc()
    )


def open_inconsistencies(store: DataStore) -> List[LocationInconsistency]:
    return store.query(
        LocationInconsistency,
        LocationInconsistency.cleared.is_(False),
        order_by=LocationInconsistency.detected_at.desc()
    )


def clear_inconsistency(
    store: DataStore,
    inconsistency_id: str,
    cleared_by: str,
    now: datetime,
    notes: Optional[str] = None
) -> LocationInconsistency:
    """Mark a location inconsistency as resolved by a member of staff."""
    patch = {"cleared": True, "cleared_by": cleared_by, "cleared_at": now}
    if notes is not None:
        patch["notes"] = notes
    if not store.update(LocationInconsistency, [LocationInconsistency.id == inconsistency_id], patch):
        raise RecordNotFound("Location inconsistency", inconsistency_id)
    logger.info(f"Location inconsistency {inconsistency_id} cleared by {cleared_by}")
    return store.get(LocationInconsistency, inconsistency_id)


def list_notifications(store: DataStore, include_cleared: bool = True) -> List[PatientNotification]:
    criteria = [] if include_cleared else [PatientNotification.is_cleared.is_(False)]
    return store.query(
        PatientNotification,
        *criteria,
        order_by=PatientNotification.created_at.desc()
    )


def clear_notification(store: DataStore, notification_id: str, now: datetime) -> PatientNotification:
    if not store.update(
        PatientNotification,
        [PatientNotification.id == notification_id],
        {"is_cleared": True, "cleared_at": now}
    ):
        raise RecordNotFound("Notification", notification_id)
    return store.get(PatientNotification, notification_id)
