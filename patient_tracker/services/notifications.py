"""
Notification rules evaluated outside the request that triggered them.

Two rules react to external writes:
  * early discharge  - a patient discharged within five minutes of registration
  * scan after discharge - any ward scan of a patient already discharged

Delivery is fire-and-forget: a notification that cannot be written is logged
and dropped, and never fails the discharge or scan that raised it.
"""

from typing import Callable, ContextManager, Optional, Protocol
import logging

from sqlalchemy.orm import Session

from patient_tracker.config import EARLY_DISCHARGE_THRESHOLD, as_naive_utc, utcnow
from patient_tracker.errors import NotificationDeliveryFailure, TrackerError
from patient_tracker.models import LocationInconsistency, Patient, PatientNotification, WardScanLog
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)

EARLY_DISCHARGE_MESSAGE = "Patient discharged within 5 minutes of registration."
SCAN_AFTER_DISCHARGE_MESSAGE = "Patient's QR code scanned after discharge. Please get to this ward"

SessionFactory = Callable[[], ContextManager[Session]]


class NotificationEmitter(Protocol):
    def emit(self, notification: PatientNotification) -> PatientNotification:
        ...


class StoreNotificationEmitter:
    """Writes notifications to the patient_notifications table."""

    def __init__(self, store: DataStore):
        self.store = store

    def emit(self, notification: PatientNotification) -> PatientNotification:
        try:
            return self.store.insert(notification)
        except TrackerError as e:
            raise NotificationDeliveryFailure(
                f"{notification.notification_type} notification for patient {notification.patient_id} not written"
            ) from e


def dispatch(emitter: NotificationEmitter, notification: Optional[PatientNotification]) -> Optional[PatientNotification]:
    """Emit ``notification`` if there is one; delivery failures are logged, never raised."""
    if notification is None:
        return None
    try:
        return emitter.emit(notification)
    except NotificationDeliveryFailure as e:
        logger.error(f"Notification delivery failed: {e}")
        return None


def evaluate_early_discharge(patient: Patient) -> Optional[PatientNotification]:
    """Early-discharge rule: discharge at most five minutes after registration (inclusive)."""
    if patient.registration_date is None or patient.discharge_date is None:
        return None

    stay = as_naive_utc(patient.discharge_date) - as_naive_utc(patient.registration_date)
    if stay > EARLY_DISCHARGE_THRESHOLD:
        return None

    return PatientNotification(
        patient_id=patient.id,
        notification_type="early_discharge",
        message=EARLY_DISCHARGE_MESSAGE,
        created_at=utcnow()
    )


def evaluate_scan_after_discharge(scan: WardScanLog, patient: Optional[Patient]) -> Optional[PatientNotification]:
    """Post-discharge-scan rule; fires for every such scan, no deduplication."""
    if patient is None or patient.status != "discharged" or not scan.ward:
        return None

    return PatientNotification(
        patient_id=patient.id,
        notification_type="scan_after_discharge",
        ward=scan.ward,
        message=SCAN_AFTER_DISCHARGE_MESSAGE,
        created_at=utcnow()
    )


def location_inconsistency_notification(
    inconsistency: LocationInconsistency,
    patient: Optional[Patient]
) -> Optional[PatientNotification]:
    if patient is None:
        return None
    return PatientNotification(
        patient_id=patient.id,
        notification_type="location_inconsistency",
        ward=inconsistency.second_ward,
        message=(
            f"Patient tagged in {inconsistency.first_ward} was scanned at "
            f"{inconsistency.second_ward} {inconsistency.time_difference_mins:g} min later"
        ),
        created_at=utcnow()
    )


def on_patient_discharged(session_factory: SessionFactory, patient_row_id: str) -> None:
    """Background handler for a discharge date being set on ``patients``."""
    try:
        with session_factory() as session:
            store = DataStore(session)
            patient = store.get(Patient, patient_row_id)
            if patient is None:
                return
            dispatch(StoreNotificationEmitter(store), evaluate_early_discharge(patient))
    except TrackerError as e:
        logger.error(f"Early-discharge check failed for patient row {patient_row_id}: {e}")


def on_scan_logged(session_factory: SessionFactory, scan_id: str) -> None:
    """Background handler for a new ``ward_scan_logs`` row."""
    try:
        with session_factory() as session:
            store = DataStore(session)
            scan = store.get(WardScanLog, scan_id)
            if scan is None:
                return
            patient = store.first(Patient, Patient.patient_id == scan.patient_id)
            dispatch(StoreNotificationEmitter(store), evaluate_scan_after_discharge(scan, patient))
    except TrackerError as e:
        logger.error(f"Post-discharge scan check failed for scan {scan_id}: {e}")
