"""
Ward scan recording.

Wristband scans are authoritative for a patient's location. Any other tag is
advisory while a wristband scan of the same patient is less than the lookback
window old; it is still logged for audit, flagged ``authoritative=False``, and
does not trigger the isolation side effect. An other-tag scan whose wristband
lookback could not be read is treated the same way.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from patient_tracker.config import ISOLATION_WARD, SCAN_COOLDOWN, SCAN_LOOKBACK_WINDOW
from patient_tracker.errors import PatientNotFound, ScanCooldownActive, TrackerError, StoreReadFailure
from patient_tracker.models import LocationInconsistency, Patient, WardScanLog
from patient_tracker.services.conflict_detection import detect_conflict, record_inconsistency
from patient_tracker.services.isolation import on_isolation_entry
from patient_tracker.services.notifications import (
    NotificationEmitter,
    StoreNotificationEmitter,
    dispatch,
    location_inconsistency_notification,
)
from patient_tracker.services.qr_payload import WRISTBAND, decode
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)

ADVISORY_MESSAGE = "Recorded for audit only: a wristband scan may override this location."


@dataclass
class ScanOutcome:
    entry: WardScanLog
    authoritative: bool
    message: str
    inconsistency: Optional[LocationInconsistency] = None
    lab_results_resolved: int = 0


def cooldown_active(now: datetime, last_scan_at: Optional[datetime], cooldown: timedelta = SCAN_COOLDOWN) -> bool:
    """True while a station is still inside its debounce window after ``last_scan_at``."""
    if last_scan_at is None:
        return False
    return timedelta(0) <= now - last_scan_at < cooldown


def recent_wristband_scan(
    store: DataStore,
    patient_id: str,
    now: datetime,
    window: timedelta = SCAN_LOOKBACK_WINDOW
) -> Optional[WardScanLog]:
    """Latest wristband scan of ``patient_id`` in any ward inside the lookback window."""
    return store.first(
        WardScanLog,
        WardScanLog.patient_id == patient_id,
        WardScanLog.tag_type == WRISTBAND,
        WardScanLog.scanned_at > now - window,
        WardScanLog.scanned_at <= now,
        order_by=WardScanLog.scanned_at.desc()
    )


def record_scan(store: DataStore, raw_tag: str, ward: str, scanned_by: str, now: datetime) -> ScanOutcome:
    """
    Write the scan log entry for one scan.
    Raises StoreWriteFailure when the entry could not be written; the caller must ask for a rescan.
    """
    payload = decode(raw_tag)
    authoritative = True

    if not payload.is_wristband:
        try:
            authoritative = recent_wristband_scan(store, payload.patient_id, now) is None
        except StoreReadFailure as e:
            # Precedence unknown: keep the audit row but never act on it
            logger.warning(f"Wristband lookback failed for patient {payload.patient_id}, recording as advisory: {e}")
            authoritative = False

    entry = store.insert(WardScanLog(
        patient_tag=raw_tag,
        patient_id=payload.patient_id,
        tag_type=payload.type,
        ward=ward,
        scanned_at=now,
        scanned_by=scanned_by,
        authoritative=authoritative
    ))

    if authoritative:
        message = f"Patient ID {payload.patient_id} scanned successfully."
    else:
        message = ADVISORY_MESSAGE
        logger.info(f"Advisory {payload.type} scan for patient {payload.patient_id} at {ward}")

    outcome = ScanOutcome(entry=entry, authoritative=authoritative, message=message)

    if authoritative and ward == ISOLATION_WARD:
        try:
            outcome.lab_results_resolved = on_isolation_entry(store, payload.patient_id)
        except TrackerError as e:
            logger.error(f"Isolation side effect failed for patient {payload.patient_id}: {e}")

    return outcome


def process_scan(
    store: DataStore,
    raw_tag: str,
    ward: str,
    scanned_by: str,
    now: datetime,
    last_scan_at: Optional[datetime] = None,
    emitter: Optional[NotificationEmitter] = None
) -> ScanOutcome:
    """
    Full scan pipeline: debounce, patient check, conflict detection, recording, isolation.
    NOTE: Station state (last_scan_at) is passed in, nothing is kept between calls
    """
    if cooldown_active(now, last_scan_at):
        remaining = (SCAN_COOLDOWN - (now - last_scan_at)).total_seconds()
        raise ScanCooldownActive(remaining)

    raw_tag = raw_tag.strip()
    payload = decode(raw_tag)

    patient = store.first(Patient, Patient.patient_id == payload.patient_id)
    if patient is None:
        logger.warning(f"Scan at {ward} for unknown patient {payload.patient_id}")
        raise PatientNotFound(payload.patient_id)

    inconsistency = detect_conflict(store, raw_tag, ward, now)
    outcome = record_scan(store, raw_tag, ward, scanned_by, now)

    # Only a scan that made it into the log leaves an inconsistency behind
    if inconsistency is not None:
        outcome.inconsistency = record_inconsistency(store, inconsistency)

    if outcome.inconsistency is not None:
        dispatch(
            emitter or StoreNotificationEmitter(store),
            location_inconsistency_notification(outcome.inconsistency, patient)
        )

    return outcome
