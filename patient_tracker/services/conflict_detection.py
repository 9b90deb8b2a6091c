from datetime import datetime, timedelta
from typing import Optional
import logging

from patient_tracker.config import SCAN_LOOKBACK_WINDOW
from patient_tracker.errors import StoreReadFailure, StoreWriteFailure
from patient_tracker.models import LocationInconsistency, WardScanLog
from patient_tracker.services.qr_payload import decode
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)


def find_recent_scan_elsewhere(
    store: DataStore,
    patient_id: str,
    ward: str,
    now: datetime,
    window: timedelta = SCAN_LOOKBACK_WINDOW
) -> Optional[WardScanLog]:
    """
    Most recent scan of ``patient_id`` in any ward other than ``ward`` inside the lookback window.
    NOTE: Matches on the decoded patient id so bare-string and JSON tags for one patient collide
    """
    return store.first(
        WardScanLog,
        WardScanLog.patient_id == patient_id,
        WardScanLog.ward != ward,
        WardScanLog.scanned_at > now - window,
        WardScanLog.scanned_at <= now,
        order_by=WardScanLog.scanned_at.desc()
    )

def detect_conflict(
    store: DataStore,
    raw_tag: str,
    ward: str,
    now: datetime,
    window: timedelta = SCAN_LOOKBACK_WINDOW
) -> Optional[LocationInconsistency]:
    """
    Flag a location inconsistency when a non-wristband tag turns up in a second ward.

    Wristband scans are ground truth for location and never produce a record.
    A failed lookback query is treated as "no conflict" so the scan itself still goes through.
    The returned record is not yet saved: it belongs to the scan that raised it and is
    written with ``record_inconsistency`` only once that scan is in the log.
    """
    payload = decode(raw_tag)

    try:
        matched = find_recent_scan_elsewhere(store, payload.patient_id, ward, now, window)
    except StoreReadFailure as e:
        logger.warning(f"Conflict check skipped for patient {payload.patient_id} at {ward}: {e}")
        return None

    if matched is None or payload.is_wristband:
        return None

    time_difference = (now - matched.scanned_at).total_seconds() / 60
    return LocationInconsistency(
        patient_id=payload.patient_id,
        first_ward=matched.ward,
        second_ward=ward,
        time_difference_mins=round(time_difference, 2),
        detected_at=now,
        cleared=False
    )


def record_inconsistency(store: DataStore, inconsistency: LocationInconsistency) -> Optional[LocationInconsistency]:
    """Persist a detected inconsistency; a failed write is logged and dropped."""
    try:
        store.insert(inconsistency)
    except StoreWriteFailure as e:
        logger.error(f"Could not record location inconsistency for patient {inconsistency.patient_id}: {e}")
        return None

    logger.info(
        f"Location inconsistency for patient {inconsistency.patient_id}: "
        f"{inconsistency.first_ward} -> {inconsistency.second_ward} "
        f"within {inconsistency.time_difference_mins:.1f} min"
    )
    return inconsistency
