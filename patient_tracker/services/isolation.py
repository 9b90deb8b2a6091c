import logging

from sqlalchemy import func

from patient_tracker.models import LabResult, Patient
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)

ISOLATION_NOTE = "Patient moved to isolation room."


def on_isolation_entry(store: DataStore, patient_id: str) -> int:
    """
    Resolve every positive lab result of a patient who has just entered isolation.
    Returns the number of lab results updated; unknown patients are a no-op.
    """
    patient = store.first(Patient, Patient.patient_id == patient_id)
    if patient is None:
        logger.info(f"Isolation entry for unknown patient {patient_id}, nothing to resolve")
        return 0

    updated = store.update(
        LabResult,
        [LabResult.patient_id == patient.id, LabResult.result == "positive"],
        {
            "result": "resolved",
            "notes": func.coalesce(LabResult.notes + "\n", "") + ISOLATION_NOTE,
        }
    )
    if updated:
        logger.info(f"Resolved {updated} positive lab result(s) for patient {patient_id} on isolation entry")
    return updated
