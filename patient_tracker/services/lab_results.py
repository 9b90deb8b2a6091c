from datetime import datetime
from typing import Any, Dict, List
import logging
import secrets
import string

from sqlalchemy import select

from patient_tracker.errors import RecordNotFound
from patient_tracker.models import LabResult, Patient
from patient_tracker.services.patients import get_patient
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)

RECORDABLE_RESULTS = ("positive", "negative")
_SAMPLE_ALPHABET = string.ascii_uppercase + string.digits


def generate_sample_id() -> str:
    """MDRO culture sample id, e.g. ``MDRO-7QK2ZD``."""
    return "MDRO-" + "".join(secrets.choice(_SAMPLE_ALPHABET) for _ in range(6))


def lab_status(lab_result: LabResult) -> str:
    return "completed" if lab_result.result else "pending"


def list_lab_results(store: DataStore, patient: Patient) -> List[LabResult]:
    return store.query(
        LabResult,
        LabResult.patient_id == patient.id,
        order_by=LabResult.collection_date.desc()
    )


def lab_results_for_patient(store: DataStore, patient_id: str, now: datetime) -> List[LabResult]:
    """
    Lab results for a patient, newest collection first.
    A culture-required patient with no samples yet gets a pending MDRO sample created.
    """
    patient = get_patient(store, patient_id)
    results = list_lab_results(store, patient)
    if results or not patient.culture_required:
        return results

    sample = store.insert(LabResult(
        patient_id=patient.id,
        sample_id=generate_sample_id(),
        collection_date=now
    ))
    logger.info(f"Created pending MDRO sample {sample.sample_id} for patient {patient_id}")
    return [sample]


def record_lab_result(
    store: DataStore,
    lab_result_id: str,
    result: str,
    processed_by: str,
    now: datetime
) -> LabResult:
    """Record a processed culture result."""
    if result not in RECORDABLE_RESULTS:
        raise ValueError(f"Result must be one of {RECORDABLE_RESULTS}, got {result!r}")

    updated = store.update(
        LabResult,
        [LabResult.id == lab_result_id],
        {"result": result, "processed_by": processed_by, "processed_date": now}
    )
    if not updated:
        raise RecordNotFound("Lab result", lab_result_id)
    return store.get(LabResult, lab_result_id)


def patient_lab_results(store: DataStore) -> List[Dict[str, Any]]:
    """
    Every patient with their lab results, newest registration first.
    NOTE: Composite read model behind the admin dashboard, grouped per patient
    """
    statement = (
        select(Patient, LabResult)
        .outerjoin(LabResult, LabResult.patient_id == Patient.id)
        .order_by(Patient.registration_date.desc(), LabResult.collection_date.desc())
    )
    rows = store.rows(statement)

    patients: Dict[str, Dict[str, Any]] = {}
    for patient, lab_result in rows:
        entry = patients.setdefault(patient.patient_id, {
            "id": patient.id,
            "patient_id": patient.patient_id,
            "registration_date": patient.registration_date,
            "discharge_date": patient.discharge_date,
            "status": patient.status,
            "culture_required": patient.culture_required,
            "lab_results": []
        })
        if lab_result is not None:
            entry["lab_results"].append({
                "id": lab_result.id,
                "sample_id": lab_result.sample_id,
                "result": lab_result.result,
                "collection_date": lab_result.collection_date,
                "processed_by": lab_result.processed_by,
                "processed_date": lab_result.processed_date,
                "notes": lab_result.notes
            })
    return list(patients.values())
