from datetime import datetime
from typing import Optional
import logging

from patient_tracker.errors import AlreadyDischarged, PatientNotFound
from patient_tracker.models import Patient
from patient_tracker.services.qr_payload import OTHER, WRISTBAND, encode
from patient_tracker.store import DataStore

logger = logging.getLogger(__name__)


def get_patient(store: DataStore, patient_id: str) -> Patient:
    """Look up a patient by external id or raise PatientNotFound."""
    patient = store.first(Patient, Patient.patient_id == patient_id)
    if patient is None:
        raise PatientNotFound(patient_id)
    return patient


def register_patient(
    store: DataStore,
    patient_id: str,
    now: datetime,
    culture_required: bool = False
) -> Patient:
    """Register a patient and generate the payloads printed on the wristband and secondary tag."""
    issued_at = now.isoformat() + "Z"
    patient = store.insert(Patient(
        patient_id=patient_id,
        registration_date=now,
        status="admitted",
        culture_required=culture_required,
        wristband_qr_code=encode(patient_id, WRISTBAND, issued_at),
        other_qr_code=encode(patient_id, OTHER, issued_at)
    ))
    logger.info(f"Registered patient {patient_id}")
    return patient


def discharge_patient(store: DataStore, patient_id: str, now: datetime) -> Patient:
    """
    Set the discharge date for an admitted patient.
    A patient can be discharged once; the early-discharge rule keys off this single transition.
    """
    patient = get_patient(store, patient_id)
    if patient.discharge_date is not None:
        raise AlreadyDischarged(patient_id)

    # Another station may have discharged the patient since the read above
    if not store.update(
        Patient,
        [Patient.id == patient.id, Patient.discharge_date.is_(None)],
        {"discharge_date": now, "status": "discharged"}
    ):
        raise AlreadyDischarged(patient_id)
    logger.info(f"Discharged patient {patient_id}")
    return get_patient(store, patient_id)


def find_patient(store: DataStore, patient_id: str) -> Optional[Patient]:
    return store.first(Patient, Patient.patient_id == patient_id)
