"""
Error kinds raised by the tracking services.
NOTE: Endpoints in main.py translate these into HTTP responses
"""


class TrackerError(Exception):
    """Base class for patient tracking errors."""


class StoreReadFailure(TrackerError):
    """A query against the data store failed."""


class StoreWriteFailure(TrackerError):
    """An insert or update against the data store failed."""


class PatientNotFound(TrackerError):
    """No patient record matches the given external patient id."""

    def __init__(self, patient_id: str):
        self.patient_id = patient_id
        super().__init__(f"No record found for patient ID: {patient_id}")


class NotificationDeliveryFailure(TrackerError):
    """A notification could not be written; never propagated past the dispatcher."""


class ScanCooldownActive(TrackerError):
    """The scanner is still inside its debounce window after the previous scan."""

    def __init__(self, remaining_seconds: float):
        self.remaining_seconds = remaining_seconds
        super().__init__(f"Scanner cooling down, retry in {remaining_seconds:.1f}s")


class AlreadyDischarged(TrackerError):
    """Discharge requested for a patient whose discharge date is already set."""

    def __init__(self, patient_id: str):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} is already discharged")


class RecordNotFound(TrackerError):
    """A lab result, inconsistency or notification id did not match any row."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")
