# NOTE: Pydantic request/response models for the ward, lab and admin endpoints
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PatientCreate(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=50)
    culture_required: bool = False


class PatientOut(ORMModel):
    id: str
    patient_id: str
    registration_date: datetime
    discharge_date: Optional[datetime] = None
    status: str
    culture_required: bool
    wristband_qr_code: Optional[str] = None
    other_qr_code: Optional[str] = None


class ScanRequest(BaseModel):
    qr_data: str = Field(..., min_length=1, description="Raw QR payload as read by the scanner")
    ward: str = Field(..., min_length=1)
    scanned_by: str = Field(..., min_length=1)
    last_scan_at: Optional[datetime] = Field(
        default=None, description="When this station last processed a scan, for the debounce window"
    )


class ScanLogOut(ORMModel):
    id: str
    patient_tag: str
    patient_id: str
    tag_type: str
    ward: str
    scanned_at: datetime
    scanned_by: str
    authoritative: bool


class InconsistencyOut(ORMModel):
    id: str
    patient_id: str
    first_ward: str
    second_ward: str
    time_difference_mins: float
    detected_at: datetime
    cleared: bool
    cleared_by: Optional[str] = None
    cleared_at: Optional[datetime] = None
    notes: Optional[str] = None


class ScanResult(BaseModel):
    scan: ScanLogOut
    authoritative: bool
    message: str
    inconsistency: Optional[InconsistencyOut] = None
    lab_results_resolved: int = 0


class LabResultOut(ORMModel):
    id: str
    patient_id: Optional[str] = None
    sample_id: str
    collection_date: datetime
    result: Optional[str] = None
    processed_by: Optional[str] = None
    processed_date: Optional[datetime] = None
    notes: Optional[str] = None


class LabResultUpdate(BaseModel):
    result: Literal["positive", "negative"]
    processed_by: str = "Lab Technician"


class ClearInconsistencyRequest(BaseModel):
    cleared_by: str = "Administrator"
    notes: Optional[str] = None


class NotificationOut(ORMModel):
    id: str
    patient_id: str
    notification_type: str
    ward: Optional[str] = None
    message: str
    is_cleared: bool
    created_at: datetime
    cleared_at: Optional[datetime] = None


class PatientRecordPayload(BaseModel):
    """Patient row as delivered by a database webhook."""
    model_config = ConfigDict(extra="ignore")

    id: str
    patient_id: Optional[str] = None
    registration_date: Optional[datetime] = None
    discharge_date: Optional[datetime] = None
    status: Optional[str] = None


class PatientDischargeWebhook(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    record: Optional[PatientRecordPayload] = None
    old_record: Optional[PatientRecordPayload] = None


class ScanRowPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    patient_id: Optional[str] = None
    ward: Optional[str] = None
    scanned_at: Optional[datetime] = None
    scanned_by: Optional[str] = None


class DischargedPatientScanWebhook(BaseModel):
    new_scan: Optional[ScanRowPayload] = None
    patient_row: Optional[PatientRecordPayload] = None


class PatientLabSummary(BaseModel):
    id: str
    patient_id: str
    registration_date: datetime
    discharge_date: Optional[datetime] = None
    status: str
    culture_required: bool
    lab_results: List[Dict[str, Any]]
