# NOTE: SQLAlchemy models for patient tracking tables shared with the ward, lab and admin dashboards
from sqlalchemy import Boolean, Column, String, DateTime, Float, ForeignKey, Text, CheckConstraint, Index
from sqlalchemy.orm import declarative_base
import uuid

from patient_tracker.config import utcnow

Base = declarative_base()

PATIENT_STATUSES = ("admitted", "discharged")
LAB_RESULT_VALUES = ("positive", "negative", "resolved")
TAG_TYPES = ("wristband", "other")
NOTIFICATION_TYPES = ("early_discharge", "scan_after_discharge", "location_inconsistency")


def _new_id() -> str:
    return str(uuid.uuid4())


class Patient(Base):
    """Registered patient; owned by the registration workflow."""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_id = Column(String(50), nullable=False, unique=True, index=True)
    registration_date = Column(DateTime, nullable=False, default=utcnow)
    discharge_date = Column(DateTime, nullable=True)
    status = Column(String(20), nullable=False, default="admitted")
    culture_required = Column(Boolean, nullable=False, default=False)
    wristband_qr_code = Column(Text, nullable=True)
    other_qr_code = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('admitted', 'discharged')", name='chk_patient_status'),
        CheckConstraint(
            'discharge_date IS NULL OR discharge_date >= registration_date',
            name='chk_patient_discharge_after_registration'
        ),
    )

class LabResult(Base):
    """MDRO culture sample and its processed result."""
    __tablename__ = "lab_results"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=True, index=True)
    sample_id = Column(String(50), nullable=False, unique=True)
    collection_date = Column(DateTime, nullable=False, default=utcnow)
    result = Column(String(20), nullable=True)
    processed_by = Column(String(100), nullable=True)
    processed_date = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "result IS NULL OR result IN ('positive', 'negative', 'resolved')",
            name='chk_lab_result'
        ),
        Index('idx_lab_results_patient_result', 'patient_id', 'result'),
    )

class WardScanLog(Base):
    """Append-only record of one QR scan at a ward station."""
    __tablename__ = "ward_scan_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    # Raw QR payload exactly as scanned
    patient_tag = Column(Text, nullable=False)
    patient_id = Column(String(255), nullable=False)
    tag_type = Column(String(20), nullable=False, default="other")
    ward = Column(String(100), nullable=False)
    scanned_at = Column(DateTime, nullable=False, default=utcnow)
    scanned_by = Column(String(100), nullable=False)
    authoritative = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("tag_type IN ('wristband', 'other')", name='chk_scan_tag_type'),
        Index('idx_scan_logs_patient_time', 'patient_id', 'scanned_at'),
        Index('idx_scan_logs_ward_time', 'ward', 'scanned_at'),
    )

class LocationInconsistency(Base):
    """Two wards claiming the same patient within the lookback window."""
    __tablename__ = "patient_location_inconsistencies"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_id = Column(String(255), nullable=False, index=True)
    first_ward = Column(String(100), nullable=False)
    second_ward = Column(String(100), nullable=False)
    time_difference_mins = Column(Float, nullable=False)
    detected_at = Column(DateTime, nullable=False, default=utcnow)
    cleared = Column(Boolean, nullable=False, default=False)
    cleared_by = Column(String(100), nullable=True)
    cleared_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        Index('idx_inconsistencies_cleared_detected', 'cleared', 'detected_at'),
    )

class PatientNotification(Base):
    """Alert raised for administrators by the notification rules."""
    __tablename__ = "patient_notifications"

    id = Column(String(36), primary_key=True, default=_new_id)
    patient_id = Column(String(255), nullable=False, index=True)
    notification_type = Column(String(50), nullable=False)
    ward = Column(String(100), nullable=True)
    message = Column(Text, nullable=False)
    is_cleared = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    cleared_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "notification_type IN ('early_discharge', 'scan_after_discharge', 'location_inconsistency')",
            name='chk_notification_type'
        ),
    )
