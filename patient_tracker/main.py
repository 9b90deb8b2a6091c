from fastapi import FastAPI, HTTPException, Depends, BackgroundTasks, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Dict, List
import logging

from patient_tracker import __version__
from patient_tracker.config import CORS_ORIGINS, LOG_LEVEL, as_naive_utc, utcnow
from patient_tracker.database import get_db, get_db_session, create_tables, test_connection
from patient_tracker.errors import (
    AlreadyDischarged,
    PatientNotFound,
    RecordNotFound,
    ScanCooldownActive,
    StoreReadFailure,
    StoreWriteFailure,
)
from patient_tracker.models import Patient, WardScanLog
from patient_tracker.schemas import (
    ClearInconsistencyRequest,
    DischargedPatientScanWebhook,
    InconsistencyOut,
    LabResultOut,
    LabResultUpdate,
    NotificationOut,
    PatientCreate,
    PatientDischargeWebhook,
    PatientLabSummary,
    PatientOut,
    ScanLogOut,
    ScanRequest,
    ScanResult,
)
from patient_tracker.services import lab_results, patients, scan_history
from patient_tracker.services.notifications import (
    StoreNotificationEmitter,
    dispatch,
    evaluate_early_discharge,
    evaluate_scan_after_discharge,
    on_patient_discharged,
    on_scan_logged,
)
from patient_tracker.services.scan_recorder import process_scan
from patient_tracker.store import DataStore

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# NOTE: Initialize FastAPI with PostgreSQL backend for patient location tracking
app = FastAPI(
    title="Ward Scan Tracker API",
    description="Hospital patient QR scan tracking, lab culture results and admin notifications",
    version=__version__
)

# Initialize database on startup
@app.on_event("startup")
async def startup_event():
    """Initialize database tables and verify connection on startup."""
    if not test_connection():
        raise HTTPException(status_code=500, detail="Database connection failed")
    create_tables()

# NOTE: CORS configuration for the dashboard frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store(db: Session = Depends(get_db)) -> DataStore:
    """Request-scoped data store."""
    return DataStore(db)


def get_session_factory():
    """Session factory for background notification handlers, which outlive the request session."""
    return get_db_session


def _store_unavailable(action: str, e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{action} failed, please try again: {e}"
    )


@app.exception_handler(StoreReadFailure)
async def store_read_failure_handler(request, exc: StoreReadFailure) -> JSONResponse:
    """Reads that fail outside the scan pipeline surface as a retryable 503."""
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Data store unavailable, please try again."}
    )


@app.post("/patients/", response_model=PatientOut, status_code=status.HTTP_201_CREATED)
async def register_patient(payload: PatientCreate, store: DataStore = Depends(get_store)) -> Patient:
    """Register a patient and issue wristband / secondary QR payloads."""
    if patients.find_patient(store, payload.patient_id) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Patient {payload.patient_id} is already registered"
        )
    try:
        return patients.register_patient(
            store, payload.patient_id, utcnow(), culture_required=payload.culture_required
        )
    except StoreWriteFailure as e:
        raise _store_unavailable("Patient registration", e)


@app.get("/patients/{patient_id}", response_model=PatientOut)
async def read_patient(patient_id: str, store: DataStore = Depends(get_store)) -> Patient:
    try:
        return patients.get_patient(store, patient_id)
    except PatientNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@app.post("/patients/{patient_id}/discharge", response_model=PatientOut)
async def discharge_patient(
    patient_id: str,
    background_tasks: BackgroundTasks,
    store: DataStore = Depends(get_store),
    session_factory=Depends(get_session_factory)
) -> Patient:
    """
    Discharge a patient.
    NOTE: The early-discharge rule runs after the response, it never delays or fails the discharge
    """
    try:
        patient = patients.discharge_patient(store, patient_id, utcnow())
    except PatientNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except AlreadyDischarged as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StoreWriteFailure as e:
        raise _store_unavailable("Discharge", e)

    background_tasks.add_task(on_patient_discharged, session_factory, patient.id)
    return patient


@app.get("/patients/{patient_id}/scans", response_model=List[ScanLogOut])
async def read_patient_scans(patient_id: str, store: DataStore = Depends(get_store)) -> List[WardScanLog]:
    """Location history for a patient, newest first."""
    return scan_history.patient_location_history(store, patient_id)


@app.get("/patients/{patient_id}/lab-results", response_model=List[LabResultOut])
async def read_patient_lab_results(patient_id: str, store: DataStore = Depends(get_store)):
    try:
        return lab_results.lab_results_for_patient(store, patient_id, utcnow())
    except PatientNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@app.put("/lab-results/{lab_result_id}", response_model=LabResultOut)
async def update_lab_result(
    lab_result_id: str,
    payload: LabResultUpdate,
    store: DataStore = Depends(get_store)
):
    try:
        return lab_results.record_lab_result(
            store, lab_result_id, payload.result, payload.processed_by, utcnow()
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreWriteFailure as e:
        raise _store_unavailable("Lab result update", e)


@app.get("/patient-lab-results/", response_model=List[PatientLabSummary])
async def read_patient_lab_results_view(store: DataStore = Depends(get_store)):
    """Composite patient + lab result listing for the admin dashboard."""
    return lab_results.patient_lab_results(store)


@app.post("/scans/", response_model=ScanResult, status_code=status.HTTP_201_CREATED)
async def scan_patient(
    payload: ScanRequest,
    background_tasks: BackgroundTasks,
    store: DataStore = Depends(get_store),
    session_factory=Depends(get_session_factory)
) -> ScanResult:
    """
    Record a ward QR scan.
    NOTE: 201 covers both authoritative and advisory scans; a scan that was not written is a 503
    """
    try:
        outcome = process_scan(
            store,
            payload.qr_data,
            payload.ward,
            payload.scanned_by,
            utcnow(),
            last_scan_at=as_naive_utc(payload.last_scan_at) if payload.last_scan_at else None
        )
    except ScanCooldownActive as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(e))
    except PatientNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except (StoreReadFailure, StoreWriteFailure) as e:
        logger.error(f"Scan at {payload.ward} not recorded: {e}")
        raise _store_unavailable("Scan", e)

    background_tasks.add_task(on_scan_logged, session_factory, outcome.entry.id)

    return ScanResult(
        scan=ScanLogOut.model_validate(outcome.entry),
        authoritative=outcome.authoritative,
        message=outcome.message,
        inconsistency=(
            InconsistencyOut.model_validate(outcome.inconsistency)
            if outcome.inconsistency is not None else None
        ),
        lab_results_resolved=outcome.lab_results_resolved
    )


@app.get("/wards/{ward}/scans", response_model=List[ScanLogOut])
async def read_ward_scans(ward: str, store: DataStore = Depends(get_store)):
    return scan_history.recent_ward_scans(store, ward)


@app.get("/inconsistencies/", response_model=List[InconsistencyOut])
async def read_inconsistencies(store: DataStore = Depends(get_store)):
    """Uncleared location inconsistencies, newest first."""
    return scan_history.open_inconsistencies(store)


@app.post("/inconsistencies/{inconsistency_id}/clear", response_model=InconsistencyOut)
async def clear_inconsistency(
    inconsistency_id: str,
    payload: ClearInconsistencyRequest,
    store: DataStore = Depends(get_store)
):
    try:
        return scan_history.clear_inconsistency(
            store, inconsistency_id, payload.cleared_by, utcnow(), notes=payload.notes
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@app.get("/notifications/", response_model=List[NotificationOut])
async def read_notifications(include_cleared: bool = True, store: DataStore = Depends(get_store)):
    return scan_history.list_notifications(store, include_cleared=include_cleared)


@app.post("/notifications/{notification_id}/clear", response_model=NotificationOut)
async def clear_notification(notification_id: str, store: DataStore = Depends(get_store)):
    try:
        return scan_history.clear_notification(store, notification_id, utcnow())
    except RecordNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@app.post("/webhooks/patient-discharge")
async def patient_discharge_webhook(
    payload: PatientDischargeWebhook,
    store: DataStore = Depends(get_store)
) -> Dict[str, str]:
    """
    Database webhook for updates to ``patients``.
    Only a discharge date going from unset to set is evaluated; the answer is always ok.
    """
    record = payload.record
    previously_discharged = payload.old_record is not None and payload.old_record.discharge_date is not None
    if record is not None and record.discharge_date is not None and not previously_discharged:
        patient = Patient(
            id=record.id,
            registration_date=record.registration_date,
            discharge_date=record.discharge_date
        )
        dispatch(StoreNotificationEmitter(store), evaluate_early_discharge(patient))
    return {"status": "ok"}


@app.post("/webhooks/discharged-patient-scan")
async def discharged_patient_scan_webhook(
    payload: DischargedPatientScanWebhook,
    store: DataStore = Depends(get_store)
) -> Dict[str, str]:
    """Database webhook for new ``ward_scan_logs`` rows; always answers ok."""
    if payload.new_scan is not None and payload.patient_row is not None:
        scan = WardScanLog(ward=payload.new_scan.ward)
        patient = Patient(id=payload.patient_row.id, status=payload.patient_row.status)
        dispatch(StoreNotificationEmitter(store), evaluate_scan_after_discharge(scan, patient))
    return {"status": "ok"}


@app.get("/health/")
async def health_check() -> Dict[str, str]:
    """
    Health check endpoint for monitoring database connectivity.
    NOTE: System health monitoring for ward station reliability
    """
    db_status = "healthy" if test_connection() else "unhealthy"
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "database": db_status,
        "service": "ward_scan_tracker"
    }


@app.get("/")
async def root() -> Dict[str, str]:
    """Root endpoint with API information."""
    return {
        "message": "Ward Scan Tracker API",
        "version": __version__,
        "endpoints": "/docs for API documentation"
    }
