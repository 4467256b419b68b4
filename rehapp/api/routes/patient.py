from datetime import date

from fastapi import APIRouter, HTTPException, status

from rehapp.api.deps import CatalogSnapshotDep, ClockDep, DbDep, StoreDep, get_patient
from rehapp.core.errors import PersistenceFailure
from rehapp.schemas.activity import PatientSessionsResponse
from rehapp.schemas.dashboard import DailyActivity, DailyVolume
from rehapp.services.compliance_service import compute_daily_activity, compute_daily_volume

router = APIRouter()


@router.get("/{patient_id}/daily-volume", response_model=DailyVolume)
def daily_volume(
    patient_id: str, db: DbDep, store: StoreDep, catalog: CatalogSnapshotDep, clock: ClockDep, day: date | None = None
):
    get_patient(db, patient_id)
    try:
        sessions = store.list_walk_sessions(patient_id)
        logs = store.list_exercise_logs(patient_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return compute_daily_volume(patient_id, day or clock.today(), sessions, logs, catalog)


@router.get("/{patient_id}/today", response_model=DailyActivity)
def today_activity(patient_id: str, db: DbDep, store: StoreDep, clock: ClockDep):
    patient = get_patient(db, patient_id)
    try:
        sessions = store.list_walk_sessions(patient_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return compute_daily_activity(patient_id, clock.today(), sessions, step_goal=patient.daily_step_goal)


@router.get("/{patient_id}/sessions", response_model=PatientSessionsResponse)
def patient_sessions(patient_id: str, db: DbDep, store: StoreDep):
    get_patient(db, patient_id)
    try:
        sessions = store.list_walk_sessions(patient_id)
    except PersistenceFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return PatientSessionsResponse(patient_id=patient_id, sessions=sessions[:60])
