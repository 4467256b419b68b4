from fastapi import APIRouter, HTTPException, status

from rehapp.api.deps import CatalogSnapshotDep, ClockDep, DbDep, StoreDep, get_patient
from rehapp.core.errors import PersistenceFailure
from rehapp.models.user import User
from rehapp.schemas.dashboard import (
    ComplianceCalendarResponse,
    DashboardResponse,
    DifficultyResponse,
    ExercisePainAlertsResponse,
)
from rehapp.services.compliance_service import (
    RosterEntry,
    average_difficulty_by_video,
    compute_compliance_calendar,
    compute_roster,
    dashboard_counts,
    exercise_pain_alerts,
)
from rehapp.services.routine_service import assigned_video_ids

router = APIRouter()


def _store_unavailable(e: PersistenceFailure) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


@router.get("/dashboard", response_model=DashboardResponse)
def doctor_dashboard(db: DbDep, store: StoreDep, clock: ClockDep, sort_by_severity: bool = False):
    patients = db.query(User).filter(User.role == "paciente").order_by(User.created_at.asc(), User.id.asc()).all()
    roster = [RosterEntry(id=p.id, name=p.name, age=p.age, daily_step_goal=p.daily_step_goal) for p in patients]

    try:
        sessions = store.list_walk_sessions()
        logs = [l for p in roster for l in store.list_exercise_logs(p.id)]
    except PersistenceFailure as e:
        raise _store_unavailable(e)

    summaries = compute_roster(roster, sessions, logs, today=clock.today(), sort_by_severity=sort_by_severity)
    return DashboardResponse(patients=summaries, **dashboard_counts(summaries))


@router.get("/patients/{patient_id}/compliance-calendar", response_model=ComplianceCalendarResponse)
def compliance_calendar(
    patient_id: str, db: DbDep, store: StoreDep, catalog: CatalogSnapshotDep, clock: ClockDep
):
    get_patient(db, patient_id)
    try:
        logs = store.list_exercise_logs(patient_id)
    except PersistenceFailure as e:
        raise _store_unavailable(e)

    days, rows = compute_compliance_calendar(
        patient_id, assigned_video_ids(db, patient_id), logs, catalog, today=clock.today()
    )
    return ComplianceCalendarResponse(patient_id=patient_id, days=days, rows=rows)


@router.get("/patients/{patient_id}/exercise-pain-alerts", response_model=ExercisePainAlertsResponse)
def patient_exercise_pain_alerts(patient_id: str, db: DbDep, store: StoreDep, catalog: CatalogSnapshotDep):
    get_patient(db, patient_id)
    try:
        logs = store.list_exercise_logs(patient_id)
    except PersistenceFailure as e:
        raise _store_unavailable(e)
    return ExercisePainAlertsResponse(patient_id=patient_id, alerts=exercise_pain_alerts(logs, catalog))


@router.get("/patients/{patient_id}/difficulty", response_model=DifficultyResponse)
def patient_difficulty(patient_id: str, db: DbDep, store: StoreDep, catalog: CatalogSnapshotDep):
    get_patient(db, patient_id)
    try:
        logs = store.list_exercise_logs(patient_id)
    except PersistenceFailure as e:
        raise _store_unavailable(e)
    return DifficultyResponse(patient_id=patient_id, points=average_difficulty_by_video(logs, catalog))
