from fastapi import APIRouter, HTTPException, status

from rehapp.api.deps import CatalogDep, CatalogSnapshotDep, ClockDep, DbDep, StoreDep, get_patient
from rehapp.core.errors import PersistenceFailure, ValidationError
from rehapp.schemas.activity import ExerciseLogCreate, ExerciseLogResponse, ExerciseSessionLog
from rehapp.schemas.exercise import (
    AssignedExercisesResponse,
    RoutineResponse,
    RoutineUpdate,
    VideosResponse,
)
from rehapp.services.compliance_service import build_assigned_exercises
from rehapp.services.routine_service import assigned_video_ids, get_routine, save_routine, to_response

router = APIRouter()


@router.get("/videos", response_model=VideosResponse)
def list_videos(catalog: CatalogDep):
    return VideosResponse(videos=catalog.list_videos())


@router.get("/routine/{patient_id}", response_model=RoutineResponse)
def get_patient_routine(patient_id: str, db: DbDep):
    get_patient(db, patient_id)
    return to_response(patient_id, get_routine(db, patient_id))


@router.put("/routine/{patient_id}", response_model=RoutineResponse)
def put_patient_routine(patient_id: str, payload: RoutineUpdate, db: DbDep):
    get_patient(db, patient_id)
    try:
        return save_routine(db, patient_id, payload)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))


@router.get("/assigned/{patient_id}", response_model=AssignedExercisesResponse)
def assigned_exercises(
    patient_id: str, db: DbDep, store: StoreDep, catalog: CatalogSnapshotDep, clock: ClockDep
):
    get_patient(db, patient_id)
    items = build_assigned_exercises(
        patient_id,
        assigned_video_ids(db, patient_id),
        store.list_exercise_logs(patient_id),
        catalog,
        today=clock.today(),
    )
    return AssignedExercisesResponse(
        patient_id=patient_id,
        completed_today=sum(1 for i in items if i.completed_today),
        total_assigned=len(items),
        exercises=items,
    )


@router.post("/logs", response_model=ExerciseLogResponse)
def log_exercise(payload: ExerciseLogCreate, db: DbDep, store: StoreDep, catalog: CatalogDep, clock: ClockDep):
    get_patient(db, payload.patient_id)
    if catalog.get_video(payload.video_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found.")

    log = ExerciseSessionLog(
        **payload.model_dump(exclude={"timestamp"}),
        timestamp=payload.timestamp or clock.now(),
    )
    try:
        saved = store.append_or_update_exercise_log(log)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return ExerciseLogResponse(success=True, message="Ejercicio registrado.", log=saved)
