import json
import logging

from sqlalchemy.orm import Session

from rehapp.core.errors import ValidationError
from rehapp.models.assignment import ASSIGNMENT_SCHEMA_VERSION, ExerciseRoutine
from rehapp.models.video import ExerciseVideo
from rehapp.schemas.exercise import RoutineConfig, RoutineResponse, RoutineUpdate

logger = logging.getLogger(__name__)


def get_routine(db: Session, patient_id: str) -> ExerciseRoutine | None:
    return db.get(ExerciseRoutine, patient_id)


def assigned_video_ids(db: Session, patient_id: str) -> list[str]:
    routine = get_routine(db, patient_id)
    return json.loads(routine.video_ids_json) if routine else []


def to_response(patient_id: str, routine: ExerciseRoutine | None) -> RoutineResponse:
    if routine is None:
        return RoutineResponse(
            patient_id=patient_id,
            schema_version=ASSIGNMENT_SCHEMA_VERSION,
            video_ids=[],
            config=RoutineConfig(),
        )
    return RoutineResponse(
        patient_id=patient_id,
        schema_version=int(routine.schema_version),
        video_ids=json.loads(routine.video_ids_json),
        config=RoutineConfig(
            freq_semanal=int(routine.freq_semanal),
            series=int(routine.series),
            reps=int(routine.reps),
            notes=routine.notes,
        ),
    )


def save_routine(db: Session, patient_id: str, patch: RoutineUpdate) -> RoutineResponse:
    # Keep the clinician's order but drop repeats.
    video_ids = list(dict.fromkeys(patch.video_ids))
    unknown = [v for v in video_ids if db.get(ExerciseVideo, v) is None]
    if unknown:
        raise ValidationError(f"Unknown video ids: {', '.join(unknown)}")

    routine = get_routine(db, patient_id)
    if routine is None:
        routine = ExerciseRoutine(patient_id=patient_id)

    routine.schema_version = ASSIGNMENT_SCHEMA_VERSION
    routine.video_ids_json = json.dumps(video_ids)
    routine.freq_semanal = patch.config.freq_semanal
    routine.series = patch.config.series
    routine.reps = patch.config.reps
    routine.notes = patch.config.notes

    db.add(routine)
    db.commit()
    db.refresh(routine)
    logger.info("Routine saved for patient %s (%d exercises)", patient_id, len(video_ids))
    return to_response(patient_id, routine)
