"""
Activity Log Store: durable walk sessions and exercise logs.

Every write either commits (and is visible to subsequent reads) or raises
`PersistenceFailure`. Validation happens before anything reaches the database;
recorded values are never clamped.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from rehapp.core.errors import PersistenceFailure, ValidationError
from rehapp.models.exercise_log import ExerciseSessionLogRecord
from rehapp.models.walk_session import WalkSessionRecord
from rehapp.schemas.activity import ExerciseSessionLog, WalkSession

logger = logging.getLogger(__name__)


class ActivityLogStore(Protocol):
    def append_or_update_walk_session(self, session: WalkSession) -> WalkSession: ...

    def list_walk_sessions(self, patient_id: str | None = None) -> list[WalkSession]: ...

    def append_or_update_exercise_log(self, log: ExerciseSessionLog) -> ExerciseSessionLog: ...

    def list_exercise_logs(self, patient_id: str) -> list[ExerciseSessionLog]: ...


def to_local_naive(dt: datetime) -> datetime:
    """Columns are naive local time; aware values are converted to the server's zone first."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone().replace(tzinfo=None)


def _check_eva(value: int | None, field: str, allow_none: bool = False) -> None:
    if value is None and allow_none:
        return
    if value is None or isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 10:
        raise ValidationError(f"{field} must be an integer between 0 and 10 (got {value!r}).")


def validate_walk_session(session: WalkSession) -> None:
    if not session.id:
        raise ValidationError("Walk session id is required.")
    if not session.patient_id:
        raise ValidationError("patient_id is required.")
    _check_eva(session.pain_level, "painLevel")
    if session.duration_seconds < 0 or session.steps < 0:
        raise ValidationError("durationSeconds and steps cannot be negative.")


def validate_exercise_log(log: ExerciseSessionLog) -> None:
    if not log.patient_id:
        raise ValidationError("patient_id is required.")
    if not log.video_id:
        raise ValidationError("video_id is required.")
    _check_eva(log.dolor_durante_ejercicio, "dolor_durante_ejercicio", allow_none=True)
    if not 1 <= log.dificultad_percibida <= 10:
        raise ValidationError("dificultad_percibida must be between 1 and 10.")
    if log.series_completadas < 0 or log.repeticiones_completadas < 0:
        raise ValidationError("series/repeticiones cannot be negative.")


def walk_session_from_record(r: WalkSessionRecord) -> WalkSession:
    return WalkSession(
        id=r.id,
        patient_id=r.patient_id,
        date=r.started_at,
        duration_seconds=int(r.duration_seconds),
        steps=int(r.steps),
        pain_level=int(r.pain_level),
        stopped_due_to_pain=bool(r.stopped_due_to_pain),
        notes=r.notes,
    )


def exercise_log_from_record(r: ExerciseSessionLogRecord) -> ExerciseSessionLog:
    return ExerciseSessionLog(
        patient_id=r.patient_id,
        video_id=r.video_id,
        fecha_realizacion=r.fecha_realizacion,
        timestamp=r.timestamp,
        series_completadas=int(r.series_completadas),
        repeticiones_completadas=int(r.repeticiones_completadas),
        dificultad_percibida=int(r.dificultad_percibida),
        dolor_durante_ejercicio=r.dolor_durante_ejercicio,
        completado=bool(r.completado),
    )


class SqlActivityLogStore:
    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def append_or_update_walk_session(self, session: WalkSession) -> WalkSession:
        validate_walk_session(session)
        try:
            with self._session_factory.begin() as db:
                row = db.get(WalkSessionRecord, session.id)
                if row is None:
                    row = WalkSessionRecord(id=session.id, patient_id=session.patient_id)
                    db.add(row)
                elif row.patient_id != session.patient_id:
                    raise ValidationError(f"Session {session.id} belongs to another patient.")
                row.started_at = to_local_naive(session.date)
                row.duration_seconds = session.duration_seconds
                row.steps = session.steps
                row.pain_level = session.pain_level
                row.stopped_due_to_pain = session.stopped_due_to_pain
                row.notes = session.notes
        except SQLAlchemyError as e:
            logger.error("Failed to persist walk session %s", session.id, exc_info=True)
            raise PersistenceFailure(f"Could not save walk session {session.id}: {e}") from e
        return session

    def list_walk_sessions(self, patient_id: str | None = None) -> list[WalkSession]:
        stmt = select(WalkSessionRecord).order_by(desc(WalkSessionRecord.started_at))
        if patient_id is not None:
            stmt = stmt.where(WalkSessionRecord.patient_id == patient_id)
        try:
            with self._session_factory() as db:
                return [walk_session_from_record(r) for r in db.scalars(stmt).all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read walk sessions: {e}") from e

    def append_or_update_exercise_log(self, log: ExerciseSessionLog) -> ExerciseSessionLog:
        validate_exercise_log(log)
        timestamp = to_local_naive(log.timestamp)
        # Local wall-clock date is the patient's calendar day, also for `Z` timestamps.
        log = log.model_copy(
            update={"timestamp": timestamp, "fecha_realizacion": log.fecha_realizacion or timestamp.date()}
        )

        try:
            self._upsert_log(log)
        except IntegrityError:
            # Lost a race with a concurrent insert of the same (patient, video, day).
            logger.info("Exercise log insert raced for %s/%s, retrying as update", log.patient_id, log.video_id)
            try:
                self._upsert_log(log)
            except SQLAlchemyError as e:
                raise PersistenceFailure(f"Could not save exercise log: {e}") from e
        except SQLAlchemyError as e:
            logger.error("Failed to persist exercise log %s/%s", log.patient_id, log.video_id, exc_info=True)
            raise PersistenceFailure(f"Could not save exercise log: {e}") from e
        return log

    def _upsert_log(self, log: ExerciseSessionLog) -> None:
        with self._session_factory.begin() as db:
            row = db.scalars(
                select(ExerciseSessionLogRecord).where(
                    ExerciseSessionLogRecord.patient_id == log.patient_id,
                    ExerciseSessionLogRecord.video_id == log.video_id,
                    ExerciseSessionLogRecord.fecha_realizacion == log.fecha_realizacion,
                )
            ).first()
            if row is None:
                row = ExerciseSessionLogRecord(
                    patient_id=log.patient_id,
                    video_id=log.video_id,
                    fecha_realizacion=log.fecha_realizacion,
                )
                db.add(row)
            row.timestamp = log.timestamp
            row.series_completadas = log.series_completadas
            row.repeticiones_completadas = log.repeticiones_completadas
            row.dificultad_percibida = log.dificultad_percibida
            row.dolor_durante_ejercicio = log.dolor_durante_ejercicio
            row.completado = log.completado

    def list_exercise_logs(self, patient_id: str) -> list[ExerciseSessionLog]:
        stmt = (
            select(ExerciseSessionLogRecord)
            .where(ExerciseSessionLogRecord.patient_id == patient_id)
            .order_by(desc(ExerciseSessionLogRecord.timestamp))
        )
        try:
            with self._session_factory() as db:
                return [exercise_log_from_record(r) for r in db.scalars(stmt).all()]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read exercise logs: {e}") from e
