"""
Compliance aggregation over walk sessions and exercise logs.

Everything here is a pure function of its inputs (records, catalog lookups and
an explicit `today`), so it can run concurrently for different patients and be
re-run for the same patient with identical results.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable

from rehapp.core.config import settings
from rehapp.schemas.activity import ExerciseSessionLog, WalkSession
from rehapp.schemas.dashboard import (
    CalendarDay,
    CalendarRow,
    DailyActivity,
    DailyVolume,
    DifficultyPoint,
    ExercisePainAlert,
    PatientSummary,
)
from rehapp.schemas.exercise import AssignedExercise
from rehapp.services.video_catalog import VideoCatalog

LOW_ADHERENCE = "LOW_ADHERENCE"
CRITICAL_PAIN = "CRITICAL_PAIN"

_SEVERITY = {CRITICAL_PAIN: 2, LOW_ADHERENCE: 1}

# Indexed Sunday-first, as shown on the clinician calendar.
DAY_NAMES = ["Dom", "Lun", "Mar", "Mié", "Jue", "Vie", "Sáb"]

UNKNOWN_VIDEO_TITLE = "Desconocido"


@dataclass(frozen=True)
class RosterEntry:
    id: str
    name: str
    age: int | None = None
    daily_step_goal: int | None = None


def local_day(dt: datetime) -> date:
    # Aware timestamps are converted to the server's local zone first.
    if dt.tzinfo is not None:
        return dt.astimezone().date()
    return dt.date()


def log_day(log: ExerciseSessionLog) -> date:
    return log.fecha_realizacion or local_day(log.timestamp)


def day_name(d: date) -> str:
    return DAY_NAMES[(d.weekday() + 1) % 7]


def _video_minutes(catalog: VideoCatalog, video_id: str, default_minutes: int) -> int:
    video = catalog.get_video(video_id)
    if video is None:
        return default_minutes
    return int(video.duracion_estimada_minutos)


def compute_daily_volume(
    patient_id: str,
    day: date,
    walk_sessions: Iterable[WalkSession],
    exercise_logs: Iterable[ExerciseSessionLog],
    catalog: VideoCatalog,
    *,
    target_minutes: int | None = None,
    default_exercise_minutes: int | None = None,
) -> DailyVolume:
    target = settings.daily_target_minutes if target_minutes is None else target_minutes
    default_minutes = settings.default_exercise_minutes if default_exercise_minutes is None else default_exercise_minutes

    walk_seconds = sum(
        int(s.duration_seconds) for s in walk_sessions if s.patient_id == patient_id and local_day(s.date) == day
    )
    walk_minutes = walk_seconds // 60

    exercise_minutes = sum(
        _video_minutes(catalog, log.video_id, default_minutes)
        for log in exercise_logs
        if log.patient_id == patient_id and log.completado and log_day(log) == day
    )

    return DailyVolume(
        walk_minutes=walk_minutes,
        exercise_minutes=exercise_minutes,
        total_minutes=walk_minutes + exercise_minutes,
        target_minutes=target,
    )


def compute_daily_activity(
    patient_id: str,
    day: date,
    walk_sessions: Iterable[WalkSession],
    *,
    step_goal: int | None = None,
    stride_m: float | None = None,
) -> DailyActivity:
    stride = settings.stride_m if stride_m is None else stride_m
    steps = sum(int(s.steps) for s in walk_sessions if s.patient_id == patient_id and local_day(s.date) == day)
    return DailyActivity(
        steps=steps,
        distance_m=int(steps * stride),
        step_goal=step_goal or settings.default_step_goal,
    )


def weekly_compliance(
    patient_id: str, walk_sessions: Iterable[WalkSession], today: date, window_days: int | None = None
) -> int:
    window = settings.compliance_window_days if window_days is None else window_days
    mine = [s for s in walk_sessions if s.patient_id == patient_id]
    if window <= 0:
        return len(mine)
    first = today - timedelta(days=window - 1)
    return sum(1 for s in mine if first <= local_day(s.date) <= today)


def max_pain(patient_id: str, walk_sessions: Iterable[WalkSession], exercise_logs: Iterable[ExerciseSessionLog]) -> int:
    values = [int(s.pain_level) for s in walk_sessions if s.patient_id == patient_id]
    values += [
        int(l.dolor_durante_ejercicio)
        for l in exercise_logs
        if l.patient_id == patient_id and l.dolor_durante_ejercicio is not None
    ]
    return max(values, default=0)


def compute_summary(
    patient: RosterEntry,
    walk_sessions: list[WalkSession],
    exercise_logs: list[ExerciseSessionLog],
    *,
    today: date,
    window_days: int | None = None,
) -> PatientSummary:
    compliance = weekly_compliance(patient.id, walk_sessions, today, window_days)
    last_eva = max_pain(patient.id, walk_sessions, exercise_logs)

    alerts: list[str] = []
    codes: list[str] = []
    if compliance < settings.low_adherence_threshold:
        alerts.append(f"Baja adherencia (< {settings.low_adherence_threshold} sesiones)")
        codes.append(LOW_ADHERENCE)
    if last_eva >= settings.critical_pain_threshold:
        alerts.append(f"Dolor crítico por claudicación (EVA {last_eva})")
        codes.append(CRITICAL_PAIN)

    return PatientSummary(
        id=patient.id,
        nombre=patient.name,
        edad=patient.age,
        meta_pasos=patient.daily_step_goal or settings.default_step_goal,
        cumplimiento_semanal=compliance,
        alerta=len(alerts) > 0,
        alertas=alerts,
        alert_codes=codes,
        ultimo_dolor_eva=last_eva,
    )


def severity(summary: PatientSummary) -> int:
    return max((_SEVERITY[c] for c in summary.alert_codes), default=0)


def compute_roster(
    patients: list[RosterEntry],
    walk_sessions: list[WalkSession],
    exercise_logs: list[ExerciseSessionLog],
    *,
    today: date,
    window_days: int | None = None,
    sort_by_severity: bool = False,
) -> list[PatientSummary]:
    sessions_by_patient: dict[str, list[WalkSession]] = defaultdict(list)
    for s in walk_sessions:
        sessions_by_patient[s.patient_id].append(s)
    logs_by_patient: dict[str, list[ExerciseSessionLog]] = defaultdict(list)
    for l in exercise_logs:
        logs_by_patient[l.patient_id].append(l)

    summaries = [
        compute_summary(p, sessions_by_patient[p.id], logs_by_patient[p.id], today=today, window_days=window_days)
        for p in patients
    ]
    if sort_by_severity:
        # sorted() is stable: equal severities keep roster order.
        summaries = sorted(summaries, key=lambda s: -severity(s))
    return summaries


def dashboard_counts(summaries: list[PatientSummary]) -> dict[str, int]:
    critical = sum(1 for s in summaries if s.ultimo_dolor_eva >= settings.critical_pain_threshold)
    warning = sum(
        1
        for s in summaries
        if s.cumplimiento_semanal < settings.low_adherence_threshold
        and s.ultimo_dolor_eva < settings.critical_pain_threshold
    )
    ok = sum(1 for s in summaries if not s.alerta)
    return {"critical_count": critical, "warning_count": warning, "ok_count": ok}


def trailing_days(today: date, days: int = 7) -> list[CalendarDay]:
    out = []
    for i in range(days - 1, -1, -1):
        d = today - timedelta(days=i)
        out.append(CalendarDay(date=d.isoformat(), name=day_name(d)))
    return out


def _catalog_order(catalog: VideoCatalog, video_ids: list[str]) -> list[tuple[str, object]]:
    resolved = [(vid, catalog.get_video(vid)) for vid in video_ids]
    # Known videos by display order, unknown ones last (stable among themselves).
    return sorted(resolved, key=lambda pair: (pair[1] is None, pair[1].numero_orden if pair[1] else 0))


def compute_compliance_calendar(
    patient_id: str,
    assigned_video_ids: list[str],
    exercise_logs: list[ExerciseSessionLog],
    catalog: VideoCatalog,
    *,
    today: date,
    days: int = 7,
) -> tuple[list[CalendarDay], list[CalendarRow]]:
    calendar = trailing_days(today, days)
    mine = [l for l in exercise_logs if l.patient_id == patient_id]

    done = {(l.video_id, log_day(l).isoformat()) for l in mine if l.completado}
    video_ids = list(dict.fromkeys([*assigned_video_ids, *(l.video_id for l in mine)]))

    rows = []
    for vid, video in _catalog_order(catalog, video_ids):
        rows.append(
            CalendarRow(
                video_id=vid,
                titulo=video.titulo if video else UNKNOWN_VIDEO_TITLE,
                numero_orden=video.numero_orden if video else None,
                done=[(vid, d.date) in done for d in calendar],
            )
        )
    return calendar, rows


def build_assigned_exercises(
    patient_id: str,
    assigned_video_ids: list[str],
    exercise_logs: list[ExerciseSessionLog],
    catalog: VideoCatalog,
    *,
    today: date,
) -> list[AssignedExercise]:
    completed = [l for l in exercise_logs if l.patient_id == patient_id and l.completado]

    items = []
    for vid, video in _catalog_order(catalog, list(dict.fromkeys(assigned_video_ids))):
        logs = [l for l in completed if l.video_id == vid]
        last = max((l.timestamp for l in logs), default=None)
        items.append(
            AssignedExercise(
                id=f"{patient_id}:{vid}",
                patient_id=patient_id,
                video_id=vid,
                video=video,
                completed_today=any(log_day(l) == today for l in logs),
                last_completed_at=last.isoformat() if last else None,
            )
        )
    return items


def exercise_pain_alerts(
    exercise_logs: list[ExerciseSessionLog], catalog: VideoCatalog, *, threshold: int | None = None
) -> list[ExercisePainAlert]:
    limit = settings.exercise_pain_alert_threshold if threshold is None else threshold
    flagged = [l for l in exercise_logs if l.dolor_durante_ejercicio is not None and l.dolor_durante_ejercicio >= limit]
    flagged.sort(key=lambda l: l.timestamp, reverse=True)

    out = []
    for l in flagged:
        video = catalog.get_video(l.video_id)
        out.append(
            ExercisePainAlert(
                video_id=l.video_id,
                titulo=video.titulo if video else UNKNOWN_VIDEO_TITLE,
                dolor_durante_ejercicio=int(l.dolor_durante_ejercicio),
                fecha_realizacion=log_day(l).isoformat(),
            )
        )
    return out


def average_difficulty_by_video(exercise_logs: list[ExerciseSessionLog], catalog: VideoCatalog) -> list[DifficultyPoint]:
    by_title: dict[str, list[int]] = defaultdict(list)
    for l in exercise_logs:
        video = catalog.get_video(l.video_id)
        by_title[video.titulo if video else UNKNOWN_VIDEO_TITLE].append(int(l.dificultad_percibida))
    return [DifficultyPoint(titulo=t, avg_dificultad=round(sum(v) / len(v), 2)) for t, v in by_title.items()]
