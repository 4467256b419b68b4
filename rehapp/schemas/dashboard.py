from pydantic import BaseModel


class DailyVolume(BaseModel):
    walk_minutes: int
    exercise_minutes: int
    total_minutes: int
    target_minutes: int


class DailyActivity(BaseModel):
    steps: int
    distance_m: int
    step_goal: int


class PatientSummary(BaseModel):
    id: str
    nombre: str
    edad: int | None = None
    meta_pasos: int
    cumplimiento_semanal: int
    alerta: bool
    alertas: list[str]
    alert_codes: list[str]  # parallel to `alertas`: LOW_ADHERENCE | CRITICAL_PAIN
    ultimo_dolor_eva: int


class DashboardResponse(BaseModel):
    patients: list[PatientSummary]
    critical_count: int
    warning_count: int
    ok_count: int


class CalendarDay(BaseModel):
    date: str
    name: str


class CalendarRow(BaseModel):
    video_id: str
    titulo: str
    numero_orden: int | None
    done: list[bool]  # aligned with `days`


class ComplianceCalendarResponse(BaseModel):
    patient_id: str
    days: list[CalendarDay]
    rows: list[CalendarRow]


class ExercisePainAlert(BaseModel):
    video_id: str
    titulo: str
    dolor_durante_ejercicio: int
    fecha_realizacion: str


class ExercisePainAlertsResponse(BaseModel):
    patient_id: str
    alerts: list[ExercisePainAlert]


class DifficultyPoint(BaseModel):
    titulo: str
    avg_dificultad: float


class DifficultyResponse(BaseModel):
    patient_id: str
    points: list[DifficultyPoint]
