from datetime import date, datetime

from pydantic import BaseModel, Field


class WalkSession(BaseModel):
    id: str
    patient_id: str
    date: datetime  # local start of the session
    duration_seconds: int = 0
    steps: int = 0
    pain_level: int = 0
    stopped_due_to_pain: bool = False
    notes: str | None = None


class ExerciseSessionLog(BaseModel):
    patient_id: str
    video_id: str
    fecha_realizacion: date | None = None  # derived from `timestamp` when omitted
    timestamp: datetime
    series_completadas: int = 0
    repeticiones_completadas: int = 0
    dificultad_percibida: int = 5
    dolor_durante_ejercicio: int | None = None
    completado: bool = True


class ActivityStartRequest(BaseModel):
    patient_id: str = Field(..., min_length=1, max_length=100)
    tipo_actividad: str = "caminata"


class ActivityStartResponse(BaseModel):
    session_id: str
    state: str
    meta_pasos: int
    mensaje_inicio: str


class PainReportRequest(BaseModel):
    session_id: str
    nivel_eva: int = Field(..., ge=0, le=10)


class SessionSnapshot(BaseModel):
    session_id: str
    patient_id: str
    state: str
    started_at: str
    elapsed_seconds: int
    steps: int
    distance_m: int
    pain_level: int
    stopped_due_to_pain: bool


class PainReportResponse(BaseModel):
    accion: str  # ALTO_INMEDIATO | PRECAUCION | CONTINUAR
    mensaje: str
    bloquear_app: bool
    persisted: bool = True
    error: str | None = None
    session: SessionSnapshot


class SessionStopResponse(BaseModel):
    persisted: bool = True
    error: str | None = None
    session: SessionSnapshot


class ExerciseLogCreate(BaseModel):
    patient_id: str = Field(..., min_length=1)
    video_id: str = Field(..., min_length=1)
    fecha_realizacion: date | None = None
    timestamp: datetime | None = None
    series_completadas: int = Field(0, ge=0, le=100)
    repeticiones_completadas: int = Field(0, ge=0, le=1000)
    dificultad_percibida: int = Field(5, ge=1, le=10)
    dolor_durante_ejercicio: int | None = Field(None, ge=0, le=10)
    completado: bool = True


class ExerciseLogResponse(BaseModel):
    success: bool
    message: str
    log: ExerciseSessionLog | None = None


class PatientSessionsResponse(BaseModel):
    patient_id: str
    sessions: list[WalkSession]
