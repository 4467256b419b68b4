from pydantic import BaseModel, Field


class VideoItem(BaseModel):
    id: str
    numero_orden: int
    titulo: str
    descripcion: str = ""
    youtube_video_id: str = ""
    tipo_ejercicio: str = ""
    grupos_musculares: list[str] = Field(default_factory=list)
    repeticiones_sugeridas: str = ""
    equipamiento_necesario: list[str] = Field(default_factory=list)
    nivel_dificultad: str = ""
    duracion_estimada_minutos: int = 5


class VideosResponse(BaseModel):
    videos: list[VideoItem]


class RoutineConfig(BaseModel):
    freq_semanal: int = Field(3, ge=1, le=7)
    series: int = Field(2, ge=1, le=20)
    reps: int = Field(10, ge=1, le=100)
    notes: str | None = None


class RoutineUpdate(BaseModel):
    video_ids: list[str] = Field(..., min_length=1)
    config: RoutineConfig = Field(default_factory=RoutineConfig)


class RoutineResponse(BaseModel):
    patient_id: str
    schema_version: int
    video_ids: list[str]
    config: RoutineConfig


class AssignedExercise(BaseModel):
    id: str
    patient_id: str
    video_id: str
    video: VideoItem | None
    completed_today: bool
    last_completed_at: str | None = None


class AssignedExercisesResponse(BaseModel):
    patient_id: str
    completed_today: int
    total_assigned: int
    exercises: list[AssignedExercise]
