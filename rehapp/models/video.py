from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rehapp.models.base import Base


class ExerciseVideo(Base):
    __tablename__ = "exercise_videos"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    numero_orden: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    titulo: Mapped[str] = mapped_column(String, nullable=False)
    descripcion: Mapped[str] = mapped_column(Text, nullable=False, default="")
    youtube_video_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    tipo_ejercicio: Mapped[str] = mapped_column(String, nullable=False, default="fuerza")

    # JSON arrays stored as text (SQLite).
    grupos_musculares_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    equipamiento_necesario_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    repeticiones_sugeridas: Mapped[str] = mapped_column(String, nullable=False, default="")
    nivel_dificultad: Mapped[str] = mapped_column(String, nullable=False, default="basico")
    duracion_estimada_minutos: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
