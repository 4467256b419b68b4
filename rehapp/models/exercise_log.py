from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from rehapp.models.base import Base


class ExerciseSessionLogRecord(Base):
    __tablename__ = "exercise_session_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True, nullable=False)
    video_id: Mapped[str] = mapped_column(String, ForeignKey("exercise_videos.id"), nullable=False)
    fecha_realizacion: Mapped[date] = mapped_column(Date, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    series_completadas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repeticiones_completadas: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    dificultad_percibida: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-10
    dolor_durante_ejercicio: Mapped[int | None] = mapped_column(Integer, nullable=True)  # EVA 0-10
    completado: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # A repeat submission for the same exercise and day overwrites the row.
    __table_args__ = (
        UniqueConstraint("patient_id", "video_id", "fecha_realizacion", name="uq_patient_video_day"),
    )
