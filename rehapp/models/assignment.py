from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rehapp.models.base import Base

ASSIGNMENT_SCHEMA_VERSION = 1


class ExerciseRoutine(Base):
    """
    Clinician-assigned exercise routine, one versioned record per patient.
    Per-exercise completion state is derived from the logs, never stored here.
    """

    __tablename__ = "exercise_routines"

    patient_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), primary_key=True)
    schema_version: Mapped[int] = mapped_column(Integer, nullable=False, default=ASSIGNMENT_SCHEMA_VERSION)

    video_ids_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")

    freq_semanal: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    series: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    reps: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
