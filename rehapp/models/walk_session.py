from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rehapp.models.base import Base


class WalkSessionRecord(Base):
    """
    One row per walking attempt. Upserted by id on every pain report and on
    termination; rows are never deleted.
    """

    __tablename__ = "walk_sessions"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    patient_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), index=True, nullable=False)

    # Local wall-clock start of the session (patients think in local days).
    started_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)

    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    steps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pain_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    stopped_due_to_pain: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
