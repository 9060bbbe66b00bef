# cardiointake/models.py
from datetime import datetime, timezone

from sqlalchemy import Integer, String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from cardiointake.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatientIntake(Base):
    """
    One submitted intake questionnaire.

    `symptoms` keeps the patient's selection order and `responses` maps each
    follow-up question to its (normalized) answer.
    """
    __tablename__ = "patient_intake"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    symptoms: Mapped[list] = mapped_column(JSON, nullable=False)
    responses: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
