import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base

RISK_LEVELS = ("red", "yellow", "green")


class BlackStudent(Base):
    __tablename__ = "black_students"
    __table_args__ = (
        UniqueConstraint("user_id", name="black_students_user_id_key"),
        CheckConstraint(
            "readiness >= 0 AND readiness <= 100", name="black_students_readiness_range"
        ),
        Index("idx_black_students_user", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    student_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    track: Mapped[str | None] = mapped_column(String(80), nullable=True)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    difficulty_focus: Mapped[str | None] = mapped_column(Text, nullable=True)
    readiness: Mapped[int] = mapped_column(
        Integer, nullable=False, default=100, server_default=text("100")
    )
    risk_level: Mapped[str] = mapped_column(
        String(16), nullable=False, default="yellow", server_default=text("'yellow'")
    )
    next_assessment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_assessment_subject: Mapped[str | None] = mapped_column(String(80), nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
