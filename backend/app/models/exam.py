import datetime as dt
import uuid

from sqlalchemy import Date, DateTime, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class UserExam(Base):
    """Exam entry of the account app, owned by a Firebase user."""

    __tablename__ = "user_exams"
    __table_args__ = (Index("idx_user_exams_uid_date", "uid", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    date: Mapped[dt.date | None] = mapped_column(Date, nullable=True)
    subject: Mapped[str | None] = mapped_column(String(80), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    black_assessment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    grade: Mapped[float | None] = mapped_column(Numeric(4, 1, asdecimal=False), nullable=True)
    grade_subject: Mapped[str | None] = mapped_column(String(80), nullable=True)
    grade_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    grade_synced_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)


class UserGrade(Base):
    __tablename__ = "user_grades"
    __table_args__ = (Index("idx_user_grades_uid_date", "uid", "date"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    uid: Mapped[str] = mapped_column(String(128), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    subject: Mapped[str] = mapped_column(String(80), nullable=False)
    grade: Mapped[float] = mapped_column(Numeric(4, 1, asdecimal=False), nullable=False)
    exam_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assessment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    source: Mapped[str | None] = mapped_column(String(40), nullable=True)
    created_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
    updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime, nullable=True)
