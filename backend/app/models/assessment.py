import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class BlackAssessment(Base):
    """A scheduled or completed school exam ("verifica") of a Black student."""

    __tablename__ = "black_assessments"
    __table_args__ = (Index("idx_black_assessments_student_when", "student_id", "when_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("black_students.id", name="black_assessments_student_id_fkey", ondelete="CASCADE"),
        nullable=False,
    )
    subject: Mapped[str | None] = mapped_column(String(80), nullable=True)
    topics: Mapped[str | None] = mapped_column(Text, nullable=True)
    when_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
