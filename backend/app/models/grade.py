import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class BlackGrade(Base):
    __tablename__ = "black_grades"
    __table_args__ = (Index("idx_black_grades_student_when", "student_id", "when_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("black_students.id", name="black_grades_student_id_fkey", ondelete="CASCADE"),
        nullable=False,
    )
    assessment_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey(
            "black_assessments.id", name="black_grades_assessment_id_fkey", ondelete="SET NULL"
        ),
        nullable=True,
    )
    subject: Mapped[str | None] = mapped_column(String(80), nullable=True)
    score: Mapped[float] = mapped_column(Numeric(4, 1, asdecimal=False), nullable=False)
    max_score: Mapped[float] = mapped_column(
        Numeric(4, 1, asdecimal=False), nullable=False, default=10, server_default=text("10")
    )
    when_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(
        DateTime, server_default=text("CURRENT_TIMESTAMP"), nullable=True
    )
