import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class BlackStudentBrief(Base):
    __tablename__ = "black_student_briefs"

    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("black_students.id", name="black_student_briefs_student_id_fkey", ondelete="CASCADE"),
        primary_key=True,
    )
    brief_md: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
