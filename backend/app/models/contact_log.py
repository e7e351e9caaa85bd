import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class BlackContactLog(Base):
    __tablename__ = "black_contact_logs"
    __table_args__ = (Index("idx_black_contact_logs_student_at", "student_id", "contacted_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("black_students.id", name="black_contact_logs_student_id_fkey", ondelete="CASCADE"),
        nullable=False,
    )
    contacted_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source: Mapped[str | None] = mapped_column(String(80), nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    author_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
