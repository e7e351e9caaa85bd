import datetime as dt
import math
import re
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict

SUBJECTS = frozenset({"matematica", "fisica"})
SUBJECT_MAX_LENGTH = 80
NOTES_MAX_LENGTH = 2000

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: Any) -> dt.date | None:
    """Parse a strict ``YYYY-MM-DD`` string; anything else is None."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        return None
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        return None


def parse_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_subject(value: Any) -> str | None:
    return value if value in SUBJECTS else None


def clean_text(value: str | None, limit: int) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value[:limit] if value else None


class ExamCreate(BaseModel):
    date: str | None = None
    subject: str | None = None
    notes: str | None = None


class ExamGradeCreate(BaseModel):
    grade: Any = None
    subject: Any = None


class ExamResponse(BaseModel):
    id: uuid.UUID
    date: dt.date | None = None
    subject: str | None = None
    notes: str | None = None
    black_assessment_id: uuid.UUID | None = None
    grade: float | None = None
    grade_subject: str | None = None
    grade_id: uuid.UUID | None = None
    created_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class ExamListResponse(BaseModel):
    items: list[ExamResponse]
