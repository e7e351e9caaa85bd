import datetime as dt
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict


class GradeCreate(BaseModel):
    date: str | None = None
    subject: Any = None
    grade: Any = None


class GradeResponse(BaseModel):
    id: uuid.UUID
    date: dt.date
    subject: str
    grade: float
    exam_id: uuid.UUID | None = None
    assessment_id: uuid.UUID | None = None
    source: str | None = None
    created_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class GradeListResponse(BaseModel):
    items: list[GradeResponse]
