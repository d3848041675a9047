# api/visits/visits_schema.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from utils.schema_types import UTCTimestamp


class VisitCreate(BaseModel):
    student_id: int = Field(gt=0)
    active_group_id: int = Field(gt=0)
    # defaults to now
    entry_time: Optional[UTCTimestamp] = None


class VisitUpdate(BaseModel):
    active_group_id: Optional[int] = Field(default=None, gt=0)
    entry_time: Optional[UTCTimestamp] = None
    exit_time: Optional[UTCTimestamp] = None


class VisitEnd(BaseModel):
    exit_time: Optional[UTCTimestamp] = None


class VisitOut(BaseModel):
    id: int
    student_id: int
    active_group_id: int
    entry_time: datetime
    exit_time: Optional[datetime] = None
    is_active: bool
    # open but its session has ended
    is_stale: bool = False
    checked_in_by: Optional[int] = None
    student_name: Optional[str] = None
    active_group_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class VisitDisplayOut(VisitOut):
    school_class: Optional[str] = None
    group_name: Optional[str] = None
