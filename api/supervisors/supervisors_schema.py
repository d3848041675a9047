# api/supervisors/supervisors_schema.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from utils.schema_types import UTCTimestamp


class SupervisorCreate(BaseModel):
    staff_id: int = Field(gt=0)
    active_group_id: int = Field(gt=0)
    role: Optional[str] = Field(default=None, max_length=50)
    start_date: Optional[UTCTimestamp] = None
    end_date: Optional[UTCTimestamp] = None


class SupervisorUpdate(BaseModel):
    role: Optional[str] = Field(default=None, min_length=1, max_length=50)
    start_date: Optional[UTCTimestamp] = None
    end_date: Optional[UTCTimestamp] = None


class SupervisorOut(BaseModel):
    id: int
    staff_id: int
    active_group_id: int
    role: str
    start_date: datetime
    end_date: Optional[datetime] = None
    is_active: bool
    staff_name: Optional[str] = None
    active_group_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
