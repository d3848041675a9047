# api/scheduled_checkouts/scheduled_checkouts_schema.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from utils.schema_types import UTCTimestamp

from api.scheduled_checkouts.scheduled_checkouts_model import ScheduledCheckoutStatus


class ScheduledCheckoutCreate(BaseModel):
    student_id: int = Field(gt=0)
    scheduled_for: UTCTimestamp
    reason: Optional[str] = Field(default=None, max_length=255)
    # defaults to the calling staff member
    scheduled_by: Optional[int] = Field(default=None, gt=0)


class ScheduledCheckoutOut(BaseModel):
    id: int
    student_id: int
    scheduled_by: int
    scheduled_for: datetime
    reason: Optional[str] = None
    status: ScheduledCheckoutStatus
    executed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProcessDueItem(BaseModel):
    scheduled_checkout_id: int
    student_id: int
    # checked_out | executed (nothing to close) | skipped (no longer pending) | failed
    outcome: str
    visit_id: Optional[int] = None
    # an ErrorKind value for failures
    error: Optional[str] = None


class ProcessDueResult(BaseModel):
    total: int = 0
    executed: int = 0
    checked_out: int = 0
    # executed with no visit left to close
    no_visit: int = 0
    skipped: int = 0
    failed: int = 0
    items: List[ProcessDueItem] = []

    @computed_field
    @property
    def success(self) -> bool:
        return self.failed == 0
