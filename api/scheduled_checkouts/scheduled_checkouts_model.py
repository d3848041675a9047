import enum
from sqlalchemy import Column, Integer, String, Enum, ForeignKey, Index, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class ScheduledCheckoutStatus(enum.Enum):
    pending   = "pending"
    executed  = "executed"
    cancelled = "cancelled"


class ScheduledCheckout(Base):
    __tablename__ = "scheduled_checkouts"
    __table_args__ = (
        Index("ix_scheduled_checkouts_due", "status", "scheduled_for"),
    )

    id             = Column(Integer, primary_key=True, index=True)
    student_id     = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    scheduled_by   = Column(Integer, ForeignKey("staff.id"), nullable=False)
    scheduled_for  = Column(UTCDateTime, nullable=False)
    reason         = Column(String(255), nullable=True)
    status         = Column(Enum(ScheduledCheckoutStatus, name="scheduled_checkout_status"), nullable=False, default=ScheduledCheckoutStatus.pending)
    executed_at    = Column(UTCDateTime, nullable=True)
    cancelled_at   = Column(UTCDateTime, nullable=True)
    cancelled_by   = Column(Integer, ForeignKey("staff.id"), nullable=True)
    created_at     = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at     = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    student = relationship("Student")
