from sqlalchemy import Column, Integer, String, ForeignKey, Index, text, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime

DEFAULT_ROLE = "supervisor"


class GroupSupervisor(Base):
    __tablename__ = "group_supervisors"
    __table_args__ = (
        # one active supervision per (staff, session)
        Index(
            "uq_group_supervisors_active_pair",
            "staff_id",
            "group_id",
            unique=True,
            postgresql_where=text("end_date IS NULL"),
            sqlite_where=text("end_date IS NULL"),
        ),
    )

    id          = Column(Integer, primary_key=True, index=True)
    staff_id    = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    group_id    = Column(Integer, ForeignKey("active_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    role        = Column(String(50), nullable=False, default=DEFAULT_ROLE)
    start_date  = Column(UTCDateTime, nullable=False)
    end_date    = Column(UTCDateTime, nullable=True)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at  = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    staff        = relationship("Staff")
    active_group = relationship("ActiveGroup", back_populates="supervisors")

    def is_active(self) -> bool:
        return self.end_date is None
