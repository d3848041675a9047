from sqlalchemy import Column, Integer, ForeignKey, Index, text, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = (
        # one open visit per student
        Index(
            "uq_visits_open_student",
            "student_id",
            unique=True,
            postgresql_where=text("exit_time IS NULL"),
            sqlite_where=text("exit_time IS NULL"),
        ),
    )

    id               = Column(Integer, primary_key=True, index=True)
    student_id       = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    active_group_id  = Column(Integer, ForeignKey("active_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_time       = Column(UTCDateTime, nullable=False)
    exit_time        = Column(UTCDateTime, nullable=True)
    checked_in_by    = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    created_at       = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at       = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    student      = relationship("Student")
    active_group = relationship("ActiveGroup", back_populates="visits")

    def is_active(self) -> bool:
        return self.exit_time is None
