from datetime import datetime
from sqlalchemy import Column, Integer, ForeignKey, Index, text, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class ActiveGroup(Base):
    """A running activity session in a room."""
    __tablename__ = "active_groups"
    __table_args__ = (
        # at most one open-ended session per room
        Index(
            "uq_active_groups_open_room",
            "room_id",
            unique=True,
            postgresql_where=text("end_time IS NULL"),
            sqlite_where=text("end_time IS NULL"),
        ),
    )

    id                   = Column(Integer, primary_key=True, index=True)
    group_id             = Column(Integer, ForeignKey("activity_groups.id"), nullable=False, index=True)
    room_id              = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    start_time           = Column(UTCDateTime, nullable=False)
    end_time             = Column(UTCDateTime, nullable=True)
    # bumped on every supervision change; claim compares and swaps it
    supervision_version  = Column(Integer, nullable=False, default=0, server_default="0")
    last_activity        = Column(UTCDateTime, nullable=True)
    created_at           = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at           = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    room        = relationship("Room")
    activity    = relationship("ActivityGroup")
    visits      = relationship("Visit", back_populates="active_group", cascade="all, delete-orphan", passive_deletes=True)
    supervisors = relationship("GroupSupervisor", back_populates="active_group", cascade="all, delete-orphan", passive_deletes=True)
    mappings    = relationship("GroupMapping", back_populates="active_group", cascade="all, delete-orphan", passive_deletes=True)

    def is_active(self, now: datetime) -> bool:
        return self.end_time is None or self.end_time > now

    @property
    def display_name(self) -> str:
        return f"Group #{self.group_id}"
