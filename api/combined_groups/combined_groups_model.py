from datetime import datetime
from sqlalchemy import Column, Integer, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class CombinedGroup(Base):
    __tablename__ = "combined_groups"

    id          = Column(Integer, primary_key=True, index=True)
    start_time  = Column(UTCDateTime, nullable=False)
    end_time    = Column(UTCDateTime, nullable=True)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at  = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    mappings = relationship("GroupMapping", back_populates="combined_group", cascade="all, delete-orphan", passive_deletes=True)

    def is_active(self, now: datetime) -> bool:
        return self.end_time is None or self.end_time > now

    @property
    def display_name(self) -> str:
        return f"Combined Group #{self.id}"
