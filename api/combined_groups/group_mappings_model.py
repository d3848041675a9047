from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class GroupMapping(Base):
    __tablename__ = "group_mappings"
    __table_args__ = (
        UniqueConstraint("active_group_id", "active_combined_group_id", name="uq_group_mappings_pair"),
    )

    id                        = Column(Integer, primary_key=True, index=True)
    active_group_id           = Column(Integer, ForeignKey("active_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    active_combined_group_id  = Column(Integer, ForeignKey("combined_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at                = Column(UTCDateTime, server_default=func.now(), nullable=False)

    active_group   = relationship("ActiveGroup", back_populates="mappings")
    combined_group = relationship("CombinedGroup", back_populates="mappings")
