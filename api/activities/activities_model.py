from sqlalchemy import Column, Integer, String, func
from config.database import Base
from utils.database_utils import UTCDateTime


class ActivityGroup(Base):
    """Template an active session is started from."""
    __tablename__ = "activity_groups"

    id          = Column(Integer, primary_key=True, index=True)
    name        = Column(String(100), nullable=False)
    category    = Column(String(50), nullable=True)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)
