from sqlalchemy import Column, Integer, String, func
from config.database import Base
from utils.database_utils import UTCDateTime


class Room(Base):
    __tablename__ = "rooms"

    id          = Column(Integer, primary_key=True, index=True)
    name        = Column(String(100), nullable=False, unique=True)
    capacity    = Column(Integer, nullable=True)
    category    = Column(String(50), nullable=True)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at  = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
