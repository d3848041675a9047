from sqlalchemy import Column, Integer, String, func
from config.database import Base
from utils.database_utils import UTCDateTime


class Staff(Base):
    __tablename__ = "staff"

    id          = Column(Integer, primary_key=True, index=True)
    # account id carried in the auth token
    account_id  = Column(Integer, nullable=True, unique=True, index=True)
    first_name  = Column(String(100), nullable=False)
    last_name   = Column(String(100), nullable=False)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at  = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
