from sqlalchemy import Column, Integer, String, ForeignKey, func
from sqlalchemy.orm import relationship
from config.database import Base
from utils.database_utils import UTCDateTime


class EducationGroup(Base):
    __tablename__ = "education_groups"

    id          = Column(Integer, primary_key=True, index=True)
    name        = Column(String(100), nullable=False)
    created_at  = Column(UTCDateTime, server_default=func.now(), nullable=False)


class Student(Base):
    __tablename__ = "students"

    id                  = Column(Integer, primary_key=True, index=True)
    first_name          = Column(String(100), nullable=False)
    last_name           = Column(String(100), nullable=False)
    school_class        = Column(String(20), nullable=False, default="")
    education_group_id  = Column(Integer, ForeignKey("education_groups.id", ondelete="SET NULL"), nullable=True)
    created_at          = Column(UTCDateTime, server_default=func.now(), nullable=False)
    updated_at          = Column(UTCDateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    education_group = relationship("EducationGroup", lazy="joined")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
