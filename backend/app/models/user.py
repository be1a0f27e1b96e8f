from enum import Enum

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class Role(str, Enum):
    JOB_SEEKER = "job_seeker"
    EMPLOYER = "employer"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash
    role = Column(String(20), nullable=False)  # job_seeker / employer
    # Opaque to the backend except `skills`, `location` and `experience`,
    # which candidate search and match scoring read.
    profile_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    jobs = relationship("Job", back_populates="employer")
    applications = relationship("Application", back_populates="candidate")
    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")
