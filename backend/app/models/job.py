from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base


class JobStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CLOSED = "closed"


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Integer, primary_key=True, index=True)
    employer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(150), nullable=False)
    company = Column(String(150), nullable=False)
    location = Column(String(100), nullable=False)
    job_type = Column(String(30), nullable=False)
    experience_level = Column(String(30), nullable=True)
    salary_min = Column(Integer, nullable=True)
    salary_max = Column(Integer, nullable=True)
    description = Column(Text, nullable=False)
    requirements = Column(Text, nullable=True)
    skills = Column(JSON, nullable=True)  # list of skill strings
    contact_email = Column(String(255), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=JobStatus.PUBLISHED.value, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    employer = relationship("User", back_populates="jobs")
    # Deleting a posting removes its applications.
    applications = relationship("Application", back_populates="job", cascade="all, delete-orphan")
