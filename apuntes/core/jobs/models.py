import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Enum as SQLEnum, JSON, Uuid
from apuntes.core.database.base import Base
from .types import JobType, JobStatus

def utc_now():
    return datetime.now(timezone.utc)

class JobModel(Base):
    __tablename__ = "jobs"

    # Generic Uuid: native on Postgres, CHAR(32) on SQLite
    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    job_type = Column(SQLEnum(JobType), nullable=False)
    status = Column(SQLEnum(JobStatus), default=JobStatus.PENDING)

    payload = Column(JSON, default=dict)     # Input parameters (audio_path + options)
    result_meta = Column(JSON, default=dict) # Transcript and run statistics

    progress = Column(Integer, default=0)
    progress_message = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    error_message = Column(String, nullable=True)
