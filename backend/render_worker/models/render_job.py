"""
Render Job Model
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field
from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from render_worker.models import Base


class JobStatus(str, Enum):
    """Render job lifecycle states"""

    QUEUED = "queued"
    CLAIMED = "claimed"
    COMPLETED = "completed"
    FAILED = "failed"


class RenderJob(BaseModel):
    """A request to turn one source image into one published video."""

    job_id: str
    image_url: str
    artist: Optional[str] = None
    title: Optional[str] = None
    status: JobStatus = JobStatus.CLAIMED
    worker_id: Optional[str] = None
    output_url: Optional[str] = None
    error_message: Optional[str] = None
    lease_expires_at: Optional[datetime] = None

    # Identifies this claim; a re-queued job gets a fresh one on its next claim
    attempt_id: str = Field(default_factory=lambda: uuid.uuid4().hex)


class RenderJobModel(Base):
    """
    Render Job - Queue row for the database job store

    Tracks ownership of the claim, the lease and the terminal result.
    """

    __tablename__ = "render_jobs"

    id = Column(Integer, primary_key=True, index=True)

    # Public job identifier
    job_id = Column(String, unique=True, nullable=False, index=True)

    # Display metadata (passed through to the renderer)
    artist = Column(String, nullable=True)
    title = Column(String, nullable=True)

    # Source image
    image_url = Column(String, nullable=False)

    # Queue state
    status = Column(String, nullable=False, index=True)  # queued, claimed, completed, failed
    worker_id = Column(String, nullable=True)
    lease_expires_at = Column(DateTime, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)

    # Result
    output_url = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    # State transitions
    state_transitions = Column(JSON, nullable=False)  # [{"status": "queued", "timestamp": "...", "event": "job_enqueued"}]

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    claimed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_render_jobs_status_created", "status", "created_at"),
    )

    def to_render_job(self) -> RenderJob:
        """Convert row to the RenderJob handed to the pipeline"""
        return RenderJob(
            job_id=self.job_id,
            image_url=self.image_url,
            artist=self.artist,
            title=self.title,
            status=JobStatus(self.status),
            worker_id=self.worker_id,
            output_url=self.output_url,
            error_message=self.error_message,
            lease_expires_at=self.lease_expires_at,
        )

    @staticmethod
    def generate_job_id() -> str:
        """Generate a unique job ID"""
        return str(uuid.uuid4())
