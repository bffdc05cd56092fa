"""
Storage Service - Database-backed render job queue
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session, sessionmaker

from render_worker.config.constants import CLAIM_MAX_ATTEMPTS
from render_worker.models import create_db_engine, create_session_factory, init_db
from render_worker.models.render_job import JobStatus, RenderJob, RenderJobModel
from render_worker.services.job_state import JobStateError, is_terminal_state, validate_transition
from render_worker.services.observability import logger


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RenderJobDB:
    """Render job database operations"""

    @staticmethod
    def create_job(
        db: Session,
        image_url: str,
        artist: Optional[str] = None,
        title: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> RenderJobModel:
        """Create a new queued job"""
        now = _utcnow()
        job = RenderJobModel(
            job_id=job_id or RenderJobModel.generate_job_id(),
            artist=artist,
            title=title,
            image_url=image_url,
            status=JobStatus.QUEUED.value,
            attempts=0,
            state_transitions=[
                {
                    "status": JobStatus.QUEUED.value,
                    "timestamp": now.isoformat(),
                    "event": "job_enqueued",
                }
            ],
            created_at=now,
            updated_at=now,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    @staticmethod
    def get_job(db: Session, job_id: str) -> Optional[RenderJobModel]:
        """Get job by ID"""
        return db.query(RenderJobModel).filter(RenderJobModel.job_id == job_id).first()

    @staticmethod
    def claimable_filter(now: datetime):
        """Queued jobs, plus claimed jobs whose lease has run out"""
        return or_(
            RenderJobModel.status == JobStatus.QUEUED.value,
            and_(
                RenderJobModel.status == JobStatus.CLAIMED.value,
                RenderJobModel.lease_expires_at.isnot(None),
                RenderJobModel.lease_expires_at < now,
            ),
        )

    @staticmethod
    def next_claimable(db: Session, now: datetime) -> Optional[RenderJobModel]:
        """Oldest job a worker may claim right now"""
        return (
            db.query(RenderJobModel)
            .filter(RenderJobDB.claimable_filter(now))
            .order_by(RenderJobModel.created_at, RenderJobModel.id)
            .first()
        )

    @staticmethod
    def append_transition(job: RenderJobModel, status: str, event: str, timestamp: datetime) -> None:
        """Record a status change on the row"""
        transitions = list(job.state_transitions or [])
        transitions.append(
            {
                "status": status,
                "timestamp": timestamp.isoformat(),
                "event": event,
            }
        )
        job.state_transitions = transitions


class DatabaseJobStore:
    """
    Job store over a SQL table

    Claims are a compare-and-set UPDATE guarded by the same predicate that
    selected the candidate, so two workers racing for one row cannot both see
    a row count of 1. The loser moves on to the next candidate.
    """

    def __init__(self, session_factory: sessionmaker, lease_ttl_s: int = 0):
        """Initialize database job store"""
        self.session_factory = session_factory
        self.lease_ttl_s = lease_ttl_s

    @classmethod
    def from_url(cls, database_url: str, lease_ttl_s: int = 0) -> "DatabaseJobStore":
        """Create store and its tables for a database URL"""
        engine = create_db_engine(database_url)
        init_db(engine)
        return cls(create_session_factory(engine), lease_ttl_s=lease_ttl_s)

    def _lease_deadline(self, now: datetime) -> Optional[datetime]:
        if not self.lease_ttl_s:
            return None
        return now + timedelta(seconds=self.lease_ttl_s)

    def enqueue(
        self,
        image_url: str,
        artist: Optional[str] = None,
        title: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> RenderJob:
        """Add a queued job"""
        with self.session_factory() as db:
            job = RenderJobDB.create_job(db, image_url, artist=artist, title=title, job_id=job_id)
            logger.info("job_enqueued", job_id=job.job_id, image_url=image_url)
            return job.to_render_job()

    def get_job(self, job_id: str) -> Optional[RenderJob]:
        """Current state of a job"""
        with self.session_factory() as db:
            job = RenderJobDB.get_job(db, job_id)
            return job.to_render_job() if job else None

    def claim_next(self, worker_id: str) -> Optional[RenderJob]:
        """
        Claim the oldest claimable job for worker_id

        Args:
            worker_id: Identity of the claiming worker

        Returns:
            Claimed RenderJob, or None if nothing is claimable
        """
        for _ in range(CLAIM_MAX_ATTEMPTS):
            with self.session_factory() as db:
                now = _utcnow()
                candidate = RenderJobDB.next_claimable(db, now)
                if candidate is None:
                    return None

                candidate_id = candidate.id
                previous_status = candidate.status
                previous_worker = candidate.worker_id

                result = db.execute(
                    update(RenderJobModel)
                    .where(
                        RenderJobModel.id == candidate_id,
                        RenderJobDB.claimable_filter(now),
                    )
                    .values(
                        status=JobStatus.CLAIMED.value,
                        worker_id=worker_id,
                        lease_expires_at=self._lease_deadline(now),
                        attempts=RenderJobModel.attempts + 1,
                        claimed_at=now,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )

                if result.rowcount != 1:
                    # Another worker won this row
                    db.rollback()
                    logger.debug("claim_race_lost", worker_id=worker_id, candidate_id=candidate_id)
                    continue

                job = (
                    db.query(RenderJobModel)
                    .populate_existing()
                    .filter(RenderJobModel.id == candidate_id)
                    .one()
                )
                event = "lease_reclaimed" if previous_status == JobStatus.CLAIMED.value else "job_claimed"
                RenderJobDB.append_transition(job, JobStatus.CLAIMED.value, event, now)
                db.commit()
                db.refresh(job)

                if event == "lease_reclaimed":
                    logger.warning(
                        "lease_reclaimed",
                        job_id=job.job_id,
                        worker_id=worker_id,
                        previous_worker_id=previous_worker,
                    )
                return job.to_render_job()

        return None

    def _finish(
        self,
        job_id: str,
        worker_id: str,
        new_status: JobStatus,
        output_url: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        with self.session_factory() as db:
            job = RenderJobDB.get_job(db, job_id)
            if job is None:
                raise JobStateError(f"Job not found: {job_id}")

            if is_terminal_state(job.status):
                raise JobStateError(
                    f"Job {job_id} is already {job.status}; cannot mark it {new_status.value}"
                )

            validate_transition(job.status, new_status)

            now = _utcnow()
            values = {
                "status": new_status.value,
                "output_url": output_url,
                "error_message": error_message,
                "lease_expires_at": None,
                "updated_at": now,
            }
            if new_status == JobStatus.COMPLETED:
                values["completed_at"] = now
            else:
                values["failed_at"] = now

            result = db.execute(
                update(RenderJobModel)
                .where(
                    RenderJobModel.job_id == job_id,
                    RenderJobModel.status == JobStatus.CLAIMED.value,
                    RenderJobModel.worker_id == worker_id,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                db.rollback()
                raise JobStateError(
                    f"Job {job_id} is no longer claimed by {worker_id}"
                )

            job = (
                db.query(RenderJobModel)
                .populate_existing()
                .filter(RenderJobModel.job_id == job_id)
                .one()
            )
            event = "job_completed" if new_status == JobStatus.COMPLETED else "job_failed"
            RenderJobDB.append_transition(job, new_status.value, event, now)
            db.commit()

    def complete(self, job_id: str, worker_id: str, output_url: str) -> None:
        """
        Mark job completed

        Raises:
            JobStateError: If the job is not claimed by worker_id
        """
        self._finish(job_id, worker_id, JobStatus.COMPLETED, output_url=output_url)

    def fail(self, job_id: str, worker_id: str, error_message: str) -> None:
        """
        Mark job failed

        Raises:
            JobStateError: If the job is not claimed by worker_id
        """
        self._finish(job_id, worker_id, JobStatus.FAILED, error_message=error_message)

    def renew_lease(self, job_id: str, worker_id: str) -> bool:
        """Push the lease deadline forward while worker_id still holds the job"""
        if not self.lease_ttl_s:
            return True

        with self.session_factory() as db:
            now = _utcnow()
            result = db.execute(
                update(RenderJobModel)
                .where(
                    RenderJobModel.job_id == job_id,
                    RenderJobModel.status == JobStatus.CLAIMED.value,
                    RenderJobModel.worker_id == worker_id,
                )
                .values(lease_expires_at=self._lease_deadline(now), updated_at=now)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount == 1

    def close(self) -> None:
        """Dispose the engine's connection pool"""
        bind = self.session_factory.kw.get("bind")
        if bind is not None:
            bind.dispose()
