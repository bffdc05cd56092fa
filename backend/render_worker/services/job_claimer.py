"""
Job Claimer - Obtain at most one job per call from the queue
"""

from typing import Optional

from render_worker.models.render_job import RenderJob
from render_worker.services.observability import log_job_claimed, logger
from render_worker.services.queue_store import JobStore


class JobClaimer:
    """Ask the store for one job on behalf of this worker"""

    def __init__(self, store: JobStore, worker_id: str):
        self.store = store
        self.worker_id = worker_id

    def claim(self) -> Optional[RenderJob]:
        """
        Claim the next job

        Store and transport errors end the tick quietly: they are logged and
        reported as "no job".

        Returns:
            Claimed RenderJob or None
        """
        try:
            job = self.store.claim_next(self.worker_id)
        except Exception as e:
            logger.error(
                "claim_failed",
                worker_id=self.worker_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        if job is None:
            logger.debug("queue_empty", worker_id=self.worker_id)
            return None

        log_job_claimed(
            job_id=job.job_id,
            worker_id=self.worker_id,
            image_url=job.image_url,
            lease_expires_at=job.lease_expires_at.isoformat() if job.lease_expires_at else None,
        )
        return job
