"""
Job Queue Store Contract
"""

from typing import Optional, Protocol

from render_worker.models.render_job import RenderJob


class QueueStoreError(Exception):
    """Transport or store failure while talking to the job queue"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class JobStore(Protocol):
    """
    Operations the worker needs from the external job queue

    Exclusivity of claims is a property of the implementation; the worker
    never coordinates with other workers on its own.
    """

    def claim_next(self, worker_id: str) -> Optional[RenderJob]:
        """Atomically claim one queued job for worker_id, or return None."""
        ...

    def complete(self, job_id: str, worker_id: str, output_url: str) -> None:
        """Mark a claimed job completed with its published URL."""
        ...

    def fail(self, job_id: str, worker_id: str, error_message: str) -> None:
        """Mark a claimed job failed with a human-readable reason."""
        ...

    def renew_lease(self, job_id: str, worker_id: str) -> bool:
        """Extend the lease on a claimed job; False if the lease was lost."""
        ...

    def close(self) -> None:
        ...
