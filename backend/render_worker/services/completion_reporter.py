"""
Completion Reporter - Record exactly one terminal outcome per job attempt
"""

import threading
from collections import OrderedDict

from render_worker.models.render_job import RenderJob
from render_worker.services.observability import logger
from render_worker.services.queue_store import JobStore

# Attempts remembered for duplicate detection
MAX_TRACKED_ATTEMPTS = 10_000


class CompletionReporter:
    """
    Send complete or fail to the store, once per attempt

    A report that fails in transit is logged and dropped. There is no retry,
    so such a job stays claimed until its lease (if any) runs out.
    """

    def __init__(self, store: JobStore, worker_id: str):
        self.store = store
        self.worker_id = worker_id
        self._reported: "OrderedDict[str, str]" = OrderedDict()
        self._lock = threading.Lock()

    def _reserve(self, job: RenderJob, outcome: str) -> bool:
        with self._lock:
            previous = self._reported.get(job.attempt_id)
            if previous is not None:
                logger.warning(
                    "report_duplicate_ignored",
                    job_id=job.job_id,
                    outcome=outcome,
                    already_reported=previous,
                )
                return False
            self._reported[job.attempt_id] = outcome
            while len(self._reported) > MAX_TRACKED_ATTEMPTS:
                self._reported.popitem(last=False)
        return True

    def complete(self, job: RenderJob, output_url: str) -> bool:
        """
        Report success

        Args:
            job: The claimed job
            output_url: Public URL of the published video

        Returns:
            True if the store accepted the report
        """
        if not self._reserve(job, "completed"):
            return False

        try:
            self.store.complete(job.job_id, self.worker_id, output_url)
        except Exception as e:
            logger.error(
                "report_failed",
                job_id=job.job_id,
                outcome="completed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.info("job_reported", job_id=job.job_id, outcome="completed", output_url=output_url)
        return True

    def fail(self, job: RenderJob, error_message: str) -> bool:
        """
        Report failure

        Args:
            job: The claimed job
            error_message: Which stage failed and why

        Returns:
            True if the store accepted the report
        """
        if not self._reserve(job, "failed"):
            return False

        try:
            self.store.fail(job.job_id, self.worker_id, error_message)
        except Exception as e:
            logger.error(
                "report_failed",
                job_id=job.job_id,
                outcome="failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        logger.info("job_reported", job_id=job.job_id, outcome="failed", error=error_message)
        return True
