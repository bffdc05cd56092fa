"""
Scheduler Loop - poll for jobs on a fixed interval, one job at a time
"""

import threading
import time
from typing import Optional

from render_worker.services.job_claimer import JobClaimer
from render_worker.services.observability import logger
from render_worker.workers.pipeline import JobOutcome, RenderPipeline


class Scheduler:
    """
    Drive the claim → pipeline cycle

    Each tick claims at most one job and runs it to a terminal state before
    the next tick. stop() only prevents further ticks; a job already running
    is always finished.
    """

    def __init__(
        self,
        claimer: JobClaimer,
        pipeline: RenderPipeline,
        poll_interval_s: float,
    ):
        self.claimer = claimer
        self.pipeline = pipeline
        self.poll_interval_s = poll_interval_s
        self.jobs_processed = 0
        self._stop = threading.Event()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        """Stop scheduling new ticks"""
        self._stop.set()

    def run_once(self) -> Optional[JobOutcome]:
        """
        Run a single tick

        Returns:
            Outcome of the processed job, or None if no job was claimed
        """
        job = self.claimer.claim()
        if job is None:
            return None

        outcome = self.pipeline.process(job)
        self.jobs_processed += 1
        return outcome

    def run(self) -> None:
        """Tick until stop() is called"""
        logger.info(
            "scheduler_started",
            worker_id=self.claimer.worker_id,
            poll_interval_s=self.poll_interval_s,
        )

        while not self._stop.is_set():
            tick_started = time.monotonic()
            try:
                self.run_once()
            except Exception as e:
                logger.error(
                    "tick_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

            remaining = self.poll_interval_s - (time.monotonic() - tick_started)
            if remaining > 0:
                self._stop.wait(remaining)

        logger.info(
            "scheduler_stopped",
            worker_id=self.claimer.worker_id,
            jobs_processed=self.jobs_processed,
        )
