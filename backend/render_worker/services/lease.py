"""
Lease Keeper - Heartbeat a claimed job while the pipeline runs
"""

import threading
from typing import Optional

from render_worker.services.observability import logger
from render_worker.services.queue_store import JobStore


class LeaseKeeper:
    """
    Renew the lease on one job from a background thread

    Used as a context manager around the pipeline. If the worker process
    dies, renewals stop and the lease expires, letting another worker
    reclaim the job.
    """

    def __init__(
        self,
        store: JobStore,
        job_id: str,
        worker_id: str,
        interval_s: float,
    ):
        self.store = store
        self.job_id = job_id
        self.worker_id = worker_id
        self.interval_s = interval_s
        self.lost = False
        self.renewals = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "LeaseKeeper":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.stop()
        return False

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            name=f"lease-{self.job_id}",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval_s + 5)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            try:
                renewed = self.store.renew_lease(self.job_id, self.worker_id)
            except Exception as e:
                logger.warning(
                    "lease_renew_failed",
                    job_id=self.job_id,
                    worker_id=self.worker_id,
                    error=str(e),
                )
                continue

            if not renewed:
                self.lost = True
                logger.error("lease_lost", job_id=self.job_id, worker_id=self.worker_id)
                return

            self.renewals += 1
            logger.debug("lease_renewed", job_id=self.job_id, renewals=self.renewals)
