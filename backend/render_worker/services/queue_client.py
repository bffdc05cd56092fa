"""
Queue Client - Job store backed by the worker HTTP API
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from render_worker.config.constants import (
    QUEUE_HEARTBEAT_ENDPOINT,
    QUEUE_POLL_ENDPOINT,
    QUEUE_STATUS_DONE,
    QUEUE_STATUS_ERROR,
    QUEUE_UPDATE_ENDPOINT,
)
from render_worker.models.render_job import JobStatus, RenderJob
from render_worker.services.observability import logger
from render_worker.services.queue_store import QueueStoreError


def _as_text(value: Any) -> Optional[str]:
    """Display metadata is passed through as text, whatever type the producer used"""
    return None if value is None else str(value)


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        field = ".".join(str(part) for part in err["loc"])
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)


class HttpJobStore:
    """
    Talk to the render queue through its worker endpoints

    POST /worker-poll claims at most one job; POST /worker-update records the
    terminal result; POST /worker-heartbeat extends the lease on a claim.
    Every request carries the shared secret in X-WORKER-KEY.
    """

    def __init__(
        self,
        api_url: str,
        worker_secret: str,
        lease_ttl_s: int = 0,
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize queue client"""
        self.api_url = api_url.rstrip("/")
        self.lease_ttl_s = lease_ttl_s
        self.heartbeat_supported = True
        self.client = client or httpx.Client(timeout=timeout_s)
        self.client.headers.update({"X-WORKER-KEY": worker_secret})

    def _post(self, endpoint: str, body: Dict[str, Any]) -> httpx.Response:
        url = f"{self.api_url}/{endpoint}"
        try:
            return self.client.post(url, json=body)
        except httpx.HTTPError as e:
            raise QueueStoreError(f"{endpoint} request failed: {type(e).__name__}: {e}") from e

    def claim_next(self, worker_id: str) -> Optional[RenderJob]:
        """
        Poll for the next job

        Args:
            worker_id: Identity of this worker

        Returns:
            Claimed RenderJob, or None when the queue is empty. A claimed job
            whose fields cannot be read is reported failed and also yields None

        Raises:
            QueueStoreError: If the poll request fails
        """
        body: Dict[str, Any] = {"worker_id": worker_id}
        if self.lease_ttl_s:
            body["lease_ttl_s"] = self.lease_ttl_s

        response = self._post(QUEUE_POLL_ENDPOINT, body)
        if not response.is_success:
            raise QueueStoreError(
                f"Poll failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise QueueStoreError(f"Poll returned invalid JSON: {e}") from e

        job = (data or {}).get("job")
        if not job:
            return None

        if job.get("id") is None:
            raise QueueStoreError("Poll returned a job without an id")

        try:
            return self.parse_job(job, worker_id)
        except ValidationError as e:
            # The server already holds the claim, so the job must still be finished
            job_id = str(job["id"])
            reason = _describe_validation_error(e)
            logger.error("job_payload_invalid", job_id=job_id, error=reason)
            self.fail(job_id, worker_id, f"Invalid job payload: {reason}")
            return None

    @staticmethod
    def parse_job(job: Dict[str, Any], worker_id: str) -> RenderJob:
        """
        Normalise a queue row into a RenderJob

        The image may sit under payload.images[0], payload.album_cover_url or
        payload.image_url depending on which producer queued the job. A job
        without any of them gets an empty image_url and fails at fetch.
        """
        payload = job.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        image_url = None
        images = payload.get("images")
        if isinstance(images, list) and images and images[0]:
            image_url = images[0]
        elif payload.get("album_cover_url"):
            image_url = payload["album_cover_url"]
        elif payload.get("image_url"):
            image_url = payload["image_url"]
        elif job.get("image_url"):
            image_url = job["image_url"]

        return RenderJob(
            job_id=str(job["id"]),
            image_url=image_url or "",
            artist=_as_text(payload.get("artist") or job.get("artist")),
            title=_as_text(payload.get("title") or job.get("title")),
            status=JobStatus.CLAIMED,
            worker_id=worker_id,
            lease_expires_at=job.get("lease_expires_at"),
        )

    def _update(
        self,
        job_id: str,
        status: str,
        result: Dict[str, Any],
        error_message: Optional[str],
    ) -> None:
        response = self._post(
            QUEUE_UPDATE_ENDPOINT,
            {
                "id": job_id,
                "status": status,
                "result": result,
                "error_message": error_message,
            },
        )
        if not response.is_success:
            raise QueueStoreError(
                f"Update failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        logger.info("queue_update_accepted", job_id=job_id, status=status)

    def complete(self, job_id: str, worker_id: str, output_url: str) -> None:
        """Report success with the public video URL"""
        self._update(
            job_id,
            QUEUE_STATUS_DONE,
            {
                "success": True,
                "url": output_url,
                "worker": worker_id,
                "finished_at": datetime.now(timezone.utc).isoformat(),
            },
            None,
        )

    def fail(self, job_id: str, worker_id: str, error_message: str) -> None:
        """Report failure with a human-readable reason"""
        self._update(
            job_id,
            QUEUE_STATUS_ERROR,
            {
                "success": False,
                "worker": worker_id,
                "finished_at": datetime.now(timezone.utc).isoformat(),
            },
            error_message,
        )

    def renew_lease(self, job_id: str, worker_id: str) -> bool:
        """
        Send a heartbeat for a claimed job

        Queue APIs without a heartbeat endpoint answer 404. That switches
        heartbeats off for this client; the claim is then kept until reported.

        Returns:
            False if the queue says the claim no longer belongs to this worker

        Raises:
            QueueStoreError: On transport failure or unexpected status
        """
        if not self.heartbeat_supported:
            return True

        response = self._post(
            QUEUE_HEARTBEAT_ENDPOINT,
            {"id": job_id, "worker_id": worker_id, "lease_ttl_s": self.lease_ttl_s},
        )
        if response.status_code == 404:
            self.heartbeat_supported = False
            logger.warning(
                "heartbeat_unsupported",
                job_id=job_id,
                endpoint=QUEUE_HEARTBEAT_ENDPOINT,
            )
            return True
        if response.status_code in (409, 410):
            return False
        if not response.is_success:
            raise QueueStoreError(
                f"Heartbeat failed: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        return True

    def close(self) -> None:
        """Close HTTP client"""
        self.client.close()
