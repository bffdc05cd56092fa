"""
Storage Publisher - Upload rendered videos and return their public URL
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from render_worker.config.constants import VIDEO_CONTENT_TYPE, VIDEO_EXTENSION
from render_worker.config.settings import WorkerSettings
from render_worker.services.observability import logger


class PublishError(Exception):
    """Rendered video could not be published"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class StoragePublisher:
    """
    Base publisher

    Objects are keyed only by job id, so publishing the same job twice
    overwrites the same object and yields the same URL.
    """

    def __init__(self, prefix: str = "videos"):
        self.prefix = prefix.strip("/")

    def object_path(self, job_id: str) -> str:
        """Deterministic storage key for a job's video"""
        filename = f"{job_id}.{VIDEO_EXTENSION}"
        return f"{self.prefix}/{filename}" if self.prefix else filename

    def publish(self, video_path: str, job_id: str) -> str:
        raise NotImplementedError

    def close(self) -> None:
        pass

    @staticmethod
    def _check_source(video_path: str) -> int:
        if not os.path.exists(video_path):
            raise PublishError(f"Rendered video not found: {video_path}")
        size = os.path.getsize(video_path)
        if size == 0:
            raise PublishError(f"Rendered video is empty: {video_path}")
        return size


class SupabaseStoragePublisher(StoragePublisher):
    """
    Publish to a Supabase Storage bucket with upsert

    A single object POST either stores the whole body or nothing.
    """

    def __init__(
        self,
        supabase_url: str,
        service_key: str,
        bucket: str = "renders",
        prefix: str = "videos",
        timeout_s: float = 120.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize Supabase publisher"""
        super().__init__(prefix)
        self.supabase_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.client = client or httpx.Client(timeout=timeout_s)

    def upload_url(self, job_id: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/{self.bucket}/{self.object_path(job_id)}"

    def public_url(self, job_id: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{self.object_path(job_id)}"

    def publish(self, video_path: str, job_id: str) -> str:
        """
        Upload video and return its public URL

        Args:
            video_path: Local rendered video
            job_id: Job identifier

        Returns:
            Public URL of the uploaded object

        Raises:
            PublishError: If the file is missing or the upload is rejected
        """
        size = self._check_source(video_path)
        storage_path = self.object_path(job_id)

        logger.info(
            "publish_start",
            job_id=job_id,
            bucket=self.bucket,
            storage_path=storage_path,
            size_bytes=size,
        )

        body = Path(video_path).read_bytes()

        try:
            response = self.client.post(
                self.upload_url(job_id),
                content=body,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "Content-Type": VIDEO_CONTENT_TYPE,
                    "x-upsert": "true",
                },
            )
        except httpx.HTTPError as e:
            logger.error("publish_failed", job_id=job_id, error=str(e))
            raise PublishError(f"Upload failed: {type(e).__name__}: {e}") from e

        if not response.is_success:
            logger.error(
                "publish_failed",
                job_id=job_id,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise PublishError(
                f"Upload failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        url = self.public_url(job_id)
        logger.info("publish_complete", job_id=job_id, url=url)
        return url

    def close(self) -> None:
        """Close HTTP client"""
        self.client.close()


class LocalStoragePublisher(StoragePublisher):
    """
    Publish into a statically served directory

    Files are written next to their final name and renamed into place, so a
    reader never sees a half-written video at the public URL.
    """

    def __init__(
        self,
        static_root: str,
        static_url_prefix: str = "/static",
        prefix: str = "videos",
    ):
        """Initialize local publisher"""
        super().__init__(prefix)
        self.static_root = Path(static_root)
        self.static_url_prefix = static_url_prefix.rstrip("/")

    def storage_path(self, job_id: str) -> Path:
        return self.static_root / self.object_path(job_id)

    def public_url(self, job_id: str) -> str:
        return f"{self.static_url_prefix}/{self.object_path(job_id)}"

    def publish(self, video_path: str, job_id: str) -> str:
        """
        Copy video into the static directory and return its URL

        Args:
            video_path: Local rendered video
            job_id: Job identifier

        Returns:
            URL of the published file

        Raises:
            PublishError: If the file is missing or cannot be written
        """
        self._check_source(video_path)
        target = self.storage_path(job_id)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{job_id}_", suffix=".part", dir=target.parent
            )
            try:
                with os.fdopen(fd, "wb") as dst, open(video_path, "rb") as src:
                    for chunk in iter(lambda: src.read(1024 * 1024), b""):
                        dst.write(chunk)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            logger.error("publish_failed", job_id=job_id, error=str(e))
            raise PublishError(f"Write failed: {e}") from e

        url = self.public_url(job_id)
        logger.info("publish_complete", job_id=job_id, url=url, path=str(target))
        return url


def build_publisher(settings: WorkerSettings) -> StoragePublisher:
    """Create the publisher selected by settings"""
    if settings.publisher_backend == "local":
        return LocalStoragePublisher(
            static_root=settings.static_root,
            static_url_prefix=settings.static_url_prefix,
            prefix=settings.storage_prefix,
        )

    return SupabaseStoragePublisher(
        supabase_url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        bucket=settings.storage_bucket,
        prefix=settings.storage_prefix,
        timeout_s=settings.upload_timeout_s,
    )
