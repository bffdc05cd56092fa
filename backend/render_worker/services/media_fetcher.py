"""
Media Fetcher - Download source images over HTTP(S) into the work directory
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

import httpx

from render_worker.config.constants import (
    DEFAULT_IMAGE_SUFFIX,
    DOWNLOAD_CHUNK_SIZE,
    IMAGE_SUFFIXES_BY_CONTENT_TYPE,
    REDIRECT_STATUSES,
)
from render_worker.services.observability import logger


class FetchError(Exception):
    """Source image could not be downloaded"""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        self.message = message
        self.url = url
        self.status_code = status_code
        super().__init__(self.message)


class MediaFetcher:
    """
    Download a source image to a uniquely named local file

    Redirects are followed by hand so the number of hops stays bounded.
    """

    def __init__(
        self,
        work_dir: str,
        timeout_s: float = 30.0,
        max_redirects: int = 5,
        user_agent: str = "MusicScan-Worker/1.0",
        client: Optional[httpx.Client] = None,
    ):
        """Initialize fetcher"""
        self.work_dir = Path(work_dir)
        self.max_redirects = max_redirects
        self.client = client or httpx.Client(
            timeout=timeout_s,
            follow_redirects=False,
            headers={"User-Agent": user_agent},
        )

    def fetch(self, image_url: str, job_id: str = "job") -> Path:
        """
        Download image to a temp file in the work directory

        Args:
            image_url: Location of the source image
            job_id: Job identifier, used as the temp file prefix

        Returns:
            Path to the downloaded file

        Raises:
            FetchError: On transport error, non-success status or too many redirects
        """
        if not image_url:
            raise FetchError("No image URL found in payload", image_url)

        url = image_url
        hops = 0

        logger.info("fetch_start", job_id=job_id, url=image_url)

        while True:
            try:
                with self.client.stream("GET", url) as response:
                    if response.status_code in REDIRECT_STATUSES:
                        location = response.headers.get("location")
                        if not location:
                            raise FetchError(
                                f"Download failed: HTTP {response.status_code} without Location header",
                                url,
                                response.status_code,
                            )
                        if hops >= self.max_redirects:
                            raise FetchError(
                                f"Too many redirects (max {self.max_redirects})",
                                image_url,
                                response.status_code,
                            )
                        hops += 1
                        next_url = str(response.url.join(location))
                        logger.info(
                            "fetch_redirect",
                            job_id=job_id,
                            status_code=response.status_code,
                            location=next_url,
                            hop=hops,
                        )
                        url = next_url
                        continue

                    if response.status_code != 200:
                        raise FetchError(
                            f"Download failed: HTTP {response.status_code}",
                            url,
                            response.status_code,
                        )

                    path = self._write_body(response, url, job_id)

            except httpx.HTTPError as e:
                logger.error("fetch_failed", job_id=job_id, url=url, error=str(e))
                raise FetchError(
                    f"Download failed: {type(e).__name__}: {e}",
                    url,
                ) from e
            except FetchError as e:
                logger.error("fetch_failed", job_id=job_id, url=url, error=e.message)
                raise

            logger.info(
                "fetch_complete",
                job_id=job_id,
                url=url,
                redirects=hops,
                path=str(path),
                size_bytes=path.stat().st_size,
            )
            return path

    def _write_body(self, response: httpx.Response, url: str, job_id: str) -> Path:
        """Stream the response body into a fresh temp file"""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        suffix = self._guess_suffix(response, url)
        fd, name = tempfile.mkstemp(prefix=f"{job_id}_", suffix=suffix, dir=self.work_dir)
        path = Path(name)

        try:
            written = 0
            with os.fdopen(fd, "wb") as f:
                for chunk in response.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
                    written += len(chunk)

            if written == 0:
                raise FetchError("Downloaded image is empty", url, response.status_code)
        except BaseException:
            # Never leave a partial download behind
            path.unlink(missing_ok=True)
            raise

        return path

    @staticmethod
    def _guess_suffix(response: httpx.Response, url: str) -> str:
        content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
        if content_type in IMAGE_SUFFIXES_BY_CONTENT_TYPE:
            return IMAGE_SUFFIXES_BY_CONTENT_TYPE[content_type]

        url_suffix = Path(httpx.URL(url).path).suffix.lower()
        if url_suffix in IMAGE_SUFFIXES_BY_CONTENT_TYPE.values() or url_suffix == ".jpeg":
            return url_suffix

        return DEFAULT_IMAGE_SUFFIX

    def close(self) -> None:
        """Close HTTP client"""
        self.client.close()
