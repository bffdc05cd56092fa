"""
Pytest Configuration and Fixtures
"""

import shutil
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple

import httpx
import pytest

from fixtures import SAMPLE_IMAGE_BYTES, get_sample_jobs
from render_worker.config.settings import WorkerSettings, load_settings
from render_worker.models.render_job import RenderJob
from render_worker.services.completion_reporter import CompletionReporter
from render_worker.services.media_fetcher import MediaFetcher
from render_worker.services.storage import DatabaseJobStore
from render_worker.services.storage_publisher import LocalStoragePublisher
from render_worker.workers.pipeline import RenderPipeline


WORKER_ENV_VARS = [
    "WORKER_ID",
    "WORKER_API_URL",
    "WORKER_SECRET",
    "QUEUE_BACKEND",
    "DATABASE_URL",
    "LEASE_TTL_S",
    "HEARTBEAT_INTERVAL_S",
    "PUBLISHER_BACKEND",
    "SUPABASE_URL",
    "SUPABASE_SERVICE_KEY",
    "POLL_INTERVAL_MS",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep host environment and .env files out of settings"""
    for key in WORKER_ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def work_dir(tmp_path) -> Path:
    """Per-test work directory for downloads and renders"""
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def static_root(tmp_path) -> Path:
    """Per-test static directory for the local publisher"""
    path = tmp_path / "static"
    path.mkdir()
    return path


@pytest.fixture
def worker_settings(tmp_path, work_dir, static_root) -> WorkerSettings:
    """Database queue and local publisher, no external services"""
    return load_settings(
        worker_id="test-worker",
        queue_backend="database",
        database_url=f"sqlite:///{tmp_path / 'queue.db'}",
        publisher_backend="local",
        static_root=str(static_root),
        work_dir=str(work_dir),
        poll_interval_ms=10,
        lease_ttl_s=0,
    )


@pytest.fixture
def db_store(tmp_path) -> Generator[DatabaseJobStore, None, None]:
    """SQLite-backed job store in a temp file"""
    store = DatabaseJobStore.from_url(f"sqlite:///{tmp_path / 'queue.db'}", lease_ttl_s=300)
    yield store
    store.close()


@pytest.fixture
def queued_jobs(db_store) -> List[RenderJob]:
    """Sample jobs already in the database queue"""
    return [db_store.enqueue(**job) for job in get_sample_jobs()]


@pytest.fixture
def sample_job() -> RenderJob:
    """A job as handed to the pipeline after a claim"""
    return RenderJob(
        job_id="job-123",
        image_url="https://cdn.example.com/covers/kind-of-blue.jpg",
        artist="Miles Davis",
        title="Kind of Blue",
        worker_id="test-worker",
    )


class FakeStore:
    """In-memory JobStore that records every call"""

    def __init__(self, jobs: Optional[List[RenderJob]] = None):
        self.jobs = list(jobs or [])
        self.completed: List[Tuple[str, str, str]] = []
        self.failed: List[Tuple[str, str, str]] = []
        self.renewals: List[Tuple[str, str]] = []
        self.renew_result = True
        self.claim_error: Optional[Exception] = None
        self.report_error: Optional[Exception] = None
        self.closed = False

    def claim_next(self, worker_id: str) -> Optional[RenderJob]:
        if self.claim_error is not None:
            raise self.claim_error
        if not self.jobs:
            return None
        return self.jobs.pop(0)

    def complete(self, job_id: str, worker_id: str, output_url: str) -> None:
        if self.report_error is not None:
            raise self.report_error
        self.completed.append((job_id, worker_id, output_url))

    def fail(self, job_id: str, worker_id: str, error_message: str) -> None:
        if self.report_error is not None:
            raise self.report_error
        self.failed.append((job_id, worker_id, error_message))

    def renew_lease(self, job_id: str, worker_id: str) -> bool:
        self.renewals.append((job_id, worker_id))
        return self.renew_result

    def close(self) -> None:
        self.closed = True


class StubRenderer:
    """Renderer that copies the input instead of running ffmpeg"""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Tuple[str, str]] = []

    def render(self, image_path, output_path, artist=None, title=None) -> Dict:
        self.calls.append((image_path, output_path))
        if self.error is not None:
            raise self.error
        shutil.copyfile(image_path, output_path)
        return {"output_path": output_path}


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


def image_transport(body: bytes = SAMPLE_IMAGE_BYTES) -> httpx.MockTransport:
    """Transport that serves body for every GET"""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": "image/png"})

    return httpx.MockTransport(handler)


@pytest.fixture
def fetcher(work_dir) -> Generator[MediaFetcher, None, None]:
    """Fetcher whose HTTP client never leaves the process"""
    fetcher = MediaFetcher(
        work_dir=str(work_dir),
        client=httpx.Client(transport=image_transport(), follow_redirects=False),
    )
    yield fetcher
    fetcher.close()


@pytest.fixture
def local_publisher(static_root) -> LocalStoragePublisher:
    return LocalStoragePublisher(static_root=str(static_root), static_url_prefix="/static")


@pytest.fixture
def make_pipeline(fetcher, local_publisher, work_dir):
    """Factory for a pipeline around a store, with test doubles for I/O"""

    def _make(store, renderer=None, publisher=None, lease_interval_s=None) -> RenderPipeline:
        return RenderPipeline(
            fetcher=fetcher,
            renderer=renderer or StubRenderer(),
            publisher=publisher or local_publisher,
            reporter=CompletionReporter(store, "test-worker"),
            work_dir=str(work_dir),
            store=store,
            lease_interval_s=lease_interval_s,
        )

    return _make
