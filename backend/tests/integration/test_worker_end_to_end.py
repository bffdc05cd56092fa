"""
End-to-end worker tests: database queue, real fetcher and publisher
"""

import os

import httpx
import pytest

from conftest import StubRenderer
from fixtures import SAMPLE_IMAGE_BYTES
from render_worker.models.render_job import JobStatus
from render_worker.services.completion_reporter import CompletionReporter
from render_worker.services.job_claimer import JobClaimer
from render_worker.services.media_fetcher import MediaFetcher
from render_worker.services.storage_publisher import LocalStoragePublisher
from render_worker.workers.pipeline import RenderPipeline
from render_worker.workers.scheduler import Scheduler

pytestmark = pytest.mark.integration


def _cdn(request):
    if request.url.path.startswith("/missing"):
        return httpx.Response(404)
    if request.url.path.startswith("/moved"):
        return httpx.Response(302, headers={"location": "/covers/moved.png"})
    return httpx.Response(200, content=SAMPLE_IMAGE_BYTES, headers={"content-type": "image/png"})


@pytest.fixture
def scheduler(db_store, work_dir, static_root):
    fetcher = MediaFetcher(
        work_dir=str(work_dir),
        client=httpx.Client(transport=httpx.MockTransport(_cdn)),
    )
    pipeline = RenderPipeline(
        fetcher=fetcher,
        renderer=StubRenderer(),
        publisher=LocalStoragePublisher(str(static_root)),
        reporter=CompletionReporter(db_store, "worker-1"),
        work_dir=str(work_dir),
        store=db_store,
        lease_interval_s=60,
    )
    yield Scheduler(JobClaimer(db_store, "worker-1"), pipeline, poll_interval_s=0.01)
    fetcher.close()


def test_queue_drains_to_terminal_states(db_store, scheduler, work_dir, static_root):
    ok = db_store.enqueue("https://cdn.example.com/covers/a.jpg", artist="A", title="One")
    moved = db_store.enqueue("https://cdn.example.com/moved/b.jpg", artist="B", title="Two")
    missing = db_store.enqueue("https://cdn.example.com/missing/c.jpg", artist="C", title="Three")

    outcomes = [scheduler.run_once() for _ in range(3)]

    assert scheduler.run_once() is None
    assert [o.status for o in outcomes] == [JobStatus.COMPLETED, JobStatus.COMPLETED, JobStatus.FAILED]
    assert all(o.reported for o in outcomes)

    done = db_store.get_job(ok.job_id)
    assert done.status == JobStatus.COMPLETED
    assert done.output_url == f"/static/videos/{ok.job_id}.mp4"
    assert (static_root / "videos" / f"{ok.job_id}.mp4").read_bytes() == SAMPLE_IMAGE_BYTES

    assert db_store.get_job(moved.job_id).status == JobStatus.COMPLETED

    failed = db_store.get_job(missing.job_id)
    assert failed.status == JobStatus.FAILED
    assert failed.output_url is None
    assert failed.error_message == "fetch failed: Download failed: HTTP 404"

    assert os.listdir(work_dir) == []


def test_two_workers_share_queue_without_overlap(db_store, work_dir, static_root):
    job_ids = {db_store.enqueue(f"https://cdn.example.com/covers/{i}.jpg").job_id for i in range(6)}
    processed = {"worker-1": [], "worker-2": []}

    fetcher = MediaFetcher(work_dir=str(work_dir), client=httpx.Client(transport=httpx.MockTransport(_cdn)))
    schedulers = {
        worker_id: Scheduler(
            JobClaimer(db_store, worker_id),
            RenderPipeline(
                fetcher=fetcher,
                renderer=StubRenderer(),
                publisher=LocalStoragePublisher(str(static_root)),
                reporter=CompletionReporter(db_store, worker_id),
                work_dir=str(work_dir),
            ),
            poll_interval_s=0.01,
        )
        for worker_id in processed
    }

    while True:
        progressed = False
        for worker_id, scheduler in schedulers.items():
            outcome = scheduler.run_once()
            if outcome is not None:
                processed[worker_id].append(outcome.job_id)
                progressed = True
        if not progressed:
            break
    fetcher.close()

    all_processed = processed["worker-1"] + processed["worker-2"]
    assert sorted(all_processed) == sorted(job_ids)
    assert processed["worker-1"] and processed["worker-2"]
    assert all(db_store.get_job(job_id).status == JobStatus.COMPLETED for job_id in job_ids)
