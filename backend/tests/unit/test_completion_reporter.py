"""
Unit Tests for CompletionReporter
"""

from conftest import FakeStore
from render_worker.services.completion_reporter import CompletionReporter
from render_worker.services.queue_store import QueueStoreError


def test_complete_reports_once(sample_job):
    store = FakeStore()
    reporter = CompletionReporter(store, "test-worker")

    assert reporter.complete(sample_job, "https://cdn.example.com/job-123.mp4") is True
    assert reporter.complete(sample_job, "https://cdn.example.com/job-123.mp4") is False

    assert store.completed == [("job-123", "test-worker", "https://cdn.example.com/job-123.mp4")]


def test_fail_after_complete_is_ignored(sample_job):
    """A job attempt never gets two terminal reports."""
    store = FakeStore()
    reporter = CompletionReporter(store, "test-worker")

    reporter.complete(sample_job, "https://cdn.example.com/job-123.mp4")
    assert reporter.fail(sample_job, "render failed: boom") is False

    assert store.failed == []


def test_new_attempt_of_same_job_is_reported(sample_job):
    store = FakeStore()
    reporter = CompletionReporter(store, "test-worker")
    retry = sample_job.model_copy(update={"attempt_id": "second-attempt"})

    reporter.fail(sample_job, "fetch failed: Download failed: HTTP 503")
    reporter.complete(retry, "https://cdn.example.com/job-123.mp4")

    assert len(store.failed) == 1
    assert len(store.completed) == 1


def test_report_error_is_swallowed(sample_job):
    store = FakeStore()
    store.report_error = QueueStoreError("Update failed: HTTP 500", status_code=500)
    reporter = CompletionReporter(store, "test-worker")

    assert reporter.fail(sample_job, "render failed: boom") is False
    assert store.failed == []
