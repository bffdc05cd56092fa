"""
Render Pipeline - fetch, render and publish one job, then report it
"""

import time
import uuid
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from render_worker.config.constants import VIDEO_EXTENSION
from render_worker.models.render_job import JobStatus, RenderJob
from render_worker.services.cleanup import remove_quietly
from render_worker.services.completion_reporter import CompletionReporter
from render_worker.services.error_classifier import ErrorClassifier
from render_worker.services.lease import LeaseKeeper
from render_worker.services.media_fetcher import MediaFetcher
from render_worker.services.observability import (
    log_failure_classification,
    log_job_outcome,
    log_stage_duration,
    logger,
)
from render_worker.services.queue_store import JobStore
from render_worker.services.storage_publisher import StoragePublisher
from render_worker.services.video_renderer import VideoRenderer

STAGE_FETCH = "fetch"
STAGE_RENDER = "render"
STAGE_PUBLISH = "publish"


class PipelineStageError(Exception):
    """A pipeline stage failed; the message names the stage and the reason"""

    def __init__(self, stage: str, cause: Exception, classification: Dict[str, Any]):
        self.stage = stage
        self.cause = cause
        self.classification = classification
        self.message = f"{stage} failed: {classification['message']}"
        super().__init__(self.message)


@dataclass
class JobOutcome:
    """Terminal result of one job attempt"""

    job_id: str
    status: JobStatus
    output_url: Optional[str] = None
    error_message: Optional[str] = None
    stage: Optional[str] = None
    duration_s: float = 0.0
    reported: bool = False


class RenderPipeline:
    """
    Run one claimed job to a terminal state

    Stages run strictly in order. The first failure stops the job, temp files
    are removed whatever happened, and exactly one of complete/fail goes to
    the reporter.
    """

    def __init__(
        self,
        fetcher: MediaFetcher,
        renderer: VideoRenderer,
        publisher: StoragePublisher,
        reporter: CompletionReporter,
        work_dir: str,
        store: Optional[JobStore] = None,
        lease_interval_s: Optional[float] = None,
        classifier: Optional[ErrorClassifier] = None,
    ):
        self.fetcher = fetcher
        self.renderer = renderer
        self.publisher = publisher
        self.reporter = reporter
        self.work_dir = Path(work_dir)
        self.store = store
        self.lease_interval_s = lease_interval_s
        self.classifier = classifier or ErrorClassifier()

    def process(self, job: RenderJob) -> JobOutcome:
        """
        Process job and report its outcome

        Never raises for a job-level failure.

        Args:
            job: Job claimed by this worker

        Returns:
            JobOutcome describing what was reported
        """
        started = time.monotonic()
        logger.info(
            "job_processing_start",
            job_id=job.job_id,
            artist=job.artist,
            title=job.title,
        )

        with self._lease(job):
            try:
                output_url = self._run_stages(job)
                outcome = JobOutcome(
                    job_id=job.job_id,
                    status=JobStatus.COMPLETED,
                    output_url=output_url,
                )
            except PipelineStageError as e:
                outcome = JobOutcome(
                    job_id=job.job_id,
                    status=JobStatus.FAILED,
                    error_message=e.message,
                    stage=e.stage,
                )

            outcome.duration_s = time.monotonic() - started
            log_job_outcome(
                job_id=job.job_id,
                status=outcome.status.value,
                duration_s=outcome.duration_s,
                output_url=outcome.output_url,
                error_message=outcome.error_message,
            )

            if outcome.status == JobStatus.COMPLETED:
                outcome.reported = self.reporter.complete(job, outcome.output_url)
            else:
                outcome.reported = self.reporter.fail(job, outcome.error_message)

        return outcome

    def _lease(self, job: RenderJob):
        if self.store is None or not self.lease_interval_s:
            return nullcontext()
        return LeaseKeeper(
            self.store,
            job.job_id,
            self.reporter.worker_id,
            self.lease_interval_s,
        )

    def _output_path(self, job: RenderJob) -> Path:
        return self.work_dir / f"{job.job_id}_{uuid.uuid4().hex}.{VIDEO_EXTENSION}"

    def _run_stages(self, job: RenderJob) -> str:
        input_path: Optional[Path] = None
        output_path: Optional[Path] = None
        stage = STAGE_FETCH

        try:
            stage_started = time.monotonic()
            input_path = self.fetcher.fetch(job.image_url, job.job_id)
            log_stage_duration(job.job_id, stage, time.monotonic() - stage_started)

            stage = STAGE_RENDER
            stage_started = time.monotonic()
            output_path = self._output_path(job)
            self.renderer.render(
                str(input_path),
                str(output_path),
                artist=job.artist,
                title=job.title,
            )
            log_stage_duration(job.job_id, stage, time.monotonic() - stage_started)

            stage = STAGE_PUBLISH
            stage_started = time.monotonic()
            output_url = self.publisher.publish(str(output_path), job.job_id)
            log_stage_duration(job.job_id, stage, time.monotonic() - stage_started)

            return output_url

        except Exception as e:
            classification = self.classifier.classify(e)
            log_failure_classification(
                error_code=classification["code"],
                classification=classification["classification"],
                retryable=classification["retryable"],
                stage=stage,
                job_id=job.job_id,
            )
            raise PipelineStageError(stage, e, classification) from e

        finally:
            removed = remove_quietly(input_path, output_path)
            logger.debug("job_temp_files_removed", job_id=job.job_id, paths=removed)
