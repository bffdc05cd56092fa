"""Worker process entry point for the render worker.

Runs as one or more independent processes. Each process claims one job at a
time from the queue, renders it and reports the result; the queue's atomic
claim is the only coordination between processes.

Usage:
    render-worker run            # poll until SIGTERM/SIGINT
    render-worker run --once     # single tick, handy for cron and smoke tests
    render-worker enqueue --image-url URL [--artist A] [--title T]
                                 # database queue backend only
"""

import argparse
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from render_worker.config.settings import WorkerSettings, load_settings
from render_worker.services.completion_reporter import CompletionReporter
from render_worker.services.job_claimer import JobClaimer
from render_worker.services.media_fetcher import MediaFetcher
from render_worker.services.observability import configure_logging, logger
from render_worker.services.queue_client import HttpJobStore
from render_worker.services.queue_store import JobStore
from render_worker.services.storage import DatabaseJobStore
from render_worker.services.storage_publisher import build_publisher
from render_worker.services.video_renderer import VideoRenderer
from render_worker.workers.pipeline import RenderPipeline
from render_worker.workers.scheduler import Scheduler


def build_store(settings: WorkerSettings) -> JobStore:
    """Create the job store selected by settings"""
    if settings.queue_backend == "database":
        return DatabaseJobStore.from_url(
            settings.database_url,
            lease_ttl_s=settings.lease_ttl_s,
        )

    return HttpJobStore(
        api_url=settings.worker_api_url,
        worker_secret=settings.worker_secret,
        lease_ttl_s=settings.lease_ttl_s,
        timeout_s=settings.queue_request_timeout_s,
    )


def build_scheduler(settings: WorkerSettings, store: JobStore) -> Scheduler:
    """Wire every worker component from one settings object"""
    fetcher = MediaFetcher(
        work_dir=settings.work_dir,
        timeout_s=settings.download_timeout_s,
        max_redirects=settings.max_redirects,
        user_agent=settings.user_agent,
    )
    renderer = VideoRenderer(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
    )
    publisher = build_publisher(settings)
    reporter = CompletionReporter(store, settings.worker_id)

    pipeline = RenderPipeline(
        fetcher=fetcher,
        renderer=renderer,
        publisher=publisher,
        reporter=reporter,
        work_dir=settings.work_dir,
        store=store,
        lease_interval_s=settings.heartbeat_interval_s if settings.lease_enabled else None,
    )
    return Scheduler(
        claimer=JobClaimer(store, settings.worker_id),
        pipeline=pipeline,
        poll_interval_s=settings.poll_interval_s,
    )


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="render-worker", description="Cover art video render worker")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Poll the queue and render jobs")
    run_parser.add_argument("--once", action="store_true", help="Run a single tick and exit")

    enqueue_parser = subparsers.add_parser("enqueue", help="Queue a job (database backend)")
    enqueue_parser.add_argument("--image-url", required=True)
    enqueue_parser.add_argument("--artist")
    enqueue_parser.add_argument("--title")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.once = False
    return args


def _run(settings: WorkerSettings, once: bool) -> int:
    store = build_store(settings)
    scheduler = build_scheduler(settings, store)

    def signal_handler(signum: int, frame: object) -> None:
        logger.info(
            "shutdown_signal_received",
            signal=signum,
            signal_name=signal.Signals(signum).name,
        )
        scheduler.stop()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        if once:
            scheduler.run_once()
        else:
            scheduler.run()
    finally:
        scheduler.pipeline.fetcher.close()
        scheduler.pipeline.publisher.close()
        store.close()
        logger.info("worker_exited", worker_id=settings.worker_id)

    return 0


def _enqueue(settings: WorkerSettings, args: argparse.Namespace) -> int:
    if settings.queue_backend != "database":
        logger.error("enqueue_unsupported", queue_backend=settings.queue_backend)
        return 2

    store = DatabaseJobStore.from_url(settings.database_url, lease_ttl_s=settings.lease_ttl_s)
    try:
        job = store.enqueue(args.image_url, artist=args.artist, title=args.title)
    finally:
        store.close()

    print(job.job_id)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Worker process entry point

    Exit Codes:
        0: Clean shutdown
        1: Invalid configuration
        2: Command not supported by the configured backend
    """
    args = _parse_args(argv)

    try:
        settings = load_settings()
    except ValidationError as e:
        configure_logging()
        logger.error("configuration_load_failed", error=str(e))
        return 1

    configure_logging(settings.log_level)
    logger.info(
        "worker_configuration_loaded",
        worker_id=settings.worker_id,
        queue_backend=settings.queue_backend,
        publisher_backend=settings.publisher_backend,
        poll_interval_ms=settings.poll_interval_ms,
        lease_ttl_s=settings.lease_ttl_s,
    )

    if args.command == "enqueue":
        return _enqueue(settings, args)
    return _run(settings, args.once)


if __name__ == "__main__":
    sys.exit(main())
