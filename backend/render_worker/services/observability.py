"""
Observability and Logging Service
"""

import logging
import sys
from typing import Optional

import structlog


# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

# Get logger
logger = structlog.get_logger("render_worker")


def configure_logging(log_level: str = "INFO") -> None:
    """
    Route structlog output to stdout at the configured level

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )


def log_job_claimed(
    job_id: str,
    worker_id: str,
    image_url: str,
    lease_expires_at: Optional[str] = None,
) -> None:
    """
    Log job claim event

    Args:
        job_id: Claimed job ID
        worker_id: Identity of the claiming worker
        image_url: Source image location
        lease_expires_at: ISO timestamp of lease expiry, if leased
    """
    log_data = {
        "job_id": job_id,
        "worker_id": worker_id,
        "image_url": image_url,
    }
    if lease_expires_at:
        log_data["lease_expires_at"] = lease_expires_at

    logger.info("job_claimed", **log_data)


def log_stage_duration(job_id: str, stage: str, duration_s: float) -> None:
    """Log how long one pipeline stage took."""
    logger.info(
        "pipeline_stage_completed",
        job_id=job_id,
        stage=stage,
        duration_s=round(duration_s, 3),
    )


def log_failure_classification(
    error_code: str,
    classification: str,
    retryable: bool,
    stage: str,
    job_id: Optional[str] = None,
) -> None:
    """
    Log failure classification event

    Args:
        error_code: Error code (e.g., "NETWORK_ERROR", "RENDER_FAILED")
        classification: Error classification ("retryable" or "non_retryable")
        retryable: Whether a re-queue could plausibly succeed
        stage: Pipeline stage that failed
        job_id: Optional job ID for context
    """
    log_data = {
        "error_code": error_code,
        "classification": classification,
        "retryable": retryable,
        "stage": stage,
    }
    if job_id:
        log_data["job_id"] = job_id

    logger.error("failure_classified", **log_data)


def log_job_outcome(
    job_id: str,
    status: str,
    duration_s: float,
    output_url: Optional[str] = None,
    error_message: Optional[str] = None,
) -> None:
    """
    Log the terminal outcome of one job attempt

    Args:
        job_id: Job ID
        status: "completed" or "failed"
        duration_s: Wall time of the whole pipeline
        output_url: Published URL on success
        error_message: Failure description on failure
    """
    if status == "completed":
        logger.info(
            "job_completed",
            job_id=job_id,
            duration_s=round(duration_s, 3),
            output_url=output_url,
        )
    else:
        logger.error(
            "job_failed",
            job_id=job_id,
            duration_s=round(duration_s, 3),
            error=error_message,
        )
