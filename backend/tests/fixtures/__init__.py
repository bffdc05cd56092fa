"""
Test Fixtures Package
"""

from .sample_data import (
    SAMPLE_POLL_JOB,
    SAMPLE_POLL_JOB_ALBUM_COVER,
    SAMPLE_POLL_JOB_IMAGE_URL,
    SAMPLE_POLL_JOB_NO_IMAGE,
    SAMPLE_JOBS,
    SAMPLE_IMAGE_BYTES,
    get_sample_poll_job,
    get_sample_jobs,
)

__all__ = [
    'SAMPLE_POLL_JOB',
    'SAMPLE_POLL_JOB_ALBUM_COVER',
    'SAMPLE_POLL_JOB_IMAGE_URL',
    'SAMPLE_POLL_JOB_NO_IMAGE',
    'SAMPLE_JOBS',
    'SAMPLE_IMAGE_BYTES',
    'get_sample_poll_job',
    'get_sample_jobs',
]
