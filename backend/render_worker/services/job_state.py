"""
Job State Management Service
"""

from typing import Union

from render_worker.models.render_job import JobStatus


class JobStateError(Exception):
    """Exception raised for invalid state transitions"""

    pass


# Valid state transitions
VALID_TRANSITIONS = {
    JobStatus.QUEUED: [JobStatus.CLAIMED],
    JobStatus.CLAIMED: [JobStatus.COMPLETED, JobStatus.FAILED],
    JobStatus.COMPLETED: [],  # Terminal state
    JobStatus.FAILED: [],  # Terminal state
}


def _as_status(value: Union[str, JobStatus]) -> JobStatus:
    return value if isinstance(value, JobStatus) else JobStatus(value)


def validate_transition(
    current_status: Union[str, JobStatus],
    new_status: Union[str, JobStatus],
) -> JobStatus:
    """
    Validate a status change against the job lifecycle

    Args:
        current_status: Status the job is in now
        new_status: Status the caller wants to move to

    Returns:
        The validated target status

    Raises:
        JobStateError: If transition is invalid
    """
    current = _as_status(current_status)
    target = _as_status(new_status)
    allowed = VALID_TRANSITIONS.get(current, [])

    if target not in allowed:
        raise JobStateError(
            f"Invalid state transition: {current.value} -> {target.value}. "
            f"Valid transitions from {current.value}: {[s.value for s in allowed]}"
        )

    return target


def is_terminal_state(status: Union[str, JobStatus]) -> bool:
    """
    Check if status is a terminal state

    Args:
        status: Job status

    Returns:
        True if status is completed or failed
    """
    return _as_status(status) in (JobStatus.COMPLETED, JobStatus.FAILED)
