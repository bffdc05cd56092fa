"""
Unit Tests for Job State Transitions
"""

import pytest

from render_worker.models.render_job import JobStatus
from render_worker.services.job_state import (
    JobStateError,
    is_terminal_state,
    validate_transition,
)


def test_validate_transition_valid():
    """Valid transitions return the target status."""
    assert validate_transition("queued", "claimed") == JobStatus.CLAIMED
    assert validate_transition(JobStatus.CLAIMED, JobStatus.COMPLETED) == JobStatus.COMPLETED
    assert validate_transition("claimed", "failed") == JobStatus.FAILED


def test_validate_transition_invalid():
    """Invalid transition raises JobStateError."""
    with pytest.raises(JobStateError):
        validate_transition("queued", "completed")


@pytest.mark.parametrize("terminal", ["completed", "failed"])
def test_terminal_states_are_final(terminal):
    for target in JobStatus:
        with pytest.raises(JobStateError):
            validate_transition(terminal, target)


def test_is_terminal_state():
    """Terminal state detection."""
    assert is_terminal_state("completed")
    assert is_terminal_state(JobStatus.FAILED)
    assert not is_terminal_state("claimed")
    assert not is_terminal_state("queued")
