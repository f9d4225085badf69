"""Runtime status of workers and jobs.

Status is never stored. It is derived on every read from the phase of the pod
and, once a container has exited, from its terminated record.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from .substrate import Pod

__all__ = [
    "JobStatus",
    "ExecutionState",
    "IN_FLIGHT",
    "phase_of",
    "derive_status",
]


class JobStatus(StrEnum):
    """Runtime status of a worker or job."""

    PENDING = "Pending"
    STARTING = "Starting"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"


IN_FLIGHT = frozenset({JobStatus.PENDING, JobStatus.STARTING, JobStatus.RUNNING})
"""Statuses of work that has not finished yet."""

_PHASES: dict[str, JobStatus] = {
    "Pending": JobStatus.PENDING,
    "Running": JobStatus.RUNNING,
    "Succeeded": JobStatus.SUCCEEDED,
    "Failed": JobStatus.FAILED,
    "Unknown": JobStatus.UNKNOWN,
}

# Statuses where the pod has no meaningful start time yet
_NOT_STARTED = frozenset({JobStatus.PENDING, JobStatus.STARTING, JobStatus.UNKNOWN})


@dataclass(frozen=True)
class ExecutionState:
    """Status and timing of an execution unit, as derived from its pod."""

    status: JobStatus
    start_time: datetime | None = None
    end_time: datetime | None = None
    """Set once the container has exited."""

    exit_code: int = 0

    @property
    def in_flight(self) -> bool:
        """Return True if the unit has not reached a terminal state."""
        return self.status in IN_FLIGHT

    @property
    def finished(self) -> bool:
        """Return True if a container exit was recorded."""
        return self.end_time is not None


def phase_of(pod: Pod) -> JobStatus:
    """Map a pod phase onto a JobStatus.

    A pending pod whose containers already report state (pulling images,
    being created) is starting. Any phase not known here is unknown.
    """
    status = _PHASES.get(pod.phase or "", JobStatus.UNKNOWN)
    if status == JobStatus.PENDING and any(
        s.has_state for s in pod.container_statuses
    ):
        return JobStatus.STARTING
    return status


def derive_status(pod: Pod) -> ExecutionState:
    """Derive the ExecutionState of a pod without modifying it."""
    status = phase_of(pod)
    start_time = None if status in _NOT_STARTED else pod.start_time
    if pod.container_statuses and (
        terminated := pod.container_statuses[0].terminated
    ) is not None:
        return ExecutionState(
            status=status,
            start_time=start_time,
            end_time=terminated.finished_at,
            exit_code=terminated.exit_code,
        )
    return ExecutionState(status=status, start_time=start_time)
