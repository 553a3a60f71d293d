"""Domain models for asynchronous generation jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    """Durable job lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobKind(str, Enum):
    """What a job asks the model to produce."""

    GENERATION = "generation"
    ANALYSIS = "analysis"
    ANNOTATION = "annotation"


TERMINAL_JOB_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

ALLOWED_JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

PROGRESS_PROCESSING = 10
PROGRESS_GENERATED = 70
PROGRESS_DONE = 100


@dataclass(slots=True)
class JobCreate:
    """Input payload for creating a job."""

    kind: JobKind
    input: dict[str, Any] = field(default_factory=dict)
    job_id: str | None = None


@dataclass(slots=True)
class JobPatch:
    """Partial update applied by the job processor.

    ``None`` means "leave unchanged"; result/error consistency with the
    target status is checked by the repository.
    """

    status: JobStatus | None = None
    progress: int | None = None
    result: dict[str, Any] | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class JobView:
    """Readable job view for polling, CLI and API."""

    job_id: str
    owner_id: str
    kind: JobKind
    status: JobStatus
    input: dict[str, Any]
    result: dict[str, Any] | None
    error: str | None
    progress: int
    started_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    def to_poll_payload(self) -> dict[str, Any]:
        """Shape returned to polling clients."""

        return {
            "id": self.job_id,
            "status": self.status.value,
            "progress": self.progress,
            "result": self.result,
            "error": self.error,
        }
