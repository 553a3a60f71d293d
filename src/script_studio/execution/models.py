"""Domain models for stored scripts and their execution records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from script_studio.process import CANCELLED_EXIT_CODE, TIMEOUT_EXIT_CODE


class ExecutionStatus(str, Enum):
    """Execution record states."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


TERMINAL_EXECUTION_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.TIMEOUT},
)

TIMEOUT_MARKER = "[script-studio] execution timed out"
SETUP_FAILURE_EXIT_CODE = -1

__all__ = [
    "CANCELLED_EXIT_CODE",
    "SETUP_FAILURE_EXIT_CODE",
    "TERMINAL_EXECUTION_STATUSES",
    "TIMEOUT_EXIT_CODE",
    "TIMEOUT_MARKER",
    "ExecutionCreate",
    "ExecutionStatus",
    "ExecutionView",
    "ScriptCreate",
    "ScriptPatch",
    "ScriptView",
]


@dataclass(slots=True)
class ScriptCreate:
    """Input payload for storing a script."""

    name: str
    content: str
    description: str = ""
    tags: list[str] = field(default_factory=list)
    requirements: list[str] = field(default_factory=list)
    metadata: dict[str, Any] | None = None
    script_id: str | None = None


@dataclass(slots=True)
class ScriptPatch:
    """Partial script update. ``None`` leaves a field unchanged."""

    name: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    content: str | None = None
    requirements: list[str] | None = None
    metadata: dict[str, Any] | None = None
    last_run_at: datetime | None = None


@dataclass(slots=True)
class ScriptView:
    script_id: str
    owner_id: str
    name: str
    description: str
    tags: list[str]
    content: str
    requirements: list[str]
    metadata: dict[str, Any] | None
    last_run_at: datetime | None
    created_at: datetime
    updated_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.script_id,
            "name": self.name,
            "description": self.description,
            "tags": list(self.tags),
            "content": self.content,
            "requirements": list(self.requirements),
            "metadata": self.metadata,
            "lastRunAt": _iso(self.last_run_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(slots=True)
class ExecutionCreate:
    """A finished execution, written to the store in one insert."""

    script_id: str
    triggered_by: str
    status: ExecutionStatus
    inputs: dict[str, Any] | None
    stdout: str
    stderr: str
    exit_code: int | None
    duration_ms: int | None
    started_at: datetime | None
    completed_at: datetime | None
    is_scheduled: bool = False


@dataclass(slots=True)
class ExecutionView:
    """Stored execution record."""

    execution_id: str
    script_id: str
    triggered_by: str
    status: ExecutionStatus
    inputs: dict[str, Any] | None
    stdout: str
    stderr: str
    exit_code: int | None
    duration_ms: int | None
    started_at: datetime | None
    completed_at: datetime | None
    is_scheduled: bool
    created_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EXECUTION_STATUSES

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.execution_id,
            "scriptId": self.script_id,
            "triggeredBy": self.triggered_by,
            "status": self.status.value,
            "inputs": self.inputs,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exitCode": self.exit_code,
            "durationMs": self.duration_ms,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "isScheduled": self.is_scheduled,
            "createdAt": _iso(self.created_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
