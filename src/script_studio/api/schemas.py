"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from script_studio.execution.models import ExecutionStatus
from script_studio.jobs.models import JobKind, JobStatus


class SubmitJobRequest(BaseModel):
    """Start an asynchronous generation job."""

    kind: JobKind = JobKind.GENERATION
    input: dict[str, Any] = Field(default_factory=dict)
    backends: list[str] | None = Field(
        default=None,
        description="Backend names to try in order; defaults to the configured order.",
    )


class SubmitJobResponse(BaseModel):
    id: str
    status: JobStatus


class JobStatusResponse(BaseModel):
    """Polling view of one job."""

    id: str
    status: JobStatus
    progress: int
    result: dict[str, Any] | None = None
    error: str | None = None


class JobSummary(BaseModel):
    id: str
    kind: JobKind
    status: JobStatus
    progress: int
    error: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class CreateScriptRequest(BaseModel):
    """Store a script. Header directives fill in missing metadata."""

    name: str | None = None
    content: str = Field(min_length=1)
    description: str | None = None
    tags: list[str] | None = None
    requirements: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class UpdateScriptRequest(BaseModel):
    """Edit a stored script. Omitted fields stay unchanged."""

    name: str | None = None
    content: str | None = Field(default=None, min_length=1)
    description: str | None = None
    tags: list[str] | None = None
    requirements: list[str] | None = None
    metadata: dict[str, Any] | None = None


class ExecuteScriptRequest(BaseModel):
    inputs: dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: float | None = Field(default=None, gt=0)
    triggered_by: str | None = None
    is_scheduled: bool = False


class ScriptResponse(BaseModel):
    id: str
    name: str
    description: str
    tags: list[str]
    content: str
    requirements: list[str]
    metadata: dict[str, Any] | None = None
    lastRunAt: str | None = None
    createdAt: str
    updatedAt: str


class ExecutionRecordResponse(BaseModel):
    """Finalized execution record."""

    id: str
    scriptId: str
    triggeredBy: str
    status: ExecutionStatus
    inputs: dict[str, Any] | None = None
    stdout: str
    stderr: str
    exitCode: int | None = None
    durationMs: int | None = None
    startedAt: str | None = None
    completedAt: str | None = None
    isScheduled: bool
    createdAt: str
