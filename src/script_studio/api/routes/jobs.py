"""Job submission and polling routes.

Endpoints:
    POST /jobs                  Submit a job, returns its id immediately
    GET  /jobs                  List recent jobs
    GET  /jobs/{job_id}         Poll status, progress and outcome
    POST /jobs/{job_id}/script  Store a completed generation as a script
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from script_studio.api.dependencies import get_runtime
from script_studio.api.schemas import (
    JobStatusResponse,
    JobSummary,
    ScriptResponse,
    SubmitJobRequest,
    SubmitJobResponse,
)
from script_studio.execution.library import script_from_job
from script_studio.jobs.models import JobStatus
from script_studio.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])

RuntimeDep = Annotated[Runtime, Depends(get_runtime)]


@router.post("", status_code=202, response_model=SubmitJobResponse)
def submit_job(request: SubmitJobRequest, runtime: RuntimeDep) -> SubmitJobResponse:
    """Create a pending job and start it in the background."""

    try:
        job_id = runtime.processor.submit(
            request.kind,
            request.input,
            backends=request.backends,
        )
    except ValueError as error:
        raise HTTPException(status_code=422, detail=str(error)) from error
    return SubmitJobResponse(id=job_id, status=JobStatus.PENDING)


@router.get("", response_model=list[JobSummary])
def list_jobs(
    runtime: RuntimeDep,
    status: JobStatus | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[JobSummary]:
    return [
        JobSummary(
            id=job.job_id,
            kind=job.kind,
            status=job.status,
            progress=job.progress,
            error=job.error,
            created_at=job.created_at,
            completed_at=job.completed_at,
        )
        for job in runtime.processor.list_jobs(status=status, limit=limit)
    ]


@router.get("/{job_id}", response_model=JobStatusResponse)
def get_job(job_id: str, runtime: RuntimeDep) -> JobStatusResponse:
    job = runtime.processor.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return JobStatusResponse(**job.to_poll_payload())


@router.post("/{job_id}/script", status_code=201, response_model=ScriptResponse)
def save_job_script(
    job_id: str,
    runtime: RuntimeDep,
    name: str | None = None,
) -> ScriptResponse:
    job = runtime.processor.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    try:
        payload = script_from_job(job, name=name)
    except ValueError as error:
        raise HTTPException(status_code=409, detail=str(error)) from error
    script = runtime.scripts.create(payload)
    logger.info("Stored script %s from job %s", script.script_id, job_id)
    return ScriptResponse(**script.to_payload())
