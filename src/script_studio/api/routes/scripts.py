"""Script storage and synchronous execution routes.

Endpoints:
    POST /scripts                          Store a script
    GET  /scripts                          List stored scripts
    GET  /scripts/{script_id}              Retrieve a script
    PATCH /scripts/{script_id}             Edit a script
    POST /scripts/{script_id}/execute      Run it now, returns the finished record
    GET  /scripts/{script_id}/executions   Recent execution records
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from script_studio.api.dependencies import get_runtime
from script_studio.api.schemas import (
    CreateScriptRequest,
    ExecuteScriptRequest,
    ExecutionRecordResponse,
    ScriptResponse,
    UpdateScriptRequest,
)
from script_studio.execution.library import script_from_source, script_patch
from script_studio.runtime import Runtime

router = APIRouter(prefix="/scripts", tags=["scripts"])

RuntimeDep = Annotated[Runtime, Depends(get_runtime)]

_DEFAULT_TRIGGER = "api"


@router.post("", status_code=201, response_model=ScriptResponse)
def create_script(request: CreateScriptRequest, runtime: RuntimeDep) -> ScriptResponse:
    try:
        payload = script_from_source(
            request.content,
            name=request.name,
            description=request.description,
            tags=request.tags,
            requirements=request.requirements,
            metadata=request.metadata,
        )
        script = runtime.scripts.create(payload)
    except ValueError as error:
        raise HTTPException(status_code=422, detail=str(error)) from error
    return ScriptResponse(**script.to_payload())


@router.get("", response_model=list[ScriptResponse])
def list_scripts(
    runtime: RuntimeDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
) -> list[ScriptResponse]:
    return [
        ScriptResponse(**script.to_payload())
        for script in runtime.scripts.list_scripts(limit=limit)
    ]


@router.get("/{script_id}", response_model=ScriptResponse)
def get_script(script_id: str, runtime: RuntimeDep) -> ScriptResponse:
    script = runtime.scripts.get(script_id)
    if script is None:
        raise HTTPException(status_code=404, detail=f"Script not found: {script_id}")
    return ScriptResponse(**script.to_payload())


@router.patch("/{script_id}", response_model=ScriptResponse)
def update_script(
    script_id: str,
    request: UpdateScriptRequest,
    runtime: RuntimeDep,
) -> ScriptResponse:
    patch = script_patch(
        content=request.content,
        name=request.name,
        description=request.description,
        tags=request.tags,
        requirements=request.requirements,
        metadata=request.metadata,
    )
    try:
        script = runtime.scripts.update(script_id, patch)
    except ValueError as error:
        raise HTTPException(status_code=422, detail=str(error)) from error
    if script is None:
        raise HTTPException(status_code=404, detail=f"Script not found: {script_id}")
    return ScriptResponse(**script.to_payload())


@router.post("/{script_id}/execute", response_model=ExecutionRecordResponse)
def execute_script(
    script_id: str,
    request: ExecuteScriptRequest,
    runtime: RuntimeDep,
) -> ExecutionRecordResponse:
    """Run the script synchronously and return its finalized record.

    Declared as a plain function so the child process blocks a worker
    thread, not the event loop.
    """

    script = runtime.scripts.get(script_id)
    if script is None:
        raise HTTPException(status_code=404, detail=f"Script not found: {script_id}")
    record = runtime.engine.execute(
        script,
        request.inputs,
        triggered_by=request.triggered_by or _DEFAULT_TRIGGER,
        timeout_seconds=request.timeout_seconds,
        is_scheduled=request.is_scheduled,
    )
    return ExecutionRecordResponse(**record.to_payload())


@router.get("/{script_id}/executions", response_model=list[ExecutionRecordResponse])
def list_executions(
    script_id: str,
    runtime: RuntimeDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 20,
) -> list[ExecutionRecordResponse]:
    if runtime.scripts.get(script_id) is None:
        raise HTTPException(status_code=404, detail=f"Script not found: {script_id}")
    return [
        ExecutionRecordResponse(**record.to_payload())
        for record in runtime.executions.list_for_script(script_id, limit=limit)
    ]
