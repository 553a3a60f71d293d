"""Execution history across scripts.

Endpoints:
    GET /executions   Most recent execution records of all scripts
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from script_studio.api.dependencies import get_runtime
from script_studio.api.schemas import ExecutionRecordResponse
from script_studio.runtime import Runtime

router = APIRouter(prefix="/executions", tags=["executions"])

RuntimeDep = Annotated[Runtime, Depends(get_runtime)]


@router.get("", response_model=list[ExecutionRecordResponse])
def list_recent_executions(
    runtime: RuntimeDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> list[ExecutionRecordResponse]:
    return [
        ExecutionRecordResponse(**record.to_payload())
        for record in runtime.executions.list_recent(limit=limit)
    ]
