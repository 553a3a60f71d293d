"""Script and execution-record persistence backed by SQLModel + SQLite."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlmodel import Session, col, select

from script_studio.execution.models import (
    TERMINAL_EXECUTION_STATUSES,
    ExecutionCreate,
    ExecutionStatus,
    ExecutionView,
    ScriptCreate,
    ScriptPatch,
    ScriptView,
)
from script_studio.storage.common import (
    SQLiteRepositoryBase,
    dump_json,
    load_json,
    optional_aware,
    to_db_datetime,
    to_utc_aware_datetime,
    utc_now,
)
from script_studio.storage.sqlmodel_models import DEFAULT_OWNER_ID, Script, ScriptExecution


class ScriptRepository(SQLiteRepositoryBase):
    """Stored scripts of one owner."""

    def __init__(
        self,
        db_path: Path,
        *,
        owner_id: str = DEFAULT_OWNER_ID,
        sqlite_busy_timeout_ms: int = 5_000,
    ) -> None:
        super().__init__(db_path, sqlite_busy_timeout_ms=sqlite_busy_timeout_ms)
        self.owner_id = owner_id

    def create(self, payload: ScriptCreate) -> ScriptView:
        if not payload.name.strip():
            raise ValueError("Script name must not be empty.")
        now = utc_now()
        with Session(self.engine) as session:
            row = Script(
                script_id=payload.script_id or str(uuid4()),
                owner_id=self.owner_id,
                name=payload.name.strip(),
                description=payload.description,
                tags_json=dump_json(list(payload.tags)),
                content=payload.content,
                requirements_json=dump_json(_clean_requirements(payload.requirements)),
                metadata_json=(
                    dump_json(payload.metadata) if payload.metadata is not None else None
                ),
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_script_view(row)

    def get(self, script_id: str) -> ScriptView | None:
        with Session(self.engine) as session:
            row = self._select(session, script_id)
            return _to_script_view(row) if row is not None else None

    def update(self, script_id: str, patch: ScriptPatch) -> ScriptView | None:
        """Apply a partial update; returns ``None`` when the script does not exist."""

        with Session(self.engine) as session:
            row = self._select(session, script_id)
            if row is None:
                return None
            if patch.name is not None:
                if not patch.name.strip():
                    raise ValueError("Script name must not be empty.")
                row.name = patch.name.strip()
            if patch.description is not None:
                row.description = patch.description
            if patch.tags is not None:
                row.tags_json = dump_json(list(patch.tags))
            if patch.content is not None:
                row.content = patch.content
            if patch.requirements is not None:
                row.requirements_json = dump_json(_clean_requirements(patch.requirements))
            if patch.metadata is not None:
                row.metadata_json = dump_json(patch.metadata)
            if patch.last_run_at is not None:
                row.last_run_at = to_db_datetime(patch.last_run_at)
            row.updated_at = to_db_datetime(utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_script_view(row)

    def list_scripts(self, *, limit: int = 50) -> list[ScriptView]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(Script)
                .where(Script.owner_id == self.owner_id)
                .order_by(col(Script.created_at).desc())
                .limit(limit),
            ).all()
        return [_to_script_view(row) for row in rows]

    def _select(self, session: Session, script_id: str) -> Script | None:
        return session.exec(
            select(Script).where(
                Script.script_id == script_id,
                Script.owner_id == self.owner_id,
            ),
        ).one_or_none()


class ExecutionRepository(SQLiteRepositoryBase):
    """Append-only store of finished execution records.

    Records belong to their script; cross-script listings are scoped to the
    scripts of ``owner_id``.
    """

    def __init__(
        self,
        db_path: Path,
        *,
        owner_id: str = DEFAULT_OWNER_ID,
        sqlite_busy_timeout_ms: int = 5_000,
    ) -> None:
        super().__init__(db_path, sqlite_busy_timeout_ms=sqlite_busy_timeout_ms)
        self.owner_id = owner_id

    def create(self, payload: ExecutionCreate) -> ExecutionView:
        """Insert one terminal record."""

        _check_record(payload)
        now = utc_now()
        with Session(self.engine) as session:
            row = ScriptExecution(
                execution_id=str(uuid4()),
                script_id=payload.script_id,
                triggered_by=payload.triggered_by,
                status=payload.status.value,
                inputs_json=dump_json(payload.inputs) if payload.inputs is not None else None,
                stdout=payload.stdout,
                stderr=payload.stderr,
                exit_code=payload.exit_code,
                duration_ms=payload.duration_ms,
                started_at=(
                    to_db_datetime(payload.started_at) if payload.started_at is not None else None
                ),
                completed_at=(
                    to_db_datetime(payload.completed_at)
                    if payload.completed_at is not None
                    else None
                ),
                is_scheduled=payload.is_scheduled,
                created_at=to_db_datetime(now),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_execution_view(row)

    def get(self, execution_id: str) -> ExecutionView | None:
        with Session(self.engine) as session:
            row = session.exec(
                select(ScriptExecution).where(ScriptExecution.execution_id == execution_id),
            ).one_or_none()
            return _to_execution_view(row) if row is not None else None

    def list_for_script(self, script_id: str, *, limit: int = 20) -> list[ExecutionView]:
        """Most recent executions first."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(ScriptExecution)
                .where(ScriptExecution.script_id == script_id)
                .order_by(col(ScriptExecution.created_at).desc())
                .limit(limit),
            ).all()
        return [_to_execution_view(row) for row in rows]

    def list_recent(self, *, limit: int = 50) -> list[ExecutionView]:
        """Most recent executions across all scripts of the owner."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(ScriptExecution)
                .join(Script, col(Script.script_id) == col(ScriptExecution.script_id))
                .where(Script.owner_id == self.owner_id)
                .order_by(col(ScriptExecution.created_at).desc())
                .limit(limit),
            ).all()
        return [_to_execution_view(row) for row in rows]


def _check_record(payload: ExecutionCreate) -> None:
    if payload.status not in TERMINAL_EXECUTION_STATUSES:
        raise ValueError(
            f"Execution records are stored once finished, got status {payload.status.value!r}",
        )
    if payload.exit_code is None:
        raise ValueError("Finished execution record requires an exit code.")


def _clean_requirements(requirements: list[str]) -> list[str]:
    return [item.strip() for item in requirements if item and item.strip()]


def _to_script_view(row: Script) -> ScriptView:
    metadata: Any = load_json(row.metadata_json)
    return ScriptView(
        script_id=row.script_id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        tags=list(load_json(row.tags_json, default=[])),
        content=row.content,
        requirements=list(load_json(row.requirements_json, default=[])),
        metadata=metadata if isinstance(metadata, dict) else None,
        last_run_at=optional_aware(row.last_run_at),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )


def _to_execution_view(row: ScriptExecution) -> ExecutionView:
    return ExecutionView(
        execution_id=row.execution_id,
        script_id=row.script_id,
        triggered_by=row.triggered_by,
        status=ExecutionStatus(row.status),
        inputs=load_json(row.inputs_json),
        stdout=row.stdout,
        stderr=row.stderr,
        exit_code=row.exit_code,
        duration_ms=row.duration_ms,
        started_at=optional_aware(row.started_at),
        completed_at=optional_aware(row.completed_at),
        is_scheduled=bool(row.is_scheduled),
        created_at=to_utc_aware_datetime(row.created_at),
    )
