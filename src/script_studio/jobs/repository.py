"""Persistent job store backed by SQLModel + SQLite."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any
from uuid import uuid4

from sqlalchemy import update as sa_update
from sqlmodel import Session, col, select

from script_studio.errors import JobStateError
from script_studio.jobs.models import (
    ALLOWED_JOB_TRANSITIONS,
    TERMINAL_JOB_STATUSES,
    JobCreate,
    JobKind,
    JobPatch,
    JobStatus,
    JobView,
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
from script_studio.storage.sqlmodel_models import DEFAULT_OWNER_ID, GenerationJob

logger = logging.getLogger(__name__)

ORPHANED_JOB_ERROR = "Job was interrupted by a restart before it finished."


class JobRepository(SQLiteRepositoryBase):
    """Job persistence facade.

    Status changes are conditional updates on the expected current status,
    so a stale writer can never move a job backwards.
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

    def create(self, payload: JobCreate) -> JobView:
        """Create a pending job with zero progress."""

        now = utc_now()
        with Session(self.engine) as session:
            row = GenerationJob(
                job_id=payload.job_id or str(uuid4()),
                owner_id=self.owner_id,
                kind=JobKind(payload.kind).value,
                status=JobStatus.PENDING.value,
                input_json=dump_json(payload.input),
                progress=0,
                created_at=to_db_datetime(now),
                updated_at=to_db_datetime(now),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_job_view(row)

    def get(self, job_id: str) -> JobView | None:
        with Session(self.engine) as session:
            row = self._select(session, job_id)
            return _to_job_view(row) if row is not None else None

    def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobView]:
        """List recent jobs, optionally filtered by status."""

        with Session(self.engine) as session:
            statement = (
                select(GenerationJob)
                .where(GenerationJob.owner_id == self.owner_id)
                .order_by(col(GenerationJob.created_at).desc())
                .limit(limit)
            )
            if status is not None:
                statement = statement.where(GenerationJob.status == status.value)
            rows = session.exec(statement).all()
        return [_to_job_view(row) for row in rows]

    def update(self, job_id: str, patch: JobPatch) -> JobView:
        """Apply ``patch`` if it respects the job lifecycle, else raise ``JobStateError``."""

        now = utc_now()
        with Session(self.engine) as session:
            row = self._select(session, job_id)
            if row is None:
                raise JobStateError(f"Job not found: {job_id}")

            current = JobStatus(row.status)
            target = patch.status or current
            if current in TERMINAL_JOB_STATUSES:
                raise JobStateError(f"Job {job_id} is already {current.value}")
            if target != current and target not in ALLOWED_JOB_TRANSITIONS[current]:
                raise JobStateError(
                    f"Illegal job transition {current.value} -> {target.value} for {job_id}",
                )

            values: dict[str, Any] = {"updated_at": to_db_datetime(now)}
            values.update(_outcome_values(job_id=job_id, target=target, patch=patch))
            if target != current:
                values["status"] = target.value
            if patch.progress is not None:
                values["progress"] = max(row.progress, min(100, max(0, patch.progress)))
            if patch.started_at is not None:
                values["started_at"] = to_db_datetime(patch.started_at)
            if patch.completed_at is not None:
                values["completed_at"] = to_db_datetime(patch.completed_at)

            result = session.exec(
                sa_update(GenerationJob)
                .where(
                    col(GenerationJob.job_id) == job_id,
                    col(GenerationJob.owner_id) == self.owner_id,
                    col(GenerationJob.status) == current.value,
                )
                .values(**values),
            )
            if result.rowcount != 1:
                session.rollback()
                raise JobStateError(
                    f"Job state changed concurrently while updating (job_id={job_id}).",
                )
            session.commit()

            updated = self._select(session, job_id)
            if updated is None:  # pragma: no cover
                raise JobStateError(f"Job vanished during update: {job_id}")
            return _to_job_view(updated)

    def mark_processing(self, job_id: str, *, progress: int) -> bool:
        """Move a pending job to processing."""

        return self._try_update(
            job_id,
            JobPatch(status=JobStatus.PROCESSING, progress=progress, started_at=utc_now()),
        )

    def set_progress(self, job_id: str, progress: int) -> bool:
        return self._try_update(job_id, JobPatch(progress=progress))

    def complete(self, job_id: str, *, result: dict[str, Any], progress: int = 100) -> bool:
        """Mark a processing job as completed with its result."""

        return self._try_update(
            job_id,
            JobPatch(
                status=JobStatus.COMPLETED,
                progress=progress,
                result=result,
                completed_at=utc_now(),
            ),
        )

    def fail(self, job_id: str, *, error: str) -> bool:
        """Mark a non-terminal job as failed with an error message."""

        return self._try_update(
            job_id,
            JobPatch(status=JobStatus.FAILED, error=error, completed_at=utc_now()),
        )

    def fail_orphaned(self, *, error: str = ORPHANED_JOB_ERROR) -> list[str]:
        """Fail every pending or processing job of this owner. Returns their ids.

        Only safe while no processor is running jobs for this owner, i.e. at
        startup before the first submission.
        """

        now = to_db_datetime(utc_now())
        open_statuses = [JobStatus.PENDING.value, JobStatus.PROCESSING.value]
        with Session(self.engine) as session:
            job_ids = list(
                session.exec(
                    select(GenerationJob.job_id).where(
                        GenerationJob.owner_id == self.owner_id,
                        col(GenerationJob.status).in_(open_statuses),
                    ),
                ).all(),
            )
            if not job_ids:
                return []
            session.exec(
                sa_update(GenerationJob)
                .where(
                    col(GenerationJob.job_id).in_(job_ids),
                    col(GenerationJob.status).in_(open_statuses),
                )
                .values(
                    status=JobStatus.FAILED.value,
                    error=error,
                    result_json=None,
                    completed_at=now,
                    updated_at=now,
                ),
            )
            session.commit()
        logger.warning(
            "Recovered %d interrupted jobs after restart (job_ids=%s).",
            len(job_ids),
            ",".join(job_ids),
        )
        return job_ids

    def _try_update(self, job_id: str, patch: JobPatch) -> bool:
        try:
            self.update(job_id, patch)
        except JobStateError as error:
            logger.warning("Job update rejected: %s", error)
            return False
        return True

    def _select(self, session: Session, job_id: str) -> GenerationJob | None:
        return session.exec(
            select(GenerationJob).where(
                GenerationJob.job_id == job_id,
                GenerationJob.owner_id == self.owner_id,
            ),
        ).one_or_none()


def _outcome_values(*, job_id: str, target: JobStatus, patch: JobPatch) -> dict[str, Any]:
    if target == JobStatus.COMPLETED:
        if patch.result is None:
            raise JobStateError(f"Completed job {job_id} requires a result")
        if patch.error is not None:
            raise JobStateError(f"Completed job {job_id} cannot carry an error")
        return {"result_json": dump_json(patch.result), "error": None}
    if target == JobStatus.FAILED:
        if not patch.error:
            raise JobStateError(f"Failed job {job_id} requires an error message")
        if patch.result is not None:
            raise JobStateError(f"Failed job {job_id} cannot carry a result")
        return {"error": patch.error, "result_json": None}
    if patch.result is not None or patch.error is not None:
        raise JobStateError(
            f"Job {job_id} can only carry a result or error once terminal",
        )
    return {}


def _to_job_view(row: GenerationJob) -> JobView:
    return JobView(
        job_id=row.job_id,
        owner_id=row.owner_id,
        kind=JobKind(row.kind),
        status=JobStatus(row.status),
        input=load_json(row.input_json, default={}),
        result=load_json(row.result_json),
        error=row.error,
        progress=row.progress,
        started_at=optional_aware(row.started_at),
        completed_at=optional_aware(row.completed_at),
        created_at=to_utc_aware_datetime(row.created_at),
        updated_at=to_utc_aware_datetime(row.updated_at),
    )
