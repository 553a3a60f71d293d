"""Background processing of generation jobs."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from typing import Any

from script_studio.generation.gateway import ModelGateway
from script_studio.generation.metadata import extract_metadata
from script_studio.jobs.models import (
    PROGRESS_DONE,
    PROGRESS_GENERATED,
    PROGRESS_PROCESSING,
    JobCreate,
    JobKind,
    JobStatus,
    JobView,
)
from script_studio.jobs.prompts import render_prompt
from script_studio.jobs.repository import JobRepository

logger = logging.getLogger(__name__)


class JobProcessor:
    """Drives each submitted job from pending to a terminal state.

    ``submit`` only writes the pending row and schedules work on a private
    thread pool, so callers get a job id back without waiting on a model.
    Every scheduled future is supervised: an escaped exception is logged and
    the job is failed instead of being left in ``processing``.
    """

    def __init__(
        self,
        *,
        repository: JobRepository,
        gateway: ModelGateway,
        default_backends: Iterable[str],
        max_workers: int = 4,
        thread_name_prefix: str = "script-studio-job",
    ) -> None:
        self._repository = repository
        self._gateway = gateway
        self._default_backends = tuple(default_backends)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._lock = threading.Lock()
        self._inflight: dict[str, Future[None]] = {}

    def submit(
        self,
        kind: JobKind | str,
        input: Mapping[str, Any] | None = None,
        *,
        backends: Iterable[str] | None = None,
    ) -> str:
        """Create a pending job and schedule it. Returns the job id."""

        job_kind = JobKind(kind)
        payload = dict(input or {})
        order = self._resolve_backends(payload, backends)

        job = self._repository.create(JobCreate(kind=job_kind, input=payload))
        logger.info(
            "Submitted %s job %s (backends=%s)",
            job_kind.value,
            job.job_id,
            ",".join(order),
        )
        future = self._executor.submit(self._run, job.job_id, job_kind, payload, order)
        with self._lock:
            self._inflight[job.job_id] = future
        future.add_done_callback(lambda done, job_id=job.job_id: self._supervise(job_id, done))
        return job.job_id

    def get(self, job_id: str) -> JobView | None:
        return self._repository.get(job_id)

    def list_jobs(self, *, status: JobStatus | None = None, limit: int = 50) -> list[JobView]:
        return self._repository.list_jobs(status=status, limit=limit)

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until every scheduled job has finished. Returns False on timeout."""

        with self._lock:
            pending = list(self._inflight.values())
        if not pending:
            return True
        _done, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, *, wait: bool = True, cancel_futures: bool = False) -> None:
        """Stop the pool; cancelled queued jobs are failed by their done-callback."""

        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)

    def _resolve_backends(
        self,
        payload: Mapping[str, Any],
        backends: Iterable[str] | None,
    ) -> tuple[str, ...]:
        requested: Iterable[str] | None = backends
        if requested is None and payload.get("backends") is not None:
            raw = payload["backends"]
            if isinstance(raw, str):
                requested = raw.split(",")
            elif isinstance(raw, list | tuple):
                requested = [str(item) for item in raw]
            else:
                raise ValueError("Job input 'backends' must be a list of backend names.")
        order = self._gateway.resolve_order(
            requested if requested is not None else self._default_backends,
        )
        if not order:
            raise ValueError("At least one generation backend is required.")
        return order

    def _run(
        self,
        job_id: str,
        kind: JobKind,
        payload: dict[str, Any],
        order: tuple[str, ...],
    ) -> None:
        if not self._repository.mark_processing(job_id, progress=PROGRESS_PROCESSING):
            logger.warning("Job %s could not be claimed, skipping", job_id)
            return

        try:
            prompt = render_prompt(kind, payload)
            outcome = self._gateway.generate(prompt, order)
            self._repository.set_progress(job_id, PROGRESS_GENERATED)
            extracted = extract_metadata(outcome.text)
        except Exception as error:  # noqa: BLE001
            message = str(error).strip() or type(error).__name__
            logger.warning("Job %s failed: %s", job_id, message)
            self._repository.fail(job_id, error=message)
            return

        self._repository.complete(
            job_id,
            result={"text": extracted.body, "metadata": extracted.metadata.to_dict()},
            progress=PROGRESS_DONE,
        )
        logger.info("Job %s completed via backend %s", job_id, outcome.backend)

    def _supervise(self, job_id: str, future: Future[None]) -> None:
        with self._lock:
            self._inflight.pop(job_id, None)
        if future.cancelled():
            self._fail_if_open(job_id, "Job was cancelled before it started")
            return
        error = future.exception()
        if error is None:
            return
        logger.exception("Unhandled error in job %s", job_id, exc_info=error)
        self._fail_if_open(job_id, str(error).strip() or type(error).__name__)

    def _fail_if_open(self, job_id: str, message: str) -> None:
        try:
            job = self._repository.get(job_id)
            if job is not None and not job.is_terminal:
                self._repository.fail(job_id, error=message)
        except Exception:
            logger.exception("Could not mark job %s as failed", job_id)
