"""Builds the long-lived service graph from settings."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from script_studio.config import Settings
from script_studio.execution.engine import ExecutionEngine
from script_studio.execution.repository import ExecutionRepository, ScriptRepository
from script_studio.generation.gateway import ModelGateway
from script_studio.jobs.processor import JobProcessor
from script_studio.jobs.repository import JobRepository

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    """One process-wide set of repositories, the job processor and the engine.

    Built once and handed to request handlers and CLI commands by reference.
    """

    settings: Settings
    jobs: JobRepository
    scripts: ScriptRepository
    executions: ExecutionRepository
    gateway: ModelGateway
    processor: JobProcessor
    engine: ExecutionEngine

    @classmethod
    def build(cls, settings: Settings) -> Runtime:
        settings.validate()
        owner_id = settings.user_context.user_id
        busy_timeout_ms = settings.sqlite_busy_timeout_ms
        jobs = JobRepository(
            settings.db_path,
            owner_id=owner_id,
            sqlite_busy_timeout_ms=busy_timeout_ms,
        )
        jobs.init_schema()
        jobs.fail_orphaned()
        scripts = ScriptRepository(
            settings.db_path,
            owner_id=owner_id,
            sqlite_busy_timeout_ms=busy_timeout_ms,
        )
        executions = ExecutionRepository(
            settings.db_path,
            owner_id=owner_id,
            sqlite_busy_timeout_ms=busy_timeout_ms,
        )
        gateway = ModelGateway.from_settings(settings.generation)
        processor = JobProcessor(
            repository=jobs,
            gateway=gateway,
            default_backends=settings.generation.backend_order,
            max_workers=settings.jobs.max_workers,
        )
        engine = ExecutionEngine.from_settings(
            settings.execution,
            scripts=scripts,
            executions=executions,
        )
        logger.info(
            "Runtime ready (db=%s, backends=%s)",
            settings.db_path,
            ",".join(gateway.backend_names),
        )
        return cls(
            settings=settings,
            jobs=jobs,
            scripts=scripts,
            executions=executions,
            gateway=gateway,
            processor=processor,
            engine=engine,
        )

    def close(self) -> None:
        """Wait for in-flight jobs, stop running scripts and release DB resources."""

        if not self.processor.wait_idle(timeout=self.settings.jobs.shutdown_wait_seconds):
            logger.warning("Shutting down with generation jobs still running")
        self.processor.shutdown(wait=False, cancel_futures=True)
        cancelled = self.engine.cancel_all()
        if cancelled:
            logger.warning("Cancelled %d running script executions", cancelled)
        self.jobs.close()
        self.scripts.close()
        self.executions.close()


@contextmanager
def open_runtime(settings: Settings) -> Iterator[Runtime]:
    runtime = Runtime.build(settings)
    try:
        yield runtime
    finally:
        runtime.close()
