"""Controllers for script-studio CLI commands."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from script_studio.config import Settings
from script_studio.execution.library import script_from_job, script_from_source, script_patch
from script_studio.execution.models import ExecutionView, ScriptView
from script_studio.execution.repository import ExecutionRepository, ScriptRepository
from script_studio.generation.metadata import extract_metadata
from script_studio.jobs.models import JobKind, JobStatus, JobView
from script_studio.jobs.repository import JobRepository
from script_studio.runtime import open_runtime

_PREVIEW_CHARS = 2_000


@dataclass(slots=True)
class JobSubmitCommand:
    """CLI input for job submission."""

    db_path: Path | None
    kind: str
    input: dict[str, Any]
    backends: tuple[str, ...]
    wait_seconds: float


@dataclass(slots=True)
class JobShowCommand:
    db_path: Path | None
    job_id: str


@dataclass(slots=True)
class JobListCommand:
    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class ScriptAddCommand:
    """CLI input for storing a script from a file."""

    db_path: Path | None
    source_path: Path
    name: str | None
    tags: tuple[str, ...]
    requirements: tuple[str, ...]


@dataclass(slots=True)
class ScriptFromJobCommand:
    """CLI input for storing a completed generation job as a script."""

    db_path: Path | None
    job_id: str
    name: str | None
    requirements: tuple[str, ...]


@dataclass(slots=True)
class ScriptEditCommand:
    """CLI input for editing a stored script. ``None`` leaves a field unchanged."""

    db_path: Path | None
    script_id: str
    source_path: Path | None
    name: str | None
    description: str | None
    tags: tuple[str, ...] | None
    requirements: tuple[str, ...] | None


@dataclass(slots=True)
class ScriptShowCommand:
    db_path: Path | None
    script_id: str


@dataclass(slots=True)
class ScriptListCommand:
    db_path: Path | None
    limit: int


@dataclass(slots=True)
class ScriptRunCommand:
    """CLI input for a synchronous script run."""

    db_path: Path | None
    script_id: str
    inputs: dict[str, Any]
    timeout_seconds: float | None
    triggered_by: str


@dataclass(slots=True)
class ScriptExecutionsCommand:
    db_path: Path | None
    script_id: str | None
    limit: int


class JobCliController:
    """Coordinates job submission and inspection CLI operations."""

    def submit(self, command: JobSubmitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_runtime(settings) as runtime:
            job_id = runtime.processor.submit(
                JobKind(command.kind),
                command.input,
                backends=command.backends or None,
            )
            finished = runtime.processor.wait_idle(timeout=command.wait_seconds)
            job = runtime.processor.get(job_id)

        lines = [f"Job submitted: job_id={job_id} kind={command.kind}"]
        if not finished:
            lines.append(f"Still running after {command.wait_seconds:g}s.")
        if job is not None:
            lines.extend(_job_lines(job))
        return lines

    def show(self, command: JobShowCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _job_repository(settings) as repository:
            job = repository.get(command.job_id)
        if job is None:
            return [f"Job not found: {command.job_id}"]
        return _job_lines(job)

    def list_jobs(self, command: JobListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status = JobStatus(command.status) if command.status else None
        with _job_repository(settings) as repository:
            jobs = repository.list_jobs(status=status, limit=command.limit)

        lines = [f"Jobs: {len(jobs)}"]
        for job in jobs:
            lines.append(
                f"  {job.job_id} kind={job.kind.value} status={job.status.value} "
                f"progress={job.progress} created_at={job.created_at.isoformat()}",
            )
        return lines


class ScriptCliController:
    """Coordinates script storage and execution CLI operations."""

    def add(self, command: ScriptAddCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        content = command.source_path.read_text("utf-8")
        header_name = extract_metadata(content).metadata.name
        payload = script_from_source(
            content,
            name=command.name or header_name or command.source_path.stem,
            tags=command.tags or None,
            requirements=command.requirements,
        )
        with _script_repository(settings) as repository:
            script = repository.create(payload)
        return [f"Script stored: script_id={script.script_id} name={script.name}"]

    def from_job(self, command: ScriptFromJobCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _job_repository(settings) as jobs:
            job = jobs.get(command.job_id)
        if job is None:
            return [f"Job not found: {command.job_id}"]
        try:
            payload = script_from_job(job, name=command.name, requirements=command.requirements)
        except ValueError as error:
            return [f"Cannot store job output: {error}"]
        with _script_repository(settings) as repository:
            script = repository.create(payload)
        return [
            f"Script stored: script_id={script.script_id} name={script.name} "
            f"from job {command.job_id}",
        ]

    def edit(self, command: ScriptEditCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        patch = script_patch(
            content=(
                command.source_path.read_text("utf-8") if command.source_path is not None else None
            ),
            name=command.name,
            description=command.description,
            tags=command.tags,
            requirements=command.requirements,
        )
        with _script_repository(settings) as repository:
            script = repository.update(command.script_id, patch)
        if script is None:
            return [f"Script not found: {command.script_id}"]
        return [f"Script updated: script_id={script.script_id} name={script.name}"]

    def show(self, command: ScriptShowCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _script_repository(settings) as repository:
            script = repository.get(command.script_id)
        if script is None:
            return [f"Script not found: {command.script_id}"]
        return _script_lines(script)

    def list_scripts(self, command: ScriptListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _script_repository(settings) as repository:
            scripts = repository.list_scripts(limit=command.limit)

        lines = [f"Scripts: {len(scripts)}"]
        for script in scripts:
            last_run = script.last_run_at.isoformat() if script.last_run_at else "-"
            lines.append(
                f"  {script.script_id} name={script.name} "
                f"tags={','.join(script.tags) or '-'} last_run_at={last_run}",
            )
        return lines

    def run(self, command: ScriptRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_runtime(settings) as runtime:
            script = runtime.scripts.get(command.script_id)
            if script is None:
                return [f"Script not found: {command.script_id}"]
            record = runtime.engine.execute(
                script,
                command.inputs,
                triggered_by=command.triggered_by,
                timeout_seconds=command.timeout_seconds,
            )
        return _execution_lines(record, with_output=True)

    def executions(self, command: ScriptExecutionsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _execution_repository(settings) as repository:
            if command.script_id is None:
                records = repository.list_recent(limit=command.limit)
            else:
                records = repository.list_for_script(command.script_id, limit=command.limit)

        lines = [f"Executions: {len(records)}"]
        for record in records:
            lines.append(
                f"  {record.execution_id} script_id={record.script_id} "
                f"status={record.status.value} "
                f"exit_code={record.exit_code} duration_ms={record.duration_ms} "
                f"triggered_by={record.triggered_by}",
            )
        return lines


def parse_inputs(pairs: tuple[str, ...], inputs_json: str | None) -> dict[str, Any]:
    """Merge ``--inputs-json`` with repeated ``key=value`` pairs (pairs win)."""

    inputs: dict[str, Any] = {}
    if inputs_json:
        loaded = json.loads(inputs_json)
        if not isinstance(loaded, dict):
            raise ValueError("--inputs-json must be a JSON object.")
        inputs.update(loaded)
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid input {pair!r}. Expected key=value.")
        key, raw = pair.split("=", 1)
        try:
            inputs[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            inputs[key.strip()] = raw
    return inputs


def _job_lines(job: JobView) -> list[str]:
    lines = [
        f"Job: {job.job_id}",
        f"Kind: {job.kind.value}",
        f"Status: {job.status.value}",
        f"Progress: {job.progress}",
        f"Error: {job.error or '-'}",
    ]
    if job.result is not None:
        metadata = job.result.get("metadata") or {}
        lines.append(f"Metadata: {json.dumps(metadata, ensure_ascii=False, sort_keys=True)}")
        lines.append("Text:")
        lines.append(str(job.result.get("text", ""))[:_PREVIEW_CHARS])
    return lines


def _script_lines(script: ScriptView) -> list[str]:
    return [
        f"Script: {script.script_id}",
        f"Name: {script.name}",
        f"Description: {script.description or '-'}",
        f"Tags: {', '.join(script.tags) or '-'}",
        f"Requirements: {', '.join(script.requirements) or '-'}",
        f"Last run: {script.last_run_at.isoformat() if script.last_run_at else '-'}",
        "Content:",
        script.content,
    ]


def _execution_lines(record: ExecutionView, *, with_output: bool) -> list[str]:
    lines = [
        f"Execution: {record.execution_id}",
        f"Status: {record.status.value}",
        f"Exit code: {record.exit_code}",
        f"Duration: {record.duration_ms} ms",
    ]
    if with_output:
        lines.append("Stdout:")
        lines.append(record.stdout[:_PREVIEW_CHARS].rstrip("\n"))
        lines.append("Stderr:")
        lines.append(record.stderr[:_PREVIEW_CHARS].rstrip("\n"))
    return lines


@contextmanager
def _job_repository(settings: Settings) -> Iterator[JobRepository]:
    repository = JobRepository(
        settings.db_path,
        owner_id=settings.user_context.user_id,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _script_repository(settings: Settings) -> Iterator[ScriptRepository]:
    repository = ScriptRepository(
        settings.db_path,
        owner_id=settings.user_context.user_id,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _execution_repository(settings: Settings) -> Iterator[ExecutionRepository]:
    repository = ExecutionRepository(
        settings.db_path,
        owner_id=settings.user_context.user_id,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
