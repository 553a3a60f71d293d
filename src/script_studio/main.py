"""CLI entrypoint for script-studio."""

import json
import logging
from pathlib import Path

import rich_click as click
import uvicorn

from script_studio import __version__
from script_studio.controllers import (
    JobCliController,
    JobListCommand,
    JobShowCommand,
    JobSubmitCommand,
    ScriptAddCommand,
    ScriptCliController,
    ScriptEditCommand,
    ScriptExecutionsCommand,
    ScriptFromJobCommand,
    ScriptListCommand,
    ScriptRunCommand,
    ScriptShowCommand,
    parse_inputs,
)
from script_studio.jobs.models import JobKind, JobStatus

click.rich_click.USE_MARKDOWN = True
JOB_CONTROLLER = JobCliController()
SCRIPT_CONTROLLER = ScriptCliController()


@click.group()
@click.version_option(version=__version__, prog_name="script-studio")
def script_studio() -> None:
    """Script studio CLI."""


@script_studio.group()
def jobs() -> None:
    """Generation job commands."""


@jobs.command("submit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in JobKind], case_sensitive=False),
    default=JobKind.GENERATION.value,
    show_default=True,
    help="What the model should produce.",
)
@click.option("--description", default=None, help="Task description for generation jobs.")
@click.option(
    "--code-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Script to analyse or annotate.",
)
@click.option("--input-json", default=None, help="Raw job input as a JSON object.")
@click.option(
    "--backend",
    "backends",
    multiple=True,
    help="Backend name to try, in order. Can be repeated.",
)
@click.option(
    "--wait-seconds",
    type=click.FloatRange(min=0),
    default=300.0,
    show_default=True,
    help="How long to wait for the job to finish before printing its state.",
)
def jobs_submit(  # noqa: PLR0913
    db_path: Path | None,
    kind: str,
    description: str | None,
    code_file: Path | None,
    input_json: str | None,
    backends: tuple[str, ...],
    wait_seconds: float,
) -> None:
    """Submit a job and wait for its outcome."""

    payload = _parse_json_object(input_json, option="--input-json")
    if description is not None:
        payload["description"] = description
    if code_file is not None:
        payload["code"] = code_file.read_text("utf-8")
    try:
        lines = JOB_CONTROLLER.submit(
            JobSubmitCommand(
                db_path=db_path,
                kind=kind.lower(),
                input=payload,
                backends=backends,
                wait_seconds=wait_seconds,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@jobs.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--job-id", required=True, help="Job id.")
def jobs_show(db_path: Path | None, job_id: str) -> None:
    """Show one job with its result or error."""

    _emit_lines(JOB_CONTROLLER.show(JobShowCommand(db_path=db_path, job_id=job_id)))


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in JobStatus], case_sensitive=False),
    default=None,
    help="Optional status filter.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max jobs to print.",
)
def jobs_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recent jobs."""

    _emit_lines(
        JOB_CONTROLLER.list_jobs(
            JobListCommand(
                db_path=db_path,
                status=status.lower() if status else None,
                limit=limit,
            ),
        ),
    )


@script_studio.group()
def scripts() -> None:
    """Stored script commands."""


@scripts.command("add")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--file",
    "source_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Python source file.",
)
@click.option(
    "--name",
    default=None,
    help="Script name. Defaults to the @name header, then the file name.",
)
@click.option("--tag", "tags", multiple=True, help="Tag. Can be repeated.")
@click.option(
    "--requirement",
    "requirements",
    multiple=True,
    help="Dependency specifier installed before each run. Can be repeated.",
)
def scripts_add(
    db_path: Path | None,
    source_path: Path,
    name: str | None,
    tags: tuple[str, ...],
    requirements: tuple[str, ...],
) -> None:
    """Store a script from a file."""

    _emit_lines(
        SCRIPT_CONTROLLER.add(
            ScriptAddCommand(
                db_path=db_path,
                source_path=source_path,
                name=name,
                tags=tags,
                requirements=requirements,
            ),
        ),
    )


@scripts.command("from-job")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--job-id", required=True, help="Completed generation job id.")
@click.option("--name", default=None, help="Script name. Defaults to the @name header.")
@click.option(
    "--requirement",
    "requirements",
    multiple=True,
    help="Dependency specifier installed before each run. Can be repeated.",
)
def scripts_from_job(
    db_path: Path | None,
    job_id: str,
    name: str | None,
    requirements: tuple[str, ...],
) -> None:
    """Store the script produced by a completed generation job."""

    _emit_lines(
        SCRIPT_CONTROLLER.from_job(
            ScriptFromJobCommand(
                db_path=db_path,
                job_id=job_id,
                name=name,
                requirements=requirements,
            ),
        ),
    )


@scripts.command("edit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--script-id", required=True, help="Script id.")
@click.option(
    "--file",
    "source_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Replace the source; its header directives replace the stored metadata.",
)
@click.option("--name", default=None, help="New script name.")
@click.option("--description", default=None, help="New description.")
@click.option("--tag", "tags", multiple=True, help="Replace tags. Can be repeated.")
@click.option(
    "--requirement",
    "requirements",
    multiple=True,
    help="Replace dependency specifiers. Can be repeated.",
)
def scripts_edit(  # noqa: PLR0913
    db_path: Path | None,
    script_id: str,
    source_path: Path | None,
    name: str | None,
    description: str | None,
    tags: tuple[str, ...],
    requirements: tuple[str, ...],
) -> None:
    """Edit a stored script. Options not given stay unchanged."""

    try:
        lines = SCRIPT_CONTROLLER.edit(
            ScriptEditCommand(
                db_path=db_path,
                script_id=script_id,
                source_path=source_path,
                name=name,
                description=description,
                tags=tags or None,
                requirements=requirements or None,
            ),
        )
    except ValueError as error:
        raise click.ClickException(str(error)) from error
    _emit_lines(lines)


@scripts.command("show")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--script-id", required=True, help="Script id.")
def scripts_show(db_path: Path | None, script_id: str) -> None:
    """Show one stored script."""

    _emit_lines(SCRIPT_CONTROLLER.show(ScriptShowCommand(db_path=db_path, script_id=script_id)))


@scripts.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=50,
    show_default=True,
    help="Max scripts to print.",
)
def scripts_list(db_path: Path | None, limit: int) -> None:
    """List stored scripts."""

    _emit_lines(SCRIPT_CONTROLLER.list_scripts(ScriptListCommand(db_path=db_path, limit=limit)))


@scripts.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--script-id", required=True, help="Script id.")
@click.option(
    "--input",
    "input_pairs",
    multiple=True,
    help="Input as key=value (value parsed as JSON when possible). Can be repeated.",
)
@click.option("--inputs-json", default=None, help="Inputs as a JSON object.")
@click.option(
    "--timeout",
    "timeout_seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Wall-clock limit in seconds. Defaults to the @timeout header, then 30.",
)
@click.option("--triggered-by", default="cli", show_default=True, help="Recorded trigger.")
def scripts_run(  # noqa: PLR0913
    db_path: Path | None,
    script_id: str,
    input_pairs: tuple[str, ...],
    inputs_json: str | None,
    timeout_seconds: float | None,
    triggered_by: str,
) -> None:
    """Run a stored script now and print the execution record."""

    try:
        inputs = parse_inputs(input_pairs, inputs_json)
    except ValueError as error:
        raise click.BadParameter(str(error)) from error
    _emit_lines(
        SCRIPT_CONTROLLER.run(
            ScriptRunCommand(
                db_path=db_path,
                script_id=script_id,
                inputs=inputs,
                timeout_seconds=timeout_seconds,
                triggered_by=triggered_by,
            ),
        ),
    )


@scripts.command("executions")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--script-id",
    default=None,
    help="Script id. Omit to list runs of all scripts.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=200),
    default=20,
    show_default=True,
    help="Max records to print.",
)
def scripts_executions(db_path: Path | None, script_id: str | None, limit: int) -> None:
    """List recent execution records, of one script or of all."""

    _emit_lines(
        SCRIPT_CONTROLLER.executions(
            ScriptExecutionsCommand(db_path=db_path, script_id=script_id, limit=limit),
        ),
    )


@script_studio.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address.")
@click.option("--port", type=click.IntRange(min=1, max=65535), default=8000, show_default=True)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    show_default=True,
)
def serve(host: str, port: int, log_level: str) -> None:
    """Run the HTTP API."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "script_studio.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        log_level=log_level.lower(),
    )


def _parse_json_object(raw: str | None, *, option: str) -> dict:
    if not raw:
        return {}
    try:
        loaded = json.loads(raw)
    except json.JSONDecodeError as error:
        raise click.BadParameter(f"{option} is not valid JSON: {error}") from error
    if not isinstance(loaded, dict):
        raise click.BadParameter(f"{option} must be a JSON object.")
    return loaded


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    script_studio()
