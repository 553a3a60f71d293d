"""Subprocess-based generation backend for CLI agents."""

from __future__ import annotations

import os
import shlex
from pathlib import Path
from tempfile import TemporaryDirectory

from script_studio.errors import BackendError
from script_studio.process import Deadline, run_with_deadline

_STDERR_PREVIEW_CHARS = 500


class CliGenerationBackend:
    """Run a command template and treat its stdout as the generated text.

    Supported placeholders: ``{prompt}``, ``{prompt_file}`` and ``{model}``.
    """

    def __init__(
        self,
        *,
        name: str,
        command_template: str,
        model: str = "",
        timeout_seconds: float = 120.0,
    ) -> None:
        self.name = name
        self.command_template = command_template
        self.model = model
        self.timeout_seconds = timeout_seconds

    def generate(self, prompt: str) -> str:
        with TemporaryDirectory(prefix="script-studio-agent-") as temp_dir:
            run_dir = Path(temp_dir)
            prompt_file = run_dir / "prompt.txt"
            prompt_file.write_text(prompt, "utf-8")
            argv = _build_run_args(
                backend=self.name,
                command_template=self.command_template,
                model=self.model,
                prompt=prompt,
                prompt_file=prompt_file,
            )

            env = os.environ.copy()
            env["SCRIPT_STUDIO_BACKEND"] = self.name
            env["SCRIPT_STUDIO_MODEL"] = self.model
            try:
                outcome = run_with_deadline(
                    argv,
                    deadline=Deadline(timeout_seconds=self.timeout_seconds),
                    stdout_path=run_dir / "stdout.log",
                    stderr_path=run_dir / "stderr.log",
                    env=env,
                )
            except FileNotFoundError as error:
                raise BackendError(
                    f"CLI backend command not found: {argv[0]}",
                    backend=self.name,
                    transient=False,
                ) from error
            except OSError as error:
                raise BackendError(
                    f"CLI backend failed to start: {error}",
                    backend=self.name,
                    transient=True,
                ) from error

        if outcome.timed_out:
            raise BackendError(
                f"CLI backend {self.name!r} timed out after {self.timeout_seconds:g}s",
                backend=self.name,
                transient=True,
            )
        if outcome.exit_code != 0:
            stderr_preview = outcome.stderr.strip()[-_STDERR_PREVIEW_CHARS:]
            raise BackendError(
                f"CLI backend {self.name!r} exited with code {outcome.exit_code}: "
                f"{stderr_preview or 'no stderr'}",
                backend=self.name,
                transient=False,
            )
        return outcome.stdout


def _build_run_args(
    *,
    backend: str,
    command_template: str,
    model: str,
    prompt: str,
    prompt_file: Path,
) -> list[str]:
    stripped = command_template.strip()
    if not stripped:
        raise BackendError(
            "CLI backend command template is empty.",
            backend=backend,
            transient=False,
        )
    if "{prompt}" not in stripped and "{prompt_file}" not in stripped:
        raise BackendError(
            "CLI backend command template must include {prompt} or {prompt_file}.",
            backend=backend,
            transient=False,
        )

    try:
        rendered = stripped.format(
            model=shlex.quote(model),
            prompt=shlex.quote(prompt),
            prompt_file=shlex.quote(str(prompt_file)),
        )
    except (KeyError, IndexError) as error:
        raise BackendError(
            f"Unsupported command template placeholder: {error}",
            backend=backend,
            transient=False,
        ) from error

    argv = shlex.split(rendered)
    if not argv:
        raise BackendError(
            "CLI backend command template rendered empty command.",
            backend=backend,
            transient=False,
        )
    return argv
