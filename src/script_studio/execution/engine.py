"""Runs stored scripts as child processes and records the outcome."""

from __future__ import annotations

import logging
import os
import shlex
import threading
from collections.abc import Mapping
from datetime import timedelta
from pathlib import Path
from typing import Any

from script_studio.config import ExecutionSettings
from script_studio.errors import WorkspaceError
from script_studio.execution.installer import DependencyInstaller
from script_studio.execution.models import (
    SETUP_FAILURE_EXIT_CODE,
    TIMEOUT_MARKER,
    ExecutionCreate,
    ExecutionStatus,
    ExecutionView,
    ScriptPatch,
    ScriptView,
)
from script_studio.execution.repository import ExecutionRepository, ScriptRepository
from script_studio.execution.workspace import (
    STDERR_FILENAME,
    STDOUT_FILENAME,
    compose_source,
    normalize_inputs,
    script_workspace,
    write_script,
)
from script_studio.process import Deadline, ProcessOutcome, run_with_deadline
from script_studio.storage.common import utc_now_ms

logger = logging.getLogger(__name__)

CANCELLED_MARKER = "[script-studio] execution cancelled"


class ExecutionEngine:
    """Executes one script per call, synchronously, in a throwaway workspace.

    Every call ends with exactly one terminal execution record, whether the
    script succeeded, exited non-zero, ran past its deadline, or the attempt
    failed before the interpreter started.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        scripts: ScriptRepository,
        executions: ExecutionRepository,
        installer: DependencyInstaller,
        interpreter: str = "python3",
        default_timeout_seconds: int = 30,
        workspace_root: Path | None = None,
    ) -> None:
        self._scripts = scripts
        self._executions = executions
        self._installer = installer
        self._interpreter = shlex.split(interpreter)
        if not self._interpreter:
            raise ValueError("Interpreter command must not be empty.")
        self._default_timeout_seconds = default_timeout_seconds
        self._workspace_root = workspace_root
        self._lock = threading.Lock()
        self._active: dict[int, Deadline] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ExecutionSettings,
        *,
        scripts: ScriptRepository,
        executions: ExecutionRepository,
    ) -> ExecutionEngine:
        return cls(
            scripts=scripts,
            executions=executions,
            installer=DependencyInstaller(
                command=settings.installer,
                timeout_seconds=settings.install_timeout_seconds,
            ),
            interpreter=settings.interpreter,
            default_timeout_seconds=settings.default_timeout_seconds,
            workspace_root=settings.workspace_root,
        )

    def execute(  # noqa: PLR0913
        self,
        script: ScriptView,
        inputs: Mapping[str, Any] | None = None,
        *,
        triggered_by: str,
        timeout_seconds: float | None = None,
        is_scheduled: bool = False,
    ) -> ExecutionView:
        """Run ``script`` once and return its persisted, terminal record."""

        timeout = self.resolve_timeout(script, timeout_seconds)
        recorded_inputs = _recordable_inputs(inputs)
        started_at = utc_now_ms()
        logger.info(
            "Executing script %s (timeout=%ss, triggered_by=%s)",
            script.script_id,
            timeout,
            triggered_by,
        )

        try:
            with script_workspace(self._workspace_root) as workspace:
                outcome = self._run_in_workspace(
                    workspace,
                    script=script,
                    inputs=inputs,
                    timeout=timeout,
                )
        except Exception as error:  # noqa: BLE001
            logger.exception("Execution setup failed for script %s", script.script_id)
            status = ExecutionStatus.FAILED
            exit_code = SETUP_FAILURE_EXIT_CODE
            stdout = ""
            stderr = f"{type(error).__name__}: {error}\n"
        else:
            status, exit_code, stdout, stderr = _classify(outcome, timeout=timeout)
        completed_at = utc_now_ms()

        record = self._executions.create(
            ExecutionCreate(
                script_id=script.script_id,
                triggered_by=triggered_by,
                status=status,
                inputs=recorded_inputs,
                stdout=stdout,
                stderr=stderr,
                exit_code=exit_code,
                duration_ms=(completed_at - started_at) // timedelta(milliseconds=1),
                started_at=started_at,
                completed_at=completed_at,
                is_scheduled=is_scheduled,
            ),
        )
        self._scripts.update(script.script_id, ScriptPatch(last_run_at=completed_at))
        logger.info(
            "Script %s finished: status=%s exit_code=%s duration_ms=%s",
            script.script_id,
            record.status.value,
            record.exit_code,
            record.duration_ms,
        )
        return record

    def resolve_timeout(self, script: ScriptView, timeout_seconds: float | None) -> float:
        """Explicit timeout, else the script's own header timeout, else the default."""

        if timeout_seconds is not None:
            if timeout_seconds <= 0:
                raise ValueError("timeout_seconds must be > 0")
            return timeout_seconds
        declared = (script.metadata or {}).get("timeout_seconds")
        if isinstance(declared, int) and not isinstance(declared, bool) and declared > 0:
            return declared
        return self._default_timeout_seconds

    def cancel_all(self) -> int:
        """Terminate every running child. Returns the number of deadlines cancelled."""

        with self._lock:
            active = list(self._active.values())
        for deadline in active:
            deadline.cancel()
        return len(active)

    def _run_in_workspace(
        self,
        workspace: Path,
        *,
        script: ScriptView,
        inputs: Mapping[str, Any] | None,
        timeout: float,
    ) -> ProcessOutcome:
        script_path = write_script(workspace, compose_source(script.content, inputs))
        if script.requirements:
            self._installer.install_all(script.requirements)

        deadline = Deadline(timeout_seconds=timeout)
        with self._lock:
            self._active[id(deadline)] = deadline
        try:
            return run_with_deadline(
                [*self._interpreter, str(script_path)],
                deadline=deadline,
                stdout_path=workspace / STDOUT_FILENAME,
                stderr_path=workspace / STDERR_FILENAME,
                cwd=workspace,
                env=_child_env(workspace),
            )
        finally:
            with self._lock:
                self._active.pop(id(deadline), None)


def _classify(
    outcome: ProcessOutcome,
    *,
    timeout: float,
) -> tuple[ExecutionStatus, int, str, str]:
    if outcome.timed_out:
        stderr = _append_line(outcome.stderr, f"{TIMEOUT_MARKER} after {timeout:g}s")
        return ExecutionStatus.TIMEOUT, outcome.exit_code, outcome.stdout, stderr
    if outcome.cancelled:
        stderr = _append_line(outcome.stderr, CANCELLED_MARKER)
        return ExecutionStatus.FAILED, outcome.exit_code, outcome.stdout, stderr
    status = ExecutionStatus.COMPLETED if outcome.exit_code == 0 else ExecutionStatus.FAILED
    return status, outcome.exit_code, outcome.stdout, outcome.stderr


def _append_line(text: str, line: str) -> str:
    if text and not text.endswith("\n"):
        text += "\n"
    return f"{text}{line}\n"


def _child_env(workspace: Path) -> dict[str, str]:
    env = dict(os.environ)
    existing = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = os.pathsep.join(part for part in (str(workspace), existing) if part)
    return env


def _recordable_inputs(inputs: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not inputs:
        return None
    try:
        return normalize_inputs(inputs)
    except WorkspaceError:
        return {str(key): repr(value) for key, value in inputs.items()}
