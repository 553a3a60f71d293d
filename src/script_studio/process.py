"""Child-process runner with an explicit wall-clock deadline.

Shared by the script execution engine and the CLI generation backend.
Output is redirected to files so a chatty child can never block on a full
pipe, and nothing is read from the child after it has been terminated.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124
CANCELLED_EXIT_CODE = -2
_POLL_INTERVAL_SECONDS = 0.05
_TERMINATE_GRACE_SECONDS = 2.0


@dataclass(slots=True)
class Deadline:
    """Wall-clock budget for one child process, cancellable from another thread."""

    timeout_seconds: float
    started_monotonic: float = field(default_factory=time.monotonic)
    _cancelled: threading.Event = field(default_factory=threading.Event)

    @property
    def expires_at(self) -> float:
        return self.started_monotonic + self.timeout_seconds

    def remaining(self) -> float:
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()


@dataclass(slots=True)
class ProcessOutcome:
    """Exit metadata for one child process."""

    exit_code: int
    timed_out: bool
    cancelled: bool
    stdout: str
    stderr: str


def run_with_deadline(  # noqa: PLR0913
    args: Sequence[str],
    *,
    deadline: Deadline,
    stdout_path: Path,
    stderr_path: Path,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
) -> ProcessOutcome:
    """Run ``args`` until it exits, the deadline expires, or the deadline is cancelled.

    Raises ``OSError`` (including ``FileNotFoundError``) when the process
    cannot be started.
    """

    with (
        stdout_path.open("w", encoding="utf-8") as stdout_handle,
        stderr_path.open("w", encoding="utf-8") as stderr_handle,
    ):
        process = subprocess.Popen(  # noqa: S603
            list(args),
            cwd=str(cwd) if cwd is not None else None,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=stdout_handle,
            stderr=stderr_handle,
            text=True,
            start_new_session=True,
        )
        timed_out = False
        cancelled = False
        while True:
            returncode = process.poll()
            if returncode is not None:
                break
            if deadline.expired():
                timed_out = True
                terminate_process(process)
                break
            if deadline.cancelled:
                cancelled = True
                terminate_process(process)
                break
            time.sleep(min(_POLL_INTERVAL_SECONDS, max(deadline.remaining(), 0.001)))

    if timed_out:
        exit_code = TIMEOUT_EXIT_CODE
    elif cancelled:
        exit_code = CANCELLED_EXIT_CODE
    else:
        exit_code = int(process.returncode)
    return ProcessOutcome(
        exit_code=exit_code,
        timed_out=timed_out,
        cancelled=cancelled,
        stdout=_read_text(stdout_path),
        stderr=_read_text(stderr_path),
    )


def terminate_process(process: subprocess.Popen[str] | subprocess.Popen[bytes]) -> None:
    """SIGTERM the child's process group, SIGKILL it after a short grace period.

    The group is killed even when the child exits on SIGTERM, so processes it
    spawned cannot outlive it.
    """

    _signal_group(process, signal.SIGTERM)
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Process %s ignored SIGTERM, killing", process.pid)
    _signal_group(process, signal.SIGKILL)
    try:
        process.wait(timeout=_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.error("Process %s is still alive after SIGKILL", process.pid)


def _signal_group(
    process: subprocess.Popen[str] | subprocess.Popen[bytes],
    signum: signal.Signals,
) -> None:
    try:
        os.killpg(process.pid, signum)
    except ProcessLookupError:
        return
    except PermissionError:
        if process.poll() is None:
            process.send_signal(signum)


def _read_text(path: Path) -> str:
    try:
        return path.read_text("utf-8", errors="replace")
    except FileNotFoundError:
        return ""
