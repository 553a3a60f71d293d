from __future__ import annotations

import logging
import subprocess
import sys
import threading
import time
from pathlib import Path

import allure
import pytest

from script_studio.process import (
    CANCELLED_EXIT_CODE,
    TIMEOUT_EXIT_CODE,
    Deadline,
    run_with_deadline,
    terminate_process,
)

pytestmark = [
    allure.epic("Script Execution"),
    allure.feature("Process Deadlines"),
]


def _run(tmp_path: Path, code: str, deadline: Deadline):
    return run_with_deadline(
        [sys.executable, "-c", code],
        deadline=deadline,
        stdout_path=tmp_path / "out.log",
        stderr_path=tmp_path / "err.log",
        cwd=tmp_path,
    )


def test_normal_exit_captures_output_and_code(tmp_path: Path) -> None:
    outcome = _run(
        tmp_path,
        "import sys; print('out'); sys.stderr.write('err'); sys.exit(5)",
        Deadline(timeout_seconds=10),
    )

    assert outcome.exit_code == 5
    assert not outcome.timed_out
    assert not outcome.cancelled
    assert outcome.stdout == "out\n"
    assert outcome.stderr == "err"


def test_expired_deadline_terminates_child(tmp_path: Path) -> None:
    started = time.monotonic()
    outcome = _run(tmp_path, "import time; time.sleep(30)", Deadline(timeout_seconds=0.5))

    assert outcome.timed_out
    assert outcome.exit_code == TIMEOUT_EXIT_CODE
    assert time.monotonic() - started < 5


def test_child_ignoring_sigterm_is_killed(tmp_path: Path) -> None:
    if sys.platform == "win32":  # pragma: no cover
        pytest.skip("SIGTERM semantics differ on Windows")
    code = (
        "import signal, time\n"
        "signal.signal(signal.SIGTERM, signal.SIG_IGN)\n"
        "print('ready', flush=True)\n"
        "time.sleep(30)\n"
    )

    started = time.monotonic()
    outcome = _run(tmp_path, code, Deadline(timeout_seconds=0.5))

    assert outcome.timed_out
    assert time.monotonic() - started < 8


def test_cancelled_deadline_stops_child(tmp_path: Path) -> None:
    deadline = Deadline(timeout_seconds=30)
    timer = threading.Timer(0.3, deadline.cancel)
    timer.start()
    try:
        outcome = _run(tmp_path, "import time; time.sleep(30)", deadline)
    finally:
        timer.cancel()

    assert outcome.cancelled
    assert not outcome.timed_out
    assert outcome.exit_code == CANCELLED_EXIT_CODE
    assert deadline.cancelled


def test_missing_executable_raises_os_error(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        run_with_deadline(
            ["script-studio-missing-binary"],
            deadline=Deadline(timeout_seconds=1),
            stdout_path=tmp_path / "out.log",
            stderr_path=tmp_path / "err.log",
        )


def test_deadline_remaining_and_expiry() -> None:
    deadline = Deadline(timeout_seconds=0.05)

    assert 0 < deadline.remaining() <= 0.05
    time.sleep(0.06)
    assert deadline.expired()
    assert deadline.remaining() == 0.0


class _UnkillableProcess:
    pid = 999_999

    def __init__(self) -> None:
        self.waits = 0

    def wait(self, timeout: float | None = None) -> int:
        self.waits += 1
        raise subprocess.TimeoutExpired(cmd="stuck", timeout=timeout or 0)

    def poll(self) -> None:
        return None


def test_terminate_gives_up_quietly_on_a_process_that_survives_sigkill(
    monkeypatch,
    caplog,
) -> None:
    signals: list[int] = []
    monkeypatch.setattr("script_studio.process.os.killpg", lambda pid, sig: signals.append(sig))
    monkeypatch.setattr("script_studio.process._TERMINATE_GRACE_SECONDS", 0.01)
    process = _UnkillableProcess()

    with caplog.at_level(logging.WARNING, logger="script_studio.process"):
        terminate_process(process)

    assert len(signals) == 2
    assert process.waits == 2
    assert "still alive after SIGKILL" in caplog.text
