"""Best-effort installation of script dependencies."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 500


@dataclass(slots=True)
class DependencyInstallResult:
    """Outcome of installing one dependency specifier."""

    spec: str
    ok: bool
    exit_code: int | None = None
    error: str | None = None
    stdout_preview: str = ""
    stderr_preview: str = ""


class DependencyInstaller:
    """Runs the configured installer command once per dependency.

    Failures are reported in the result and logged, never raised.
    """

    def __init__(self, *, command: str = "pip install", timeout_seconds: int = 120) -> None:
        self._command = shlex.split(command)
        if not self._command:
            raise ValueError("Installer command must not be empty.")
        self.timeout_seconds = timeout_seconds

    def install(self, spec: str) -> DependencyInstallResult:
        args = [*self._command, spec]
        try:
            completed = subprocess.run(  # noqa: S603
                args,
                check=False,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except subprocess.TimeoutExpired:
            result = DependencyInstallResult(
                spec=spec,
                ok=False,
                error=f"Install timed out after {self.timeout_seconds}s.",
            )
        except OSError as error:
            result = DependencyInstallResult(
                spec=spec,
                ok=False,
                error=f"Installer failed to start: {error}",
            )
        else:
            result = DependencyInstallResult(
                spec=spec,
                ok=completed.returncode == 0,
                exit_code=completed.returncode,
                error=None if completed.returncode == 0 else f"exit code {completed.returncode}",
                stdout_preview=_truncate(completed.stdout),
                stderr_preview=_truncate(completed.stderr),
            )

        if result.ok:
            logger.info("Installed dependency %s", spec)
        else:
            logger.warning(
                "Dependency install failed for %s: %s %s",
                spec,
                result.error,
                result.stderr_preview,
            )
        return result

    def install_all(self, specs: Sequence[str]) -> list[DependencyInstallResult]:
        """Install each specifier in order; one failure does not stop the rest."""

        return [self.install(spec) for spec in specs]


def _truncate(text: str | None) -> str:
    value = (text or "").strip()
    if len(value) <= _PREVIEW_CHARS:
        return value
    return value[:_PREVIEW_CHARS] + "..."
