"""Error taxonomy shared by the job pipeline and the execution engine."""

from __future__ import annotations


class ScriptStudioError(RuntimeError):
    """Base class for script-studio errors."""


class BackendError(ScriptStudioError):
    """One generation backend failed, with a retryability hint."""

    def __init__(self, message: str, *, backend: str, transient: bool) -> None:
        super().__init__(message)
        self.backend = backend
        self.transient = transient


class EmptyGenerationError(BackendError):
    """Backend answered with empty or whitespace-only output."""

    def __init__(self, backend: str) -> None:
        super().__init__(
            f"Backend {backend!r} returned empty output.",
            backend=backend,
            transient=True,
        )


class NoBackendsConfiguredError(ScriptStudioError):
    """Generation was requested with an empty backend order."""


class JobStateError(ScriptStudioError):
    """Requested job mutation would break the job lifecycle."""


class WorkspaceError(ScriptStudioError):
    """Execution workspace could not be prepared."""
