"""Runtime configuration for the job pipeline and the execution engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

SUPPORTED_BACKEND_KINDS = ("http", "cli")
SUPPORTED_HTTP_PROVIDERS = ("openai", "anthropic")


@dataclass(slots=True)
class BackendSettings:
    """One named text-generation backend."""

    name: str
    kind: str
    model: str
    provider: str = ""
    base_url: str = ""
    api_key_env: str = ""
    command_template: str = ""
    timeout_seconds: float = 120.0
    max_tokens: int = 4096


@dataclass(slots=True)
class GenerationSettings:
    """Backend catalogue and default fallback order."""

    backend_order: tuple[str, ...] = ("openai", "anthropic")
    backends: dict[str, BackendSettings] = field(default_factory=lambda: _default_backends())


@dataclass(slots=True)
class JobSettings:
    """Background job runner settings."""

    max_workers: int = 4
    shutdown_wait_seconds: float = 30.0


@dataclass(slots=True)
class ExecutionSettings:
    """Script execution engine settings."""

    interpreter: str = "python3"
    installer: str = "pip install"
    default_timeout_seconds: int = 30
    install_timeout_seconds: int = 120
    workspace_root: Path | None = None


@dataclass(slots=True)
class UserContextSettings:
    """User context settings."""

    user_id: str = "default_user"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".script_studio.db")
    sqlite_busy_timeout_ms: int = 5_000
    jobs: JobSettings = field(default_factory=JobSettings)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)
    user_context: UserContextSettings = field(default_factory=UserContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        backends = _default_backends()
        for backend in backends.values():
            _apply_backend_overrides(backend)
        backends.update(_collect_extra_cli_backends())

        workspace_root = os.getenv("SCRIPT_STUDIO_WORKSPACE_ROOT", "").strip()
        return cls(
            db_path=db_path or Path(os.getenv("SCRIPT_STUDIO_DB_PATH", ".script_studio.db")),
            sqlite_busy_timeout_ms=int(os.getenv("SCRIPT_STUDIO_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            jobs=JobSettings(
                max_workers=int(os.getenv("SCRIPT_STUDIO_JOB_MAX_WORKERS", "4")),
                shutdown_wait_seconds=float(
                    os.getenv("SCRIPT_STUDIO_JOB_SHUTDOWN_WAIT_SECONDS", "30"),
                ),
            ),
            generation=GenerationSettings(
                backend_order=_split_names(
                    os.getenv("SCRIPT_STUDIO_BACKEND_ORDER", "openai,anthropic"),
                ),
                backends=backends,
            ),
            execution=ExecutionSettings(
                interpreter=os.getenv("SCRIPT_STUDIO_INTERPRETER", "python3"),
                installer=os.getenv("SCRIPT_STUDIO_INSTALLER", "pip install"),
                default_timeout_seconds=int(
                    os.getenv("SCRIPT_STUDIO_DEFAULT_TIMEOUT_SECONDS", "30"),
                ),
                install_timeout_seconds=int(
                    os.getenv("SCRIPT_STUDIO_INSTALL_TIMEOUT_SECONDS", "120"),
                ),
                workspace_root=Path(workspace_root) if workspace_root else None,
            ),
            user_context=UserContextSettings(
                user_id=os.getenv("SCRIPT_STUDIO_USER_ID", "default_user"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if self.jobs.max_workers <= 0:
            raise ValueError("SCRIPT_STUDIO_JOB_MAX_WORKERS must be > 0.")
        if self.execution.default_timeout_seconds <= 0:
            raise ValueError("SCRIPT_STUDIO_DEFAULT_TIMEOUT_SECONDS must be > 0.")
        if self.execution.install_timeout_seconds <= 0:
            raise ValueError("SCRIPT_STUDIO_INSTALL_TIMEOUT_SECONDS must be > 0.")
        if not self.execution.interpreter.strip():
            raise ValueError("SCRIPT_STUDIO_INTERPRETER must not be empty.")
        if not self.execution.installer.strip():
            raise ValueError("SCRIPT_STUDIO_INSTALLER must not be empty.")
        for name in self.generation.backend_order:
            if name not in self.generation.backends:
                raise ValueError(
                    f"SCRIPT_STUDIO_BACKEND_ORDER references unknown backend: {name!r}",
                )
        for backend in self.generation.backends.values():
            _validate_backend(backend)


def _default_backends() -> dict[str, BackendSettings]:
    return {
        "openai": BackendSettings(
            name="openai",
            kind="http",
            provider="openai",
            model="gpt-4o",
            base_url="https://api.openai.com/v1",
            api_key_env="OPENAI_API_KEY",
        ),
        "anthropic": BackendSettings(
            name="anthropic",
            kind="http",
            provider="anthropic",
            model="claude-sonnet-4-5",
            base_url="https://api.anthropic.com/v1",
            api_key_env="ANTHROPIC_API_KEY",
        ),
        "claude_cli": BackendSettings(
            name="claude_cli",
            kind="cli",
            model="sonnet",
            command_template="claude -p --model {model} -- {prompt}",
        ),
    }


def _apply_backend_overrides(backend: BackendSettings) -> None:
    prefix = f"SCRIPT_STUDIO_{backend.name.upper()}_"
    backend.model = os.getenv(f"{prefix}MODEL", backend.model)
    backend.base_url = os.getenv(f"{prefix}BASE_URL", backend.base_url)
    backend.command_template = os.getenv(f"{prefix}COMMAND_TEMPLATE", backend.command_template)
    backend.timeout_seconds = float(
        os.getenv(f"{prefix}TIMEOUT_SECONDS", str(backend.timeout_seconds)),
    )


def _collect_extra_cli_backends() -> dict[str, BackendSettings]:
    raw = os.getenv("SCRIPT_STUDIO_CLI_BACKENDS", "").strip()
    if not raw:
        return {}

    extra: dict[str, BackendSettings] = {}
    for part in raw.split(";"):
        token = part.strip()
        if not token:
            continue
        if "=" not in token:
            raise ValueError(
                "Invalid SCRIPT_STUDIO_CLI_BACKENDS entry: "
                f"{token!r}. Expected format '<name>=<command template>'.",
            )
        name, template = token.split("=", 1)
        name = name.strip().lower()
        template = template.strip()
        if not name or not template:
            raise ValueError(f"Invalid SCRIPT_STUDIO_CLI_BACKENDS entry: {token!r}")
        backend = BackendSettings(name=name, kind="cli", model="", command_template=template)
        _apply_backend_overrides(backend)
        extra[name] = backend
    return extra


def _split_names(raw: str) -> tuple[str, ...]:
    names: list[str] = []
    for part in raw.split(","):
        name = part.strip().lower()
        if name and name not in names:
            names.append(name)
    return tuple(names)


def _validate_backend(backend: BackendSettings) -> None:
    if backend.kind not in SUPPORTED_BACKEND_KINDS:
        raise ValueError(f"Unsupported backend kind for {backend.name!r}: {backend.kind!r}")
    if backend.timeout_seconds <= 0:
        raise ValueError(f"Backend timeout must be > 0 for {backend.name!r}")
    if backend.kind == "http":
        if backend.provider not in SUPPORTED_HTTP_PROVIDERS:
            raise ValueError(
                f"Unsupported HTTP provider for {backend.name!r}: {backend.provider!r}",
            )
        if not backend.base_url.startswith(("http://", "https://")):
            raise ValueError(f"Invalid base URL for {backend.name!r}: {backend.base_url!r}")
        return
    if "{prompt}" not in backend.command_template and (
        "{prompt_file}" not in backend.command_template
    ):
        raise ValueError(
            f"Command template for {backend.name!r} must include {{prompt}} or {{prompt_file}}.",
        )
