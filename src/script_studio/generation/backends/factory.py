"""Builds generation backends from settings."""

from __future__ import annotations

from script_studio.config import BackendSettings, GenerationSettings
from script_studio.generation.backends.base import GenerationBackend
from script_studio.generation.backends.cli_backend import CliGenerationBackend
from script_studio.generation.backends.http_backend import HttpChatBackend


def build_backend(settings: BackendSettings) -> GenerationBackend:
    """Instantiate one backend for its configured kind."""

    if settings.kind == "http":
        return HttpChatBackend(
            name=settings.name,
            provider=settings.provider,
            model=settings.model,
            base_url=settings.base_url,
            api_key_env=settings.api_key_env,
            timeout_seconds=settings.timeout_seconds,
            max_tokens=settings.max_tokens,
        )
    if settings.kind == "cli":
        return CliGenerationBackend(
            name=settings.name,
            command_template=settings.command_template,
            model=settings.model,
            timeout_seconds=settings.timeout_seconds,
        )
    raise ValueError(f"Unsupported backend kind for {settings.name!r}: {settings.kind!r}")


def build_backends(settings: GenerationSettings) -> dict[str, GenerationBackend]:
    return {name: build_backend(backend) for name, backend in settings.backends.items()}
