"""Generation backend implementations."""

from script_studio.generation.backends.base import GenerationBackend
from script_studio.generation.backends.cli_backend import CliGenerationBackend
from script_studio.generation.backends.factory import build_backend, build_backends
from script_studio.generation.backends.http_backend import HttpChatBackend

__all__ = [
    "CliGenerationBackend",
    "GenerationBackend",
    "HttpChatBackend",
    "build_backend",
    "build_backends",
]
