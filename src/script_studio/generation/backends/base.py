"""Backend interface for text generation."""

from __future__ import annotations

from typing import Protocol


class GenerationBackend(Protocol):
    """Protocol implemented by generation backends.

    The contract is "return generated text or raise": implementations raise
    ``BackendError`` for failures they can describe, and may let any other
    exception escape; the gateway treats both as a failed candidate.
    """

    name: str

    def generate(self, prompt: str) -> str:
        """Return generated text for ``prompt``."""
