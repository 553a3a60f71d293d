"""Ordered multi-backend text generation with fallback."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from script_studio.config import GenerationSettings
from script_studio.errors import BackendError, EmptyGenerationError, NoBackendsConfiguredError
from script_studio.generation.backends.base import GenerationBackend
from script_studio.generation.backends.factory import build_backends
from script_studio.generation.failure_classifier import (
    BackendFailureClassification,
    classify_backend_failure,
    is_transient,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BackendAttempt:
    """One candidate call made by the gateway."""

    backend: str
    ok: bool
    reason_code: str | None = None
    error: str | None = None
    transient: bool | None = None


@dataclass(slots=True)
class GenerationOutcome:
    """First usable generation result and the attempts that led to it."""

    text: str
    backend: str
    attempts: list[BackendAttempt] = field(default_factory=list)


class ModelGateway:
    """Tries backends in caller-supplied order and returns the first usable text."""

    def __init__(self, backends: Mapping[str, GenerationBackend]) -> None:
        self._backends = dict(backends)

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> ModelGateway:
        return cls(build_backends(settings))

    @property
    def backend_names(self) -> tuple[str, ...]:
        return tuple(self._backends)

    def resolve_order(self, ordered_backends: Iterable[str]) -> tuple[str, ...]:
        """Normalize and validate a backend order without calling anything."""

        order: list[str] = []
        for raw in ordered_backends:
            name = raw.strip().lower()
            if not name or name in order:
                continue
            if name not in self._backends:
                known = ", ".join(sorted(self._backends)) or "none"
                raise ValueError(f"Unknown generation backend: {raw!r} (known: {known})")
            order.append(name)
        return tuple(order)

    def generate(self, prompt: str, ordered_backends: Iterable[str]) -> GenerationOutcome:
        """Return the first non-empty result; re-raise the last candidate's failure."""

        order = self.resolve_order(ordered_backends)
        if not order:
            raise NoBackendsConfiguredError("No generation backends were requested.")

        attempts: list[BackendAttempt] = []
        for index, name in enumerate(order):
            is_last = index == len(order) - 1
            try:
                text = self._backends[name].generate(prompt)
                if not isinstance(text, str) or not text.strip():
                    raise EmptyGenerationError(name)
            except Exception as error:
                classification = classify_backend_failure(backend=name, error=error)
                transient = _is_transient_failure(error, classification)
                attempts.append(
                    BackendAttempt(
                        backend=name,
                        ok=False,
                        reason_code=classification.reason_code,
                        error=str(error),
                        transient=transient,
                    ),
                )
                if is_last:
                    logger.error(
                        "Backend %s failed (%s, transient=%s), no candidates left: %s",
                        name,
                        classification.reason_code,
                        transient,
                        error,
                    )
                    raise
                logger.warning(
                    "Backend %s failed (%s, transient=%s), falling back to %s: %s",
                    name,
                    classification.reason_code,
                    transient,
                    order[index + 1],
                    error,
                )
                continue

            attempts.append(BackendAttempt(backend=name, ok=True))
            logger.info("Generated %d chars with backend %s", len(text), name)
            return GenerationOutcome(text=text, backend=name, attempts=attempts)

        raise RuntimeError("All generation backends exhausted")  # pragma: no cover


def _is_transient_failure(
    error: BaseException,
    classification: BackendFailureClassification,
) -> bool:
    if isinstance(error, BackendError):
        return error.transient
    return is_transient(classification)
