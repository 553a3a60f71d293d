"""Deterministic classification of generation backend failures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureClass(str, Enum):
    """Normalized failure classes reported in gateway logs."""

    EMPTY_OUTPUT = "empty_output"
    BILLING_OR_QUOTA = "billing_or_quota"
    ACCESS_OR_AUTH = "access_or_auth"
    MODEL_NOT_AVAILABLE = "model_not_available"
    RATE_LIMITED = "rate_limited"
    BACKEND_TRANSIENT = "backend_transient"
    BACKEND_NON_RETRYABLE = "backend_non_retryable"


_RULES: tuple[tuple[FailureClass, tuple[str, ...]], ...] = (
    (
        FailureClass.EMPTY_OUTPUT,
        ("returned empty output",),
    ),
    (
        FailureClass.BILLING_OR_QUOTA,
        ("quota", "resource_exhausted", "insufficient", "billing", "payment", "credits"),
    ),
    (
        FailureClass.ACCESS_OR_AUTH,
        ("unauthorized", "forbidden", "permission denied", "invalid api key", "401", "403"),
    ),
    (
        FailureClass.MODEL_NOT_AVAILABLE,
        ("model not found", "unknown model", "unsupported model", "invalid model"),
    ),
    (
        FailureClass.RATE_LIMITED,
        ("too many requests", "rate limit", "429", "overloaded"),
    ),
    (
        FailureClass.BACKEND_TRANSIENT,
        (
            "timed out",
            "timeout",
            "temporarily unavailable",
            "connection reset",
            "connection refused",
            "network error",
            "502",
            "503",
            "504",
        ),
    ),
)


@dataclass(slots=True)
class BackendFailureClassification:
    """Normalized failure classification result."""

    failure_class: FailureClass
    reason_code: str
    matched_pattern: str | None


def classify_backend_failure(
    *,
    backend: str,
    error: BaseException,
) -> BackendFailureClassification:
    """Classify one failed backend call from its exception text."""

    haystack = f"{type(error).__name__}: {error}".lower()
    for failure_class, patterns in _RULES:
        for pattern in patterns:
            if pattern in haystack:
                return BackendFailureClassification(
                    failure_class=failure_class,
                    reason_code=f"{backend}_{failure_class.value}",
                    matched_pattern=pattern,
                )
    return BackendFailureClassification(
        failure_class=FailureClass.BACKEND_NON_RETRYABLE,
        reason_code=f"{backend}_{FailureClass.BACKEND_NON_RETRYABLE.value}",
        matched_pattern=None,
    )


def is_transient(classification: BackendFailureClassification) -> bool:
    return classification.failure_class in {
        FailureClass.EMPTY_OUTPUT,
        FailureClass.RATE_LIMITED,
        FailureClass.BACKEND_TRANSIENT,
    }
