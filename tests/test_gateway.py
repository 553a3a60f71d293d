from __future__ import annotations

import logging

import allure
import pytest

from script_studio.errors import BackendError, EmptyGenerationError, NoBackendsConfiguredError
from script_studio.generation.gateway import ModelGateway

pytestmark = [
    allure.epic("Generation Pipeline"),
    allure.feature("Backend Fallback"),
]


class _FakeBackend:
    def __init__(self, name: str, *, text: str | None = None, error: Exception | None = None):
        self.name = name
        self._text = text
        self._error = error
        self.calls: list[str] = []

    def generate(self, prompt: str) -> str:
        self.calls.append(prompt)
        if self._error is not None:
            raise self._error
        return self._text or ""


def _gateway(*backends: _FakeBackend) -> ModelGateway:
    return ModelGateway({backend.name: backend for backend in backends})


def test_falls_back_until_a_backend_answers_and_stops_there() -> None:
    a = _FakeBackend("a", error=BackendError("503 unavailable", backend="a", transient=True))
    b = _FakeBackend("b", error=RuntimeError("boom"))
    c = _FakeBackend("c", text="print('c')")
    d = _FakeBackend("d", text="print('d')")
    gateway = _gateway(a, b, c, d)

    outcome = gateway.generate("prompt", ["a", "b", "c", "d"])

    assert outcome.text == "print('c')"
    assert outcome.backend == "c"
    assert [attempt.backend for attempt in outcome.attempts] == ["a", "b", "c"]
    assert [attempt.ok for attempt in outcome.attempts] == [False, False, True]
    assert outcome.attempts[0].reason_code == "a_backend_transient"
    assert a.calls == b.calls == c.calls == ["prompt"]
    assert d.calls == []


def test_whitespace_output_counts_as_failure() -> None:
    blank = _FakeBackend("blank", text="  \n\t")
    good = _FakeBackend("good", text="x = 1")

    outcome = _gateway(blank, good).generate("p", ["blank", "good"])

    assert outcome.backend == "good"
    assert outcome.attempts[0].reason_code == "blank_empty_output"


def test_last_failure_propagates_unchanged() -> None:
    last_error = BackendError("HTTP 401 unauthorized", backend="second", transient=False)
    first = _FakeBackend("first", error=RuntimeError("first failed"))
    second = _FakeBackend("second", error=last_error)

    with pytest.raises(BackendError) as raised:
        _gateway(first, second).generate("p", ["first", "second"])

    assert raised.value is last_error


def test_all_empty_backends_raise_empty_generation_error() -> None:
    gateway = _gateway(_FakeBackend("x", text=""), _FakeBackend("y", text=" "))

    with pytest.raises(EmptyGenerationError, match="'y' returned empty output"):
        gateway.generate("p", ["x", "y"])


def test_order_comes_from_the_caller() -> None:
    first = _FakeBackend("first", text="from first")
    second = _FakeBackend("second", text="from second")
    gateway = _gateway(first, second)

    assert gateway.generate("p", ["second", "first"]).backend == "second"
    assert first.calls == []


def test_empty_order_is_rejected() -> None:
    with pytest.raises(NoBackendsConfiguredError):
        _gateway(_FakeBackend("a", text="x")).generate("p", [])


def test_unknown_backend_is_rejected_before_any_call() -> None:
    known = _FakeBackend("known", text="x")

    with pytest.raises(ValueError, match="Unknown generation backend"):
        _gateway(known).generate("p", ["known", "missing"])

    assert known.calls == []


def test_resolve_order_normalizes_and_dedupes() -> None:
    gateway = _gateway(_FakeBackend("a", text="x"), _FakeBackend("b", text="y"))

    assert gateway.resolve_order([" A", "b", "a", ""]) == ("a", "b")


def test_fallback_is_logged_with_next_candidate(caplog) -> None:
    gateway = _gateway(
        _FakeBackend("a", error=RuntimeError("rate limit exceeded")),
        _FakeBackend("b", text="ok"),
    )

    with caplog.at_level(logging.WARNING, logger="script_studio.generation.gateway"):
        gateway.generate("p", ["a", "b"])

    assert "a_rate_limited" in caplog.text
    assert "falling back to b" in caplog.text


def test_failures_record_and_log_whether_they_are_transient(caplog) -> None:
    # The backend's own hint wins over the message text, which mentions a timeout.
    permanent = BackendError("gave up after timeout", backend="hinted", transient=False)
    gateway = _gateway(
        _FakeBackend("hinted", error=permanent),
        _FakeBackend("limited", error=RuntimeError("429 too many requests")),
        _FakeBackend("broken", error=RuntimeError("syntax error in config")),
        _FakeBackend("ok", text="print(1)"),
    )

    with caplog.at_level(logging.WARNING, logger="script_studio.generation.gateway"):
        outcome = gateway.generate("p", ["hinted", "limited", "broken", "ok"])

    assert [attempt.transient for attempt in outcome.attempts] == [False, True, False, None]
    messages = [record.getMessage() for record in caplog.records]
    assert any("hinted failed (hinted_backend_transient, transient=False)" in m for m in messages)
    assert any("limited failed (limited_rate_limited, transient=True)" in m for m in messages)
    assert any("transient=False), falling back to ok" in m for m in messages)
