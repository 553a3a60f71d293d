from __future__ import annotations

from pathlib import Path

import allure
import pytest

from script_studio.errors import BackendError
from script_studio.generation.backends.cli_backend import CliGenerationBackend, _build_run_args

pytestmark = [
    allure.epic("Generation Pipeline"),
    allure.feature("Agent Command Rendering"),
]


def test_build_run_args_quotes_placeholder_values() -> None:
    argv = _build_run_args(
        backend="claude_cli",
        command_template="claude -p --model {model} -- {prompt}",
        model="sonnet",
        prompt='write "hello" script',
        prompt_file=Path("prompt.txt"),
    )

    assert argv == ["claude", "-p", "--model", "sonnet", "--", 'write "hello" script']


def test_build_run_args_renders_prompt_file_with_spaces() -> None:
    argv = _build_run_args(
        backend="runner",
        command_template="runner --input {prompt_file}",
        model="",
        prompt="ignored",
        prompt_file=Path("some dir/prompt.txt"),
    )

    assert argv == ["runner", "--input", "some dir/prompt.txt"]


def test_build_run_args_rejects_template_without_prompt() -> None:
    with pytest.raises(BackendError, match="must include"):
        _build_run_args(
            backend="broken",
            command_template="runner --model {model}",
            model="m",
            prompt="p",
            prompt_file=Path("p.txt"),
        )


def test_build_run_args_rejects_unknown_placeholder() -> None:
    with pytest.raises(BackendError, match="Unsupported command template placeholder"):
        _build_run_args(
            backend="broken",
            command_template="runner {prompt} {workdir}",
            model="",
            prompt="p",
            prompt_file=Path("p.txt"),
        )


def test_echo_agent_backend_returns_generated_script(echo_agent) -> None:
    backend = CliGenerationBackend(name="echo", command_template=echo_agent["echo"])

    text = backend.generate("Print a greeting\nsecond line")

    assert "# @name: echo_script" in text
    assert "# @description: Print a greeting" in text
    assert "hello from echo agent" in text


def test_failing_agent_raises_backend_error_with_stderr(echo_agent) -> None:
    backend = CliGenerationBackend(name="echo_fail", command_template=echo_agent["echo_fail"])

    with pytest.raises(BackendError, match="exited with code 1") as raised:
        backend.generate("anything")

    assert "simulated backend failure" in str(raised.value)
    assert raised.value.backend == "echo_fail"


def test_missing_command_is_not_transient() -> None:
    backend = CliGenerationBackend(
        name="ghost",
        command_template="script-studio-no-such-binary-xyz {prompt}",
    )

    with pytest.raises(BackendError, match="command not found") as raised:
        backend.generate("p")

    assert raised.value.transient is False
