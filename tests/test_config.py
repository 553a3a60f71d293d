from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import allure
import pytest

from script_studio.config import (
    BackendSettings,
    ExecutionSettings,
    GenerationSettings,
    JobSettings,
    Settings,
)

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment Settings"),
]


def test_defaults_are_valid() -> None:
    settings = Settings()

    settings.validate()
    assert settings.generation.backend_order == ("openai", "anthropic")
    assert settings.execution.default_timeout_seconds == 30


def test_from_env_reads_overrides(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("SCRIPT_STUDIO_BACKEND_ORDER", "Anthropic, openai, anthropic")
    monkeypatch.setenv("SCRIPT_STUDIO_DEFAULT_TIMEOUT_SECONDS", "45")
    monkeypatch.setenv("SCRIPT_STUDIO_WORKSPACE_ROOT", str(tmp_path / "ws"))
    monkeypatch.setenv("SCRIPT_STUDIO_OPENAI_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("SCRIPT_STUDIO_USER_ID", "alice")

    settings = Settings.from_env(db_path=tmp_path / "x.db")

    assert settings.db_path == tmp_path / "x.db"
    assert settings.generation.backend_order == ("anthropic", "openai")
    assert settings.execution.default_timeout_seconds == 45
    assert settings.execution.workspace_root == tmp_path / "ws"
    assert settings.generation.backends["openai"].model == "gpt-4o-mini"
    assert settings.user_context.user_id == "alice"


def test_extra_cli_backends_are_parsed(monkeypatch) -> None:
    monkeypatch.setenv(
        "SCRIPT_STUDIO_CLI_BACKENDS",
        "Local=my-agent --prompt-file {prompt_file}; other=agent2 {prompt}",
    )
    monkeypatch.setenv("SCRIPT_STUDIO_LOCAL_TIMEOUT_SECONDS", "7")

    backends = Settings.from_env().generation.backends

    assert backends["local"].kind == "cli"
    assert backends["local"].command_template == "my-agent --prompt-file {prompt_file}"
    assert backends["local"].timeout_seconds == 7.0
    assert backends["other"].command_template == "agent2 {prompt}"


def test_malformed_cli_backend_entry_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("SCRIPT_STUDIO_CLI_BACKENDS", "no-equals-sign")

    with pytest.raises(ValueError, match="Expected format"):
        Settings.from_env()


def test_validate_rejects_unknown_backend_in_order() -> None:
    settings = Settings(
        generation=GenerationSettings(backend_order=("openai", "missing")),
    )

    with pytest.raises(ValueError, match="unknown backend: 'missing'"):
        settings.validate()


def test_validate_rejects_cli_template_without_prompt_placeholder() -> None:
    settings = Settings(
        generation=GenerationSettings(
            backend_order=("bad",),
            backends={
                "bad": BackendSettings(name="bad", kind="cli", model="", command_template="x"),
            },
        ),
    )

    with pytest.raises(ValueError, match="must include"):
        settings.validate()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(jobs=JobSettings(max_workers=0)), "JOB_MAX_WORKERS"),
        (
            Settings(execution=ExecutionSettings(default_timeout_seconds=0)),
            "DEFAULT_TIMEOUT_SECONDS",
        ),
        (Settings(execution=ExecutionSettings(interpreter=" ")), "INTERPRETER"),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()


def test_validate_rejects_bad_http_backend() -> None:
    base = Settings()
    backends = dict(base.generation.backends)
    backends["openai"] = replace(backends["openai"], base_url="ftp://nowhere")

    with pytest.raises(ValueError, match="Invalid base URL"):
        replace(base, generation=GenerationSettings(backends=backends)).validate()
