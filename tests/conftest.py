"""Shared test fixtures."""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import replace
from pathlib import Path

import pytest

from script_studio.config import Settings

_SRC_DIR = Path(__file__).resolve().parents[1] / "src"
_ECHO_AGENT = f"{shlex.quote(sys.executable)} -m script_studio.generation.backends.echo_agent"

ECHO_BACKENDS = {
    "echo": f"{_ECHO_AGENT} --prompt-file {{prompt_file}}",
    "echo_empty": f"{_ECHO_AGENT} --mode empty --prompt-file {{prompt_file}}",
    "echo_fail": f"{_ECHO_AGENT} --mode fail --prompt-file {{prompt_file}}",
}


@pytest.fixture()
def echo_agent(monkeypatch):
    """Register echo agent CLI backends and a local interpreter through the environment."""

    pythonpath = os.environ.get("PYTHONPATH", "")
    monkeypatch.setenv(
        "PYTHONPATH",
        os.pathsep.join(part for part in (str(_SRC_DIR), pythonpath) if part),
    )
    monkeypatch.setenv(
        "SCRIPT_STUDIO_CLI_BACKENDS",
        ";".join(f"{name}={template}" for name, template in ECHO_BACKENDS.items()),
    )
    monkeypatch.setenv("SCRIPT_STUDIO_BACKEND_ORDER", "echo")
    monkeypatch.setenv("SCRIPT_STUDIO_INTERPRETER", shlex.quote(sys.executable))
    monkeypatch.setenv("SCRIPT_STUDIO_ECHO_TIMEOUT_SECONDS", "60")
    return dict(ECHO_BACKENDS)


@pytest.fixture()
def settings(tmp_path: Path, echo_agent) -> Settings:
    loaded = Settings.from_env(db_path=tmp_path / "studio.db")
    return replace(
        loaded,
        execution=replace(loaded.execution, workspace_root=tmp_path / "workspaces"),
    )
