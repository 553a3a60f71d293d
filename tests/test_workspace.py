from __future__ import annotations

import ast
from pathlib import Path

import allure
import pytest

from script_studio.errors import WorkspaceError
from script_studio.execution.workspace import (
    SCRIPT_FILENAME,
    compose_source,
    script_workspace,
    write_script,
)

pytestmark = [
    allure.epic("Script Execution"),
    allure.feature("Workspace Lifecycle"),
]


def test_workspace_is_removed_after_normal_exit(tmp_path: Path) -> None:
    with script_workspace(tmp_path) as workspace:
        write_script(workspace, "print(1)\n")
        (workspace / "nested").mkdir()
        (workspace / "nested" / "artifact.txt").write_text("x", "utf-8")
        assert (workspace / SCRIPT_FILENAME).exists()

    assert not workspace.exists()
    assert list(tmp_path.iterdir()) == []


def test_workspace_is_removed_when_body_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError, match="setup exploded"):
        with script_workspace(tmp_path) as workspace:
            write_script(workspace, "print(1)\n")
            raise RuntimeError("setup exploded")

    assert not workspace.exists()


def test_workspace_root_is_created_on_demand(tmp_path: Path) -> None:
    root = tmp_path / "deep" / "root"

    with script_workspace(root) as workspace:
        assert workspace.parent == root

    assert root.exists()
    assert not workspace.exists()


def test_unusable_root_raises_workspace_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file-not-dir"
    blocker.write_text("x", "utf-8")

    with pytest.raises(WorkspaceError, match="Could not create execution workspace"):
        with script_workspace(blocker):
            pass  # pragma: no cover


def test_compose_source_puts_inputs_on_the_first_line() -> None:
    source = compose_source("print(INPUTS)\n", {"b": [1, 2], "a": None, "nested": {"k": "v"}})

    first, rest = source.split("\n", 1)
    assert first.startswith("INPUTS = ")
    assert ast.literal_eval(first.removeprefix("INPUTS = ")) == {
        "b": [1, 2],
        "a": None,
        "nested": {"k": "v"},
    }
    assert rest == "print(INPUTS)\n"


def test_compose_source_normalizes_tuples_to_lists() -> None:
    source = compose_source("", {"pair": (1, 2)})

    assert source == "INPUTS = {'pair': [1, 2]}\n"


def test_compose_source_without_inputs_is_identity() -> None:
    assert compose_source("x = 1\n", None) == "x = 1\n"
    assert compose_source("x = 1\n", {}) == "x = 1\n"


@pytest.mark.parametrize("value", [float("nan"), float("inf"), object()])
def test_compose_source_rejects_non_json_values(value: object) -> None:
    with pytest.raises(WorkspaceError, match="not JSON-serializable"):
        compose_source("pass\n", {"value": value})
