"""Temporary per-execution workspaces."""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from script_studio.errors import WorkspaceError

logger = logging.getLogger(__name__)

SCRIPT_FILENAME = "script.py"
STDOUT_FILENAME = "stdout.log"
STDERR_FILENAME = "stderr.log"
_WORKSPACE_PREFIX = "script-studio-"


@contextmanager
def script_workspace(root: Path | None = None) -> Iterator[Path]:
    """Yield a fresh private directory and remove it on every exit path."""

    try:
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        workspace = Path(tempfile.mkdtemp(prefix=_WORKSPACE_PREFIX, dir=root))
    except OSError as error:
        raise WorkspaceError(f"Could not create execution workspace: {error}") from error

    try:
        yield workspace
    finally:
        shutil.rmtree(workspace, ignore_errors=True)
        if workspace.exists():
            logger.warning("Workspace %s could not be fully removed", workspace)


def normalize_inputs(inputs: Mapping[str, Any] | None) -> dict[str, Any]:
    """Round-trip inputs through JSON so only plain literals reach the script."""

    if not inputs:
        return {}
    try:
        return json.loads(json.dumps(dict(inputs), allow_nan=False))
    except (TypeError, ValueError) as error:
        raise WorkspaceError(f"Execution inputs are not JSON-serializable: {error}") from error


def compose_source(content: str, inputs: Mapping[str, Any] | None) -> str:
    """Prefix ``content`` with an ``INPUTS = {...}`` line when inputs are given."""

    normalized = normalize_inputs(inputs)
    if not normalized:
        return content
    return f"INPUTS = {normalized!r}\n{content}"


def write_script(workspace: Path, source: str) -> Path:
    path = workspace / SCRIPT_FILENAME
    try:
        path.write_text(source, "utf-8")
    except OSError as error:
        raise WorkspaceError(f"Could not write script to workspace: {error}") from error
    return path
