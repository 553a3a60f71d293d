from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import allure
import pytest

from script_studio.execution.library import script_from_job, script_from_source, script_patch
from script_studio.execution.models import (
    ExecutionCreate,
    ExecutionStatus,
    ScriptCreate,
    ScriptPatch,
)
from script_studio.execution.repository import ExecutionRepository, ScriptRepository
from script_studio.jobs.models import JobKind, JobStatus, JobView

pytestmark = [
    allure.epic("Script Execution"),
    allure.feature("Script Storage"),
]


@pytest.fixture()
def repositories(tmp_path: Path):
    db_path = tmp_path / "scripts.db"
    scripts = ScriptRepository(db_path)
    scripts.init_schema()
    executions = ExecutionRepository(db_path)
    yield scripts, executions
    scripts.close()
    executions.close()


def _job(**overrides) -> JobView:
    now = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
    values = {
        "job_id": "job-1",
        "owner_id": "default_user",
        "kind": JobKind.GENERATION,
        "status": JobStatus.COMPLETED,
        "input": {"description": "x"},
        "result": {
            "text": "# @name: from_job\nprint(1)\n",
            "metadata": {"name": "from_job", "tags": ["gen"], "timeout_seconds": 9},
        },
        "error": None,
        "progress": 100,
        "started_at": now,
        "completed_at": now,
        "created_at": now,
        "updated_at": now,
    }
    values.update(overrides)
    return JobView(**values)


def test_create_get_and_update_script(repositories) -> None:
    scripts, _ = repositories
    created = scripts.create(
        ScriptCreate(
            name=" report ",
            content="print(1)\n",
            tags=["a"],
            requirements=["rich", " ", "httpx>=0.27"],
        ),
    )

    assert created.name == "report"
    assert created.requirements == ["rich", "httpx>=0.27"]
    assert created.last_run_at is None
    assert scripts.get(created.script_id) == created

    ran_at = datetime(2026, 10, 18, 9, 30, 0, 123000, tzinfo=UTC)
    updated = scripts.update(
        created.script_id,
        ScriptPatch(description="daily report", last_run_at=ran_at),
    )
    assert updated is not None
    assert updated.description == "daily report"
    assert updated.last_run_at == ran_at
    assert updated.content == "print(1)\n"


def test_update_unknown_script_returns_none(repositories) -> None:
    scripts, _ = repositories

    assert scripts.update("missing", ScriptPatch(description="x")) is None


def test_blank_name_is_rejected(repositories) -> None:
    scripts, _ = repositories

    with pytest.raises(ValueError, match="name must not be empty"):
        scripts.create(ScriptCreate(name="  ", content="pass\n"))


def test_execution_store_only_accepts_terminal_records(repositories) -> None:
    scripts, executions = repositories
    script = scripts.create(ScriptCreate(name="s", content="pass\n"))

    for status, exit_code in ((ExecutionStatus.RUNNING, None), (ExecutionStatus.COMPLETED, None)):
        with pytest.raises(ValueError):
            executions.create(
                ExecutionCreate(
                    script_id=script.script_id,
                    triggered_by="test",
                    status=status,
                    inputs=None,
                    stdout="",
                    stderr="",
                    exit_code=exit_code,
                    duration_ms=None,
                    started_at=None,
                    completed_at=None,
                ),
            )

    assert executions.list_for_script(script.script_id) == []


def test_script_from_source_fills_blanks_from_headers() -> None:
    payload = script_from_source(
        "```python\n# @name: tidy\n# @description: Tidy files\n"
        "# @tags: fs, cleanup\nprint(1)\n```",
        requirements=["rich"],
    )

    assert payload.name == "tidy"
    assert payload.description == "Tidy files"
    assert payload.tags == ["fs", "cleanup"]
    assert payload.requirements == ["rich"]
    assert payload.content.startswith("# @name: tidy")
    assert payload.metadata is not None
    assert payload.metadata["name"] == "tidy"


def test_script_from_source_explicit_values_win() -> None:
    payload = script_from_source(
        "# @name: header_name\nprint(1)\n",
        name="explicit",
        description="",
        tags=[],
    )

    assert payload.name == "explicit"
    assert payload.description == ""
    assert payload.tags == []


def test_script_from_headerless_source_gets_fallback_name() -> None:
    assert script_from_source("print(1)\n").name == "untitled_script"


def test_script_from_completed_generation_job() -> None:
    payload = script_from_job(_job(), requirements=["rich"])

    assert payload.name == "from_job"
    assert payload.tags == ["gen"]
    assert payload.metadata is not None
    assert payload.metadata["timeout_seconds"] == 9
    assert payload.content == "# @name: from_job\nprint(1)\n"


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"status": JobStatus.FAILED, "result": None, "error": "x"}, "expected completed"),
        ({"kind": JobKind.ANALYSIS}, "not a generation job"),
        ({"result": {"text": "   ", "metadata": {}}}, "no generated text"),
    ],
)
def test_script_from_job_rejects_unusable_jobs(overrides: dict, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        script_from_job(_job(**overrides))


def _finished(script_id: str) -> ExecutionCreate:
    return ExecutionCreate(
        script_id=script_id,
        triggered_by="test",
        status=ExecutionStatus.COMPLETED,
        inputs=None,
        stdout="ok\n",
        stderr="",
        exit_code=0,
        duration_ms=1,
        started_at=None,
        completed_at=None,
    )


def test_recent_executions_span_scripts_of_this_owner_only(tmp_path: Path) -> None:
    db_path = tmp_path / "owners.db"
    mine = ScriptRepository(db_path)
    mine.init_schema()
    theirs = ScriptRepository(db_path, owner_id="someone_else")
    executions = ExecutionRepository(db_path)
    try:
        first = mine.create(ScriptCreate(name="first", content="pass\n"))
        second = mine.create(ScriptCreate(name="second", content="pass\n"))
        foreign = theirs.create(ScriptCreate(name="foreign", content="pass\n"))
        created = [
            executions.create(_finished(script.script_id))
            for script in (first, foreign, second)
        ]

        recent = executions.list_recent(limit=10)

        assert {record.script_id for record in recent} == {first.script_id, second.script_id}
        assert [record.created_at for record in recent] == sorted(
            (record.created_at for record in recent),
            reverse=True,
        )
        assert created[1].execution_id not in {record.execution_id for record in recent}
        assert len(executions.list_recent(limit=1)) == 1
    finally:
        mine.close()
        theirs.close()
        executions.close()


def test_script_patch_rederives_metadata_from_new_content() -> None:
    patch = script_patch(
        content="```python\n# @name: renamed\n# @timeout: 12\nprint(2)\n```\nThis prints 2.",
    )

    assert patch.content == "# @name: renamed\n# @timeout: 12\nprint(2)\n"
    assert patch.metadata is not None
    assert patch.metadata["name"] == "renamed"
    assert patch.metadata["timeout_seconds"] == 12
    assert patch.name is None
    assert patch.tags is None


def test_script_patch_without_content_leaves_metadata_alone() -> None:
    patch = script_patch(description="new", tags=("a", "b"))

    assert patch.content is None
    assert patch.metadata is None
    assert patch.description == "new"
    assert patch.tags == ["a", "b"]


def test_edited_content_replaces_stored_metadata(repositories) -> None:
    scripts, _ = repositories
    script = scripts.create(
        script_from_source("# @name: old\n# @tags: x\nprint(1)\n"),
    )

    updated = scripts.update(script.script_id, script_patch(content="# @timeout: 5\nprint(3)\n"))

    assert updated is not None
    assert updated.name == "old"
    assert updated.content == "# @timeout: 5\nprint(3)\n"
    assert updated.metadata is not None
    assert updated.metadata["timeout_seconds"] == 5
    assert updated.metadata["tags"] == []
