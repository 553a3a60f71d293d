from __future__ import annotations

import allure
import pytest

from script_studio.generation.metadata import (
    ScriptMetadata,
    extract_metadata,
    strip_code_fence,
)

pytestmark = [
    allure.epic("Generation Pipeline"),
    allure.feature("Metadata Extraction"),
]

_GENERATED = """\
```python
# @name: csv_summary
# @description: Summarise a CSV file by column
# @tags: csv, reporting , ,stats
# @python: 3.11
# @inputs: path to a CSV file
# @timeout: 60
# @memory: 256MB
# @cpu: 1
import csv

print("ok")
```
"""


def test_extracts_all_recognized_directives_and_strips_fence() -> None:
    extracted = extract_metadata(_GENERATED)

    assert extracted.metadata == ScriptMetadata(
        name="csv_summary",
        description="Summarise a CSV file by column",
        tags=["csv", "reporting", "stats"],
        python_version="3.11",
        inputs="path to a CSV file",
        timeout_seconds=60,
        memory_limit="256MB",
        cpu_limit="1",
    )
    assert not extracted.body.startswith("```")
    assert "```" not in extracted.body
    assert extracted.body.startswith("# @name: csv_summary\n")
    assert 'print("ok")' in extracted.body


def test_headerless_text_yields_defaults_and_unchanged_body() -> None:
    text = "import sys\n\nprint(sys.argv)\n"

    extracted = extract_metadata(text)

    assert extracted.body == text
    assert extracted.metadata == ScriptMetadata()
    assert extracted.metadata.tags == []
    assert extracted.metadata.description == ""
    assert extracted.metadata.timeout_seconds is None


def test_unrecognized_directives_and_plain_comments_are_left_alone() -> None:
    text = "# @author: someone\n# just a comment\n# @name: kept\nx = 1\n"

    extracted = extract_metadata(text)

    assert extracted.body == text
    assert extracted.metadata.name == "kept"


def test_first_occurrence_of_a_directive_wins() -> None:
    extracted = extract_metadata("# @name: first\n# @name: second\n")

    assert extracted.metadata.name == "first"


def test_directive_keys_are_case_insensitive() -> None:
    extracted = extract_metadata("# @Name: upper\n# @TAGS: a,b\n# @python-version: 3.12\n")

    assert extracted.metadata.name == "upper"
    assert extracted.metadata.tags == ["a", "b"]
    assert extracted.metadata.python_version == "3.12"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("45", 45),
        ("45s", 45),
        (" 10 ", 10),
        ("0", None),
        ("-5", None),
        ("soon", None),
        ("", None),
    ],
)
def test_timeout_directive_parses_positive_integers_only(raw: str, expected: int | None) -> None:
    extracted = extract_metadata(f"# @timeout: {raw}\n")

    assert extracted.metadata.timeout_seconds == expected


@pytest.mark.parametrize(
    "raw",
    ["", "```", "```python\n", "@@@@", "# @tags:\n", "\x00\x01", "```\n```"],
)
def test_extraction_is_total_for_malformed_input(raw: str) -> None:
    extracted = extract_metadata(raw)

    assert isinstance(extracted.body, str)
    assert isinstance(extracted.metadata, ScriptMetadata)


def test_strip_code_fence_handles_unterminated_and_single_line_fences() -> None:
    assert strip_code_fence("```python\nprint(1)\n") == "print(1)\n"
    assert strip_code_fence("```print(2)```") == "print(2)\n"
    assert strip_code_fence("print(3)\n") == "print(3)\n"


def test_metadata_dict_round_trip_drops_invalid_timeout() -> None:
    restored = ScriptMetadata.from_dict({"name": "n", "tags": ["a"], "timeout_seconds": -1})

    assert restored.name == "n"
    assert restored.tags == ["a"]
    assert restored.timeout_seconds is None
    assert ScriptMetadata.from_dict(None) == ScriptMetadata()


def test_prose_after_the_closing_fence_is_dropped() -> None:
    extracted = extract_metadata(
        "```python\n# @name: x\nprint('hi')\n```\nThis script prints hi.\n```\nmore\n```\n",
    )

    assert extracted.body == "# @name: x\nprint('hi')\n"
    assert extracted.metadata.name == "x"
    compile(extracted.body, "<generated>", "exec")


def test_only_the_leading_comment_block_is_scanned() -> None:
    text = (
        "#!/usr/bin/env python3\n"
        "# @name: header_name\n"
        "\n"
        "# @tags: a, b\n"
        "import sys\n"
        "# @description: not a header any more\n"
        "def helper():\n"
        "    # @timeout: 999\n"
        "    pass\n"
    )

    extracted = extract_metadata(text)

    assert extracted.metadata.name == "header_name"
    assert extracted.metadata.tags == ["a", "b"]
    assert extracted.metadata.description == ""
    assert extracted.metadata.timeout_seconds is None
    assert extracted.body == text


def test_comments_without_at_sign_are_not_directives() -> None:
    extracted = extract_metadata("# name: plain\n# description: helper\n# @tags: t\n")

    assert extracted.metadata.name == ""
    assert extracted.metadata.description == ""
    assert extracted.metadata.tags == ["t"]
