"""Header directive extraction for generated scripts.

Generated scripts describe themselves with single-line comment directives
in the leading comment block of the file::

    # @name: csv_summary
    # @description: Summarise a CSV file by column
    # @tags: csv, reporting
    # @python: 3.11
    # @inputs: path to a CSV file
    # @timeout: 60
    # @memory: 256MB
    # @cpu: 1

Only that block is scanned; the first code line ends the header.
Extraction is pure and total: any text yields a result, headerless text
yields default metadata and the body unchanged.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any

_FENCE = "```"
_DIRECTIVE_RE = re.compile(r"^\s*#\s*@(?P<key>[A-Za-z][A-Za-z_-]*)\s*:\s*(?P<value>.*?)\s*$")

_DIRECTIVE_FIELDS = {
    "name": "name",
    "description": "description",
    "tags": "tags",
    "python": "python_version",
    "python_version": "python_version",
    "inputs": "inputs",
    "timeout": "timeout_seconds",
    "memory": "memory_limit",
    "cpu": "cpu_limit",
}


@dataclass(slots=True)
class ScriptMetadata:
    """Metadata collected from recognized header directives."""

    name: str = ""
    description: str = ""
    tags: list[str] = field(default_factory=list)
    python_version: str = ""
    inputs: str = ""
    timeout_seconds: int | None = None
    memory_limit: str = ""
    cpu_limit: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> ScriptMetadata:
        if not raw:
            return cls()
        timeout = raw.get("timeout_seconds")
        return cls(
            name=str(raw.get("name") or ""),
            description=str(raw.get("description") or ""),
            tags=[str(tag) for tag in raw.get("tags") or []],
            python_version=str(raw.get("python_version") or ""),
            inputs=str(raw.get("inputs") or ""),
            timeout_seconds=timeout if isinstance(timeout, int) and timeout > 0 else None,
            memory_limit=str(raw.get("memory_limit") or ""),
            cpu_limit=str(raw.get("cpu_limit") or ""),
        )


@dataclass(slots=True)
class ExtractedScript:
    """Generated body plus its header metadata."""

    body: str
    metadata: ScriptMetadata


def extract_metadata(raw_text: str) -> ExtractedScript:
    """Strip an enclosing code fence and collect header directives."""

    text = raw_text if isinstance(raw_text, str) else ("" if raw_text is None else str(raw_text))
    body = strip_code_fence(text)
    metadata = ScriptMetadata()
    seen: set[str] = set()
    for line in body.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break
        match = _DIRECTIVE_RE.match(line)
        if match is None:
            continue
        field_name = _DIRECTIVE_FIELDS.get(match.group("key").strip().lower().replace("-", "_"))
        if field_name is None or field_name in seen:
            continue
        seen.add(field_name)
        _assign(metadata, field_name, match.group("value"))
    return ExtractedScript(body=body, metadata=metadata)


def strip_code_fence(text: str) -> str:
    """Keep only the code between a leading ```lang line and its closing fence.

    Anything after the closing fence (typically prose explaining the script)
    is dropped.
    """

    stripped = text.strip()
    if not stripped.startswith(_FENCE):
        return text

    lines = stripped.splitlines()
    if len(lines) == 1:
        single = stripped[len(_FENCE) :]
        if single.endswith(_FENCE):
            single = single[: -len(_FENCE)]
        return f"{single.strip()}\n" if single.strip() else ""
    inner = lines[1:]
    closing = next(
        (index for index, line in enumerate(inner) if line.strip() == _FENCE),
        None,
    )
    if closing is not None:
        inner = inner[:closing]
    elif inner and inner[-1].rstrip().endswith(_FENCE):
        inner[-1] = inner[-1].rstrip()[: -len(_FENCE)]
    content = "\n".join(inner).strip("\n")
    return f"{content}\n" if content else ""


def _assign(metadata: ScriptMetadata, field_name: str, value: str) -> None:
    if field_name == "tags":
        metadata.tags = [tag.strip() for tag in value.split(",") if tag.strip()]
        return
    if field_name == "timeout_seconds":
        metadata.timeout_seconds = _parse_positive_int(value)
        return
    setattr(metadata, field_name, value.strip())


def _parse_positive_int(value: str) -> int | None:
    token = value.strip().lower().removesuffix("s").strip()
    try:
        parsed = int(token)
    except ValueError:
        return None
    return parsed if parsed > 0 else None
