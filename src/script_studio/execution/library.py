"""Turn raw source text or a finished generation job into a storable script."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from script_studio.execution.models import ScriptCreate, ScriptPatch
from script_studio.generation.metadata import ScriptMetadata, extract_metadata
from script_studio.jobs.models import JobKind, JobStatus, JobView

_FALLBACK_NAME = "untitled_script"


def script_from_source(  # noqa: PLR0913
    content: str,
    *,
    name: str | None = None,
    description: str | None = None,
    tags: Sequence[str] | None = None,
    requirements: Sequence[str] = (),
    metadata: dict[str, Any] | None = None,
) -> ScriptCreate:
    """Build a script, filling blanks from the source's header directives."""

    extracted = extract_metadata(content)
    header = extracted.metadata
    if metadata is not None:
        header = ScriptMetadata.from_dict(metadata)
    return ScriptCreate(
        name=(name or header.name or _FALLBACK_NAME).strip(),
        content=extracted.body,
        description=description if description is not None else header.description,
        tags=list(tags) if tags is not None else list(header.tags),
        requirements=list(requirements),
        metadata=header.to_dict(),
    )


def script_from_job(
    job: JobView,
    *,
    name: str | None = None,
    requirements: Sequence[str] = (),
) -> ScriptCreate:
    """Build a script from a completed generation job's result."""

    if job.kind != JobKind.GENERATION:
        raise ValueError(f"Job {job.job_id} is a {job.kind.value} job, not a generation job")
    if job.status != JobStatus.COMPLETED or job.result is None:
        raise ValueError(f"Job {job.job_id} is {job.status.value}, expected completed")

    text = job.result.get("text")
    if not isinstance(text, str) or not text.strip():
        raise ValueError(f"Job {job.job_id} has no generated text")
    metadata = job.result.get("metadata")
    return script_from_source(
        text,
        name=name,
        requirements=requirements,
        metadata=metadata if isinstance(metadata, dict) else None,
    )


def script_patch(  # noqa: PLR0913
    *,
    content: str | None = None,
    name: str | None = None,
    description: str | None = None,
    tags: Sequence[str] | None = None,
    requirements: Sequence[str] | None = None,
    metadata: dict[str, Any] | None = None,
) -> ScriptPatch:
    """Build a partial update for an edited script.

    New content is fence-stripped like stored sources, and its header
    directives replace the stored metadata unless ``metadata`` is given.
    """

    body = None
    if content is not None:
        extracted = extract_metadata(content)
        body = extracted.body
        if metadata is None:
            metadata = extracted.metadata.to_dict()
    elif metadata is not None:
        metadata = ScriptMetadata.from_dict(metadata).to_dict()
    return ScriptPatch(
        name=name,
        description=description,
        tags=list(tags) if tags is not None else None,
        content=body,
        requirements=list(requirements) if requirements is not None else None,
        metadata=metadata,
    )
