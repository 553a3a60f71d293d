"""Prompt templates rendered for each job kind."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from script_studio.jobs.models import JobKind

_DIRECTIVE_INSTRUCTIONS = """\
Start the script with these header comment lines, one per line:
# @name: <short snake_case name>
# @description: <one sentence>
# @tags: <comma separated tags>
# @python: <minimum python version>
# @inputs: <names of INPUTS keys the script reads, or none>
# @timeout: <expected runtime limit in seconds>
The script may read a dict named INPUTS that is defined before it runs.
Return only the script inside a single ```python fenced block."""

_GENERATION_TEMPLATE = """\
Write a self-contained Python script for the following task.

Task:
{description}

{language_hint}{directives}
"""

_ANALYSIS_TEMPLATE = """\
Review the Python script below. Explain what it does, list bugs and risky
behaviour, and suggest concrete fixes. Keep the answer under 400 words.

{focus}```python
{code}
```
"""

_ANNOTATION_TEMPLATE = """\
Add header comment directives and concise inline comments to the Python
script below without changing its behaviour.

{directives}

```python
{code}
```
"""

_REQUIRED_FIELDS: dict[JobKind, tuple[str, ...]] = {
    JobKind.GENERATION: ("description",),
    JobKind.ANALYSIS: ("code",),
    JobKind.ANNOTATION: ("code",),
}


def render_prompt(kind: JobKind, payload: Mapping[str, Any]) -> str:
    """Render the model prompt for ``kind`` from a job input payload."""

    kind = JobKind(kind)
    missing = [
        name
        for name in _REQUIRED_FIELDS[kind]
        if not isinstance(payload.get(name), str) or not payload[name].strip()
    ]
    if missing:
        raise ValueError(f"Job input for {kind.value!r} is missing: {', '.join(missing)}")

    if kind == JobKind.GENERATION:
        language_hint = ""
        python_version = str(payload.get("python_version") or "").strip()
        if python_version:
            language_hint = f"Target Python {python_version}.\n"
        return _GENERATION_TEMPLATE.format(
            description=payload["description"].strip(),
            language_hint=language_hint,
            directives=_DIRECTIVE_INSTRUCTIONS,
        )
    if kind == JobKind.ANALYSIS:
        focus = str(payload.get("focus") or "").strip()
        return _ANALYSIS_TEMPLATE.format(
            focus=f"Focus on: {focus}\n\n" if focus else "",
            code=payload["code"].rstrip(),
        )
    return _ANNOTATION_TEMPLATE.format(
        directives=_DIRECTIVE_INSTRUCTIONS,
        code=payload["code"].rstrip(),
    )
