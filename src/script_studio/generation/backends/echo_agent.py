"""Local deterministic agent for CLI backend tests and demos.

Reads the prompt and prints a small fenced Python script with header
directives, so the whole generation pipeline can run without network access.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

_SCRIPT_TEMPLATE = """\
```python
# @name: echo_script
# @description: {description}
# @tags: echo, demo
# @python: 3.11
# @inputs: none
# @timeout: 15

def main():
    print({greeting!r})


if __name__ == "__main__":
    main()
```
"""


def main(argv: list[str] | None = None) -> int:
    """Print a generated script for the given prompt."""

    parser = argparse.ArgumentParser()
    parser.add_argument("--prompt-file", default=None)
    parser.add_argument("--mode", choices=("script", "empty", "fail"), default="script")
    parser.add_argument("prompt", nargs="?", default="")
    args = parser.parse_args(argv)

    if args.mode == "fail":
        sys.stderr.write("echo agent: simulated backend failure (503 temporarily unavailable)\n")
        return 1
    if args.mode == "empty":
        sys.stdout.write("   \n")
        return 0

    prompt = args.prompt
    if args.prompt_file:
        prompt = Path(args.prompt_file).read_text("utf-8")
    first_line = next((line.strip() for line in prompt.splitlines() if line.strip()), "")
    sys.stdout.write(
        _SCRIPT_TEMPLATE.format(
            description=first_line[:80] or "generated script",
            greeting="hello from echo agent",
        ),
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
