"""Raw quiz text acquisition."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TextIO

__all__ = ["STDIN_MARKER", "read_input", "read_text_file"]

STDIN_MARKER = "-"


def read_text_file(path: Path) -> str:
    """Read a text file as UTF-8 with replacement for decode errors."""
    with Path(path).open("r", encoding="utf-8", errors="replace") as fh:
        return fh.read()


def read_input(source: str | Path, *, stdin: TextIO | None = None) -> str:
    """Return the raw text behind ``source``.

    ``-`` reads everything from standard input (pasted chat logs); any other
    value is treated as a file path.
    """
    if str(source) == STDIN_MARKER:
        stream = stdin if stdin is not None else sys.stdin
        return stream.read()
    path = Path(source).expanduser()
    if not path.is_file():
        raise FileNotFoundError(f"Input not found: {path}")
    return read_text_file(path)
