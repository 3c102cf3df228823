"""Extract poll questions from exported chat logs.

The logs contain one block per bot poll::

    Soal UAS Bot, [12/01/24 08.15]
    [ Poll : Which layer routes packets? ]
    - Network
    - Transport

Blocks are split on the bot header, the poll title becomes the question text
and every non-blank line after the title line becomes an option. Blocks
without a poll title or without options are dropped silently.
"""

from __future__ import annotations

import random
import re
from typing import List, Sequence, Optional, TypeVar

from .models import Question

T = TypeVar("T")

_HEADER_RE = re.compile(r"Soal UAS Bot, \[.*?\]")
_POLL_RE = re.compile(r"\[\s*Poll\s*:\s*(.*?)\s*\]", re.DOTALL)
_LIST_MARKER_RE = re.compile(r"^-\s*")


def shuffle_items(
    items: Sequence[T], rng: Optional[random.Random] = None
) -> List[T]:
    """Return a Fisher-Yates shuffled copy of ``items``."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def _extract_options(tail: str) -> List[str]:
    options: List[str] = []
    for line in tail.splitlines():
        trimmed = line.strip()
        if trimmed:
            options.append(_LIST_MARKER_RE.sub("", trimmed, count=1))
    return options


def parse_chunk(chunk: str, index: int, rng: random.Random) -> Optional[Question]:
    """Build a question from one header-delimited chunk, or ``None``."""
    match = _POLL_RE.search(chunk)
    if not match:
        return None
    # Options start on the line after the closing bracket; anything else on
    # that line (poll flags such as "(anonymous)") is not an option.
    _, _, tail = chunk[match.end():].partition("\n")
    options = _extract_options(tail)
    if not options:
        return None
    token = "%08x" % rng.getrandbits(32)
    return Question(
        id=f"q-{index}-{token}",
        text=match.group(1).strip(),
        options=tuple(shuffle_items(options, rng)),
        raw=chunk.strip(),
    )


def parse_quiz_text(
    raw_text: str, *, rng: Optional[random.Random] = None
) -> List[Question]:
    """Parse ``raw_text`` into questions in random order.

    Option order within each question and the order of the questions are
    drawn independently. Passing a seeded ``rng`` makes the output
    reproducible.
    """
    rng = rng or random.Random()
    questions: List[Question] = []
    for index, chunk in enumerate(_HEADER_RE.split(raw_text or "")):
        if not chunk.strip():
            continue
        question = parse_chunk(chunk, index, rng)
        if question is not None:
            questions.append(question)
    return shuffle_items(questions, rng)
