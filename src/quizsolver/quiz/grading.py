"""Letter grades for a finished quiz score."""

from __future__ import annotations

from typing import Sequence, Tuple

from .models import GradeResult

# (minimum percentage, grade, explanation, rich style); checked top-down.
GRADE_TABLE: Sequence[Tuple[float, str, str, str]] = (
    (90, "A+", "Excellent, outstanding achievement.", "bold green"),
    (80, "A", "Very good, but with minor deficiencies.", "green"),
    (75, "A-", "Good, with some areas for improvement.", "chartreuse3"),
    (70, "B+", "Quite good, still room for improvement.", "blue"),
    (
        65,
        "B",
        "Adequate, with clear weaknesses but an overall understanding.",
        "deep_sky_blue1",
    ),
    (60, "B-", "Satisfactory, needs improvement in several areas.", "cyan"),
    (
        55,
        "C+",
        "Passable, meets minimum requirements but has significant gaps.",
        "yellow",
    ),
    (50, "C", "Pass, but with many areas needing improvement.", "dark_orange"),
    (40, "D", "Unsatisfactory, significant improvement needed.", "orange_red1"),
)

FAILING_GRADE = GradeResult(
    grade="E",
    explanation=(
        "Fail, did not meet the passing standards, requires substantial "
        "improvement."
    ),
    color="bold red",
)


def calculate_grade(percentage: float) -> GradeResult:
    """Map a 0-100 score to the first grade whose threshold it reaches."""
    for threshold, grade, explanation, color in GRADE_TABLE:
        if percentage >= threshold:
            return GradeResult(grade=grade, explanation=explanation, color=color)
    return FAILING_GRADE
