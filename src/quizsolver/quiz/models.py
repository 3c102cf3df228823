"""Data structures shared by the parser, grader and quiz session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class QuizMode(Enum):
    """How a session grades and whether it runs against the clock."""

    STANDARD = "standard"
    CHALLENGE = "challenge"

    @classmethod
    def from_value(cls, value: "str | QuizMode") -> "QuizMode":
        if isinstance(value, QuizMode):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        expected = ", ".join(member.value for member in cls)
        raise ValueError(
            f"Unknown quiz mode '{value}'. Expected one of: {expected}."
        )


class ValidationStatus(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    VALIDATED = "validated"
    ERROR = "error"


@dataclass(frozen=True)
class Question:
    """A parsed multiple-choice question with its final option order."""

    id: str
    text: str
    options: tuple[str, ...]
    raw: str = ""

    def option_label(self, index: int) -> str:
        """Return ``"B. text"`` style labelling for ``index``."""
        return f"{option_letter(index)}. {self.options[index]}"


@dataclass(frozen=True)
class ValidationResult:
    """Verdict returned by a grading client for one question."""

    is_correct: bool
    correct_index: int
    explanation: str
    reasoning_for_incorrect: str | None = None
    question_id: str | None = None


@dataclass(frozen=True)
class BatchItem:
    question: Question
    selected_index: int | None = None


@dataclass
class AnswerRecord:
    """Mutable progress for one question within a session."""

    question: Question
    selected_index: int | None = None
    status: ValidationStatus = ValidationStatus.IDLE
    is_correct: bool | None = None
    correct_index: int | None = None
    explanation: str | None = None
    reasoning_for_incorrect: str | None = None
    is_skipped: bool = False

    @property
    def id(self) -> str:
        return self.question.id

    @property
    def is_answered(self) -> bool:
        return self.selected_index is not None

    def apply_result(self, result: ValidationResult) -> None:
        self.status = ValidationStatus.VALIDATED
        self.is_correct = result.is_correct
        self.is_skipped = False
        self.correct_index = result.correct_index
        self.explanation = result.explanation
        self.reasoning_for_incorrect = result.reasoning_for_incorrect

    def mark_skipped(self) -> None:
        self.status = ValidationStatus.VALIDATED
        self.is_correct = False
        self.is_skipped = True
        self.correct_index = None
        self.explanation = None
        self.reasoning_for_incorrect = None

    def clear(self) -> None:
        self.selected_index = None
        self.status = ValidationStatus.IDLE
        self.is_correct = None
        self.correct_index = None
        self.explanation = None
        self.reasoning_for_incorrect = None
        self.is_skipped = False


@dataclass(frozen=True)
class GradeResult:
    grade: str
    explanation: str
    color: str


@dataclass(frozen=True)
class QuizResult:
    """Snapshot of a finished attempt."""

    total: int
    correct_count: int
    incorrect_count: int
    skipped_count: int
    score: float
    grade: GradeResult
    ungraded_count: int = 0


@dataclass(frozen=True)
class FinishPrompt:
    """What the caller must ask before running ``QuizSession.finish``."""

    unanswered: tuple[int, ...]
    forced: bool

    @property
    def can_go_back(self) -> bool:
        return not self.forced

    @property
    def requires_confirmation(self) -> bool:
        return self.forced or bool(self.unanswered)


def option_letter(index: int) -> str:
    return chr(ord("A") + index)
