from .models import (
    AnswerRecord,
    BatchItem,
    FinishPrompt,
    GradeResult,
    Question,
    QuizMode,
    QuizResult,
    ValidationResult,
    ValidationStatus,
)
from .parser import parse_quiz_text, shuffle_items
from .grading import calculate_grade
from .grader import GradingClient, GradingError, OpenAIGradingClient
from .session import QuizSession, countdown_step, format_time
from .console import render_summary, run_quiz_session

__all__ = [
    "AnswerRecord",
    "BatchItem",
    "FinishPrompt",
    "GradeResult",
    "Question",
    "QuizMode",
    "QuizResult",
    "ValidationResult",
    "ValidationStatus",
    "parse_quiz_text",
    "shuffle_items",
    "calculate_grade",
    "GradingClient",
    "GradingError",
    "OpenAIGradingClient",
    "QuizSession",
    "countdown_step",
    "format_time",
    "render_summary",
    "run_quiz_session",
]
