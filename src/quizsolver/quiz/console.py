"""Rich-powered terminal front end for a :class:`QuizSession`.

The loop reads one command per prompt from an injectable input provider, so
tests can script a whole attempt. Wall-clock time between prompts is fed to
the session countdown through ``session.advance``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Literal, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .models import (
    AnswerRecord,
    FinishPrompt,
    QuizMode,
    QuizResult,
    ValidationStatus,
    option_letter,
)
from .session import QuizSession, format_time

InputProvider = Callable[[], str]
Clock = Callable[[], float]
ExitAction = Literal["submitted", "quit", "empty"]

LOW_TIME_WARNING_SECONDS = 300


@dataclass(frozen=True)
class SessionCommand:
    """Normalized user command parsed from console input."""

    type: Literal[
        "select",
        "next",
        "prev",
        "goto",
        "check",
        "finish",
        "summary",
        "restart",
        "quit",
    ]
    value: Optional[int] = None


@dataclass(frozen=True)
class ConsoleOutcome:
    exit_action: ExitAction
    result: Optional[QuizResult]


_KEYWORDS = {
    ">": "next",
    "next": "next",
    "<": "prev",
    "prev": "prev",
    "previous": "prev",
    "!": "check",
    "check": "check",
    "finish": "finish",
    "submit": "finish",
    "score": "summary",
    "summary": "summary",
    "restart": "restart",
    "quit": "quit",
    "exit": "quit",
}


def parse_session_command(raw: Optional[str]) -> Optional[SessionCommand]:
    """Parse raw user input into a structured command."""

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in _KEYWORDS:
        return SessionCommand(_KEYWORDS[lowered])  # type: ignore[arg-type]
    parts = lowered.split()
    if len(parts) == 2 and parts[0] in {"g", "goto"} and parts[1].isdigit():
        return SessionCommand("goto", int(parts[1]) - 1)
    if len(text) == 1 and text.isalpha():
        return SessionCommand("select", ord(text.upper()) - ord("A"))
    return None


class _QuizConsole:
    def __init__(
        self,
        session: QuizSession,
        console: Console,
        input_provider: InputProvider,
        clock: Clock,
    ) -> None:
        self.session = session
        self.console = console
        self.input_provider = input_provider
        self.clock = clock
        self.index = 0
        self._anchor = clock()

    @property
    def current(self) -> AnswerRecord:
        return self.session.records[self.index]

    def run(self) -> ConsoleOutcome:
        while True:
            if self._sync_clock():
                self._expire()
            self._render_question()
            try:
                raw = self.input_provider()
            except (EOFError, KeyboardInterrupt, StopIteration):
                self.console.print("\n[bold yellow]Session interrupted.[/]")
                return self._outcome("quit")
            if self._sync_clock():
                self._expire()
                continue
            command = parse_session_command(raw)
            if command is None:
                self.console.print("[red]Unrecognized command. Try again.[/]")
                continue
            if command.type == "quit":
                self.console.print("\n[bold yellow]Ending quiz session.[/]")
                return self._outcome("quit")
            self._apply(command)

    def _outcome(self, fallback: ExitAction) -> ConsoleOutcome:
        result = self.session.result
        action: ExitAction = "submitted" if self.session.is_submitted else fallback
        return ConsoleOutcome(action, result)

    def _sync_clock(self) -> bool:
        now = self.clock()
        elapsed = int(now - self._anchor)
        if elapsed <= 0:
            return False
        self._anchor += elapsed
        return self.session.advance(elapsed)

    def _expire(self) -> None:
        self.console.print(
            Panel(
                "Your time is up! You can no longer change answers.",
                title="Time Expired!",
                border_style="red",
            )
        )
        self._finish()

    def _apply(self, command: SessionCommand) -> None:
        if command.type == "select" and command.value is not None:
            self._select(command.value)
        elif command.type == "next":
            self.index = min(self.index + 1, self.session.total_questions - 1)
        elif command.type == "prev":
            self.index = max(self.index - 1, 0)
        elif command.type == "goto" and command.value is not None:
            if 0 <= command.value < self.session.total_questions:
                self.index = command.value
            else:
                self.console.print("[red]No question with that number.[/]")
        elif command.type == "check":
            self._check()
        elif command.type == "finish":
            self._finish()
        elif command.type == "summary":
            if self.session.result is None:
                self.console.print("[yellow]Finish the quiz to see a score.[/]")
            else:
                render_summary(self.console, self.session.result)
        elif command.type == "restart":
            self.session.restart()
            self.index = 0
            self._anchor = self.clock()
            self.console.print("[bold]Quiz restarted.[/]")

    def _select(self, option_index: int) -> None:
        record = self.current
        if not 0 <= option_index < len(record.question.options):
            self.console.print(
                "[red]'%s' is not a valid choice for this question.[/red]"
                % option_letter(option_index)
            )
            return
        if self.session.select_option(record.id, option_index):
            self.console.print(f"Selected [bold]{option_letter(option_index)}[/].")
        else:
            self.console.print("[yellow]This question can no longer be changed.[/]")

    def _check(self) -> None:
        if self.session.mode is not QuizMode.STANDARD:
            self.console.print(
                "[yellow]Challenge answers are graded when you finish.[/]"
            )
            return
        record = self.current
        if record.selected_index is None:
            self.console.print("[yellow]Select an option first.[/]")
            return
        with self.console.status("Checking answer..."):
            asyncio.run(self.session.check_answer(record.id))
        if record.status is ValidationStatus.ERROR:
            self.console.print(
                "[red]Could not check this answer. Try again with 'check'.[/]"
            )

    def _finish(self) -> None:
        if self.session.is_submitted:
            self.console.print("[yellow]Quiz already submitted; 'score' shows it.[/]")
            return
        prompt = self.session.finish_intent()
        if prompt.requires_confirmation and not self._confirm_finish(prompt):
            if prompt.unanswered:
                self.index = prompt.unanswered[0]
            return
        with self.console.status("Grading..."):
            result = asyncio.run(self.session.finish())
        if result is not None:
            render_summary(self.console, result)

    def _confirm_finish(self, prompt: FinishPrompt) -> bool:
        count = len(prompt.unanswered)
        if prompt.forced:
            self.console.print(
                Text(
                    f"All {count} unanswered questions will be marked as "
                    "incorrect.",
                    style="red",
                )
            )
            return True
        numbers = ", ".join(f"#{i + 1}" for i in prompt.unanswered)
        self.console.print(
            Panel(
                f"You have skipped {count} questions: {numbers}\n"
                "If you continue, these will be marked as incorrect.",
                title="Unanswered Questions",
                border_style="yellow",
            )
        )
        self.console.print("Type 'y' to continue anyway or anything else to go back.")
        try:
            answer = self.input_provider()
        except (EOFError, KeyboardInterrupt, StopIteration):
            return False
        return answer.strip().lower() in {"y", "yes", "continue"}

    def _render_question(self) -> None:
        session = self.session
        record = self.current
        question = record.question
        header = Text.assemble(
            (f"Question {self.index + 1}", "bold cyan"),
            (f" / {session.total_questions}", "dim"),
        )
        self.console.print()
        self.console.rule(header)
        if session.mode is QuizMode.CHALLENGE:
            style = "bold red" if session.time_left < LOW_TIME_WARNING_SECONDS else "bold"
            self.console.print(
                Text(f"Time left {format_time(session.time_left)}", style=style)
            )
        self.console.print(Text(question.text, style="bold"))

        table = Table(show_header=False, box=box.SIMPLE, expand=True)
        table.add_column("Key", justify="center", style="cyan")
        table.add_column("Choice")
        validated = record.status is ValidationStatus.VALIDATED
        for i, option in enumerate(question.options):
            indicator = "•" if i == record.selected_index else " "
            text = Text(f"{indicator} {option}")
            if validated and i == record.correct_index:
                text.stylize("bold green")
            elif i == record.selected_index:
                text.stylize("bold red" if validated else "bold")
            table.add_row(option_letter(i), text)
        self.console.print(table)
        self._render_verdict(record)

        hints = "letter selects, > / <, g <num>, finish, score, restart, quit"
        if session.mode is QuizMode.STANDARD:
            hints = "letter selects, check, > / <, g <num>, finish, score, quit"
        self.console.print(
            Text(
                f"Answered {session.answered_count()}/{session.total_questions}"
                f" | {hints}",
                style="dim",
            )
        )

    def _render_verdict(self, record: AnswerRecord) -> None:
        if record.status is ValidationStatus.VALIDATING:
            self.console.print("[dim]Awaiting grade...[/]")
            return
        if record.status is ValidationStatus.ERROR:
            self.console.print("[red]Grading failed for this question.[/]")
            return
        if record.status is not ValidationStatus.VALIDATED:
            return
        if record.is_skipped:
            self.console.print("[yellow]Skipped (counted as incorrect).[/]")
            return
        border = "green" if record.is_correct else "red"
        body = record.explanation or ""
        if record.reasoning_for_incorrect:
            body = f"{body}\n\n{record.reasoning_for_incorrect}"
        self.console.print(
            Panel(
                body,
                title="Correct" if record.is_correct else "Incorrect",
                border_style=border,
            )
        )


def render_summary(console: Console, result: QuizResult) -> None:
    console.print()
    console.rule(Text("Quiz Summary", style="bold magenta"))
    overview = Table(show_header=False, box=box.MINIMAL_DOUBLE_HEAD, expand=False)
    overview.add_column("Metric", style="bold")
    overview.add_column("Value", justify="right")
    overview.add_row("Total questions", str(result.total))
    overview.add_row("Correct", str(result.correct_count))
    overview.add_row("Incorrect", str(result.incorrect_count))
    overview.add_row("Skipped", str(result.skipped_count))
    if result.ungraded_count:
        overview.add_row("Not graded", str(result.ungraded_count))
    overview.add_row("Score", f"{result.score:.1f}%")
    console.print(overview)
    console.print(
        Panel(
            Text(result.grade.explanation),
            title=Text(f"Grade {result.grade.grade}", style=result.grade.color),
            border_style=result.grade.color,
        )
    )


def run_quiz_session(
    session: QuizSession,
    console: Console,
    input_provider: InputProvider,
    *,
    clock: Clock = time.monotonic,
) -> ConsoleOutcome:
    """Run an interactive attempt over an already loaded ``session``."""

    if not session.total_questions:
        console.print(
            Panel(
                "No questions found in the input.",
                title="Quiz Session",
                border_style="yellow",
            )
        )
        return ConsoleOutcome("empty", None)
    return _QuizConsole(session, console, input_provider, clock).run()
