"""Quiz session state machine.

A :class:`QuizSession` owns the answer records for one attempt. It accepts
selections, grades single answers on demand in standard mode, runs the
challenge countdown, and on finish grades everything still open in batches
before computing the final :class:`QuizResult`.

Grading calls are coroutines. Every call captures the session generation
when it starts; ``load``, ``restart`` and ``reset`` bump the generation so a
completion that arrives afterwards is dropped instead of being applied to
the new attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence, Tuple

from .grader import GradingClient
from .grading import calculate_grade
from .models import (
    AnswerRecord,
    BatchItem,
    FinishPrompt,
    Question,
    QuizMode,
    QuizResult,
    ValidationResult,
    ValidationStatus,
)
from .parser import parse_quiz_text

CHALLENGE_TIME_SECONDS = 7200
CHALLENGE_QUESTION_COUNT = 50
BATCH_SIZE = 5


def countdown_step(remaining: int) -> int:
    """One countdown tick; never goes below zero."""
    return max(0, remaining - 1)


def format_time(seconds: int) -> str:
    """Render ``seconds`` as ``M:SS``."""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def chunked(
    records: Sequence[AnswerRecord], size: int
) -> List[List[AnswerRecord]]:
    return [list(records[i : i + size]) for i in range(0, len(records), size)]


class QuizSession:
    """Mutable state for one quiz attempt."""

    def __init__(
        self,
        grader: GradingClient,
        *,
        challenge_duration: int = CHALLENGE_TIME_SECONDS,
        challenge_question_count: int = CHALLENGE_QUESTION_COUNT,
        batch_size: int = BATCH_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be a positive integer")
        self._grader = grader
        self._challenge_duration = challenge_duration
        self._challenge_question_count = challenge_question_count
        self._batch_size = batch_size
        self._logger = logger or logging.getLogger("quizsolver.session")

        self._records: List[AnswerRecord] = []
        self._by_id: Dict[str, AnswerRecord] = {}
        self.mode = QuizMode.STANDARD
        self.time_left = challenge_duration
        self.is_time_expired = False
        self.is_submitted = False
        self.is_finishing = False
        self._result: Optional[QuizResult] = None
        self._generation = 0

    # -- projections -----------------------------------------------------

    @property
    def records(self) -> Tuple[AnswerRecord, ...]:
        return tuple(self._records)

    @property
    def result(self) -> Optional[QuizResult]:
        """The retained result of the last finish, if any."""
        return self._result

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def total_questions(self) -> int:
        return len(self._records)

    @property
    def is_locked(self) -> bool:
        return self.is_submitted or self.is_finishing or self.is_time_expired

    @property
    def is_countdown_active(self) -> bool:
        return (
            self.mode is QuizMode.CHALLENGE
            and bool(self._records)
            and self.time_left > 0
            and not self.is_submitted
            and not self.is_finishing
        )

    def record(self, question_id: str) -> AnswerRecord:
        try:
            return self._by_id[question_id]
        except KeyError as exc:
            raise KeyError(f"Unknown question id '{question_id}'.") from exc

    def answered_count(self) -> int:
        return sum(1 for rec in self._records if rec.is_answered)

    def unanswered_indices(self) -> List[int]:
        return [i for i, rec in enumerate(self._records) if not rec.is_answered]

    # -- lifecycle -------------------------------------------------------

    def load(
        self,
        questions: Sequence[Question],
        mode: QuizMode | str = QuizMode.STANDARD,
    ) -> None:
        """Start a new attempt over ``questions``.

        Challenge mode keeps only the first ``challenge_question_count``
        questions (the parser already shuffled them) and restarts the clock.
        """
        self.mode = QuizMode.from_value(mode)
        selected = list(questions)
        if self.mode is QuizMode.CHALLENGE:
            selected = selected[: self._challenge_question_count]
        ids = [q.id for q in selected]
        if len(set(ids)) != len(ids):
            raise ValueError("question ids must be unique within a session")

        self._records = [AnswerRecord(question=q) for q in selected]
        self._by_id = {rec.id: rec for rec in self._records}
        self._clear_attempt_state()
        self.time_left = self._challenge_duration
        self.is_time_expired = False
        self._logger.info(
            "Loaded quiz",
            extra={"mode": self.mode.value, "question_count": len(selected)},
        )

    def load_text(
        self,
        raw_text: str,
        mode: QuizMode | str = QuizMode.STANDARD,
        *,
        rng: Optional[random.Random] = None,
    ) -> int:
        """Parse ``raw_text`` and load it; returns the question count."""
        self.load(parse_quiz_text(raw_text, rng=rng), mode)
        return len(self._records)

    def restart(self) -> None:
        """Clear answers and verdicts but keep questions and option order."""
        for rec in self._records:
            rec.clear()
        self._clear_attempt_state()
        if self.mode is QuizMode.CHALLENGE:
            self.time_left = self._challenge_duration
            self.is_time_expired = False
        self._logger.info("Restarted quiz", extra={"mode": self.mode.value})

    def reset(self) -> None:
        """Drop every question and return to the empty pre-load state."""
        self._records = []
        self._by_id = {}
        self._clear_attempt_state()
        self.mode = QuizMode.STANDARD
        self.time_left = self._challenge_duration
        self.is_time_expired = False
        self._logger.info("Reset quiz")

    def _clear_attempt_state(self) -> None:
        self._result = None
        self.is_submitted = False
        self.is_finishing = False
        self._generation += 1

    # -- countdown -------------------------------------------------------

    def tick(self) -> bool:
        """Advance the challenge clock by one second.

        Returns ``True`` only on the tick that runs the clock out.
        """
        if not self.is_countdown_active:
            return False
        self.time_left = countdown_step(self.time_left)
        if self.time_left == 0 and not self.is_time_expired:
            self.is_time_expired = True
            self._logger.info(
                "Challenge time expired",
                extra={
                    "answered": self.answered_count(),
                    "total": self.total_questions,
                },
            )
            return True
        return False

    def advance(self, seconds: int) -> bool:
        """Apply ``seconds`` ticks; ``True`` if the clock ran out meanwhile."""
        expired = False
        for _ in range(max(0, int(seconds))):
            if not self.is_countdown_active:
                break
            expired = self.tick() or expired
        return expired

    # -- answering -------------------------------------------------------

    def select_option(self, question_id: str, option_index: int) -> bool:
        """Record a selection; returns ``False`` when the session refuses it."""
        rec = self.record(question_id)
        if not 0 <= option_index < len(rec.question.options):
            raise ValueError(
                f"Option index {option_index} out of range for "
                f"question '{question_id}'."
            )
        if self.is_locked:
            return False
        if rec.status in (ValidationStatus.VALIDATING, ValidationStatus.VALIDATED):
            return False
        rec.selected_index = option_index
        return True

    async def check_answer(self, question_id: str) -> bool:
        """Grade one answered question immediately (standard mode only).

        Returns ``True`` when a verdict was applied. Failures leave the record
        in ``error`` so the user can retry.
        """
        rec = self.record(question_id)
        if self.mode is not QuizMode.STANDARD or self.is_locked:
            return False
        if rec.selected_index is None:
            return False
        if rec.status in (ValidationStatus.VALIDATING, ValidationStatus.VALIDATED):
            return False

        generation = self._generation
        selected = rec.selected_index
        rec.status = ValidationStatus.VALIDATING
        try:
            result = await self._grader.validate_one(rec.question, selected)
        except Exception as exc:
            if self._is_stale(generation, rec):
                return False
            rec.status = ValidationStatus.ERROR
            self._logger.warning(
                "Answer check failed",
                extra={"question_id": question_id, "error": repr(exc)},
            )
            return False

        if self._is_stale(generation, rec):
            self._logger.debug(
                "Discarded stale answer check",
                extra={"question_id": question_id},
            )
            return False
        rec.apply_result(result)
        return True

    def _is_stale(self, generation: int, rec: AnswerRecord) -> bool:
        # A finish that completed meanwhile already settled this record.
        return (
            generation != self._generation
            or self.is_submitted
            or self._by_id.get(rec.id) is not rec
        )

    # -- finishing -------------------------------------------------------

    def finish_intent(self) -> FinishPrompt:
        """Describe what must be confirmed before :meth:`finish` runs.

        Expired time forces the finish with no way back; otherwise the user
        is asked only when some questions are unanswered.
        """
        return FinishPrompt(
            unanswered=tuple(self.unanswered_indices()),
            forced=self.is_time_expired,
        )

    async def finish(self) -> Optional[QuizResult]:
        """Grade every open question and compute the final result.

        Returns the retained result unchanged when the session is already
        submitted, and ``None`` when a restart or reset superseded this call
        while grading was in flight.
        """
        if self.is_submitted:
            return self._result
        if self.is_finishing:
            return None

        generation = self._generation
        self.is_finishing = True
        pending = [
            rec
            for rec in self._records
            if rec.status is not ValidationStatus.VALIDATED
        ]
        answered = [rec for rec in pending if rec.is_answered]
        skipped = [rec for rec in pending if not rec.is_answered]
        for rec in pending:
            rec.status = ValidationStatus.VALIDATING

        self._logger.info(
            "Finishing quiz",
            extra={
                "pending": len(pending),
                "answered": len(answered),
                "skipped": len(skipped),
            },
        )

        groups = chunked(answered, self._batch_size)
        outcomes = await asyncio.gather(
            *(self._grade_group(index, group) for index, group in enumerate(groups))
        )

        if generation != self._generation:
            self._logger.debug("Discarded stale finish")
            return None

        results: Dict[str, ValidationResult] = {}
        for group_results in outcomes:
            for result in group_results:
                if result.question_id:
                    results[result.question_id] = result

        for rec in answered:
            verdict = results.get(rec.id)
            if verdict is not None:
                rec.apply_result(verdict)
        for rec in skipped:
            rec.mark_skipped()

        self._result = self._aggregate()
        self.is_submitted = True
        self.is_finishing = False
        self._logger.info(
            "Quiz submitted",
            extra={
                "total": self._result.total,
                "correct": self._result.correct_count,
                "incorrect": self._result.incorrect_count,
                "skipped": self._result.skipped_count,
                "ungraded": self._result.ungraded_count,
                "score": round(self._result.score, 2),
                "grade": self._result.grade.grade,
            },
        )
        return self._result

    async def _grade_group(
        self, index: int, group: Sequence[AnswerRecord]
    ) -> List[ValidationResult]:
        items = [
            BatchItem(question=rec.question, selected_index=rec.selected_index)
            for rec in group
        ]
        requested = {item.question.id for item in items}
        try:
            results = await self._grader.validate_batch(items)
        except Exception:
            self._logger.exception(
                "Batch grading failed",
                extra={
                    "batch_index": index,
                    "question_ids": sorted(requested),
                },
            )
            return []
        return [r for r in results if r.question_id in requested]

    def _aggregate(self) -> QuizResult:
        total = len(self._records)
        skipped = sum(1 for rec in self._records if rec.is_skipped)
        correct = sum(
            1 for rec in self._records if rec.is_correct and not rec.is_skipped
        )
        ungraded = sum(
            1
            for rec in self._records
            if rec.status is not ValidationStatus.VALIDATED
        )
        incorrect = total - correct - skipped - ungraded
        score = (correct / total) * 100 if total else 0.0
        return QuizResult(
            total=total,
            correct_count=correct,
            incorrect_count=incorrect,
            skipped_count=skipped,
            ungraded_count=ungraded,
            score=score,
            grade=calculate_grade(score),
        )
