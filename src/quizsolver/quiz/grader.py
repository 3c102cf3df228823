"""Grading clients that judge answers with a language model."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from .models import BatchItem, Question, ValidationResult, option_letter

__all__ = [
    "GradingError",
    "GradingClient",
    "OpenAIGradingClient",
    "build_single_prompt",
    "build_batch_prompt",
    "parse_single_response",
    "parse_batch_response",
]

SKIPPED_ANSWER = "No answer provided (Skipped)"

_SYSTEM_PROMPT = (
    "You grade multiple-choice quiz answers. Reply with JSON only, using "
    "zero-based option indexes."
)
_BATCH_SEPARATOR = "\n\n----------------\n\n"
_FENCED_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


class GradingError(RuntimeError):
    """Raised when a grading request fails or returns unusable output."""


class GradingClient(Protocol):
    """Capability the quiz session uses to judge answers."""

    async def validate_one(
        self, question: Question, selected_index: int
    ) -> ValidationResult:
        """Grade one answered question."""

    async def validate_batch(
        self, items: Sequence[BatchItem]
    ) -> List[ValidationResult]:
        """Grade several questions; results carry ``question_id``."""


def _format_options(question: Question) -> str:
    return "\n".join(
        question.option_label(i) for i in range(len(question.options))
    )


def _format_answer(question: Question, selected_index: Optional[int]) -> str:
    if selected_index is None or selected_index < 0:
        return SKIPPED_ANSWER
    return question.option_label(selected_index)


def build_single_prompt(question: Question, selected_index: int) -> str:
    return (
        f"Question: {question.text}\n"
        f"My Answer: {_format_answer(question, selected_index)}\n"
        f"Options:\n{_format_options(question)}\n\n"
        "For this question, analyze my response and give feedback based on "
        "the answer options provided.\n"
        "If my answer is correct, confirm it and explain why it is correct.\n"
        "If my answer is incorrect, identify the correct answer and explain "
        "why my answer was wrong.\n"
        "Also, provide an explanation about why the other options are "
        "incorrect.\n\n"
        'Respond with a JSON object: {"isCorrect": bool, '
        '"correctOptionIndex": int, "explanation": str, '
        '"reasoningForIncorrect": str}'
    )


def build_batch_prompt(items: Sequence[BatchItem]) -> str:
    blocks = [
        (
            f"ID: {item.question.id}\n"
            f"Question: {item.question.text}\n"
            f"My Answer: {_format_answer(item.question, item.selected_index)}\n"
            f"Options:\n{_format_options(item.question)}"
        )
        for item in items
    ]
    return (
        f"You are grading a quiz. Here are {len(items)} questions.\n"
        "For each question:\n"
        "1. If the user provided an answer, determine if it is correct.\n"
        "2. If the user did not provide an answer (Skipped), mark it as "
        "incorrect.\n"
        "3. In ALL cases, provide the correct answer index "
        "(correctOptionIndex) and a brief explanation.\n\n"
        'Respond with a JSON object: {"results": [{"id": str, '
        '"isCorrect": bool, "correctOptionIndex": int, "explanation": str, '
        '"reasoningForIncorrect": str}]}\n\n'
        "Questions:\n" + _BATCH_SEPARATOR.join(blocks)
    )


def _load_json(content: str) -> Any:
    if not content or not content.strip():
        raise GradingError("Empty response from grading model.")
    fenced = _FENCED_RE.search(content)
    payload = fenced.group(1) if fenced else content
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise GradingError(f"Grading model returned invalid JSON: {exc}") from exc


def _coerce_result(
    data: Any, *, option_count: int, question_id: Optional[str] = None
) -> ValidationResult:
    if not isinstance(data, Mapping):
        raise GradingError("Grading result must be a JSON object.")
    is_correct = data.get("isCorrect")
    if not isinstance(is_correct, bool):
        raise GradingError("'isCorrect' must be a boolean.")
    index = data.get("correctOptionIndex")
    if isinstance(index, bool) or not isinstance(index, int):
        raise GradingError("'correctOptionIndex' must be an integer.")
    if not 0 <= index < option_count:
        raise GradingError(
            f"'correctOptionIndex' {index} is outside 0..{option_count - 1}."
        )
    explanation = data.get("explanation")
    if not isinstance(explanation, str):
        raise GradingError("'explanation' must be a string.")
    reasoning = data.get("reasoningForIncorrect")
    return ValidationResult(
        is_correct=is_correct,
        correct_index=index,
        explanation=explanation.strip(),
        reasoning_for_incorrect=(
            reasoning.strip() if isinstance(reasoning, str) else None
        ),
        question_id=question_id,
    )


def parse_single_response(content: str, question: Question) -> ValidationResult:
    """Parse the model's single-question verdict or raise ``GradingError``."""
    return _coerce_result(
        _load_json(content),
        option_count=len(question.options),
        question_id=question.id,
    )


def parse_batch_response(
    content: str,
    items: Sequence[BatchItem],
    *,
    logger: Optional[logging.Logger] = None,
) -> List[ValidationResult]:
    """Parse a batch verdict, dropping entries that cannot be matched.

    Unknown ids, duplicates and malformed entries are skipped; the session
    treats any question missing from the output as ungraded.
    """
    data = _load_json(content)
    if isinstance(data, Mapping):
        data = data.get("results")
    if not isinstance(data, list):
        raise GradingError("Batch response must contain a 'results' array.")

    by_id = {item.question.id: item.question for item in items}
    results: List[ValidationResult] = []
    seen: set[str] = set()
    for entry in data:
        qid = str(entry.get("id", "")) if isinstance(entry, Mapping) else ""
        question = by_id.get(qid)
        if question is None or qid in seen:
            continue
        try:
            result = _coerce_result(
                entry, option_count=len(question.options), question_id=qid
            )
        except GradingError as exc:
            if logger is not None:
                logger.warning(
                    "Dropped malformed batch entry",
                    extra={"question_id": qid, "reason": str(exc)},
                )
            continue
        seen.add(qid)
        results.append(result)
    return results


class OpenAIGradingClient:
    """Grade answers through OpenAI chat completions.

    The SDK call is blocking, so it runs in a worker thread to keep the
    session's event loop responsive.
    """

    def __init__(
        self,
        *,
        client: Any,
        model: str,
        temperature: float = 0.2,
        max_tokens: int = 1500,
        request_timeout: float = 60,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = request_timeout
        self._logger = logger or logging.getLogger("quizsolver.grader")

    async def validate_one(
        self, question: Question, selected_index: int
    ) -> ValidationResult:
        if not 0 <= selected_index < len(question.options):
            raise GradingError(
                f"Selected option {option_letter(selected_index)} does not "
                f"exist for question {question.id}."
            )
        content = await self._complete(
            build_single_prompt(question, selected_index)
        )
        return parse_single_response(content, question)

    async def validate_batch(
        self, items: Sequence[BatchItem]
    ) -> List[ValidationResult]:
        if not items:
            return []
        content = await self._complete(build_batch_prompt(items))
        results = parse_batch_response(content, items, logger=self._logger)
        self._logger.info(
            "Graded batch",
            extra={"requested": len(items), "returned": len(results)},
        )
        return results

    async def _complete(self, prompt: str) -> str:
        try:
            return await asyncio.to_thread(self._create_completion, prompt)
        except GradingError:
            raise
        except Exception as exc:
            self._logger.error(
                "Grading request failed",
                extra={"model": self._model, "error": repr(exc)},
            )
            raise GradingError(f"Grading request failed: {exc}") from exc

    def _create_completion(self, prompt: str) -> str:
        response = self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": _SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            response_format={"type": "json_object"},
            timeout=self._timeout,
        )
        choices = getattr(response, "choices", None) or []
        if not choices:
            raise GradingError("Grading model returned no choices.")
        content = choices[0].message.content or ""
        return content.strip()
