"""Chat-completions stand-in passed directly to ``OpenAIGradingClient``.

Production code only touches ``client.chat.completions.create`` and reads
``response.choices[0].message.content``, so the stub mirrors exactly that
surface while recording every request and replaying queued payloads.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional, Union


@dataclass
class Choice:
    """Represents a single completion choice returned by the stub."""

    content: Optional[str]

    @property
    def message(self) -> SimpleNamespace:
        return SimpleNamespace(content=self.content)


Payload = Union[str, Dict[str, Any], List[Any], BaseException]


class ChatCompletionsStub:
    """Minimal ``OpenAI`` client replaying queued responses in order."""

    def __init__(
        self, *, side_effect: Optional[Callable[[Dict[str, Any]], Any]] = None
    ) -> None:
        self.side_effect = side_effect
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[Payload] = []
        self.chat = SimpleNamespace(
            completions=SimpleNamespace(create=self._create_completion)
        )

    def queue(self, payload: Payload) -> None:
        """Queue a raw string, a JSON-able object, or an exception to raise."""

        self.responses.append(payload)

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["messages"][-1]["content"]

    def _create_completion(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        if self.side_effect:
            result = self.side_effect(kwargs)
            if result is not None:
                return result
        payload = self.responses.pop(0) if self.responses else ""
        if isinstance(payload, BaseException):
            raise payload
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        return SimpleNamespace(choices=[Choice(payload)])
