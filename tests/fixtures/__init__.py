"""Shared testing fixtures and stubs for the quizsolver test suite."""

from .chatlog import chat_log, make_questions, poll_block  # noqa: F401
from .grader import ScriptedGrader  # noqa: F401
from .openai import ChatCompletionsStub  # noqa: F401
from .workspace import WorkspaceBuilder, build_tree  # noqa: F401

__all__ = [
    "ChatCompletionsStub",
    "ScriptedGrader",
    "WorkspaceBuilder",
    "build_tree",
    "chat_log",
    "make_questions",
    "poll_block",
]
