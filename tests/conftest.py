from __future__ import annotations

import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

# Ensure src/ is importable when the package is not installed
ROOT = TESTS_DIR.parent
for extra in (ROOT / "src",):
    path_str = str(extra)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixtures import ChatCompletionsStub, ScriptedGrader, WorkspaceBuilder  # noqa: E402


@pytest.fixture
def completions() -> ChatCompletionsStub:
    """OpenAI-shaped client handed straight to the grading adapter."""

    return ChatCompletionsStub()


@pytest.fixture
def grader() -> ScriptedGrader:
    return ScriptedGrader()


@pytest.fixture
def workspace(tmp_path: Path) -> WorkspaceBuilder:
    """Provide a helper bound to pytest's per-test tmp directory."""

    return WorkspaceBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in (
        "QUIZSOLVER_CONFIG",
        "QUIZSOLVER_MODEL",
        "QUIZSOLVER_BATCH_SIZE",
        "QUIZSOLVER_CHALLENGE_SECONDS",
        "QUIZSOLVER_CHALLENGE_QUESTIONS",
        "QUIZSOLVER_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("QUIZSOLVER_DATA_HOME", str(tmp_path / "data-home"))
