from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from fixtures import ScriptedGrader, chat_log

from quizsolver import cli
from quizsolver.quiz.console import ConsoleOutcome
from quizsolver.quiz.models import QuizMode

SAMPLE = chat_log(
    [
        ("Which layer routes packets?", ["Network", "Transport"]),
        ("2 + 2 = ?", ["3", "4", "5"]),
    ]
)


@pytest.fixture(autouse=True)
def _detach_cli_logger():
    yield
    logger = logging.getLogger("quizsolver")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def captured_run(monkeypatch):
    calls = {}

    def fake_run(session, console, input_provider, **kwargs):
        calls["session"] = session
        return ConsoleOutcome("quit", None)

    monkeypatch.setattr(cli, "run_quiz_session", fake_run)
    monkeypatch.setattr(cli, "_build_grader", lambda config, logger: ScriptedGrader())
    return calls


def test_version_command(monkeypatch, capsys) -> None:
    monkeypatch.setattr(cli.metadata, "version", lambda name: "9.9.9")

    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == "9.9.9"


def test_version_command_handles_missing_package(monkeypatch, capsys) -> None:
    def missing(name: str) -> str:
        raise cli.metadata.PackageNotFoundError(name)

    monkeypatch.setattr(cli.metadata, "version", missing)

    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == "unknown"


def test_no_args_is_a_usage_error(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2


def test_parse_lists_questions(workspace, capsys) -> None:
    source = workspace.write("chat.txt", SAMPLE)

    assert cli.main(["parse", str(source)]) == 0

    out = capsys.readouterr().out
    assert "Which layer routes packets?" in out
    assert "2 + 2 = ?" in out
    assert "   C. " in out


def test_parse_json_output(workspace, capsys) -> None:
    source = workspace.write("chat.txt", SAMPLE)

    assert cli.main(["parse", str(source), "--json"]) == 0

    rows = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert {row["text"] for row in rows} == {
        "Which layer routes packets?",
        "2 + 2 = ?",
    }
    assert all(row["id"].startswith("q-") for row in rows)


def test_parse_reads_stdin(monkeypatch, capsys) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO(SAMPLE))

    assert cli.main(["parse", "-"]) == 0
    assert "2 + 2 = ?" in capsys.readouterr().out


def test_parse_missing_file(tmp_path: Path, capsys) -> None:
    assert cli.main(["parse", str(tmp_path / "missing.txt")]) == 1
    assert "Input not found" in capsys.readouterr().err


def test_parse_without_polls(workspace, capsys) -> None:
    source = workspace.write("chat.txt", "just chatting\n")

    assert cli.main(["parse", str(source)]) == 1
    assert "No poll questions found" in capsys.readouterr().out


def test_config_init_and_path(tmp_path: Path, capsys) -> None:
    home = tmp_path / "ws"

    assert cli.main(["config", "init", "--workspace", str(home)]) == 0
    target = home.resolve() / "config" / "quizsolver.toml"
    assert target.exists()
    assert "Wrote quizsolver config" in capsys.readouterr().out

    assert cli.main(["config", "init", "--workspace", str(home)]) == 1
    assert "already exists" in capsys.readouterr().err
    assert cli.main(["config", "init", "--workspace", str(home), "--force"]) == 0
    capsys.readouterr()

    assert cli.main(["config", "path", "--workspace", str(home)]) == 0
    assert capsys.readouterr().out.strip() == str(target)


def test_config_path_follows_env_and_flag(
    tmp_path: Path, monkeypatch, capsys
) -> None:
    from_env = tmp_path / "env" / "quiz.toml"
    monkeypatch.setenv("QUIZSOLVER_CONFIG", str(from_env))

    assert cli.main(["config", "path"]) == 0
    assert capsys.readouterr().out.strip() == str(from_env.resolve())

    flag = tmp_path / "flag.toml"
    assert cli.main(["config", "path", "--config", str(flag)]) == 0
    assert capsys.readouterr().out.strip() == str(flag.resolve())


def test_config_init_explicit_path(tmp_path: Path) -> None:
    target = tmp_path / "elsewhere" / "q.toml"

    assert cli.main(["config", "init", "--path", str(target)]) == 0
    assert target.read_text(encoding="utf-8").startswith("# quizsolver")


def test_start_builds_session_from_config(
    workspace, captured_run, capsys
) -> None:
    source = workspace.write("chat.txt", SAMPLE)
    config = workspace.config(
        """
[grading]
batch_size = 2

[challenge]
duration_seconds = 120
question_count = 1
"""
    )

    code = cli.main(
        [
            "start",
            str(source),
            "--mode",
            "challenge",
            "--config",
            str(config),
            "--workspace",
            str(workspace.root / "ws"),
        ]
    )

    assert code == 0
    session = captured_run["session"]
    assert session.mode is QuizMode.CHALLENGE
    assert session.total_questions == 1
    assert session.time_left == 120
    log_file = workspace.root / "ws" / "logs" / "quizsolver.log"
    assert log_file.exists()


def test_start_rejects_bad_config(workspace, captured_run, capsys) -> None:
    source = workspace.write("chat.txt", SAMPLE)
    config = workspace.config("[grading]\nbatch_size = 0")

    code = cli.main(["start", str(source), "--config", str(config)])

    assert code == 2
    assert "batch_size" in capsys.readouterr().err
    assert "session" not in captured_run


def test_start_reports_missing_api_key(workspace, monkeypatch, capsys) -> None:
    source = workspace.write("chat.txt", SAMPLE)

    def no_key(**kwargs):
        raise RuntimeError("OPENAI_API_KEY not found in environment.")

    monkeypatch.setattr(cli, "load_client", no_key)

    assert cli.main(["start", str(source)]) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_start_without_polls(workspace, captured_run, capsys) -> None:
    source = workspace.write("chat.txt", "nothing to see\n")

    assert cli.main(["start", str(source)]) == 1
    assert "No poll questions" in capsys.readouterr().err
    assert "session" not in captured_run


def test_build_grader_uses_config(monkeypatch, tmp_path: Path) -> None:
    seen = {}

    def fake_load_client(**kwargs):
        seen.update(kwargs)
        return object()

    monkeypatch.setattr(cli, "load_client", fake_load_client)
    loaded = cli.config_mod.load_config(env={}, workspace_path=tmp_path)

    grader = cli._build_grader(loaded.config, logging.getLogger("tests.cli"))

    assert isinstance(grader, cli.OpenAIGradingClient)
    assert seen == {"api_base": None, "timeout": 60}
