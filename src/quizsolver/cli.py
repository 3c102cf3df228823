"""Command line entry point for quizsolver."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from importlib import metadata
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console

from quizsolver.core import workspace as workspace_mod
from quizsolver.core.ai import load_client
from quizsolver.core.files import read_input
from quizsolver.core.logging import configure_logger
from quizsolver.quiz import config as config_mod
from quizsolver.quiz.console import run_quiz_session
from quizsolver.quiz.grader import GradingClient, OpenAIGradingClient
from quizsolver.quiz.models import QuizMode, option_letter
from quizsolver.quiz.parser import parse_quiz_text
from quizsolver.quiz.session import QuizSession

DIST_NAME = "quizsolver"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizsolver",
        description=(
            "Run multiple-choice quizzes extracted from exported poll chat "
            "logs, graded by a language model."
        ),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start an interactive quiz")
    start.add_argument(
        "source",
        help="Chat log file to read questions from ('-' reads stdin).",
    )
    start.add_argument(
        "--mode",
        choices=[mode.value for mode in QuizMode],
        default=QuizMode.STANDARD.value,
        help="standard grades per question; challenge is timed.",
    )
    start.add_argument("--model", help="Override the grading model.")
    _add_config_arguments(start)
    start.add_argument(
        "--log-level",
        help="Set the logging level for the run (defaults to INFO).",
    )
    start.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Mirror log output to stderr.",
    )

    parse = sub.add_parser(
        "parse", help="Show the questions found in a chat log"
    )
    parse.add_argument("source", help="Chat log file ('-' reads stdin).")
    parse.add_argument(
        "--json",
        action="store_true",
        help="Emit one JSON object per question.",
    )

    config = sub.add_parser("config", help="Manage quizsolver.toml")
    config_sub = config.add_subparsers(dest="action", required=True)
    init = config_sub.add_parser("init", help="Write the default config")
    init.add_argument(
        "--path",
        type=Path,
        help="Destination (defaults to the workspace config directory).",
    )
    init.add_argument("--workspace", type=Path, help="Workspace root override.")
    init.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file.",
    )
    path_cmd = config_sub.add_parser("path", help="Print the config path")
    _add_config_arguments(path_cmd)

    sub.add_parser("version", help="Print the installed version")
    return parser


def _add_config_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to quizsolver.toml (defaults to the workspace config).",
    )
    parser.add_argument(
        "--workspace",
        type=Path,
        help="Override the workspace root holding config and logs.",
    )


def _build_grader(
    config: config_mod.QuizConfig, logger: logging.Logger
) -> GradingClient:
    grading = config.grading
    client = load_client(
        api_base=grading.api_base,
        timeout=grading.request_timeout_seconds,
    )
    return OpenAIGradingClient(
        client=client,
        model=grading.model,
        temperature=grading.temperature,
        max_tokens=grading.max_tokens,
        request_timeout=grading.request_timeout_seconds,
        logger=logger.getChild("grader"),
    )


def _cmd_start(args: argparse.Namespace) -> int:
    overrides = config_mod.ConfigOverrides(
        model=args.model,
        log_level=args.log_level,
        verbose=args.verbose,
    )
    try:
        loaded = config_mod.load_config(
            config_path=args.config,
            overrides=overrides,
            workspace_path=args.workspace,
        )
    except config_mod.QuizConfigError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 2
    config = loaded.config

    logger, log_path = configure_logger(
        "quizsolver",
        log_dir=loaded.layout.path_for("logs"),
        level=config.logging.level,
        verbose=config.logging.verbose,
    )
    logger.debug(
        "start command invoked",
        extra={"source": args.source, "mode": args.mode},
    )

    try:
        raw_text = read_input(args.source)
    except OSError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1

    try:
        grader = _build_grader(config, logger)
    except RuntimeError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1

    session = QuizSession(
        grader,
        challenge_duration=config.challenge.duration_seconds,
        challenge_question_count=config.challenge.question_count,
        batch_size=config.grading.batch_size,
        logger=logger.getChild("session"),
    )
    if not session.load_text(raw_text, args.mode):
        sys.stderr.write("No poll questions found in the input.\n")
        return 1

    console = Console()
    outcome = run_quiz_session(session, console, console.input)
    logger.info(
        "Quiz session ended",
        extra={"exit_action": outcome.exit_action, "log_path": log_path},
    )
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    try:
        raw_text = read_input(args.source)
    except OSError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1
    questions = parse_quiz_text(raw_text)
    if not questions:
        print("No poll questions found.")
        return 1
    for number, question in enumerate(questions, start=1):
        if args.json:
            print(json.dumps(asdict(question), ensure_ascii=False))
            continue
        print(f"{number}. {question.text}")
        for i, option in enumerate(question.options):
            print(f"   {option_letter(i)}. {option}")
    return 0


def _cmd_config_init(args: argparse.Namespace) -> int:
    if args.path is not None:
        target = args.path.expanduser()
        if not target.is_absolute():
            target = (Path.cwd() / target).resolve()
    else:
        try:
            layout = workspace_mod.ensure_workspace(path=args.workspace)
        except workspace_mod.WorkspaceError as exc:
            sys.stderr.write(f"Error: {exc}\n")
            return 1
        target = config_mod.default_config_path(layout)
    try:
        written = config_mod.write_template(target, overwrite=args.force)
    except config_mod.QuizConfigError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1
    print(f"Wrote quizsolver config to {written}")
    return 0


def _cmd_config_path(args: argparse.Namespace) -> int:
    try:
        layout = workspace_mod.ensure_workspace(
            path=args.workspace, create=False
        )
    except workspace_mod.WorkspaceError as exc:
        sys.stderr.write(f"Error: {exc}\n")
        return 1
    path = config_mod.resolve_config_path(layout, config_path=args.config)
    print(path.resolve())
    return 0


def _cmd_version() -> int:
    try:
        version = metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        version = "unknown"
    print(version)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "start":
        return _cmd_start(args)
    if args.command == "parse":
        return _cmd_parse(args)
    if args.command == "config" and args.action == "init":
        return _cmd_config_init(args)
    if args.command == "config" and args.action == "path":
        return _cmd_config_path(args)
    if args.command == "version":
        return _cmd_version()
    parser.print_help()  # pragma: no cover - argparse enforces commands
    return 2


if __name__ == "__main__":  # pragma: no cover - manual invocation guard
    raise SystemExit(main())
