from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator

import pytest

from quizsolver.core import logging as core_logging


@pytest.fixture
def logger_name(request) -> Iterator[str]:
    name = f"tests.logging.{request.node.name}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _flush(logger: logging.Logger) -> None:
    for handler in logger.handlers:
        handler.flush()


def test_configure_logger_writes_json(tmp_path: Path, logger_name: str) -> None:
    logger, log_path = core_logging.configure_logger(
        logger_name, log_dir=tmp_path / "logs"
    )

    logger.info("Loaded quiz", extra={"mode": "challenge", "question_count": 50})

    class _Helper:
        def __repr__(self) -> str:
            return "helper"

    try:
        raise ValueError("boom")
    except ValueError:
        logger.exception(
            "Batch grading failed",
            extra={
                "question_ids": ("q1", "q2"),
                "paths": {"log": Path("x.log")},
                "obj": _Helper(),
            },
        )
    _flush(logger)

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    first = json.loads(lines[0])
    assert first["message"] == "Loaded quiz"
    assert first["level"] == "INFO"
    assert first["logger"] == logger_name
    assert first["extra"] == {"mode": "challenge", "question_count": 50}
    assert "exception" not in first

    last = json.loads(lines[-1])
    assert "ValueError: boom" in last["exception"]
    assert last["extra"]["question_ids"] == ["q1", "q2"]
    assert last["extra"]["paths"] == {"log": "x.log"}
    assert last["extra"]["obj"] == "helper"
    assert log_path.name == f"{logger_name.rsplit('.', 1)[-1]}.log"


def test_level_filters_file_output(tmp_path: Path, logger_name: str) -> None:
    logger, log_path = core_logging.configure_logger(
        logger_name, log_dir=tmp_path, level="warning"
    )

    logger.info("hidden")
    logger.warning("shown")
    _flush(logger)

    messages = [
        json.loads(line)["message"]
        for line in log_path.read_text(encoding="utf-8").splitlines()
    ]
    assert messages == ["shown"]


def test_verbose_toggles_console_handler(tmp_path: Path, logger_name: str) -> None:
    def console_handlers(logger: logging.Logger) -> list[logging.Handler]:
        return [
            handler
            for handler in logger.handlers
            if getattr(handler, "_quizsolver_console", False)
        ]

    logger, _ = core_logging.configure_logger(
        logger_name, log_dir=tmp_path, verbose=True
    )
    assert len(console_handlers(logger)) == 1

    core_logging.configure_logger(logger_name, log_dir=tmp_path, verbose=True)
    assert len(console_handlers(logger)) == 1

    core_logging.configure_logger(logger_name, log_dir=tmp_path, verbose=False)
    assert console_handlers(logger) == []


def test_repeat_configuration_reuses_file_handler(
    tmp_path: Path, logger_name: str
) -> None:
    logger, first = core_logging.configure_logger(logger_name, log_dir=tmp_path)
    _, second = core_logging.configure_logger(
        logger_name, log_dir=tmp_path / "other"
    )

    assert first == second
    assert len(logger.handlers) == 1
    assert logger.propagate is False
