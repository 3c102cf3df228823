"""Configuration loader for quiz sessions."""

from __future__ import annotations

import copy
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from quizsolver.core import workspace as workspace_mod

CONFIG_FILENAME = "quizsolver.toml"
CONFIG_ENV = "QUIZSOLVER_CONFIG"
ENV_PREFIX = "QUIZSOLVER_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_DEFAULTS: Mapping[str, Mapping[str, Any]] = {
    "grading": {
        "model": "gpt-4o-mini",
        "temperature": 0.2,
        "max_tokens": 1500,
        "batch_size": 5,
        "request_timeout_seconds": 60,
        "api_base": None,
    },
    "challenge": {
        "duration_seconds": 7200,
        "question_count": 50,
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}

CONFIG_TEMPLATE = """\
# quizsolver configuration

[grading]
# OpenAI chat model used to judge answers
model = "gpt-4o-mini"
temperature = 0.2
max_tokens = 1500
# Answered questions sent per request when a quiz is finished
batch_size = 5
request_timeout_seconds = 60
# api_base = "https://api.openai.com/v1"

[challenge]
# Two hours for fifty questions
duration_seconds = 7200
question_count = 50

[logging]
level = "INFO"
verbose = false
"""


class QuizConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class GradingConfig:
    model: str
    temperature: float
    max_tokens: int
    batch_size: int
    request_timeout_seconds: int
    api_base: Optional[str]


@dataclass(frozen=True)
class ChallengeConfig:
    duration_seconds: int
    question_count: int


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizConfig:
    grading: GradingConfig
    challenge: ChallengeConfig
    logging: LoggingConfig


@dataclass(frozen=True)
class ConfigOverrides:
    """CLI-sourced values that win over env and file settings."""

    model: Optional[str] = None
    log_level: Optional[str] = None
    verbose: Optional[bool] = None


@dataclass(frozen=True)
class LoadResult:
    config: QuizConfig
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


def default_config_path(layout: workspace_mod.WorkspaceLayout) -> Path:
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[ConfigOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Load configuration applying precedence CLI > env > TOML > defaults.

    A missing default file is fine; a missing file that was asked for
    explicitly (argument or ``QUIZSOLVER_CONFIG``) is an error.
    """

    overrides = overrides or ConfigOverrides()
    env_map = os.environ if env is None else env

    try:
        layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    except workspace_mod.WorkspaceError as exc:
        raise QuizConfigError(str(exc)) from exc

    explicit = config_path is not None or bool(
        (env_map.get(CONFIG_ENV) or "").strip()
    )
    requested = resolve_config_path(layout, config_path=config_path, env=env_map)

    tree: MutableMapping[str, Any] = copy.deepcopy(dict(_DEFAULTS))
    loaded_path: Optional[Path] = None
    if requested.exists():
        _merge_section(tree, _read_toml(requested), source=requested)
        loaded_path = requested
    elif explicit:
        raise QuizConfigError(f"Config file not found: {requested}")

    _apply_env(tree, env_map)
    _apply_overrides(tree, overrides)
    return LoadResult(
        config=_build_config(tree),
        layout=layout,
        config_path=loaded_path,
    )


def resolve_config_path(
    layout: workspace_mod.WorkspaceLayout,
    *,
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Path:
    """Return the config file ``load_config`` would read.

    ``config_path`` wins, then ``QUIZSOLVER_CONFIG``, then the workspace
    default. The file does not have to exist.
    """
    if config_path is not None:
        return config_path.expanduser()
    env_map = os.environ if env is None else env
    env_candidate = (env_map.get(CONFIG_ENV) or "").strip()
    if env_candidate:
        return Path(env_candidate).expanduser()
    return default_config_path(layout)


def _read_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except OSError as exc:
        raise QuizConfigError(f"Unable to read config {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise QuizConfigError(f"{path.name}: invalid TOML ({exc})") from exc


def _merge_section(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    source: Path,
    prefix: str = "",
) -> None:
    """Overlay file values onto the defaults; only known keys are accepted."""
    for key, value in override.items():
        dotted = f"{prefix}{key}"
        if key not in base:
            raise QuizConfigError(f"{source.name}: unknown key '{dotted}'.")
        if isinstance(base[key], MutableMapping):
            if not isinstance(value, Mapping):
                raise QuizConfigError(
                    f"{source.name}: '[{dotted}]' must be a table, "
                    f"got {type(value).__name__}."
                )
            _merge_section(base[key], value, source=source, prefix=f"{dotted}.")
        elif isinstance(value, Mapping):
            raise QuizConfigError(
                f"{source.name}: '{dotted}' is a setting, not a table."
            )
        else:
            base[key] = value


def _apply_env(tree: MutableMapping[str, Any], env_map: Mapping[str, str]) -> None:
    model = _env_string(env_map, "MODEL")
    if model is not None:
        tree["grading"]["model"] = model
    batch_size = _env_int(env_map, "BATCH_SIZE")
    if batch_size is not None:
        tree["grading"]["batch_size"] = batch_size
    seconds = _env_int(env_map, "CHALLENGE_SECONDS")
    if seconds is not None:
        tree["challenge"]["duration_seconds"] = seconds
    count = _env_int(env_map, "CHALLENGE_QUESTIONS")
    if count is not None:
        tree["challenge"]["question_count"] = count
    level = _env_string(env_map, "LOG_LEVEL")
    if level is not None:
        tree["logging"]["level"] = level


def _apply_overrides(
    tree: MutableMapping[str, Any], overrides: ConfigOverrides
) -> None:
    if overrides.model is not None:
        tree["grading"]["model"] = overrides.model
    if overrides.log_level is not None:
        tree["logging"]["level"] = overrides.log_level
    if overrides.verbose is not None:
        tree["logging"]["verbose"] = overrides.verbose


def _env_string(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = env_map.get(f"{ENV_PREFIX}{key}")
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _env_int(env_map: Mapping[str, str], key: str) -> Optional[int]:
    raw = _env_string(env_map, key)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise QuizConfigError(
            f"{ENV_PREFIX}{key} must be an integer, got '{raw}'."
        ) from exc


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise QuizConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise QuizConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QuizConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not min_value <= number <= max_value:
        raise QuizConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _build_config(tree: Mapping[str, Any]) -> QuizConfig:
    grading = tree["grading"]
    api_base = grading.get("api_base")
    if api_base is not None:
        api_base = _require_string(api_base, field="grading.api_base")
    grading_config = GradingConfig(
        model=_require_string(grading["model"], field="grading.model"),
        temperature=_require_float_range(
            grading["temperature"],
            field="grading.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_tokens=_require_positive_int(
            grading["max_tokens"], field="grading.max_tokens"
        ),
        batch_size=_require_positive_int(
            grading["batch_size"], field="grading.batch_size"
        ),
        request_timeout_seconds=_require_positive_int(
            grading["request_timeout_seconds"],
            field="grading.request_timeout_seconds",
        ),
        api_base=api_base,
    )

    challenge = tree["challenge"]
    challenge_config = ChallengeConfig(
        duration_seconds=_require_positive_int(
            challenge["duration_seconds"], field="challenge.duration_seconds"
        ),
        question_count=_require_positive_int(
            challenge["question_count"], field="challenge.question_count"
        ),
    )

    logging_section = tree["logging"]
    level = _require_string(logging_section["level"], field="logging.level")
    level = level.upper()
    if level not in _LOG_LEVELS:
        raise QuizConfigError(
            "logging.level must be one of DEBUG, INFO, WARNING, ERROR, "
            "CRITICAL."
        )
    verbose = logging_section["verbose"]
    if not isinstance(verbose, bool):
        raise QuizConfigError("'logging.verbose' must be a boolean.")

    return QuizConfig(
        grading=grading_config,
        challenge=challenge_config,
        logging=LoggingConfig(level=level, verbose=verbose),
    )


def write_template(path: Path, *, overwrite: bool = False) -> Path:
    """Write :data:`CONFIG_TEMPLATE` to ``path`` readable by the owner only."""
    if path.exists() and not overwrite:
        raise QuizConfigError(
            f"Config already exists: {path} (pass --force to replace it)"
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path
