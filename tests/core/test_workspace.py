from __future__ import annotations

from pathlib import Path

import pytest

from quizsolver.core import workspace


def test_ensure_workspace_creates_directories(tmp_path: Path) -> None:
    root = tmp_path / "data"

    layout = workspace.ensure_workspace(env={workspace.WORKSPACE_ENV: str(root)})

    assert layout.home == root.resolve()
    assert layout.path_for("config").is_dir()
    assert layout.path_for("logs").is_dir()
    assert dict(layout.created) == {"home": True, "config": True, "logs": True}


def test_ensure_workspace_is_idempotent(tmp_path: Path) -> None:
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "existing")}

    first = workspace.ensure_workspace(env=env)
    second = workspace.ensure_workspace(env=env)

    assert first.home == second.home
    assert not any(second.created.values())


def test_explicit_path_beats_env(tmp_path: Path) -> None:
    custom = tmp_path / "custom-root"
    env = {workspace.WORKSPACE_ENV: str(tmp_path / "from-env")}

    layout = workspace.ensure_workspace(env=env, path=custom)

    assert layout.home == custom.resolve()
    assert not (tmp_path / "from-env").exists()


def test_ensure_workspace_without_create(tmp_path: Path) -> None:
    root = tmp_path / "deferred"

    layout = workspace.ensure_workspace(path=root, create=False)

    assert layout.home == root.resolve()
    assert not root.exists()
    assert not any(layout.created.values())


def test_file_in_place_of_workspace_is_rejected(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=blocker)


def test_file_in_place_of_logs_dir_is_rejected(tmp_path: Path) -> None:
    root = tmp_path / "ws"
    root.mkdir()
    (root / "logs").write_text("x", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root)


def test_path_for_unknown_key(tmp_path: Path) -> None:
    layout = workspace.ensure_workspace(path=tmp_path / "ws")

    with pytest.raises(KeyError):
        layout.path_for("cache")
