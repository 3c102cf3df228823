"""Filesystem helpers shared by tests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

Tree = Mapping[str, Optional[str]]


def build_tree(base: Path, tree: Tree) -> None:
    """Create text files (``str``) and directories (``None``) under ``base``."""

    for name, value in tree.items():
        path = base / name
        if value is None:
            path.mkdir(parents=True, exist_ok=True)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(value, encoding="utf-8")


@dataclass
class WorkspaceBuilder:
    """Helper bound to a tmp directory for chat logs and config files."""

    root: Path

    def create(self, tree: Tree) -> Path:
        build_tree(self.root, tree)
        return self.root

    def write(self, relative: Union[str, Path], content: str) -> Path:
        path = self.root / Path(relative)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    def config(self, body: str, name: str = "quizsolver.toml") -> Path:
        return self.write(name, body.strip() + "\n")
