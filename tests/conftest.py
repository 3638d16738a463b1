import logging
import pytest
from pathlib import Path
from typing import Dict

from fastfiles.config import loader


def create_tree(base: Path, structure: Dict[str, str]) -> Path:
    """Creates files (and their parent directories) under base. A key ending in "/" makes an empty directory."""
    for rel_path, content in structure.items():
        target = base / rel_path
        if rel_path.endswith("/"):
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return base


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path_factory, monkeypatch):
    """Keeps the developer's own config file and ignore-pattern variable out of every test."""
    fake_home_config = tmp_path_factory.mktemp("home") / "config.toml"
    monkeypatch.setattr(loader, "USER_CONFIG_FILE", fake_home_config)
    monkeypatch.delenv("FILES_IGNORE_PATTERN", raising=False)
    return fake_home_config


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """root/{.git/x, src/main.go, src/README, docs/a.md}"""
    root = tmp_path / "root"
    return create_tree(root, {
        ".git/x": "git object",
        "src/main.go": "package main",
        "src/README": "readme",
        "docs/a.md": "# a",
    })


@pytest.fixture
def deep_tree(tmp_path: Path) -> Path:
    """A wider tree with nested VCS dirs, hidden entries and several levels."""
    root = tmp_path / "deep"
    structure = {
        "README.md": "top",
        ".hidden_file": "h",
        ".config/settings.ini": "x",
        "vendor/lib/.git/HEAD": "ref",
        "vendor/lib/.hg/store": "x",
        "vendor/lib/code.go": "package lib",
        "vendor/lib/_darcs/patch": "x",
        "empty/": "",
    }
    for i in range(6):
        for j in range(4):
            structure[f"pkg{i}/sub{j}/file{j}.go"] = "package x"
            structure[f"pkg{i}/sub{j}/notes{j}.txt"] = "notes"
        structure[f"pkg{i}/.svn/entries"] = "x"
    return create_tree(root, structure)


@pytest.fixture(autouse=True)
def reset_fastfiles_logging():
    """CLI runs attach a handler to a stream that is closed once the runner returns."""
    yield
    logging.getLogger("fastfiles").handlers.clear()
