"""Shared fixtures for the Autogit test suite."""

import os
import subprocess
from pathlib import Path
from typing import Callable

import pytest

from autogit.state import StateStore


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensures no AUTOGIT_* variables from the host leak into a test."""
    for name in (
        "AUTOGIT_HOME",
        "AUTOGIT_AI_PROVIDER",
        "AUTOGIT_API_KEY",
        "AUTOGIT_BASE_URL",
        "AUTOGIT_CHECK_INTERVAL_MINUTES",
        "AUTOGIT_ROOT_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
    """A StateStore backed by a temporary directory."""
    return StateStore(tmp_path / "state")


def _run_git(cwd: Path, *args: str) -> str:
    res = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
    )
    return res.stdout.strip()


@pytest.fixture
def git(monkeypatch: pytest.MonkeyPatch) -> Callable[..., str]:
    """Runs real git commands, isolated from the user's global configuration.

    Args:
        monkeypatch (pytest.MonkeyPatch): Pytest fixture for the environment.

    Returns:
        Callable[..., str]: `git(cwd, *args)` returning stripped stdout.
    """
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Autogit Test")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "autogit@example.com")
    return _run_git
