"""Tests for the single commit cycle."""

import logging
import shutil
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock

import pytest

from autogit.errors import DetectionError, GenerationError
from autogit.git_wrapper import GitRepo
from autogit.pipeline import CommitPipeline, CycleResult


@pytest.fixture
def parts() -> tuple[MagicMock, MagicMock, MagicMock, MagicMock]:
    """Mocked repo, provider, system and monitor for a pipeline."""
    repo = MagicMock()
    repo.name = "project"
    provider = MagicMock()
    provider.generate.return_value = "feat: add thing"
    system = MagicMock()
    monitor = MagicMock()
    monitor.has_changes.return_value = True
    monitor.diff.return_value = "diff --git a/x b/x"
    return repo, provider, system, monitor


def _pipeline(parts: tuple) -> CommitPipeline:
    repo, provider, system, monitor = parts
    return CommitPipeline(repo, provider, system, monitor=monitor)


def test_no_changes_touches_nothing(parts: tuple) -> None:
    """Verifies that a clean tree never reaches the backend or git writes."""
    repo, provider, system, monitor = parts
    monitor.has_changes.return_value = False

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.NO_CHANGES
    provider.generate.assert_not_called()
    repo.add_all.assert_not_called()
    repo.commit.assert_not_called()
    repo.push.assert_not_called()
    system.notify_error.assert_not_called()


def test_successful_cycle(parts: tuple, caplog: pytest.LogCaptureFixture) -> None:
    """Verifies the happy path: one generation, stage, commit, push, notify."""
    caplog.set_level(logging.INFO, logger="autogit")
    repo, provider, system, monitor = parts

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.PUSHED
    assert outcome.message == "feat: add thing"
    provider.generate.assert_called_once_with("diff --git a/x b/x")
    repo.add_all.assert_called_once()
    repo.commit.assert_called_once_with("feat: add thing")
    repo.push.assert_called_once()
    system.notify_success.assert_called_once_with("project", "feat: add thing")
    assert "STAGING project" in caplog.text
    assert "PUSHING project" in caplog.text


def test_generation_failure_stops_before_staging(
    parts: tuple, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that without a message nothing is staged and nobody is notified."""
    repo, provider, system, monitor = parts
    provider.generate.side_effect = GenerationError("API error (status 500): boom")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.FAILED
    repo.add_all.assert_not_called()
    repo.commit.assert_not_called()
    system.notify_error.assert_not_called()
    assert "GENERATE ERROR project" in caplog.text


def test_unexpected_provider_exception_is_wrapped(parts: tuple) -> None:
    repo, provider, system, monitor = parts
    provider.generate.side_effect = ValueError("bad payload")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.FAILED
    assert isinstance(outcome.error, GenerationError)


def test_detection_failure_is_logged(
    parts: tuple, caplog: pytest.LogCaptureFixture
) -> None:
    repo, provider, system, monitor = parts
    monitor.has_changes.side_effect = DetectionError("Failed to check changes: x")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.FAILED
    provider.generate.assert_not_called()
    assert "DETECT ERROR project" in caplog.text


def test_stage_failure_skips_commit(parts: tuple) -> None:
    repo, provider, system, monitor = parts
    repo.add_all.side_effect = RuntimeError("Git error: index.lock exists")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.FAILED
    assert outcome.error.step == "stage"
    repo.commit.assert_not_called()
    repo.push.assert_not_called()


def test_commit_failure_skips_push(parts: tuple) -> None:
    repo, provider, system, monitor = parts
    repo.commit.side_effect = RuntimeError("Git error: nothing to commit")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.FAILED
    assert outcome.error.step == "commit"
    repo.push.assert_not_called()
    system.notify_error.assert_not_called()


def test_push_failure_notifies_and_keeps_commit(parts: tuple) -> None:
    """Verifies that a failed push alerts the user and leaves the commit in place."""
    repo, provider, system, monitor = parts
    repo.push.side_effect = RuntimeError("Git error: rejected")

    outcome = _pipeline(parts).run_cycle()

    assert outcome.result is CycleResult.PUSH_FAILED
    assert outcome.message == "feat: add thing"
    repo.commit.assert_called_once_with("feat: add thing")
    system.notify_error.assert_called_once()
    name, error = system.notify_error.call_args.args
    assert name == "project"
    assert "rejected" in error
    system.notify_success.assert_not_called()


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_real_repository_commit_and_push(tmp_path: Path, git: Callable) -> None:
    """Runs full cycles against a real clone and its bare remote.

    The second push fails because the remote disappears; the local commit
    must survive.
    """
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    git(tmp_path, "init", "--bare", str(remote))
    git(tmp_path, "clone", str(remote), str(work))
    (work / "README.md").write_text("hello\n")
    git(work, "add", "README.md")
    git(work, "commit", "-m", "initial")
    git(work, "push", "-u", "origin", "HEAD")

    provider = MagicMock()
    provider.generate.return_value = "docs: add notes"
    system = MagicMock()
    pipeline = CommitPipeline(GitRepo(work), provider, system)

    assert pipeline.run_cycle().result is CycleResult.NO_CHANGES

    (work / "notes.md").write_text("some notes\n")
    outcome = pipeline.run_cycle()

    assert outcome.result is CycleResult.PUSHED
    assert git(remote, "log", "-1", "--format=%s") == "docs: add notes"
    assert "+ notes.md" in provider.generate.call_args.args[0]

    shutil.rmtree(remote)
    provider.generate.return_value = "docs: more notes"
    (work / "notes.md").write_text("more notes\n")
    outcome = pipeline.run_cycle()

    assert outcome.result is CycleResult.PUSH_FAILED
    assert git(work, "log", "-1", "--format=%s") == "docs: more notes"
    system.notify_error.assert_called_once()


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_real_repository_with_undecodable_diff(
    tmp_path: Path, git: Callable, caplog: pytest.LogCaptureFixture
) -> None:
    """Verifies that a non-UTF-8 edit still completes a cycle and logs each step."""
    caplog.set_level(logging.INFO, logger="autogit")
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    git(tmp_path, "init", "--bare", str(remote))
    git(tmp_path, "clone", str(remote), str(work))
    (work / "a.txt").write_text("cafe\n")
    git(work, "add", "a.txt")
    git(work, "commit", "-m", "initial")
    git(work, "push", "-u", "origin", "HEAD")

    (work / "a.txt").write_bytes(b"caf\xe9\n")
    provider = MagicMock()
    provider.generate.return_value = "chore: re-encode a.txt"
    pipeline = CommitPipeline(GitRepo(work), provider, MagicMock())

    outcome = pipeline.run_cycle()

    assert outcome.result is CycleResult.PUSHED
    assert "+caf\ufffd" in provider.generate.call_args.args[0]
    for step in ("CHECK", "CHANGES", "GENERATED", "STAGING", "COMMITTED", "PUSHING"):
        assert f"{step} work:" in caplog.text
