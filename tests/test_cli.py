"""Tests for the Command Line Interface (CLI) module."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from autogit import cli
from autogit.errors import ValidationError
from autogit.state import Config, DaemonInfo, StateStore


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> StateStore:
    """Points the CLI at an isolated state directory.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        monkeypatch (pytest.MonkeyPatch): Pytest fixture for the environment.
    """
    root = tmp_path / "state"
    monkeypatch.setenv("AUTOGIT_HOME", str(root))
    return StateStore(root)


def test_mask_key() -> None:
    assert cli.mask_key("") == "(not set)"
    assert cli.mask_key("short") == "*****"
    assert cli.mask_key("sk-abcdefghijkl") == "sk-a...ijkl"


def test_status_not_running(home: StateStore, capsys: pytest.CaptureFixture) -> None:
    cli.main(["status"])

    captured = capsys.readouterr()
    assert "Not running" in captured.out
    assert not home.daemon_path.exists()


def test_status_paused_on_error(
    home: StateStore, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    """Verifies that a daemon halted by a failed push is reported as such."""
    home.save_daemon_info(DaemonInfo(pid=321, repo_path="/work/repo", status="error"))
    mocker.patch("autogit.supervisor.is_process_alive", return_value=True)

    cli.main(["status"])

    captured = capsys.readouterr()
    assert "Paused on error" in captured.out
    assert "321" in captured.out


def test_pause_without_daemon_exits_non_zero(
    home: StateStore, capsys: pytest.CaptureFixture
) -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main(["pause"])

    assert exc.value.code == 1
    assert "No daemon is running" in capsys.readouterr().err


def test_pause_stops_daemon(
    home: StateStore, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    home.save_daemon_info(DaemonInfo(pid=321, repo_path="/work/repo"))
    mocker.patch("autogit.supervisor.is_process_alive", return_value=True)
    mock_kill = mocker.patch("autogit.supervisor.os.kill")

    cli.main(["pause"])

    mock_kill.assert_called_once()
    assert "Daemon stopped" in capsys.readouterr().out
    assert not home.daemon_path.exists()


def test_config_flags_save_settings(
    home: StateStore, capsys: pytest.CaptureFixture
) -> None:
    """Verifies non-interactive configuration and key masking in the output."""
    cli.main(
        [
            "config",
            "--provider",
            "openai",
            "--api-key",
            "sk-abcdefghijkl",
            "--interval",
            "5",
        ]
    )

    captured = capsys.readouterr()
    assert "Settings saved" in captured.out
    assert "sk-abcdefghijkl" not in captured.out
    conf = home.load_config()
    assert conf.ai_provider == "openai"
    assert conf.api_key == "sk-abcdefghijkl"
    assert conf.check_interval_minutes == 5


def test_config_rejects_bad_key(
    home: StateStore, capsys: pytest.CaptureFixture
) -> None:
    with pytest.raises(SystemExit):
        cli.main(["config", "--provider", "anthropic", "--api-key", "sk-nope"])

    assert "sk-ant-" in capsys.readouterr().err
    assert home.load_config().ai_provider == "gemini"


def test_config_show(home: StateStore, capsys: pytest.CaptureFixture) -> None:
    home.save_config(Config(api_key="AIzaSecretValue1234567890"))

    cli.main(["config", "--show"])

    out = capsys.readouterr().out
    assert "AIza...7890" in out
    assert "SecretValue" not in out


def test_init_success(
    home: StateStore, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    mocker.patch(
        "autogit.cli.ControlSurface.init",
        return_value=DaemonInfo(pid=99, repo_path="/work/repo"),
    )

    cli.main(["init"])

    out = capsys.readouterr().out
    assert "Daemon started" in out
    assert "99" in out


def test_init_validation_failure(
    home: StateStore, capsys: pytest.CaptureFixture, mocker: MagicMock
) -> None:
    mocker.patch(
        "autogit.cli.ControlSurface.init",
        side_effect=ValidationError("API key is required"),
    )

    with pytest.raises(SystemExit) as exc:
        cli.main(["init"])

    assert exc.value.code == 1
    assert "API key validation failed" in capsys.readouterr().err


def test_log_prints_tail(home: StateStore, capsys: pytest.CaptureFixture) -> None:
    """Verifies that `log` shows the last lines of the daemon's repository log."""
    home.save_daemon_info(DaemonInfo(pid=5, repo_path="/work/repo"))
    home.ensure()
    home.log_path("repo").write_text(
        "[t] INFO: CHECK repo: Checking for changes...\n"
        "[t] INFO: IDLE repo: No changes detected.\n"
        "[t] ERROR: PUSH ERROR repo: rejected\n"
    )

    cli.main(["log", "-n", "2"])

    out = capsys.readouterr().out
    assert "CHECK repo" not in out
    assert "IDLE repo" in out
    assert "PUSH ERROR repo" in out


def test_log_without_file(home: StateStore, capsys: pytest.CaptureFixture) -> None:
    cli.main(["log"])
    assert "No log file found" in capsys.readouterr().out


def test_menu_renders_dashboard(
    home: StateStore, capsys: pytest.CaptureFixture
) -> None:
    cli.main(["menu"])

    out = capsys.readouterr().out
    assert "Dashboard" in out
    assert "Not running" in out
    assert "No activity logged yet." in out


def test_help_groups_commands(capsys: pytest.CaptureFixture) -> None:
    """Verifies grouped help output and that the internal daemon entry is hidden."""
    cli.main(["help"])

    out = capsys.readouterr().out
    assert "Daemon Control:" in out
    assert "Monitoring:" in out
    assert "Settings:" in out
    assert "start-daemon" not in out


def test_start_daemon_exits_with_loop_status(
    home: StateStore, mocker: MagicMock, tmp_path: Path
) -> None:
    mock_run = mocker.patch("autogit.cli.daemon.run_daemon", return_value=0)

    with pytest.raises(SystemExit) as exc:
        cli.main(["start-daemon", str(tmp_path)])

    assert exc.value.code == 0
    assert mock_run.call_args.args[1] == str(tmp_path)


def test_status_with_unreadable_descriptor(
    home: StateStore, capsys: pytest.CaptureFixture
) -> None:
    home.ensure()
    home.daemon_path.write_text("{")

    cli.main(["status"])

    assert "Descriptor unreadable" in capsys.readouterr().out
