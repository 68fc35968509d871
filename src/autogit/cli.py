import argparse
import logging
import subprocess
import sys
from collections import deque
from pathlib import Path
from typing import NoReturn

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table
from rich.text import Text

from . import daemon
from .constants import APP_NAME, DAEMON_COMMAND, VERSION
from .control import STATE_CRASHED, STATE_NOT_RUNNING, ControlSurface, DaemonStatus
from .errors import AutogitError, ConfigurationError, ValidationError
from .providers import Provider
from .state import Config, StateStore

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def mask_key(api_key: str) -> str:
    """Hides all but the edges of a credential for display."""
    if not api_key:
        return "(not set)"
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}...{api_key[-4:]}"


def _fail(message: str) -> NoReturn:
    """Prints an error and exits with status 1."""
    err_console.print(f"[bold red]ERROR:[/bold red] {message}")
    sys.exit(1)


def _status_text(status: DaemonStatus) -> Text:
    content = Text()
    content.append("Daemon:     ", style="bold")
    if status.state == STATE_NOT_RUNNING:
        content.append("Not running", style="bold red")
        return content
    if status.state == STATE_CRASHED and status.pid is None:
        content.append("Descriptor unreadable (may have crashed)", style="bold red")
        return content
    if status.state == STATE_CRASHED:
        content.append("Process not found (may have crashed)", style="bold red")
    elif status.state == "running":
        content.append("Running", style="bold green")
    elif status.state == "error":
        content.append("Paused on error (push failed)", style="bold yellow")
    else:
        content.append(status.state.capitalize(), style="yellow")
    content.append("\nPID:        ", style="bold")
    content.append(str(status.pid))
    content.append("\nRepository: ", style="bold")
    content.append(str(status.repo_path), style="cyan")
    return content


def _config_text(config: Config) -> Text:
    content = Text()
    content.append("Provider:   ", style="bold")
    content.append(f"{config.ai_provider}\n")
    content.append("API Key:    ", style="bold")
    content.append(f"{mask_key(config.api_key)}\n", style="dim")
    content.append("Base URL:   ", style="bold")
    content.append(f"{config.base_url or '(provider default)'}\n", style="dim")
    content.append("Interval:   ", style="bold")
    content.append(f"{config.check_interval // 60} min")
    return content


def _resolve_log_path(store: StateStore) -> Path | None:
    """Finds the log of the daemon's repository, or the last configured one."""
    try:
        info = store.load_daemon_info()
    except ConfigurationError:
        info = None
    if info is not None:
        return store.log_path(Path(info.repo_path).name)
    config = store.load_config()
    if config.root_path:
        return store.log_path(Path(config.root_path).name)
    return None


def _read_tail(path: Path, lines: int) -> list[str]:
    with open(path, errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=lines)]


def init_daemon(control: ControlSurface) -> None:
    """Detects the repository root and starts the background daemon."""
    with console.status("Starting autogit daemon...", spinner="dots"):
        try:
            info = control.init(Path.cwd())
        except ValidationError as e:
            _fail(
                f"API key validation failed: {e}\n"
                "Configure it with 'autogit config'."
            )
        except AutogitError as e:
            _fail(str(e))

    console.print(f"Detected Git root: [cyan]{info.repo_path}[/cyan]")
    console.print("[bold green]✔ API key validated.[/bold green]")
    console.print(f"[bold green]✔ Daemon started[/bold green] (PID {info.pid}).")
    console.print("[dim]Use 'autogit menu' to view the dashboard.[/dim]")


def show_status(control: ControlSurface) -> None:
    """Displays the recorded daemon state."""
    try:
        status = control.status()
    except AutogitError as e:
        _fail(str(e))
    console.print(Panel(_status_text(status), title="Autogit Status", expand=False))


def pause_daemon(control: ControlSurface) -> None:
    """Stops the running daemon."""
    try:
        info = control.pause()
    except AutogitError as e:
        _fail(str(e))
    console.print(
        f"[bold green]✔ Daemon stopped[/bold green] "
        f"(PID {info.pid}, [cyan]{info.repo_path}[/cyan])."
    )


def configure(control: ControlSurface, args: argparse.Namespace) -> None:
    """Updates settings from flags, or interactively when none are given."""
    changes = {
        "ai_provider": args.provider,
        "api_key": args.api_key,
        "base_url": args.base_url,
        "check_interval_minutes": args.interval,
    }

    if args.show:
        config = control.store.load_config()
        console.print(Panel(_config_text(config), title="Settings", expand=False))
        return

    if all(v is None for v in changes.values()):
        current = control.store.load_config(with_env=False)
        console.print("[bold]Autogit Settings[/bold]")
        changes["ai_provider"] = Prompt.ask(
            "   AI provider",
            choices=[p.value for p in Provider],
            default=current.ai_provider,
        )
        key = Prompt.ask(
            f"   API key [dim]({mask_key(current.api_key)})[/dim]",
            password=True,
            default="",
            show_default=False,
        )
        changes["api_key"] = key or None
        changes["base_url"] = Prompt.ask(
            "   Base URL (blank for provider default)",
            default=current.base_url,
        )
        changes["check_interval_minutes"] = IntPrompt.ask(
            "   Check interval (minutes)", default=current.check_interval_minutes
        )

    try:
        config = control.reconfigure(**changes)
    except AutogitError as e:
        _fail(str(e))

    console.print("[bold green]✔ Settings saved.[/bold green]")
    console.print(Panel(_config_text(config), title="Settings", expand=False))
    if control.status().is_live:
        console.print(
            "[yellow]The running daemon keeps its old settings until restarted "
            "('autogit pause' then 'autogit init').[/yellow]"
        )


def show_log(store: StateStore, lines: int, follow: bool) -> None:
    """Prints the tail of the monitored repository's log."""
    log_path = _resolve_log_path(store)
    if log_path is None or not log_path.exists():
        console.print("[yellow]No log file found yet. Run 'autogit init'.[/yellow]")
        return

    if follow:
        console.print(f"Tailing [bold cyan]{log_path}[/bold cyan] (Ctrl+C to stop)...")
        try:
            subprocess.run(["tail", "-n", str(lines), "-f", str(log_path)])
        except KeyboardInterrupt:
            console.print("\nStopped.", style="dim")
        return

    for line in _read_tail(log_path, lines):
        style = "red" if "ERROR" in line else None
        console.print(line, style=style, markup=False, highlight=False)


def show_menu(control: ControlSurface, log_lines: int = 15) -> None:
    """Renders the dashboard: daemon status, settings and recent activity."""
    store = control.store
    status = control.status()
    config = store.load_config()

    table = Table.grid(padding=(0, 2))
    table.add_row(
        Panel(_status_text(status), title="Dashboard", expand=True),
        Panel(_config_text(config), title="Settings", expand=True),
    )
    console.print(table)

    log_path = _resolve_log_path(store)
    if log_path is not None and log_path.exists():
        body = Text()
        for line in _read_tail(log_path, log_lines):
            body.append(line + "\n", style="red" if "ERROR" in line else "dim")
        console.print(Panel(body, title=f"Logs ({log_path.name})", expand=False))
    else:
        console.print(Panel("No activity logged yet.", title="Logs", expand=False))


class AutogitHelpFormatter(argparse.HelpFormatter):
    """Custom help formatter that groups subcommands under headers.

    Commands not listed in any group (the internal daemon entry) are hidden.
    """

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Daemon Control": ["init", "pause", "status"],
                "Monitoring": ["menu", "log"],
                "Settings": ["config"],
                "General": ["help"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def setup_logging(verbose: bool) -> None:
    """Routes CLI-side log records to stderr through rich."""
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=err_console, show_path=False))
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Automatically commit and push with AI-generated messages.",
        formatter_class=AutogitHelpFormatter,
    )
    parser.add_argument(
        "--version", action="version", version=f"{APP_NAME} version {VERSION}"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", metavar="command")

    subparsers.add_parser("init", help="Start the daemon for the current repository")
    subparsers.add_parser("pause", help="Stop the running daemon")
    subparsers.add_parser("status", help="Show daemon status")
    subparsers.add_parser("menu", help="Show the dashboard")

    log_parser = subparsers.add_parser("log", help="Show the daemon activity log")
    log_parser.add_argument(
        "--lines", "-n", type=int, default=50, help="Lines to show (default: 50)"
    )
    log_parser.add_argument(
        "--follow", "-f", action="store_true", help="Keep printing new lines"
    )

    config_parser = subparsers.add_parser(
        "config", help="Edit settings (interactive without flags)"
    )
    config_parser.add_argument(
        "--provider", choices=[p.value for p in Provider] + ["claude"]
    )
    config_parser.add_argument("--api-key", dest="api_key")
    config_parser.add_argument("--base-url", dest="base_url")
    config_parser.add_argument(
        "--interval", type=int, help="Minutes between change checks"
    )
    config_parser.add_argument(
        "--show", action="store_true", help="Print current settings and exit"
    )

    subparsers.add_parser("help", help="Show this help message")

    daemon_parser = subparsers.add_parser(DAEMON_COMMAND)
    daemon_parser.add_argument("root_path")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Autogit CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    store = StateStore.default()

    if args.command == DAEMON_COMMAND:
        sys.exit(daemon.run_daemon(store, args.root_path))

    setup_logging(args.verbose)
    control = ControlSurface(store)

    if args.command == "init":
        init_daemon(control)
    elif args.command == "pause":
        pause_daemon(control)
    elif args.command == "status":
        show_status(control)
    elif args.command == "config":
        configure(control, args)
    elif args.command == "log":
        try:
            show_log(store, args.lines, args.follow)
        except AutogitError as e:
            _fail(str(e))
    elif args.command == "menu":
        try:
            show_menu(control)
        except AutogitError as e:
            _fail(str(e))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
