import logging
import os
import subprocess
import sys

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class SystemStrategy:
    """Base class defining the interface for system-level interactions."""

    def notify(self, title: str, message: str) -> None:
        """Sends a desktop notification.

        Args:
            title (str): The notification title.
            message (str): The notification body text.
        """
        logger.info(f"NOTIFY {title}: {message}")

    def notify_success(self, repo_name: str, commit_msg: str) -> None:
        """Announces a pushed commit."""
        self.notify(f"Autogit: Committed to {repo_name}", f"Commit: {commit_msg}")

    def notify_error(self, repo_name: str, error: str) -> None:
        """Announces that the daemon paused after a failed push."""
        self.notify(
            f"Autogit Paused: Error in {repo_name}",
            f"Merge Conflict or Network Error: {error}",
        )


class MacOSStrategy(SystemStrategy):
    """System strategy implementation for macOS."""

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using AppleScript."""
        # Sanitize quotes to prevent AppleScript syntax errors.
        clean_msg = message.replace('"', "'")
        clean_title = title.replace('"', "'")
        script = f'display notification "{clean_msg}" with title "{clean_title}"'
        try:
            subprocess.run(["osascript", "-e", script], stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Notification failed: {e}")


class LinuxStrategy(SystemStrategy):
    """System strategy implementation for Linux."""

    def notify(self, title: str, message: str) -> None:
        """Sends a notification using `notify-send`."""
        try:
            subprocess.run(["notify-send", title, message], stderr=subprocess.DEVNULL)
        except FileNotFoundError:
            logger.debug("notify-send not available; notification skipped.")


def get_system() -> SystemStrategy:
    """Factory function to retrieve the platform-specific system strategy.

    Returns:
        SystemStrategy: An instance of MacOSStrategy, LinuxStrategy, or the base
        SystemStrategy depending on the operating system.
    """
    if sys.platform == "darwin":
        return MacOSStrategy()
    elif sys.platform.startswith("linux"):
        return LinuxStrategy()
    else:
        return SystemStrategy()


def is_process_alive(pid: int) -> bool:
    """Checks whether a process with `pid` currently exists.

    Signal 0 performs the existence check without delivering anything. A
    process owned by another user still counts as alive.

    Args:
        pid (int): The process id to probe.

    Returns:
        bool: True if the process exists, False otherwise.
    """
    if pid <= 0:
        return False
    if sys.platform == "win32":
        # os.kill terminates the target on Windows; query the task list instead.
        try:
            out = subprocess.check_output(
                ["tasklist", "/FI", f"PID eq {pid}", "/NH"], text=True
            )
        except (OSError, subprocess.CalledProcessError):
            return False
        return str(pid) in out.split()
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True
