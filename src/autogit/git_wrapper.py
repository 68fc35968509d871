import logging
import os
import subprocess
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)

EMPTY_TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"
"""str: Hash of git's empty tree, the diff base before the first commit."""


def find_root(path: Path) -> Path:
    """Resolves the top-level directory of the repository containing `path`.

    Args:
        path (Path): Any directory inside a working tree.

    Returns:
        Path: The absolute repository root.

    Raises:
        RuntimeError: If `path` is not inside a git repository or git is missing.
    """
    try:
        res = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        stderr = getattr(e, "stderr", None)
        raise RuntimeError(
            f"Not a git repository or git not found: {(stderr or e)}".strip()
        ) from e
    return Path(res.stdout.strip()).resolve()


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Every operation is a synchronous subprocess call. Failures surface as
    `RuntimeError` carrying git's stderr; callers decide what they mean.

    Attributes:
        path (Path): The file system path to the repository root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.

        Raises:
            ValueError: If the specified path does not contain a .git entry.
        """
        self.path = path
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @property
    def name(self) -> str:
        """The repository's directory base name."""
        return self.path.name

    def _run(
        self, args: list[str], capture: bool = True, env: dict | None = None
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to return stdout. Output is
                                        always collected so errors carry stderr.
                                        Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str:    The stripped stdout of the command if capture is True,
                    otherwise an empty string.

        Raises:
            RuntimeError: If the git command returns a non-zero exit code.
        """
        logger.debug(f"git {' '.join(args)} ({self.path.name})")
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=True,
                env=env,
            )
            return res.stdout.strip() if capture else ""
        except subprocess.CalledProcessError as e:
            raise RuntimeError(f"Git error: {(e.stderr or '').strip() or e}") from e
        except OSError as e:
            raise RuntimeError(f"Git error: {e}") from e

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        output = self._run(["status", "--porcelain"])
        return output.splitlines() if output else []

    def has_changes(self) -> bool:
        """Reports whether tracked modifications or untracked files exist."""
        return bool(self.status_porcelain())

    def has_head(self) -> bool:
        """Reports whether the current branch has at least one commit."""
        try:
            self._run(["rev-parse", "--verify", "--quiet", "HEAD"])
        except RuntimeError:
            return False
        return True

    def diff(self) -> str:
        """Returns the diff of staged and unstaged changes to tracked files.

        Compares the working tree with HEAD, so the result describes what a
        commit of the whole tree would contain. Before the first commit the
        comparison is against the empty tree.
        """
        base = "HEAD" if self.has_head() else EMPTY_TREE
        return self._run(["diff", base])

    def get_untracked_files(self) -> list[str]:
        """Lists files that are not tracked by git and are not ignored.

        Returns:
            list[str]: A list of untracked file paths.
        """
        output = self._run(["ls-files", "--others", "--exclude-standard"])
        return output.splitlines() if output else []

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "--all"], capture=False)

    def commit(self, message: str) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message, used verbatim.
        """
        self._run(["commit", "-m", message], capture=False)

    def push(self) -> None:
        """Pushes the current branch to its configured upstream.

        Credential prompts are disabled so an unattended push fails instead of
        hanging on a terminal that does not exist.
        """
        env = os.environ.copy()
        env["GIT_SSH_COMMAND"] = "ssh -o BatchMode=yes"
        env["GIT_TERMINAL_PROMPT"] = "0"
        self._run(["push"], capture=False, env=env)
