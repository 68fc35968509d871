import logging

from .constants import APP_NAME, MAX_DIFF_CHARS, TRUNCATION_MARKER
from .errors import DetectionError
from .git_wrapper import GitRepo

logger = logging.getLogger(APP_NAME)


def truncate_diff(diff: str, limit: int = MAX_DIFF_CHARS) -> str:
    """Cuts a diff to `limit` characters, marking the cut.

    Args:
        diff (str): The raw diff text.
        limit (int, optional): Maximum characters kept. Defaults to MAX_DIFF_CHARS.

    Returns:
        str: The diff unchanged if it fits, otherwise its first `limit`
        characters followed by the truncation marker.
    """
    if len(diff) <= limit:
        return diff
    return diff[:limit] + TRUNCATION_MARKER


class ChangeMonitor:
    """Point-in-time queries about uncommitted work in a repository.

    Attributes:
        repo (GitRepo): The repository being watched.
    """

    def __init__(self, repo: GitRepo, max_diff_chars: int = MAX_DIFF_CHARS):
        self.repo = repo
        self.max_diff_chars = max_diff_chars

    def has_changes(self) -> bool:
        """Reports whether tracked changes or untracked files are present.

        Raises:
            DetectionError: If git status cannot be queried.
        """
        try:
            return self.repo.has_changes()
        except RuntimeError as e:
            raise DetectionError(f"Failed to check changes: {e}") from e

    def diff(self) -> str:
        """Returns the diff to describe, truncated for transmission.

        When only untracked files changed, `git diff` is empty; the list of new
        files is returned instead so the backend still has something to read.

        Raises:
            DetectionError: If the diff cannot be retrieved.
        """
        try:
            text = self.repo.diff()
            if not text.strip():
                untracked = self.repo.get_untracked_files()
                if untracked:
                    text = "New untracked files:\n" + "\n".join(
                        f"+ {name}" for name in untracked
                    )
        except RuntimeError as e:
            raise DetectionError(f"Failed to get diff: {e}") from e

        if len(text) > self.max_diff_chars:
            logger.info(
                f"Diff is {len(text)} chars; truncating to {self.max_diff_chars}."
            )
        return truncate_diff(text, self.max_diff_chars)
