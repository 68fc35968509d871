"""Autogit: Automated commits and pushes with AI-generated messages.

This package provides the command-line interface, the detached background
daemon, and the commit pipeline that watches a git working tree, asks a
text-generation backend for a Conventional Commit message, and pushes.
"""

from . import (
    cli,
    constants,
    control,
    daemon,
    errors,
    git_wrapper,
    monitor,
    pipeline,
    providers,
    state,
    supervisor,
    system,
)

__all__ = [
    "cli",
    "constants",
    "control",
    "daemon",
    "errors",
    "git_wrapper",
    "monitor",
    "pipeline",
    "providers",
    "state",
    "supervisor",
    "system",
]
