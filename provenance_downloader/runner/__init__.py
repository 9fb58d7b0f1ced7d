"""Command execution for backend VCS tools.

Every external invocation goes through a `CommandRunner` so logging and error
wrapping stay in one place.
"""

from __future__ import annotations

from .. import config as dl_config
from .interface import CommandResult, CommandRunner, ProcessFailure
from .local import SubprocessRunner


def create_runner() -> CommandRunner:
    """Build the runner selected by configuration ('local' or 'podman')."""
    backend = dl_config.runner_backend().lower()
    if backend == "local":
        return SubprocessRunner()
    if backend == "podman":
        from .podman_runner import PodmanRunner

        return PodmanRunner()
    raise ValueError(f"Unsupported runner backend: {backend}")


__all__ = [
    "CommandResult",
    "CommandRunner",
    "ProcessFailure",
    "SubprocessRunner",
    "create_runner",
]
