"""Host process runner backed by subprocess."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional

from .. import config as dl_config
from .interface import CommandResult

logger = logging.getLogger(__name__)

# Conventional shell statuses for "command not found" and "timed out"
EXIT_NOT_SPAWNED = 127
EXIT_TIMED_OUT = 124

# Keep backend tools from prompting for credentials or applying user output settings
NON_INTERACTIVE_ENVIRONMENT = {
    "GIT_TERMINAL_PROMPT": "0",
    "HGPLAIN": "1",
}


class SubprocessRunner:
    """CommandRunner that executes commands as local child processes.

    Output is captured as text. A program that cannot be started is reported as
    a result with `spawned=False` instead of an exception so that probes such as
    `is_applicable_url()` can treat a missing tool as "not applicable".
    """

    def __init__(
        self,
        *,
        timeout: Optional[int] = None,
        environment: Optional[Mapping[str, str]] = None,
    ) -> None:
        if timeout is None:
            timeout = dl_config.command_timeout()
        # 0 disables the deadline
        self._timeout: Optional[int] = timeout or None
        self._environment = dict(NON_INTERACTIVE_ENVIRONMENT)
        self._environment.update(environment or {})

    def run(self, working_dir: Path, command: str, *args: str) -> CommandResult:
        argv = [command, *args]
        logger.debug("Running %s in %s", argv, working_dir)

        env = os.environ.copy()
        env.update(self._environment)

        try:
            completed = subprocess.run(
                argv,
                cwd=str(working_dir),
                env=env,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired as exc:
            logger.warning("Command %s timed out after %s seconds", argv, self._timeout)
            return CommandResult(
                command=tuple(argv),
                working_dir=Path(working_dir),
                stdout=_as_text(exc.stdout),
                stderr=f"timed out after {self._timeout} seconds",
                exit_code=EXIT_TIMED_OUT,
            )
        except OSError as exc:
            logger.debug("Could not start %s: %s", argv, exc)
            return CommandResult(
                command=tuple(argv),
                working_dir=Path(working_dir),
                stdout="",
                stderr=str(exc),
                exit_code=EXIT_NOT_SPAWNED,
                spawned=False,
            )

        if completed.returncode != 0:
            logger.debug(
                "Command %s exited with %d: %s",
                argv,
                completed.returncode,
                completed.stderr.strip(),
            )

        return CommandResult(
            command=tuple(argv),
            working_dir=Path(working_dir),
            stdout=completed.stdout,
            stderr=completed.stderr,
            exit_code=completed.returncode,
        )


def _as_text(data: Optional[object]) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)
