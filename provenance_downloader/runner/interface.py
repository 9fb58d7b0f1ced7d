from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of one external command.

    - command: program and arguments as executed
    - working_dir: directory the command ran in
    - stdout/stderr: decoded captured output
    - exit_code: process exit status (127 when the process could not be spawned)
    - spawned: False when the program never started (missing binary, bad cwd)
    """

    command: Sequence[str]
    working_dir: Path
    stdout: str
    stderr: str
    exit_code: int
    spawned: bool = True

    @property
    def succeeded(self) -> bool:
        return self.spawned and self.exit_code == 0

    def require_success(self) -> "CommandResult":
        """Return self, or raise ProcessFailure when the command failed."""
        if not self.succeeded:
            raise ProcessFailure.from_result(self)
        return self


class CommandRunner(Protocol):
    """Single choke point for running backend tools.

    Implementations run each command to completion, never retry and never
    raise for a non-zero exit; callers decide via `require_success()`.
    """

    def run(self, working_dir: Path, command: str, *args: str) -> CommandResult:  # pragma: no cover - protocol
        ...


class ProcessFailure(RuntimeError):
    """Raised when a backend tool exits non-zero or cannot be spawned."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] = (),
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        spawned: bool = True,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.command = tuple(command)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.spawned = spawned
        self.__cause__ = cause

    @property
    def recoverable(self) -> bool:
        """True for I/O-class failures: the tool ran and reported an error."""
        return self.spawned

    @classmethod
    def from_result(cls, result: CommandResult) -> "ProcessFailure":
        output = result.stderr.strip() or result.stdout.strip()
        message = (
            f"Running '{' '.join(result.command)}' in '{result.working_dir}' "
            f"failed with exit code {result.exit_code}"
        )
        if output:
            message = f"{message}:\n{output}"
        return cls(
            message,
            command=result.command,
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            spawned=result.spawned,
        )
