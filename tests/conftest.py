"""Shared fixtures: a scripted CommandRunner standing in for hg/git."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from provenance_downloader import config as dl_config
from provenance_downloader.runner import CommandResult


class ScriptedRunner:
    """CommandRunner returning canned results keyed by argument tuple.

    Responses registered for the same arguments are consumed in order, the
    last one repeats. Unregistered commands succeed with empty output.
    """

    def __init__(self) -> None:
        self._responses: Dict[Tuple[str, ...], List[dict]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.working_dirs: List[Path] = []

    def on(
        self,
        *args: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        spawned: bool = True,
        effect: Optional[Callable[[Path], None]] = None,
    ) -> "ScriptedRunner":
        self._responses.setdefault(tuple(args), []).append(
            {
                "stdout": stdout,
                "stderr": stderr,
                "exit_code": exit_code,
                "spawned": spawned,
                "effect": effect,
            }
        )
        return self

    def run(self, working_dir: Path, command: str, *args: str) -> CommandResult:
        self.calls.append(tuple(args))
        self.working_dirs.append(Path(working_dir))

        queue = self._responses.get(tuple(args))
        if queue:
            response = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            response = {"stdout": "", "stderr": "", "exit_code": 0, "spawned": True, "effect": None}

        if response["effect"] is not None:
            response["effect"](Path(working_dir))

        return CommandResult(
            command=(command, *args),
            working_dir=Path(working_dir),
            stdout=response["stdout"],
            stderr=response["stderr"],
            exit_code=response["exit_code"],
            spawned=response["spawned"],
        )

    def ran(self, *args: str) -> bool:
        return tuple(args) in self.calls

    def commands(self) -> List[str]:
        """First argument (the subcommand) of every call, in order."""
        return [call[0] if call else "" for call in self.calls]


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Keep tests independent of the caller's environment and config cache."""
    for name in (
        "PROVENANCE_DOWNLOADER_CONFIG",
        "PROVENANCE_DOWNLOADER_STACKTRACE",
        "PROVENANCE_DOWNLOADER_COMMAND_TIMEOUT",
        "PROVENANCE_DOWNLOADER_HG_COMMAND",
        "PROVENANCE_DOWNLOADER_GIT_COMMAND",
        "PROVENANCE_DOWNLOADER_PROVIDERS",
        "PROVENANCE_DOWNLOADER_RUNNER",
        "PROVENANCE_DOWNLOADER_PODMAN_SOCKET",
        "PROVENANCE_DOWNLOADER_PODMAN_CONTAINER",
    ):
        monkeypatch.delenv(name, raising=False)
    dl_config.reset_config()
    yield
    dl_config.reset_config()
