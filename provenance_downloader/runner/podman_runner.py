from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Tuple

from podman import PodmanClient
from podman.errors import APIError, NotFound

from .. import config as dl_config
from .interface import CommandResult

logger = logging.getLogger(__name__)

EXIT_NOT_SPAWNED = 127


class PodmanRunner:
    """CommandRunner that executes backend tools inside a running container.

    Boundary rules:
    - Only this module talks to Podman Python APIs.
    - The container must already be running and must see target directories
      at the same paths as the host (bind mounts), since providers write
      repository configuration files directly.
    """

    def __init__(
        self,
        container_id: Optional[str] = None,
        *,
        socket: Optional[str] = None,
        client: Any = None,
    ) -> None:
        self._container_id = container_id or dl_config.podman_container()
        self._socket = socket or dl_config.podman_socket()
        # Lazy-init Podman client on first use to make tests lighter
        self._client = client

    def run(self, working_dir: Path, command: str, *args: str) -> CommandResult:
        argv = (command, *args)
        logger.debug("Running %s in %s (container %s)", list(argv), working_dir, self._container_id)

        try:
            container = self._get_client().containers.get(self._container_id)
            exec_result = container.exec_run(
                cmd=list(argv),
                workdir=str(working_dir),
                demux=True,
            )
        except NotFound as exc:
            return self._not_spawned(argv, working_dir, f"container not found: {self._container_id}: {exc}")
        except APIError as exc:
            return self._not_spawned(argv, working_dir, f"podman exec failed: {exc}")

        exit_code, stdout, stderr = _unpack(exec_result)
        if exit_code != 0:
            logger.debug("Command %s exited with %d: %s", list(argv), exit_code, stderr.strip())

        return CommandResult(
            command=argv,
            working_dir=Path(working_dir),
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
        )

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = PodmanClient(base_url=self._socket)
        return self._client

    def _not_spawned(self, argv: Tuple[str, ...], working_dir: Path, message: str) -> CommandResult:
        logger.debug("Could not start %s: %s", list(argv), message)
        return CommandResult(
            command=argv,
            working_dir=Path(working_dir),
            stdout="",
            stderr=message,
            exit_code=EXIT_NOT_SPAWNED,
            spawned=False,
        )


def _unpack(exec_result: Any) -> Tuple[int, str, str]:
    """Normalize podman-py exec_run() output to (exit_code, stdout, stderr).

    With demux=True the output is a (stdout_bytes, stderr_bytes) tuple; older
    podman-py versions may return plain bytes.
    """
    exit_code, output = exec_result
    if isinstance(output, tuple):
        stdout_data = output[0] if len(output) > 0 else None
        stderr_data = output[1] if len(output) > 1 else None
    else:
        stdout_data, stderr_data = output, None
    return int(exit_code or 0), _decode(stdout_data), _decode(stderr_data)


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", errors="replace")
