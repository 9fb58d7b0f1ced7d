"""Mercurial provider."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .. import config as dl_config
from ..runner import CommandResult
from .base import CommandLineVcs, Features, WorkingTree

logger = logging.getLogger(__name__)

EXTENSION_LARGE_FILES = "largefiles"
EXTENSION_SPARSE = "sparse"

# Pseudo-tag always pointing at the newest changeset
TIP_TAG = "tip"

# Tag names may contain spaces but never NUL, so tags are joined on it
TAG_SEPARATOR = "\x00"
TAG_LOG_TEMPLATE = r'--template={node}\t{join(tags, "\x00")}\n'


class MercurialWorkingTree(WorkingTree):
    root_args = ("root",)

    def get_remote_url(self) -> str:
        # 'hg paths default' exits 1 when no default path is configured
        result = self._run("paths", "default")
        if not result.succeeded:
            return ""
        return result.stdout.rstrip()

    def get_revision(self) -> str:
        return self._run_checked("id", "-i").stdout.rstrip()

    def list_remote_tags(self) -> List[str]:
        tags = []
        for line in self._run_checked("tags").stdout.splitlines():
            if not line.strip():
                continue
            # "<name>   <rev>:<node>", names may contain spaces
            name = line.strip().rsplit(None, 1)[0]
            if name != TIP_TAG:
                tags.append(name)
        return tags


class Mercurial(CommandLineVcs):
    """Mercurial (hg) backend.

    Sparse checkouts use the experimental built-in 'sparse' extension which
    Mercurial ships starting with version 4.3.
    """

    name = "Mercurial"
    aliases = ("mercurial", "hg")
    metadata_dir = ".hg"
    version_args = ("--version",)
    version_pattern = r"Mercurial .*\([Vv]ersion (?P<version>[\d.]+)\)"
    # Whether large files are needed is unknown before fetching, so always enable it
    default_extensions = (EXTENSION_LARGE_FILES,)
    narrowing_extension = EXTENSION_SPARSE
    narrowing_min_version = "4.3"

    def default_command(self) -> str:
        return dl_config.hg_command()

    def is_applicable_url(self, url: str) -> bool:
        return self.runner.run(Path.cwd(), self.command, "identify", url).succeeded

    def get_working_tree(self, directory: Path) -> MercurialWorkingTree:
        return MercurialWorkingTree(Path(directory), self.runner, self.command, self.aliases[-1])

    def _initialize(self, target_dir: Path, url: str, features: Features) -> None:
        self._run(target_dir, "init")
        hgrc = target_dir / self.metadata_dir / "hgrc"
        lines = ["[paths]", f"default = {url}", "[extensions]"]
        lines.extend(f"{extension} = " for extension in features.extensions)
        hgrc.write_text("\n".join(lines) + "\n")

    def _narrow(self, target_dir: Path, path: str) -> CommandResult:
        return self.runner.run(target_dir, self.command, "debugsparse", "-I", f"{path}/**")

    def _fetch(self, target_dir: Path) -> None:
        self._run(target_dir, "pull")

    def _list_tag_revisions(self, target_dir: Path) -> Iterable[Tuple[str, Sequence[str]]]:
        output = self._run(target_dir, "log", TAG_LOG_TEMPLATE).stdout
        for line in output.split("\n"):
            node, _, tags = line.partition("\t")
            if node:
                yield node, [tag for tag in tags.split(TAG_SEPARATOR) if tag]

    def _update(self, target_dir: Path, revision: str) -> CommandResult:
        args = ["update"]
        if revision:
            args.extend(["-r", revision])
        return self.runner.run(target_dir, self.command, *args)

    def _update_unrestricted(self, target_dir: Path, narrowed: bool) -> CommandResult:
        if narrowed:
            self._run(target_dir, "debugsparse", "--reset")
        return self.runner.run(target_dir, self.command, "update")
