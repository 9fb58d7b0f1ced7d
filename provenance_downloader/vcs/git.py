"""Git provider."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from .. import config as dl_config
from ..runner import CommandResult
from .base import CommandLineVcs, Features, WorkingTree

logger = logging.getLogger(__name__)

REMOTE_NAME = "origin"
TAGS_PREFIX = "refs/tags/"

SETTING_SPARSE = "core.sparseCheckout=true"


class GitWorkingTree(WorkingTree):
    root_args = ("rev-parse", "--show-toplevel")

    def get_remote_url(self) -> str:
        result = self._run("remote", "get-url", REMOTE_NAME)
        if not result.succeeded:
            return ""
        return result.stdout.rstrip()

    def get_revision(self) -> str:
        return self._run_checked("rev-parse", "HEAD").stdout.rstrip()

    def list_remote_tags(self) -> List[str]:
        output = self._run_checked("ls-remote", "--refs", "--tags", REMOTE_NAME).stdout
        tags = []
        for line in output.splitlines():
            _, _, ref = line.partition("\t")
            if ref.startswith(TAGS_PREFIX):
                tags.append(ref[len(TAGS_PREFIX):])
        return tags


class Git(CommandLineVcs):
    """Git backend.

    Settings are written with 'git config' right after 'git init'. Sparse
    checkouts rely on the 'git sparse-checkout' command added in Git 2.25.
    """

    name = "Git"
    aliases = ("git",)
    metadata_dir = ".git"
    version_args = ("--version",)
    version_pattern = r"git version (?P<version>[\d.]+).*"
    # Line ending conversion would make checkouts differ between hosts
    default_extensions = ("core.autocrlf=false", "core.longpaths=true")
    narrowing_extension = SETTING_SPARSE
    narrowing_min_version = "2.25.0"

    def default_command(self) -> str:
        return dl_config.git_command()

    def is_applicable_url(self, url: str) -> bool:
        return self.runner.run(Path.cwd(), self.command, "ls-remote", url, "HEAD").succeeded

    def get_working_tree(self, directory: Path) -> GitWorkingTree:
        return GitWorkingTree(Path(directory), self.runner, self.command, self.aliases[0])

    def _initialize(self, target_dir: Path, url: str, features: Features) -> None:
        self._run(target_dir, "init")
        self._run(target_dir, "remote", "add", REMOTE_NAME, url)
        for setting in features.extensions:
            key, _, value = setting.partition("=")
            self._run(target_dir, "config", key, value)

    def _narrow(self, target_dir: Path, path: str) -> CommandResult:
        return self.runner.run(target_dir, self.command, "sparse-checkout", "set", path)

    def _fetch(self, target_dir: Path) -> None:
        self._run(target_dir, "fetch", "--tags", REMOTE_NAME)

        # Lets 'origin/HEAD' name the remote's default branch
        result = self.runner.run(target_dir, self.command, "remote", "set-head", REMOTE_NAME, "--auto")
        if not result.succeeded:
            logger.debug("Could not determine default branch of %s: %s", REMOTE_NAME, result.stderr.strip())

    def _list_tag_revisions(self, target_dir: Path) -> Iterable[Tuple[str, Sequence[str]]]:
        output = self._run(
            target_dir,
            "for-each-ref",
            "--format=%(objectname)%09%(*objectname)%09%(refname:strip=2)",
            TAGS_PREFIX.rstrip("/"),
        ).stdout
        for line in output.splitlines():
            fields = line.split("\t", 2)
            if len(fields) != 3:
                continue
            objectname, peeled, tag = fields
            # Annotated tags point at a tag object, use the commit it peels to
            yield peeled or objectname, [tag]

    def _default_tip(self, target_dir: Path) -> str:
        head = f"{REMOTE_NAME}/HEAD"
        result = self.runner.run(target_dir, self.command, "rev-parse", "--verify", "--quiet", head)
        return head if result.succeeded else "FETCH_HEAD"

    def _update(self, target_dir: Path, revision: str) -> CommandResult:
        target = revision or self._default_tip(target_dir)
        return self.runner.run(target_dir, self.command, "checkout", "--force", target)

    def _update_unrestricted(self, target_dir: Path, narrowed: bool) -> CommandResult:
        if narrowed:
            self._run(target_dir, "sparse-checkout", "disable")
        return self.runner.run(
            target_dir, self.command, "checkout", "--force", self._default_tip(target_dir)
        )
