"""Shared version control abstractions.

Each backend (git, mercurial, ...) provides a `VersionControlSystem` that can
tell whether it handles a provenance descriptor, download a fresh checkout,
and bind a `WorkingTree` to an existing directory.
"""

from __future__ import annotations

import logging
import re
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

from .. import config as dl_config
from ..runner import CommandResult, CommandRunner, ProcessFailure, SubprocessRunner
from .versions import extract_version, is_at_least

logger = logging.getLogger(__name__)

# Metadata directories of every repository kind a target must not already hold
REPOSITORY_METADATA_DIRS = (".git", ".hg", ".svn", ".bzr", "CVS")


@dataclass(frozen=True)
class VcsInfo:
    """Provenance descriptor of a package's source.

    - kind: backend identifier ("git", "hg", ...), may be blank or wrong
    - url: remote location
    - revision: exact revision to check out, blank when unspecified
    - path: sub-path for a partial checkout, blank for the whole tree
    """

    kind: str
    url: str
    revision: str = ""
    path: str = ""


@dataclass(frozen=True)
class Features:
    """Outcome of optional-feature negotiation for one download."""

    extensions: Tuple[str, ...] = ()
    narrowing: bool = False


@dataclass(frozen=True)
class CheckoutOutcome:
    """Result of the two-attempt checkout; fell_back is True when attempt 2 ran."""

    result: CommandResult
    fell_back: bool = False


def report_failure(exc: BaseException) -> None:
    """Print the stack trace of a recoverable failure when enabled in config."""
    if dl_config.stacktrace_enabled():
        traceback.print_exception(type(exc), exc, exc.__traceback__)


def version_tag_forms(version: str) -> Tuple[str, ...]:
    """Tag spellings of a version: literal and with '.' replaced by '_'."""
    underscored = version.replace(".", "_")
    if underscored == version:
        return (version,)
    return (version, underscored)


def tag_matches_version(tag: str, version: str) -> bool:
    """Check whether a tag name denotes the given version.

    The tag must end with one of the version's forms, and that form must not
    be the tail of a longer version number:

        tag_matches_version("1.0.0", "1.0.0")          -> True
        tag_matches_version("v1.0.0", "1.0.0")         -> True
        tag_matches_version("release_1_0_0", "1.0.0")  -> True
        tag_matches_version("11.0.0", "1.0.0")         -> False
        tag_matches_version("2.1.0.0", "1.0.0")        -> False
    """
    if not version:
        return False
    for form in version_tag_forms(version):
        if re.search(rf"(?<!\d)(?<!\d[._]){re.escape(form)}$", tag):
            return True
    return False


def find_tag_revision(
    entries: Iterable[Tuple[str, Sequence[str]]], version: str
) -> Optional[str]:
    """Find the revision whose tags match a version.

    Entries are (revision, tag names) pairs in the backend's native listing
    order, which is never re-sorted. A tag named exactly like the version, in
    either spelling, wins over tags that only end with it ('pkg-b-1.0.0').
    Within each group the first entry in listing order wins and both
    spellings are checked per entry.
    """
    if not version:
        return None

    forms = version_tag_forms(version)
    suffix_match = None
    for revision, tags in entries:
        if any(tag in forms for tag in tags):
            return revision
        if suffix_match is None and any(tag_matches_version(tag, version) for tag in tags):
            suffix_match = revision
    return suffix_match


def checkout_with_fallback(
    optimized: Callable[[], CommandResult],
    unrestricted: Callable[[], CommandResult],
    *,
    fallback_allowed: bool,
    description: str,
) -> CheckoutOutcome:
    """Run an optimized checkout, falling back once to an unrestricted one.

    Attempt 1 runs `optimized`. On success the outcome is returned. A
    recoverable failure with `fallback_allowed` moves to attempt 2, which runs
    `unrestricted`; any failure there is terminal. All other failures are
    raised as ProcessFailure.
    """
    first = optimized()
    if first.succeeded:
        return CheckoutOutcome(result=first)

    failure = ProcessFailure.from_result(first)
    if not (failure.recoverable and fallback_allowed):
        raise failure

    report_failure(failure)
    logger.warning(
        "Could not fetch only '%s': %s\nFalling back to fetching everything.",
        description,
        failure,
    )

    second = unrestricted().require_success()
    return CheckoutOutcome(result=second, fell_back=True)


class WorkingTree(ABC):
    """Read-only handle on a local checkout.

    Nothing is cached: every query runs the backend tool again, so results
    always reflect the directory's current state.
    """

    # Arguments of the command printing the repository root
    root_args: Tuple[str, ...] = ()

    def __init__(self, working_dir: Path, runner: CommandRunner, command: str, kind: str) -> None:
        self.working_dir = Path(working_dir)
        self.runner = runner
        self.command = command
        self.kind = kind

    def _run(self, *args: str) -> CommandResult:
        return self.runner.run(self.working_dir, self.command, *args)

    def _run_checked(self, *args: str) -> CommandResult:
        return self._run(*args).require_success()

    def is_valid(self) -> bool:
        """True if the directory exists and lies at or below the repository root.

        Raises:
            ProcessFailure: If the backend tool could not be started
        """
        if not self.working_dir.is_dir():
            return False

        result = self._run(*self.root_args)
        if not result.spawned:
            raise ProcessFailure.from_result(result)
        if result.exit_code != 0:
            return False

        root_text = result.stdout.strip()
        if not root_text:
            return False
        root = Path(root_text).resolve()
        directory = self.working_dir.resolve()
        return directory == root or root in directory.parents

    def get_root_path(self) -> str:
        """Repository root, always with forward slashes."""
        return self._run_checked(*self.root_args).stdout.rstrip().replace("\\", "/")

    @abstractmethod
    def get_remote_url(self) -> str:
        """URL of the default remote, blank if none is configured."""

    @abstractmethod
    def get_revision(self) -> str:
        """Currently checked out revision in the backend's native form."""

    @abstractmethod
    def list_remote_tags(self) -> List[str]:
        """Tag names in native listing order, without tip pseudo-tags."""

    def get_info(self) -> VcsInfo:
        """Describe this checkout as a provenance descriptor."""
        root = Path(self.get_root_path()).resolve()
        directory = self.working_dir.resolve()
        path = "" if directory == root else directory.relative_to(root).as_posix()
        return VcsInfo(
            kind=self.kind,
            url=self.get_remote_url(),
            revision=self.get_revision(),
            path=path,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.working_dir)!r})"


class VersionControlSystem(Protocol):
    """Capabilities every backend provider implements."""

    name: str

    def is_applicable_provider(self, kind: str) -> bool:  # pragma: no cover - protocol
        """Case-insensitive match of a declared kind against this backend's aliases."""
        ...

    def is_applicable_url(self, url: str) -> bool:  # pragma: no cover - protocol
        """Probe whether the backend can talk to the remote at `url`."""
        ...

    def get_version(self) -> str:  # pragma: no cover - protocol
        """Installed tool version, blank if unknown."""
        ...

    def get_working_tree(self, directory: Path) -> WorkingTree:  # pragma: no cover - protocol
        """Bind a working tree handle to a directory."""
        ...

    def download(self, vcs: VcsInfo, version: str, target_dir: Path) -> WorkingTree:  # pragma: no cover - protocol
        """Materialize the source described by `vcs` under `target_dir`.

        Raises:
            ProcessFailure: If a required backend command fails
        """
        ...


class CommandLineVcs(ABC):
    """Provider base for backends driven through their command line tool.

    Subclasses supply the backend specific commands; this class runs the
    download pipeline in a fixed order:

    1. negotiate optional features
    2. initialize the repository with remote and features
    3. narrow to the sub-path (best effort)
    4. fetch all history
    5. resolve the target version to a tagged revision
    6. check out, falling back to an unrestricted checkout once
    """

    name: str = ""
    aliases: Tuple[str, ...] = ()
    # Directory holding repository metadata below the root
    metadata_dir: str = ""
    version_args: Tuple[str, ...] = ("--version",)
    version_pattern: str = ""
    # Default extensions enabled for every download
    default_extensions: Tuple[str, ...] = ()
    # Extension enabling partial checkouts and its minimum tool version
    narrowing_extension: str = ""
    narrowing_min_version: str = ""

    def __init__(self, runner: Optional[CommandRunner] = None, command: Optional[str] = None) -> None:
        self.runner = runner if runner is not None else SubprocessRunner()
        self.command = command or self.default_command()

    @abstractmethod
    def default_command(self) -> str:
        """Executable name used when none is given."""

    def __str__(self) -> str:
        return self.name

    def _run(self, working_dir: Path, *args: str) -> CommandResult:
        return self.runner.run(working_dir, self.command, *args).require_success()

    # --- applicability and versions ---

    def is_applicable_provider(self, kind: str) -> bool:
        return kind.strip().lower() in self.aliases

    def get_version(self) -> str:
        result = self.runner.run(Path.cwd(), self.command, *self.version_args)
        if not result.succeeded:
            return ""
        return extract_version(result.stdout, self.version_pattern)

    def is_at_least_version(self, required: str) -> Optional[bool]:
        """None when the installed version is unknown."""
        return is_at_least(self.get_version(), required)

    # --- download pipeline ---

    def download(self, vcs: VcsInfo, version: str, target_dir: Path) -> WorkingTree:
        target_dir = Path(target_dir)
        installed = self.get_version()
        logger.info("Using %s version %s.", self, installed or "unknown")

        features = self.negotiate_features(vcs, installed)

        self._prepare_target_dir(target_dir)
        self._initialize(target_dir, vcs.url, features)

        narrowed = False
        if features.narrowing:
            narrowed = self._try_narrow(target_dir, vcs.path)

        self._fetch(target_dir)

        revision = vcs.revision.strip()
        if not revision and version.strip():
            revision = self.resolve_version(target_dir, version.strip()) or ""

        explicit = bool(vcs.revision.strip())
        outcome = checkout_with_fallback(
            lambda: self._update(target_dir, revision),
            lambda: self._update_unrestricted(target_dir, narrowed),
            fallback_allowed=explicit,
            description=revision,
        )
        if outcome.fell_back:
            logger.info("Checked out default tip of %s instead of '%s'.", vcs.url, revision)

        return self.get_working_tree(target_dir)

    def negotiate_features(self, vcs: VcsInfo, installed: Optional[str] = None) -> Features:
        """Pick extensions for a download; `installed` is probed when not given."""
        extensions = list(self.default_extensions)
        narrowing = False

        if vcs.path.strip() and self.narrowing_extension:
            if installed is None:
                installed = self.get_version()
            supported = is_at_least(installed, self.narrowing_min_version)
            if supported is None:
                logger.warning(
                    "Could not determine the %s version, not enabling '%s' for '%s'.",
                    self,
                    self.narrowing_extension,
                    vcs.path,
                )
            elif supported:
                extensions.append(self.narrowing_extension)
                narrowing = True
            else:
                logger.info(
                    "%s older than %s does not support '%s', checking out everything.",
                    self,
                    self.narrowing_min_version,
                    self.narrowing_extension,
                )

        return Features(extensions=tuple(extensions), narrowing=narrowing)

    def resolve_version(self, target_dir: Path, version: str) -> Optional[str]:
        """Map a version to the revision of a matching tag, None on a miss."""
        logger.info("Trying to determine revision for version %s", version)

        revision = find_tag_revision(self._list_tag_revisions(target_dir), version)
        if revision is not None:
            logger.info("Found %s revision for version %s", revision, version)
        else:
            logger.info("Failed to find revision for version %s", version)
        return revision

    def _prepare_target_dir(self, target_dir: Path) -> None:
        names = set(REPOSITORY_METADATA_DIRS)
        if self.metadata_dir:
            names.add(self.metadata_dir)
        for name in sorted(names):
            if (target_dir / name).exists():
                raise ValueError(f"Target directory already contains a repository ({name}): {target_dir}")
        target_dir.mkdir(parents=True, exist_ok=True)

    def _try_narrow(self, target_dir: Path, path: str) -> bool:
        """Restrict the checkout to `path`; False if the backend refused."""
        logger.info("Sparse checkout of '%s'.", path)

        result = self._narrow(target_dir, path.strip().strip("/"))
        if result.succeeded:
            return True

        failure = ProcessFailure.from_result(result)
        if not failure.recoverable:
            raise failure

        report_failure(failure)
        logger.warning(
            "Could not set sparse checkout of '%s': %s\nFalling back to fetching everything.",
            path,
            failure,
        )
        return False

    # --- backend hooks ---

    @abstractmethod
    def is_applicable_url(self, url: str) -> bool:
        ...

    @abstractmethod
    def get_working_tree(self, directory: Path) -> WorkingTree:
        ...

    @abstractmethod
    def _initialize(self, target_dir: Path, url: str, features: Features) -> None:
        """Create an empty repository with remote and extensions configured."""

    @abstractmethod
    def _narrow(self, target_dir: Path, path: str) -> CommandResult:
        """Request that only `path` is materialized; must not raise on exit codes."""

    @abstractmethod
    def _fetch(self, target_dir: Path) -> None:
        """Fetch all remote history and tags."""

    @abstractmethod
    def _list_tag_revisions(self, target_dir: Path) -> Iterable[Tuple[str, Sequence[str]]]:
        """(revision, tag names) pairs in native listing order."""

    @abstractmethod
    def _update(self, target_dir: Path, revision: str) -> CommandResult:
        """Check out `revision` (or the default tip when blank); must not raise on exit codes."""

    @abstractmethod
    def _update_unrestricted(self, target_dir: Path, narrowed: bool) -> CommandResult:
        """Drop narrowing if it was applied and check out the default tip."""
