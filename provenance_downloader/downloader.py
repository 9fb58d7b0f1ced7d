"""Provider registry and download orchestration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from . import config as dl_config
from .runner import CommandRunner, ProcessFailure, create_runner
from .vcs import PROVIDERS, VcsInfo, VersionControlSystem, WorkingTree

logger = logging.getLogger(__name__)


class UnsupportedProvenanceError(ValueError):
    """No registered provider handles the given kind, URL or directory."""


class Downloader:
    """Select the provider for a provenance descriptor and delegate to it.

    Providers are tried in registration order, which also decides the order
    of URL probing when the declared kind is missing or unknown.
    """

    def __init__(self, providers: Sequence[VersionControlSystem]) -> None:
        self.providers: List[VersionControlSystem] = list(providers)

    @classmethod
    def default(cls, runner: Optional[CommandRunner] = None) -> "Downloader":
        """Register the configured providers, all sharing one runner."""
        runner = runner if runner is not None else create_runner()
        providers = []
        for name in dl_config.enabled_providers():
            provider_class = PROVIDERS.get(name.lower())
            if provider_class is None:
                raise ValueError(f"Unknown version control provider: {name}")
            providers.append(provider_class(runner))
        return cls(providers)

    def for_kind(self, kind: str) -> Optional[VersionControlSystem]:
        if not kind.strip():
            return None
        for provider in self.providers:
            if provider.is_applicable_provider(kind):
                return provider
        return None

    def for_url(self, url: str) -> Optional[VersionControlSystem]:
        if not url.strip():
            return None
        for provider in self.providers:
            if provider.is_applicable_url(url):
                return provider
        return None

    def select(self, vcs: VcsInfo) -> VersionControlSystem:
        """Pick a provider by declared kind, then by probing the URL.

        Raises:
            UnsupportedProvenanceError: If no provider claims kind or URL
        """
        provider = self.for_kind(vcs.kind)
        if provider is not None:
            logger.debug("Selected %s for kind '%s'", provider, vcs.kind)
            return provider

        if vcs.kind.strip():
            logger.info("No provider for kind '%s', probing URL %s", vcs.kind, vcs.url)

        provider = self.for_url(vcs.url)
        if provider is not None:
            logger.info("Selected %s by probing URL %s", provider, vcs.url)
            return provider

        raise UnsupportedProvenanceError(
            f"Unsupported provenance: kind '{vcs.kind}', url '{vcs.url}'"
        )

    def download(self, vcs: VcsInfo, version: str, target_dir: Path) -> WorkingTree:
        """Check out the source described by `vcs` into `target_dir`.

        Args:
            vcs: Provenance descriptor
            version: Human readable version, used only when vcs.revision is blank
            target_dir: Directory to initialize; must not hold a repository yet

        Returns:
            Working tree bound to target_dir

        Raises:
            UnsupportedProvenanceError: If no provider handles the descriptor
            ProcessFailure: If the checkout fails
        """
        provider = self.select(vcs)
        logger.info("Downloading %s from %s to %s", version or vcs.revision or "tip", vcs.url, target_dir)
        return provider.download(vcs, version, Path(target_dir))

    def get_working_tree(self, directory: Path) -> WorkingTree:
        """Bind to an existing checkout using the first provider that recognizes it.

        Raises:
            UnsupportedProvenanceError: If no provider recognizes the directory
        """
        directory = Path(directory)
        for provider in self.providers:
            working_tree = provider.get_working_tree(directory)
            try:
                valid = working_tree.is_valid()
            except ProcessFailure as exc:
                # Tool not installed, so it cannot own the directory
                logger.debug("Skipping %s for %s: %s", provider, directory, exc)
                continue
            if valid:
                return working_tree
        raise UnsupportedProvenanceError(f"No version control repository found at {directory}")


def get_downloader(runner: Optional[CommandRunner] = None) -> Downloader:
    """Factory function for a Downloader with the configured providers.

    Example:
        downloader = get_downloader()
        tree = downloader.download(VcsInfo("hg", "https://example.com/repo"), "1.0.0", Path("/tmp/src"))
    """
    return Downloader.default(runner)
