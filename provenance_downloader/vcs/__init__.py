"""Version control backends for source checkout operations.

Provides protocol-based abstraction over different VCS types (git, mercurial).
"""

from .base import (
    CheckoutOutcome,
    CommandLineVcs,
    Features,
    VcsInfo,
    VersionControlSystem,
    WorkingTree,
    checkout_with_fallback,
    find_tag_revision,
    tag_matches_version,
)
from .git import Git, GitWorkingTree
from .mercurial import Mercurial, MercurialWorkingTree

# Provider classes by configuration name
PROVIDERS = {
    "git": Git,
    "mercurial": Mercurial,
}

__all__ = [
    "CheckoutOutcome",
    "CommandLineVcs",
    "Features",
    "Git",
    "GitWorkingTree",
    "Mercurial",
    "MercurialWorkingTree",
    "PROVIDERS",
    "VcsInfo",
    "VersionControlSystem",
    "WorkingTree",
    "checkout_with_fallback",
    "find_tag_revision",
    "tag_matches_version",
]
