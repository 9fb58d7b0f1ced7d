"""Resolve provenance metadata into checked out source trees."""

from .downloader import Downloader, UnsupportedProvenanceError, get_downloader
from .runner import CommandResult, CommandRunner, ProcessFailure
from .vcs import Git, Mercurial, VcsInfo, WorkingTree

__all__ = [
    "CommandResult",
    "CommandRunner",
    "Downloader",
    "Git",
    "Mercurial",
    "ProcessFailure",
    "UnsupportedProvenanceError",
    "VcsInfo",
    "WorkingTree",
    "get_downloader",
]
