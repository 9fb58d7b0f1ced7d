"""Backend version extraction and loose semantic version comparison."""

from __future__ import annotations

import re
from typing import Optional, Pattern, Union

from packaging.version import Version

_LEADING_NUMBERS = re.compile(r"^\s*[vV]?(?P<numbers>\d+(?:\.\d+)*)")


def extract_version(output: str, pattern: Union[str, Pattern[str]]) -> str:
    """Extract the version substring from a tool's version report.

    Only the first line of output is considered, and it must match the
    pattern as a whole. The pattern needs a named group `version`.

    Examples:
        extract_version("git version 2.43.0\\n", r"git version (?P<version>[\\d.]+).*") -> "2.43.0"
        extract_version("command not found", r"git version (?P<version>[\\d.]+).*") -> ""
    """
    lines = output.splitlines()
    if not lines:
        return ""
    match = re.fullmatch(pattern, lines[0].strip())
    if match is None:
        return ""
    return match.group("version") or ""


def parse_loose_version(text: str) -> Optional[Version]:
    """Parse a version leniently.

    Missing components default to zero and anything after the leading
    numeric components is ignored:

        "4.3"              -> 4.3.0
        "2.39.2.windows.1" -> 2.39.2
        "v5.9rc0"          -> 5.9.0

    Returns None when the text has no leading number.
    """
    if not text:
        return None
    match = _LEADING_NUMBERS.match(text)
    if match is None:
        return None
    parts = [int(part) for part in match.group("numbers").split(".")]
    while len(parts) < 3:
        parts.append(0)
    return Version(".".join(str(part) for part in parts))


def is_at_least(installed: str, required: str) -> Optional[bool]:
    """Compare an installed version against a minimum.

    Returns None when the installed version cannot be parsed, meaning the
    feature state is unknown.
    """
    installed_version = parse_loose_version(installed)
    if installed_version is None:
        return None
    required_version = parse_loose_version(required)
    if required_version is None:
        raise ValueError(f"Invalid required version: {required!r}")
    return installed_version >= required_version
