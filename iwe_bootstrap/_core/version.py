"""
Version constants and comparison for iwe-bootstrap.

Release tags published upstream look like "v0.0.21" but the comparator
accepts any dotted string:
- An optional leading non-digit marker is stripped
- Segments without digits count as 0
- Shorter versions are padded with zeros ("1.2" == "1.2.0")
"""

from __future__ import annotations

import re
from typing import Tuple

# iwe-bootstrap version (user-facing)
PACKAGE_VERSION = "0.1.0"

# GitHub repository publishing the language server releases
GITHUB_REPO = "iwe-org/iwe"
BINARY_NAME = "iwes"

# Prefix of the per-version install directories under the storage root
VERSION_DIR_PREFIX = "iwe-"

USER_AGENT = f"iwe-bootstrap/{PACKAGE_VERSION}"

_LEADING_MARKER_RE = re.compile(r"^[^\d]+")
_LEADING_DIGITS_RE = re.compile(r"^\d+")


def parse_version(version: str) -> Tuple[int, ...]:
    """
    Parse a dotted version string into a tuple of integers.

    Args:
        version: Version string like "2.5.0", "v2.5" or "release-1.0.3"

    Returns:
        Tuple with one integer per segment
    """
    stripped = _LEADING_MARKER_RE.sub("", version.strip())
    segments = []
    for segment in stripped.split("."):
        match = _LEADING_DIGITS_RE.match(segment)
        segments.append(int(match.group(0)) if match else 0)
    return tuple(segments)


def is_newer(candidate: str, baseline: str) -> bool:
    """
    Check if candidate is strictly newer than baseline.

    Args:
        candidate: Version that might be newer (e.g., fetched release tag)
        baseline: Version to compare against (e.g., installed version)

    Returns:
        True if candidate > baseline, False if equal or older
    """
    left = parse_version(candidate)
    right = parse_version(baseline)

    width = max(len(left), len(right))
    left = left + (0,) * (width - len(left))
    right = right + (0,) * (width - len(right))

    for a, b in zip(left, right):
        if a != b:
            return a > b
    return False
