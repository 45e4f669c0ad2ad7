"""Semantic version bumps driven by how much prompt content changed.

The rule is a policy, not a law: identical content (after trimming) keeps the
version, a change touching more than ``MINOR_BUMP_THRESHOLD`` of the words
bumps the minor component, anything smaller bumps the patch component.
"""

from __future__ import annotations

import re

from mpe.exceptions import InvalidInputError

INITIAL_VERSION = "1.0.0"
MINOR_BUMP_THRESHOLD = 0.3

_SEMVER_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


def parse_version(version: str) -> tuple[int, int, int]:
    """Parse ``MAJOR.MINOR.PATCH`` into a tuple of ints."""
    match = _SEMVER_RE.match(version.strip()) if isinstance(version, str) else None
    if match is None:
        raise InvalidInputError(f"Invalid semantic version: {version!r}.")
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def format_version(major: int, minor: int, patch: int) -> str:
    return f"{major}.{minor}.{patch}"


def change_magnitude(old_content: str, new_content: str) -> float:
    """Fraction of words that changed, in [0, 1].

    Counts the distinct words of *old_content* that still appear in
    *new_content* and divides by the longer token count. Order and
    multiplicity are ignored.
    """
    old_words = old_content.split()
    new_words = new_content.split()
    total_words = max(len(old_words), len(new_words))
    if total_words == 0:
        return 0.0
    common_words = len(set(old_words) & set(new_words))
    return 1 - common_words / total_words


def propose_next_version(current_version: str, old_content: str, new_content: str) -> str:
    """Return the version that *new_content* should be stored under."""
    major, minor, patch = parse_version(current_version)
    if old_content.strip() == new_content.strip():
        return format_version(major, minor, patch)

    if change_magnitude(old_content, new_content) > MINOR_BUMP_THRESHOLD:
        return format_version(major, minor + 1, 0)
    return format_version(major, minor, patch + 1)


def latest_version(versions: list[str]) -> str:
    """Return the highest version in *versions*."""
    if not versions:
        raise InvalidInputError("No versions to choose from.")
    return max(versions, key=parse_version)
