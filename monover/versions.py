"""Version parsing and bumping utilities.

Handles conversion between version strings and semver objects, with
special handling for incomplete version strings (e.g., "1.0" → "1.0.0")
and zero-padded components (e.g., CalVer "25.01.0").
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from enum import Enum
from typing import Annotated, Any

import semver
from pydantic import PlainSerializer, PlainValidator

_VERSION_RE = re.compile(
    r"^(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+))?"
    r"(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


class BumpType(str, Enum):
    """Which version component a change requires incrementing."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


# Bump precedence: higher index = stronger bump.
BUMP_PRECEDENCE: list[BumpType] = [
    BumpType.NONE,
    BumpType.PATCH,
    BumpType.MINOR,
    BumpType.MAJOR,
]


def max_bump(*bumps: BumpType) -> BumpType:
    """Return the strongest of the given bump types (NONE if empty).

    >>> max_bump(BumpType.MINOR, BumpType.PATCH)
    <BumpType.MINOR: 'minor'>
    """
    return max(bumps, key=BUMP_PRECEDENCE.index, default=BumpType.NONE)


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Accepts ``MAJOR.MINOR[.PATCH][-PRERELEASE][+BUILD]``. Missing
    components are padded with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2-rc.1" → "1.2.0-rc.1"

    Numeric components may carry leading zeros ("2025.01.3"), which strict
    semver rejects but zero-padded CalVer tags need.

    Raises:
        ValueError: If the string is not a version.
    """
    match = _VERSION_RE.match(version_str.strip())
    if not match:
        raise ValueError(f"{version_str!r} is not a valid version string")
    return semver.Version(
        major=int(match["major"]),
        minor=int(match["minor"] or 0),
        patch=int(match["patch"] or 0),
        prerelease=match["prerelease"],
        build=match["build"],
    )


def try_parse_version(version_str: str | None) -> semver.Version | None:
    """Like parse_version(), but returns None instead of raising."""
    if not version_str:
        return None
    try:
        return parse_version(version_str)
    except ValueError:
        return None


def format_version(version: semver.Version) -> str:
    """Return the canonical string form, e.g. "1.2.3-rc.1+build.5"."""
    return str(version)


def release_triple(version: semver.Version) -> tuple[int, int, int]:
    return version.major, version.minor, version.patch


def compare_versions(a: semver.Version, b: semver.Version) -> int:
    """Return -1, 0 or 1 by SemVer precedence; build metadata is ignored."""
    return a.compare(b)


def bump(version: semver.Version, bump_type: BumpType) -> semver.Version:
    """Increment a version by bump type.

    Major resets minor and patch, minor resets patch. Prerelease and build
    metadata are always dropped. BumpType.NONE returns the release triple.

    Examples:
        bump(1.2.3, MAJOR) → 2.0.0
        bump(1.2.3-rc.1, PATCH) → 1.2.4
    """
    if bump_type is BumpType.MAJOR:
        return version.bump_major()
    if bump_type is BumpType.MINOR:
        return version.bump_minor()
    if bump_type is BumpType.PATCH:
        return semver.Version(version.major, version.minor, version.patch + 1)
    return version.finalize_version()


def max_version(versions: Iterable[semver.Version]) -> semver.Version | None:
    """Return the highest version by semver precedence, or None if empty."""
    highest: semver.Version | None = None
    for v in versions:
        if highest is None or v > highest:
            highest = v
    return highest


def _validate_version(value: Any) -> semver.Version:
    if isinstance(value, semver.Version):
        return value
    if isinstance(value, str):
        return parse_version(value)
    raise ValueError(f"expected a version string, got {type(value).__name__}")


# Pydantic field type: accepts "1.2.3" or semver.Version, dumps as a string.
VersionField = Annotated[
    semver.Version,
    PlainValidator(_validate_version),
    PlainSerializer(format_version, return_type=str),
]
