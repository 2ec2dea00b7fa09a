"""Branch classification.

The branch a build runs on decides the increment policy: main and dev
produce releases (optionally prereleases), release branches produce
release candidates, and everything else gets a branch-labelled
prerelease.
"""

from __future__ import annotations

import re

import semver

from .models import BranchContext, BranchType
from .versions import try_parse_version

MAIN_BRANCHES = {"main", "master"}
DEV_BRANCHES = {"dev", "develop", "development"}
FEATURE_PREFIXES = ("feature/", "bugfix/", "hotfix/")
MAX_LABEL_LENGTH = 50

_RELEASE_NAME_RE = re.compile(r"^(release-|v)\d+\.\d+(\.\d+)?$", re.IGNORECASE)


def classify_branch(name: str) -> BranchType:
    """Classify a branch purely from its name.

    Examples:
        "main" → MAIN, "develop" → DEV, "release/1.2" → RELEASE,
        "v2.0" → RELEASE, "feature/login" → FEATURE
    """
    lowered = name.lower()
    if lowered in MAIN_BRANCHES:
        return BranchType.MAIN
    if lowered in DEV_BRANCHES:
        return BranchType.DEV
    if lowered.startswith("release/") or _RELEASE_NAME_RE.match(name):
        return BranchType.RELEASE
    return BranchType.FEATURE


def normalize_branch_name(name: str) -> str:
    """Turn a branch name into a valid prerelease identifier.

    Strips common prefixes, replaces anything outside [A-Za-z0-9-] with
    "-", lowercases and caps the length.

    Examples:
        "feature/Add_Login" → "add-login"
        "users/jo/fix#12" → "users-jo-fix-12"
    """
    label = name
    for prefix in FEATURE_PREFIXES:
        if label.lower().startswith(prefix):
            label = label[len(prefix) :]
            break
    label = re.sub(r"[^A-Za-z0-9-]", "-", label).strip("-").lower()
    label = re.sub(r"-{2,}", "-", label)
    if len(label) > MAX_LABEL_LENGTH:
        label = label[:MAX_LABEL_LENGTH].strip("-")
    return label or "feature"


def branch_context(name: str) -> BranchContext:
    return BranchContext(
        type=classify_branch(name),
        name=name,
        normalized_name=normalize_branch_name(name),
    )


def extract_release_version(name: str, tag_prefix: str = "v") -> semver.Version | None:
    """Read the target version out of a release branch name.

    Examples:
        "release/1.1" → 1.1.0
        "release/v2.0.3" → 2.0.3
        "release-1.4" → 1.4.0
        "release/next" → None
    """
    part = name
    for prefix in ("release/", "release-"):
        if part.lower().startswith(prefix):
            part = part[len(prefix) :]
            break
    if tag_prefix and part.lower().startswith(tag_prefix.lower()):
        part = part[len(tag_prefix) :]
    version = try_parse_version(part)
    return version.finalize_version() if version is not None else None
