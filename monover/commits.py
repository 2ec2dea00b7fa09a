"""Conventional-commit classification.

Maps commit messages of the form ``type(scope)!: description`` onto bump
types. A breaking-change marker (``!`` before the colon, or a
``BREAKING CHANGE:`` line in the body) always means major. Otherwise the
configured patterns decide, checked ignore → major → minor → patch;
messages matching nothing are treated as patch so that any real change
still produces a new version.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from .config import CommitConventions
from .models import CommitClassification, CommitInfo
from .versions import BumpType, max_bump

logger = logging.getLogger(__name__)

_HEADER_RE = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[^)]+)\))?(?P<breaking>!)?\s*:\s*(?P<description>.+)$"
)
_BREAKING_RE = re.compile(r"^BREAKING[ -]CHANGE:\s*(?P<description>.+)$", re.MULTILINE)
_TYPE_PATTERN_RE = re.compile(r"^(?P<type>\w+):$")

# Housekeeping commit types that never trigger a release on their own.
IGNORED_TYPES = frozenset({"chore", "docs", "style", "test", "ci", "build"})


def _matches(message: str, commit_type: str, patterns: Iterable[str]) -> bool:
    """Check a message against patterns.

    A bare type pattern such as "fix:" matches the parsed commit type, so
    "fix(api): ..." matches it too and "latest: ..." does not match "test:".
    Any other pattern is a case-insensitive substring of the whole message.
    """
    lowered = message.lower()
    for pattern in patterns:
        if not pattern:
            continue
        type_match = _TYPE_PATTERN_RE.match(pattern)
        if type_match:
            if commit_type == type_match["type"].lower():
                return True
        elif pattern.lower() in lowered:
            return True
    return False


class CommitClassifier:
    """Classifies commits with a CommitConventions configuration."""

    def __init__(self, conventions: CommitConventions | None = None) -> None:
        self.conventions = conventions or CommitConventions()

    def classify(self, commit: CommitInfo) -> CommitClassification:
        message = commit.message.strip()
        header = message.splitlines()[0].strip() if message else ""
        sha = commit.sha[:7]

        commit_type = "unknown"
        scope: str | None = None
        description = header
        breaking = False

        match = _HEADER_RE.match(header)
        if match:
            commit_type = match["type"].lower()
            scope = match["scope"]
            description = match["description"].strip()
            breaking = match["breaking"] is not None
        if _BREAKING_RE.search(message):
            breaking = True

        conv = self.conventions
        ignored = False
        if breaking:
            bump, reason = BumpType.MAJOR, "Breaking change detected"
        elif _matches(message, commit_type, conv.ignore_patterns) or commit_type in IGNORED_TYPES:
            bump, ignored = BumpType.NONE, True
            reason = f"Ignored commit type: {commit_type}"
        elif _matches(message, commit_type, conv.major_patterns):
            bump, reason = BumpType.MAJOR, "Major pattern matched"
        elif _matches(message, commit_type, conv.minor_patterns):
            bump, reason = BumpType.MINOR, f"Minor pattern matched ({commit_type})"
        elif _matches(message, commit_type, conv.patch_patterns):
            bump, reason = BumpType.PATCH, f"Patch pattern matched ({commit_type})"
        else:
            bump, reason = BumpType.PATCH, "No pattern matched, defaulting to patch"

        logger.debug("Classified commit %s: %s -> %s (%s)", sha, commit_type, bump.value, reason)
        return CommitClassification(
            sha=sha,
            commit_type=commit_type,
            scope=scope,
            description=description,
            breaking=breaking,
            bump=bump,
            ignored=ignored,
            reason=reason,
        )

    def classify_all(self, commits: Iterable[CommitInfo]) -> list[CommitClassification]:
        return [self.classify(c) for c in commits]

    def analyze(self, commits: Iterable[CommitInfo]) -> BumpType:
        """Return the strongest bump across commits.

        No commits, or only ignored ones, gives NONE. With conventions
        disabled any commit at all gives PATCH.
        """
        commits = list(commits)
        if not commits:
            return BumpType.NONE
        if not self.conventions.enabled:
            return BumpType.PATCH
        return aggregate(self.classify_all(commits))


def aggregate(classifications: Iterable[CommitClassification]) -> BumpType:
    """max() of the bumps of non-ignored classifications."""
    return max_bump(*(c.bump for c in classifications if not c.ignored))
