"""File-pattern change classification.

Changed files are bucketed by glob patterns into ignore / major / minor /
patch. The first matching bucket wins for each file, in that order, so an
ignored file never counts towards a bump. Glob syntax:

- ``*``  any run of characters except "/"
- ``**`` any number of directories (``**/`` may match none)
- ``?``  one character except "/"

Matching is case-insensitive and anchored to the whole path. A pattern
without "/" is also tried against the file name alone, so ``*.md``
matches ``docs/guide.md``.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable

from .config import ChangeDetection
from .models import FileClassification
from .versions import BUMP_PRECEDENCE, BumpType

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into an anchored regular expression."""
    pattern = pattern.replace("\\", "/")
    out: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("^" + "".join(out) + "$", re.IGNORECASE)


def matches(file_path: str, pattern: str) -> bool:
    """Check whether a file path matches a glob pattern."""
    if not file_path or not pattern:
        return False
    path = file_path.replace("\\", "/")
    regex = glob_to_regex(pattern)
    if regex.match(path):
        return True
    if "/" not in pattern.replace("\\", "/"):
        return bool(regex.match(path.rsplit("/", 1)[-1]))
    return False


def _any_match(path: str, patterns: Iterable[str]) -> bool:
    return any(matches(path, p) for p in patterns)


class FileChangeClassifier:
    """Classifies changed files with a ChangeDetection configuration."""

    def __init__(self, config: ChangeDetection | None = None) -> None:
        self.config = config or ChangeDetection()

    def classify(self, changed_files: Iterable[str]) -> FileClassification:
        """Bucket files and decide the bump they require."""
        cfg = self.config
        result = FileClassification()
        for file in changed_files:
            if _any_match(file, cfg.ignore_patterns):
                result.ignored_files.append(file)
            elif _any_match(file, cfg.major_patterns):
                result.major_files.append(file)
            elif _any_match(file, cfg.minor_patterns):
                result.minor_files.append(file)
            elif _any_match(file, cfg.patch_patterns):
                result.patch_files.append(file)
            else:
                result.unclassified_files.append(file)

        result.bump, result.should_ignore, result.reason = self._decide(result)
        logger.debug("File classification: %s (%s)", result.bump.value, result.reason)
        return result

    def _decide(self, c: FileClassification) -> tuple[BumpType, bool, str]:
        cfg = self.config
        if c.total_files == 0:
            return BumpType.NONE, True, "No files changed"
        if not cfg.enabled:
            return BumpType.PATCH, False, f"{c.total_files} file(s) changed"
        if len(c.ignored_files) == c.total_files:
            reason = "All changes are in ignored files"
            if cfg.source_only_mode:
                reason += " (source-only mode)"
            return BumpType.NONE, True, reason

        if c.major_files:
            bump, reason = BumpType.MAJOR, f"{len(c.major_files)} file(s) require major version bump"
        elif c.minor_files:
            bump, reason = BumpType.MINOR, f"{len(c.minor_files)} file(s) require minor version bump"
        elif c.patch_files:
            bump, reason = BumpType.PATCH, f"{len(c.patch_files)} file(s) require patch version bump"
        elif cfg.source_only_mode and cfg.minimum_bump_type is BumpType.NONE:
            # Only pattern-matched files count as source in this mode.
            return BumpType.NONE, True, "Only unclassified files changed (source-only mode)"
        else:
            bump = cfg.minimum_bump_type
            if bump is BumpType.NONE:
                bump = BumpType.PATCH
            reason = f"{len(c.unclassified_files)} unclassified file(s) changed"

        if BUMP_PRECEDENCE.index(cfg.minimum_bump_type) > BUMP_PRECEDENCE.index(bump):
            bump = cfg.minimum_bump_type
            reason += f"; minimum bump type enforced: {bump.value}"
        return bump, False, reason
