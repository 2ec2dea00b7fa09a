"""Error taxonomy for version resolution.

Only a missing repository aborts a whole run. Everything tag- or
commit-level is recovered locally and surfaced as a Diagnostic on the
affected project's result; configuration conflicts fail just the
projects they touch.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    REPOSITORY_NOT_FOUND = "repository_not_found"
    EMPTY_HISTORY = "empty_history"
    INVALID_TAG_FORMAT = "invalid_tag_format"
    SHALLOW_HISTORY_LIMITED = "shallow_history_limited"
    CIRCULAR_DEPENDENCY = "circular_dependency"
    CONFIGURATION_CONFLICT = "configuration_conflict"
    VALIDATION_FAILURE = "validation_failure"
    RESOLUTION_ERROR = "resolution_error"


class MonoverError(Exception):
    """Base class for errors raised by monover."""

    kind: ErrorKind = ErrorKind.RESOLUTION_ERROR


class RepositoryNotFoundError(MonoverError):
    """No git repository at or above the requested path."""

    kind = ErrorKind.REPOSITORY_NOT_FOUND


class ConfigurationConflictError(MonoverError):
    """Configuration that cannot be applied, e.g. overlapping version groups.

    Attributes:
        projects: The projects affected by the conflict.
    """

    kind = ErrorKind.CONFIGURATION_CONFLICT

    def __init__(self, message: str, projects: list[str] | None = None) -> None:
        super().__init__(message)
        self.projects = projects or []


class CircularDependencyError(MonoverError, RuntimeError):
    """The project dependency graph contains a cycle."""

    kind = ErrorKind.CIRCULAR_DEPENDENCY
