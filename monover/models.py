"""Data models for monover.

These Pydantic models represent the core data structures that flow
through a version resolution: what git tells us, the change evidence we
derive from it, and the per-project result.
"""

from __future__ import annotations

from enum import Enum

import semver
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .errors import ErrorKind
from .versions import BumpType, VersionField, format_version, max_bump


class BranchType(str, Enum):
    MAIN = "main"
    DEV = "dev"
    RELEASE = "release"
    FEATURE = "feature"


class VersionScheme(str, Enum):
    SEMVER = "semver"
    CALVER = "calver"


class TagScope(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"


class _Model(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class ProjectInfo(_Model):
    """Metadata for a single project in the monorepo.

    Attributes:
        path: Relative path from repository root to the project directory.
        deps: Names of internal projects this one depends on. External
              deps are not tracked since only in-repo projects are versioned.
        is_test: Test-only project (skipped when skip_test_projects is set).
        is_packable: Produces a distributable artifact.
    """

    path: str
    deps: list[str] = Field(default_factory=list)
    is_test: bool = False
    is_packable: bool = True


class CommitInfo(_Model):
    """A commit as reported by the git provider."""

    sha: str
    message: str


class Tag(_Model):
    """A git tag and what we could parse out of its name.

    A tag whose name does not parse carries version=None and is skipped
    by base-tag selection.
    """

    name: str
    commit: str
    version: VersionField | None = None
    scope: TagScope = TagScope.GLOBAL
    project: str | None = None


class BranchContext(_Model):
    type: BranchType
    name: str
    normalized_name: str


class CommitClassification(_Model):
    """How one commit message maps onto a version bump."""

    sha: str
    commit_type: str
    description: str
    scope: str | None = None
    breaking: bool = False
    bump: BumpType = BumpType.NONE
    ignored: bool = False
    reason: str = ""


class FileClassification(_Model):
    """Changed files bucketed by the change-detection patterns."""

    major_files: list[str] = Field(default_factory=list)
    minor_files: list[str] = Field(default_factory=list)
    patch_files: list[str] = Field(default_factory=list)
    ignored_files: list[str] = Field(default_factory=list)
    unclassified_files: list[str] = Field(default_factory=list)
    bump: BumpType = BumpType.NONE
    should_ignore: bool = False
    reason: str = ""

    @property
    def total_files(self) -> int:
        return (
            len(self.major_files)
            + len(self.minor_files)
            + len(self.patch_files)
            + len(self.ignored_files)
            + len(self.unclassified_files)
        )


class ChangeEvidence(_Model):
    """Everything that says a project needs a new version.

    Attributes:
        from_commits: Strongest bump implied by commit messages.
        from_file_patterns: Strongest bump implied by changed file paths.
        is_ignored: All changed files matched ignore patterns.
        changed_files: Files considered for this project.
        matched_dependency: First transitive dependency found to have changed.
    """

    from_commits: BumpType = BumpType.NONE
    from_file_patterns: BumpType = BumpType.NONE
    is_ignored: bool = False
    changed_files: list[str] = Field(default_factory=list)
    matched_dependency: str | None = None

    @property
    def own_changes(self) -> bool:
        return bool(self.changed_files) and not self.is_ignored

    @property
    def has_changes(self) -> bool:
        return self.own_changes or self.matched_dependency is not None

    @property
    def bump(self) -> BumpType:
        """max(commit evidence, file evidence); dependency-only is patch."""
        if self.own_changes:
            return max_bump(self.from_commits, self.from_file_patterns)
        if self.matched_dependency is not None:
            return BumpType.PATCH
        return BumpType.NONE


class Diagnostic(_Model):
    """A recovered, non-fatal problem noticed during resolution."""

    kind: ErrorKind
    message: str


class ValidationError(_Model):
    constraint: str
    message: str
    expected: str | None = None
    actual: str | None = None


class ValidationWarning(_Model):
    rule: str
    message: str
    details: str | None = None


class ValidationResult(_Model):
    is_valid: bool = True
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def summary(self) -> str:
        if self.is_valid:
            text = "All validation checks passed"
        else:
            text = f"Validation failed with {len(self.errors)} error(s)"
        if self.warnings:
            text += f" and {len(self.warnings)} warning(s)"
        return text


class VersionResult(_Model):
    """The resolved version of one project.

    version_string is what consumers should write out: it equals
    str(version) except for zero-padded CalVer formats.
    """

    project: str
    version: VersionField
    version_string: str
    changed: bool
    reason: str
    bump_type: BumpType = BumpType.NONE
    branch_type: BranchType = BranchType.FEATURE
    branch_name: str = ""
    commit_height: int = 0
    scheme: VersionScheme = VersionScheme.SEMVER
    previous_version: VersionField | None = None
    previous_tag: str | None = None
    validation: ValidationResult | None = None
    policy: str | None = None
    group_name: str | None = None
    linked_projects: list[str] = Field(default_factory=list)
    commit_classifications: list[CommitClassification] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @classmethod
    def unchanged(
        cls, project: str, version: semver.Version, reason: str, **kwargs
    ) -> VersionResult:
        return cls(
            project=project,
            version=version,
            version_string=kwargs.pop("version_string", format_version(version)),
            changed=False,
            reason=reason,
            **kwargs,
        )


class ResolutionFailure(_Model):
    """One project that could not be resolved; siblings are unaffected."""

    project: str
    kind: ErrorKind
    message: str


class VersioningReport(_Model):
    """Outcome of a multi-project run, in dependency order."""

    results: dict[str, VersionResult] = Field(default_factory=dict)
    failures: dict[str, ResolutionFailure] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def changed(self) -> list[VersionResult]:
        """Results that need a new release, in dependency order."""
        return [r for r in self.results.values() if r.changed]
