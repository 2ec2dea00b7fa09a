"""Versioning configuration.

The configuration is one immutable Pydantic value built by merging an
ordered list of partial mappings (defaults < root [tool.monover] <
per-project override < command line). Nothing mutates it afterwards;
per-project settings are produced by merging again, not by patching.
"""

from __future__ import annotations

import typing
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

from packaging.utils import canonicalize_name
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import ProjectInfo, VersionScheme
from .toml import PyProject
from .versions import BumpType

TOOL_NAME = "monover"

CALVER_FORMATS = ("YYYY.MM.PATCH", "YY.0M.PATCH", "YYYY.WW.PATCH", "YYYY.0M.PATCH")


class PrereleaseType(str, Enum):
    NONE = "none"
    ALPHA = "alpha"
    BETA = "beta"
    RC = "rc"


class FeatureBranchStrategy(str, Enum):
    """How feature branches are versioned.

    PATCH_WITH_HEIGHT: bump by change evidence (at least patch), label
        "{branch}.{commit_height}", e.g. 1.0.1-my-feature.3
    MINOR_WITH_LABEL: bump minor, label "{branch}", e.g. 1.1.0-my-feature
    """

    PATCH_WITH_HEIGHT = "patch_with_height"
    MINOR_WITH_LABEL = "minor_with_label"


class VersionPolicy(str, Enum):
    INDEPENDENT = "independent"
    LOCK_STEP = "lock_step"
    GROUPED = "grouped"


class RuleType(str, Enum):
    PATTERN = "pattern"
    RANGE = "range"
    CUSTOM = "custom"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _lower(value: Any) -> Any:
    return value.strip().lower().replace("-", "_") if isinstance(value, str) else value


class _Config(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CommitConventions(_Config):
    """Conventional-commit patterns (case-insensitive substrings)."""

    enabled: bool = True
    major_patterns: list[str] = Field(default_factory=lambda: ["BREAKING CHANGE:", "!:"])
    minor_patterns: list[str] = Field(default_factory=lambda: ["feat:", "feature:"])
    patch_patterns: list[str] = Field(
        default_factory=lambda: ["fix:", "bugfix:", "perf:", "refactor:"]
    )
    ignore_patterns: list[str] = Field(
        default_factory=lambda: ["chore:", "docs:", "style:", "test:", "ci:"]
    )


class ChangeDetection(_Config):
    """Glob patterns that map changed files onto bump types."""

    enabled: bool = True
    ignore_patterns: list[str] = Field(default_factory=list)
    major_patterns: list[str] = Field(default_factory=list)
    minor_patterns: list[str] = Field(default_factory=list)
    patch_patterns: list[str] = Field(default_factory=list)
    source_only_mode: bool = False
    minimum_bump_type: BumpType = BumpType.NONE
    additional_monitor_paths: list[str] = Field(default_factory=list)

    @field_validator("minimum_bump_type", mode="before")
    @classmethod
    def _lower_bump(cls, value: Any) -> Any:
        return _lower(value)


class CalVerConfig(_Config):
    format: str = "YYYY.MM.PATCH"
    reset_patch_periodically: bool = True
    separator: str = "."

    @field_validator("format", mode="before")
    @classmethod
    def _check_format(cls, value: Any) -> Any:
        if isinstance(value, str) and value.upper() in CALVER_FORMATS:
            return value.upper()
        raise ValueError(
            f"unsupported CalVer format {value!r}, expected one of {', '.join(CALVER_FORMATS)}"
        )


class VersionGroup(_Config):
    """Projects (exact names or * wildcards) that share one version."""

    projects: list[str] = Field(default_factory=list)
    strategy: VersionPolicy = VersionPolicy.LOCK_STEP
    base_version: str | None = None

    @field_validator("strategy", mode="before")
    @classmethod
    def _lower_strategy(cls, value: Any) -> Any:
        return _lower(value)


class VersionPolicyConfig(_Config):
    policy: VersionPolicy = VersionPolicy.INDEPENDENT
    groups: dict[str, VersionGroup] = Field(default_factory=dict)

    @field_validator("policy", mode="before")
    @classmethod
    def _lower_policy(cls, value: Any) -> Any:
        return _lower(value)


class ValidationRule(_Config):
    type: RuleType = RuleType.PATTERN
    description: str | None = None
    config: dict[str, str] = Field(default_factory=dict)
    severity: Severity = Severity.ERROR

    @field_validator("type", "severity", mode="before")
    @classmethod
    def _lower_enums(cls, value: Any) -> Any:
        return _lower(value)


class Constraints(_Config):
    enabled: bool = True
    minimum_version: str | None = None
    maximum_version: str | None = None
    allowed_range: str | None = None
    blocked_versions: list[str] = Field(default_factory=list)
    require_monotonic_increase: bool = True
    require_major_approval: bool = False
    custom_rules: dict[str, ValidationRule] = Field(default_factory=dict)


class GitIntegration(_Config):
    validate_tag_ancestry: bool = True
    shallow_clone_fallback_version: str | None = None
    submodule_support: bool = False
    include_branch_in_metadata: bool = False


class VersioningConfig(_Config):
    """The fully merged configuration for one resolution."""

    base_version: str | None = None
    default_increment: BumpType = BumpType.PATCH
    prerelease_type: PrereleaseType = PrereleaseType.NONE
    tag_prefix: str = "v"
    scheme: VersionScheme = VersionScheme.SEMVER
    force_version: str | None = None
    skip_test_projects: bool = True
    skip_non_packable_projects: bool = True
    feature_branch_strategy: FeatureBranchStrategy = FeatureBranchStrategy.PATCH_WITH_HEIGHT
    commit_conventions: CommitConventions = Field(default_factory=CommitConventions)
    change_detection: ChangeDetection = Field(default_factory=ChangeDetection)
    calver: CalVerConfig = Field(default_factory=CalVerConfig)
    version_policy: VersionPolicyConfig = Field(default_factory=VersionPolicyConfig)
    constraints: Constraints = Field(default_factory=Constraints)
    git: GitIntegration = Field(default_factory=GitIntegration)
    # Partial overrides keyed by project name, same keys as this model.
    projects: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator(
        "default_increment",
        "prerelease_type",
        "scheme",
        "feature_branch_strategy",
        mode="before",
    )
    @classmethod
    def _lower_enums(cls, value: Any) -> Any:
        return _lower(value)

    def for_project(
        self, project: str, *top_layers: Mapping[str, Any] | None
    ) -> VersioningConfig:
        """Return the effective configuration for one project.

        The project's [projects.<name>] override is merged over this
        config, then `top_layers` (command-line settings) over that.
        Project names are compared canonically, so "My_Lib" in the config
        applies to project "my-lib".
        """
        wanted = canonicalize_name(project)
        overrides = [
            layer
            for name, layer in self.projects.items()
            if canonicalize_name(name) == wanted
        ]
        if not overrides and not any(top_layers):
            return self
        base = self.model_dump(mode="json", exclude={"projects"})
        return merge_configs(base, *overrides, *top_layers)


def _model_type(annotation: Any) -> type[BaseModel] | None:
    if (
        typing.get_origin(annotation) is None
        and isinstance(annotation, type)
        and issubclass(annotation, BaseModel)
    ):
        return annotation
    return None


def _normalize_keys(data: Mapping[str, Any], model: type[BaseModel]) -> dict[str, Any]:
    """Rewrite kebab-case keys to field names, recursing into sub-models.

    Keys of free-form tables (project names, group names) are left alone.
    """
    out: dict[str, Any] = {}
    for key, value in data.items():
        name = key.replace("-", "_")
        field = model.model_fields.get(name)
        if field is None:
            out[key] = value
            continue
        sub = _model_type(field.annotation)
        if sub is not None and isinstance(value, Mapping):
            value = _normalize_keys(value, sub)
        elif typing.get_origin(field.annotation) is dict and isinstance(value, Mapping):
            _, value_type = typing.get_args(field.annotation)
            sub = _model_type(value_type)
            if sub is not None:
                value = {
                    k: _normalize_keys(v, sub) if isinstance(v, Mapping) else v
                    for k, v in value.items()
                }
        out[name] = value
    return out


def _deep_merge(base: dict[str, Any], layer: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in layer.items():
        if value is None:
            continue
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _deep_merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


def merge_configs(*layers: Mapping[str, Any] | None) -> VersioningConfig:
    """Merge partial configurations, later layers winning.

    Tables merge key by key, lists and scalars are replaced, None values
    are treated as "not set". Pure: the inputs are not modified.

    Raises:
        pydantic.ValidationError: If the merged value is not a valid config.
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = _deep_merge(merged, _normalize_keys(layer, VersioningConfig))
    return VersioningConfig.model_validate(merged)


def load_tool_config(pyproject_path: Path) -> dict[str, Any]:
    """Read the [tool.monover] table of a pyproject.toml as plain data.

    Returns an empty dict when the file or table does not exist.
    """
    return PyProject.load_if_exists(pyproject_path).tool_table(TOOL_NAME)


class VersioningRequest(BaseModel):
    """Everything needed to resolve one project's version.

    Attributes:
        repo_root: Repository working directory.
        project: Project name.
        info: The project's path, dependencies and flags.
        projects: All known projects, for dependency lookups.
        config: Effective configuration for this project.
        force_version: Literal version to use instead of computing one.
        major_approved: Approval flag for require_major_approval.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    repo_root: str
    project: str
    info: ProjectInfo
    projects: dict[str, ProjectInfo] = Field(default_factory=dict)
    config: VersioningConfig = Field(default_factory=VersioningConfig)
    force_version: str | None = None
    major_approved: bool = False

    @property
    def effective_force_version(self) -> str | None:
        return self.force_version or self.config.force_version
