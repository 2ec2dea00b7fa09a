"""Single-project version resolution.

VersionResolver.compute() walks one project through the resolution:

1. locate the base tag (highest global or project tag reachable from HEAD)
2. honour a forced version, if any
3. classify the current branch
4. gather change evidence: own files, commit messages, and dependencies
   that changed since their own base tag
5. no evidence: keep the base version
6. otherwise compute the next SemVer or CalVer version for the branch

Policy coordination needs the results of sibling projects and happens in
the pipeline, one level up. resolve() adds constraint validation for
callers that work on a single project.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Callable

import semver

from .branches import branch_context, extract_release_version
from .calver import CalVerCalculator
from .commits import CommitClassifier
from .config import (
    FeatureBranchStrategy,
    PrereleaseType,
    VersioningConfig,
    VersioningRequest,
)
from .constraints import VersionConstraintValidator
from .errors import ErrorKind
from .files import FileChangeClassifier, matches
from .git import GitHistory
from .graph import DependencyGraph
from .models import (
    BranchContext,
    BranchType,
    ChangeEvidence,
    CommitClassification,
    Diagnostic,
    ProjectInfo,
    Tag,
    VersionResult,
    VersionScheme,
)
from .tags import candidate_tags, parse_tags, select_base_tag
from .versions import (
    BumpType,
    bump,
    format_version,
    max_bump,
    release_triple,
    try_parse_version,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_VERSION = "0.1.0"

_GLOB_CHARS = re.compile(r"[*?\[]")


def _counter(prerelease: str | None, label: str) -> int | None:
    """N for a prerelease of the form "{label}.N", else None."""
    if not prerelease:
        return None
    name, _, number = prerelease.rpartition(".")
    if name.lower() == label.lower() and number.isdigit():
        return int(number)
    return None


def _with(
    version: semver.Version, prerelease: str | None = None, build: str | None = None
) -> semver.Version:
    return semver.Version(
        version.major, version.minor, version.patch, prerelease=prerelease, build=build
    )


def _next_release(base: semver.Version, bump_type: BumpType) -> semver.Version:
    """Bump a version; a patch bump of a prerelease releases it instead."""
    if base.prerelease and bump_type is BumpType.PATCH:
        return base.finalize_version()
    return bump(base, bump_type)


def _bump_between(start: semver.Version, target: semver.Version) -> BumpType:
    if target.major != start.major:
        return BumpType.MAJOR
    if target.minor != start.minor:
        return BumpType.MINOR
    return BumpType.PATCH


def in_project(file_path: str, paths: list[str]) -> bool:
    """Whether a repo-relative file lies under any of `paths`.

    A path of "" or "." is the whole repository; paths containing glob
    characters are matched as patterns.
    """
    for path in paths:
        path = path.replace("\\", "/").strip("/")
        if path in ("", "."):
            return True
        if _GLOB_CHARS.search(path):
            if matches(file_path, path):
                return True
        elif file_path == path or file_path.startswith(path + "/"):
            return True
    return False


class _Base:
    """The version a resolution starts from."""

    def __init__(self, version: semver.Version, tag: Tag | None = None) -> None:
        self.version = version
        self.tag = tag

    @property
    def commit(self) -> str | None:
        return self.tag.commit if self.tag else None

    @property
    def previous(self) -> semver.Version | None:
        return self.tag.version if self.tag else None


class VersionResolver:
    """Computes one project's version from git history.

    Args:
        git: History provider; share one CachingGitHistory across a run.
        clock: Returns today's date, for CalVer. Defaults to date.today.
    """

    def __init__(
        self, git: GitHistory, clock: Callable[[], dt.date] | None = None
    ) -> None:
        self.git = git
        self.clock = clock or dt.date.today

    def resolve(self, request: VersioningRequest) -> VersionResult:
        """compute() followed by constraint validation."""
        result = self.compute(request)
        validation = VersionConstraintValidator(request.config.constraints).validate_result(
            result, major_approved=request.major_approved
        )
        return result.model_copy(update={"validation": validation})

    def compute(self, request: VersioningRequest) -> VersionResult:
        cfg = request.config
        project = request.project
        info = request.info
        diagnostics: list[Diagnostic] = []

        base = self.locate_base(project, cfg, diagnostics)
        branch = branch_context(self.git.current_branch())
        common = {
            "branch_type": branch.type,
            "branch_name": branch.name,
            "scheme": cfg.scheme,
            "previous_version": base.previous,
            "previous_tag": base.tag.name if base.tag else None,
            "diagnostics": diagnostics,
        }

        skip = None
        if cfg.skip_test_projects and info.is_test:
            skip = "Test project, versioning skipped"
        elif cfg.skip_non_packable_projects and not info.is_packable:
            skip = "Non-packable project, versioning skipped"
        if skip:
            logger.info("%s: %s", project, skip)
            return VersionResult.unchanged(project, base.version, skip, **common)

        forced = request.effective_force_version
        if forced:
            version = try_parse_version(forced)
            if version is not None:
                logger.info("%s: using forced version %s", project, version)
                return VersionResult(
                    project=project,
                    version=version,
                    version_string=format_version(version),
                    changed=base.previous is None or version != base.previous,
                    reason=f"Forced version {forced}",
                    **common,
                )
            message = f"Ignoring invalid forced version {forced!r}"
            logger.warning("%s: %s", project, message)
            diagnostics.append(Diagnostic(kind=ErrorKind.RESOLUTION_ERROR, message=message))

        height = self.git.commit_height(base.commit)
        common["commit_height"] = height
        if base.tag is None and height == 0:
            message = "Repository has no commits"
            diagnostics.append(Diagnostic(kind=ErrorKind.EMPTY_HISTORY, message=message))
            return VersionResult.unchanged(project, base.version, message, **common)

        evidence, classifications = self.gather_evidence(request, base)
        common["commit_classifications"] = classifications
        initial = base.tag is None

        if not evidence.has_changes and not initial:
            reason = "No changes detected, using base version"
            if evidence.is_ignored and evidence.changed_files:
                reason = "Only ignored files changed, using base version"
            logger.info("%s: %s (%s)", project, base.version, reason)
            return VersionResult.unchanged(project, base.version, reason, **common)

        if initial:
            reason = "Initial version (no release tags)"
        elif evidence.own_changes:
            reason = f"{len(evidence.changed_files)} file(s) changed since {base.tag.name}"
        else:
            reason = f"Dependency {evidence.matched_dependency} changed"

        if cfg.scheme is VersionScheme.CALVER:
            version, version_string, bump_type = self._next_calver(
                base, branch, evidence, height, cfg
            )
        else:
            version, bump_type = self._next_semver(base, branch, evidence, height, cfg)
            version_string = format_version(version)

        logger.info("%s: %s -> %s (%s)", project, base.version, version_string, reason)
        return VersionResult(
            project=project,
            version=version,
            version_string=version_string,
            changed=True,
            reason=reason,
            bump_type=bump_type,
            **common,
        )

    def locate_base(
        self, project: str, cfg: VersioningConfig, diagnostics: list[Diagnostic]
    ) -> _Base:
        """Find the base tag for a project, or fall back to a configured version."""
        tags = parse_tags(self.git.list_tags(), cfg.tag_prefix, diagnostics)
        candidates = candidate_tags(tags, project)
        if cfg.git.validate_tag_ancestry:
            candidates = [t for t in candidates if self.git.is_ancestor(t.commit)]
        tag = select_base_tag(candidates)
        if tag is not None:
            logger.debug("%s: base tag %s (%s)", project, tag.name, tag.version)
            return _Base(tag.version, tag)

        if cfg.base_version:
            version = try_parse_version(cfg.base_version)
            if version is not None:
                return _Base(version)
            diagnostics.append(
                Diagnostic(
                    kind=ErrorKind.RESOLUTION_ERROR,
                    message=f"Ignoring invalid base version {cfg.base_version!r}",
                )
            )

        if self.git.is_shallow():
            fallback = try_parse_version(cfg.git.shallow_clone_fallback_version)
            message = "Shallow clone without reachable version tags"
            if fallback is not None:
                message += f", using fallback version {fallback}"
            logger.warning("%s: %s", project, message)
            diagnostics.append(
                Diagnostic(kind=ErrorKind.SHALLOW_HISTORY_LIMITED, message=message)
            )
            if fallback is not None:
                return _Base(fallback)

        return _Base(semver.Version.parse(DEFAULT_BASE_VERSION))

    def project_files(
        self, info: ProjectInfo, cfg: VersioningConfig, since: str | None
    ) -> list[str]:
        """Files under the project (and monitor paths) changed since `since`."""
        paths = [info.path, *cfg.change_detection.additional_monitor_paths]
        files = [f for f in self.git.changed_files(since) if in_project(f, paths)]
        if not cfg.git.submodule_support:
            submodules = set(self.git.changed_submodules(since))
            files = [f for f in files if f not in submodules]
        return files

    def gather_evidence(
        self, request: VersioningRequest, base: _Base
    ) -> tuple[ChangeEvidence, list[CommitClassification]]:
        cfg = request.config
        info = request.info
        files = self.project_files(info, cfg, base.commit)
        file_result = FileChangeClassifier(cfg.change_detection).classify(files)

        classifications: list[CommitClassification] = []
        commit_bump = BumpType.NONE
        if files:
            paths = [info.path, *cfg.change_detection.additional_monitor_paths]
            pathspecs = [] if any(p.strip("/") in ("", ".") for p in paths) else paths
            commits = self.git.commits(base.commit, pathspecs)
            classifier = CommitClassifier(cfg.commit_conventions)
            classifications = classifier.classify_all(commits)
            commit_bump = classifier.analyze(commits)

        evidence = ChangeEvidence(
            from_commits=commit_bump,
            from_file_patterns=file_result.bump,
            is_ignored=file_result.should_ignore,
            changed_files=files,
            matched_dependency=self.changed_dependency(request),
        )
        logger.debug(
            "%s: evidence commits=%s files=%s dependency=%s",
            request.project,
            evidence.from_commits.value,
            evidence.from_file_patterns.value,
            evidence.matched_dependency,
        )
        return evidence, classifications

    def changed_dependency(self, request: VersioningRequest) -> str | None:
        """First transitive dependency that changed since its own base tag."""
        projects = dict(request.projects)
        projects.setdefault(request.project, request.info)
        graph = DependencyGraph.from_projects(projects)
        cfg = request.config
        classifier = FileChangeClassifier(cfg.change_detection)
        for dep in graph.transitive_dependencies(request.project):
            if dep == request.project or dep not in projects:
                continue
            base = self.locate_base(dep, cfg, [])
            files = self.project_files(projects[dep], cfg, base.commit)
            if files and not classifier.classify(files).should_ignore:
                logger.debug(
                    "%s: dependency %s changed since %s", request.project, dep, base.version
                )
                return dep
        return None

    def _prerelease(
        self,
        base: _Base,
        branch: BranchContext,
        height: int,
        cfg: VersioningConfig,
        target: semver.Version,
    ) -> str | None:
        """Prerelease label for the branch, given the target release triple."""
        previous = base.previous
        same_triple = (
            previous is not None and release_triple(previous) == release_triple(target)
        )
        if branch.type is BranchType.RELEASE:
            k = _counter(previous.prerelease, "rc") if same_triple else None
            return f"rc.{k + 1}" if k is not None else f"rc.{max(height, 1)}"
        if branch.type is BranchType.FEATURE:
            if cfg.feature_branch_strategy is FeatureBranchStrategy.MINOR_WITH_LABEL:
                return branch.normalized_name
            return f"{branch.normalized_name}.{height}"
        if cfg.prerelease_type is PrereleaseType.NONE:
            return None
        label = cfg.prerelease_type.value
        n = _counter(previous.prerelease, label) if same_triple else None
        return f"{label}.{n + 1}" if n is not None else f"{label}.1"

    def _build(self, branch: BranchContext, cfg: VersioningConfig) -> str | None:
        if cfg.git.include_branch_in_metadata:
            return f"branch.{branch.normalized_name}"
        return None

    def _next_semver(
        self,
        base: _Base,
        branch: BranchContext,
        evidence: ChangeEvidence,
        height: int,
        cfg: VersioningConfig,
    ) -> tuple[semver.Version, BumpType]:
        start = base.version
        bump_type = max_bump(evidence.bump, cfg.default_increment)

        if branch.type is BranchType.RELEASE:
            target = extract_release_version(branch.name, cfg.tag_prefix)
            if target is None or target <= start:
                # An rc of the current triple keeps it; anything else moves on a patch.
                if start.prerelease and _counter(start.prerelease, "rc") is not None:
                    target = start.finalize_version()
                elif base.tag is None:
                    target = start.finalize_version()
                else:
                    target = _next_release(start, BumpType.PATCH)
            bump_type = _bump_between(start, target)
        elif base.tag is None:
            target = start.finalize_version()
        elif branch.type is BranchType.FEATURE:
            if cfg.feature_branch_strategy is FeatureBranchStrategy.MINOR_WITH_LABEL:
                bump_type = BumpType.MINOR
            else:
                bump_type = max_bump(evidence.bump, BumpType.PATCH)
            target = _next_release(start, bump_type)
        else:
            series = cfg.prerelease_type is not PrereleaseType.NONE and (
                _counter(start.prerelease, cfg.prerelease_type.value) is not None
            )
            if series:
                # Continue the prerelease series of the current triple.
                target = start.finalize_version()
            else:
                target = _next_release(start, bump_type)

        prerelease = self._prerelease(base, branch, height, cfg, target)
        return _with(target, prerelease, self._build(branch, cfg)), bump_type

    def _next_calver(
        self,
        base: _Base,
        branch: BranchContext,
        evidence: ChangeEvidence,
        height: int,
        cfg: VersioningConfig,
    ) -> tuple[semver.Version, str, BumpType]:
        calc = CalVerCalculator(cfg.calver)
        target = calc.calculate(self.clock(), base.previous)
        prerelease = self._prerelease(base, branch, height, cfg, target)
        version = _with(target, prerelease, self._build(branch, cfg))
        return version, calc.format(version), max_bump(evidence.bump, BumpType.PATCH)
