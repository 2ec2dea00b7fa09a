"""Cross-project version policies.

Under the independent policy (the default) every project keeps the
version it computed on its own. Under lock_step or grouped, projects are
collected into groups by exact name or "*" wildcard and every member of a
lock-step group is given the highest version computed in the group (or
the group's base_version when that is higher).
"""

from __future__ import annotations

import fnmatch
import logging
from collections.abc import Iterable, Mapping

from .config import VersionGroup, VersionPolicy, VersionPolicyConfig
from .errors import ConfigurationConflictError
from .models import ResolutionFailure, VersionResult
from .versions import max_bump, try_parse_version

logger = logging.getLogger(__name__)

IMPLICIT_GROUP = "lock-step"


def matches_project(name: str, pattern: str) -> bool:
    """Exact, case-insensitive name match, or a "*" wildcard pattern."""
    if "*" in pattern:
        return fnmatch.fnmatchcase(name.lower(), pattern.lower())
    return name.lower() == pattern.lower()


class VersionPolicyCoordinator:
    def __init__(self, config: VersionPolicyConfig | None = None) -> None:
        self.config = config or VersionPolicyConfig()

    @property
    def groups(self) -> dict[str, VersionGroup]:
        """Configured groups; lock_step without groups is one group of everything."""
        if self.config.groups:
            return dict(self.config.groups)
        if self.config.policy is VersionPolicy.LOCK_STEP:
            return {IMPLICIT_GROUP: VersionGroup(projects=["*"])}
        return {}

    def groups_for(self, name: str) -> list[str]:
        return [
            group_name
            for group_name, group in self.groups.items()
            if any(matches_project(name, p) for p in group.projects)
        ]

    def group_for(self, name: str) -> str | None:
        """The single group a project belongs to, or None.

        Raises:
            ConfigurationConflictError: If the project matches more than one group.
        """
        found = self.groups_for(name)
        if len(found) > 1:
            raise ConfigurationConflictError(
                f"Project {name!r} belongs to multiple version groups: {', '.join(found)}",
                projects=[name],
            )
        return found[0] if found else None

    def linked(self, name: str, projects: Iterable[str]) -> set[str]:
        """`name` plus every project whose version is coordinated with it."""
        if self.config.policy is VersionPolicy.INDEPENDENT:
            return {name}
        found = self.groups_for(name)
        return {name} | {
            other for other in projects if any(g in found for g in self.groups_for(other))
        }

    def validate(self, projects: Iterable[str]) -> list[str]:
        """Return configuration errors for the given project names."""
        errors: list[str] = []
        if self.config.policy is VersionPolicy.INDEPENDENT:
            return errors
        if self.config.policy is VersionPolicy.GROUPED and not self.config.groups:
            errors.append("Grouped policy requires at least one version group")

        for group_name, group in self.config.groups.items():
            if not group.projects:
                errors.append(f"Version group {group_name!r} has no projects")
            if group.base_version and try_parse_version(group.base_version) is None:
                errors.append(
                    f"Version group {group_name!r} has invalid base version "
                    f"{group.base_version!r}"
                )

        for name in sorted(projects):
            try:
                self.group_for(name)
            except ConfigurationConflictError as exc:
                errors.append(str(exc))
        return errors

    def coordinate(
        self, results: Mapping[str, VersionResult]
    ) -> tuple[dict[str, VersionResult], dict[str, ResolutionFailure]]:
        """Apply the policy to independently computed results.

        Returns the coordinated results and the projects that could not be
        coordinated because they belong to more than one group. Input
        results are not modified.
        """
        coordinated = dict(results)
        failures: dict[str, ResolutionFailure] = {}
        policy = self.config.policy
        if policy is VersionPolicy.INDEPENDENT:
            return coordinated, failures

        members: dict[str, list[str]] = {}
        for name in sorted(results):
            try:
                group_name = self.group_for(name)
            except ConfigurationConflictError as exc:
                logger.error("%s", exc)
                failures[name] = ResolutionFailure(project=name, kind=exc.kind, message=str(exc))
                del coordinated[name]
                continue
            if group_name is not None:
                members.setdefault(group_name, []).append(name)

        for group_name, names in members.items():
            group = self.groups[group_name]
            if group.strategy is not VersionPolicy.LOCK_STEP:
                for name in names:
                    coordinated[name] = coordinated[name].model_copy(
                        update={"group_name": group_name, "policy": policy.value}
                    )
                continue
            self._lock_step(group_name, group, names, coordinated)
        return coordinated, failures

    def _lock_step(
        self,
        group_name: str,
        group: VersionGroup,
        names: list[str],
        results: dict[str, VersionResult],
    ) -> None:
        # Highest member wins; its version_string keeps any CalVer padding.
        leader = max(names, key=lambda n: (results[n].version, n))
        shared = results[leader].version
        shared_string = results[leader].version_string
        base = try_parse_version(group.base_version)
        if base is not None and base > shared:
            shared = base
            shared_string = str(base)
        any_changed = any(results[n].changed for n in names)
        bump = max_bump(*(results[n].bump_type for n in names))
        logger.info("Group %s: %d project(s) share version %s", group_name, len(names), shared)

        for name in names:
            result = results[name]
            update: dict = {
                "version": shared,
                "version_string": shared_string,
                "changed": any_changed or result.version != shared,
                "group_name": group_name,
                "linked_projects": [n for n in names if n != name],
                "policy": self.config.policy.value,
            }
            if result.version != shared:
                update["reason"] = f"{result.reason}; aligned to group {group_name} version {shared}"
                update["bump_type"] = bump
            results[name] = result.model_copy(update=update)

