"""Tag discovery and base-version selection.

Two tag shapes are recognized, for a tag prefix of "v":

- global:  v1.2.3
- project: my-lib-v1.2.3 or my-lib/v1.2.3

A project's base version is the highest version among the global tags
and its own project tags. Scope does not matter, only the version, so a
new global release starts a new cycle for every project while a project
that released ahead of the global line keeps its own counter.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from packaging.utils import canonicalize_name

from .errors import ErrorKind
from .models import Diagnostic, Tag, TagScope
from .versions import compare_versions, try_parse_version

logger = logging.getLogger(__name__)


def _has_project_marker(name: str, tag_prefix: str) -> bool:
    # "-<prefix><digit>" or "/<prefix><digit>" past the leading prefix
    if not tag_prefix:
        return False
    marker = re.compile(rf"[-/]{re.escape(tag_prefix)}\d", re.IGNORECASE)
    return marker.search(name, len(tag_prefix)) is not None


def parse_tag(name: str, commit: str, tag_prefix: str = "v") -> Tag:
    """Parse a tag name into a Tag.

    A name that reads both ways, like "v2-lib-v1.2.0" for project
    "v2-lib", is a project tag. Returns a Tag with version=None when the
    name does not follow either shape; callers skip those.
    """
    global_tag = None
    if name.lower().startswith(tag_prefix.lower()):
        version = try_parse_version(name[len(tag_prefix) :])
        if version is not None:
            global_tag = Tag(name=name, commit=commit, version=version, scope=TagScope.GLOBAL)
            if not _has_project_marker(name, tag_prefix):
                return global_tag

    # Project tags: split at the last "/<prefix>" or "-<prefix>" followed by a version.
    for sep in ("/", "-"):
        marker = f"{sep}{tag_prefix}"
        idx = name.lower().rfind(marker.lower())
        while idx > 0:
            version = try_parse_version(name[idx + len(marker) :])
            if version is not None:
                return Tag(
                    name=name,
                    commit=commit,
                    version=version,
                    scope=TagScope.PROJECT,
                    project=name[:idx],
                )
            idx = name.lower().rfind(marker.lower(), 0, idx)

    return global_tag or Tag(name=name, commit=commit)


def parse_tags(
    refs: Iterable[tuple[str, str]],
    tag_prefix: str = "v",
    diagnostics: list[Diagnostic] | None = None,
) -> list[Tag]:
    """Parse (name, commit) pairs, skipping tags that carry no version.

    Skipped tags are logged and, when a diagnostics list is passed,
    recorded as INVALID_TAG_FORMAT. Neither is fatal.
    """
    tags: list[Tag] = []
    for name, commit in refs:
        tag = parse_tag(name, commit, tag_prefix)
        if tag.version is None:
            logger.debug("Skipping tag %s: no version in name", name)
            if diagnostics is not None:
                diagnostics.append(
                    Diagnostic(
                        kind=ErrorKind.INVALID_TAG_FORMAT,
                        message=f"Skipped tag {name!r}: not a version tag",
                    )
                )
            continue
        tags.append(tag)
    return tags


def candidate_tags(tags: Iterable[Tag], project: str) -> list[Tag]:
    """Global tags plus tags belonging to `project` (compared canonically)."""
    wanted = canonicalize_name(project)
    return [
        t
        for t in tags
        if t.version is not None
        and (
            t.scope is TagScope.GLOBAL
            or (t.project is not None and canonicalize_name(t.project) == wanted)
        )
    ]


def _rank(tag: Tag) -> tuple:
    # Sort key, best first: higher version, then project scope, then name.
    return (tag.scope is not TagScope.PROJECT, tag.name)


def select_base_tag(candidates: Iterable[Tag]) -> Tag | None:
    """Pick the tag with the highest version.

    Global and project tags compete directly. When two tags carry equal
    versions (build metadata ignored) the project-specific tag wins, and
    after that the lexicographically smaller name, so the choice never
    depends on listing order.
    """
    best: Tag | None = None
    for tag in candidates:
        if tag.version is None:
            continue
        order = 1 if best is None else compare_versions(tag.version, best.version)
        if order > 0 or (order == 0 and _rank(tag) < _rank(best)):
            best = tag
    return best
