"""Dependency handling utilities.

Parses PEP 508 dependency strings to find which dependencies of a
workspace project are themselves workspace projects. Those internal
edges feed the dependency graph used for change propagation.
"""

from __future__ import annotations

from collections.abc import Iterable

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"
    """
    return canonicalize_name(Requirement(dep_str).name)


def internal_dependencies(dep_strings: Iterable[str], workspace: set[str]) -> list[str]:
    """Return workspace project names referenced by dep_strings.

    Order follows first appearance; duplicates and external packages are
    dropped. Strings that are not valid PEP 508 requirements (e.g. bare
    paths) are skipped.
    """
    found: list[str] = []
    for dep_str in dep_strings:
        try:
            name = dep_canonical_name(str(dep_str))
        except InvalidRequirement:
            continue
        if name in workspace and name not in found:
            found.append(name)
    return found
