"""pyproject.toml access.

A workspace is described entirely by pyproject.toml files: the root lists
member globs under [tool.uv.workspace], each member names itself and its
requirements under [project], and any file may carry a [tool.monover]
table. `PyProject` exposes just those pieces of a parsed tomlkit document.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name


class PyProject:
    """Read-only view of one pyproject.toml.

    Args:
        doc: Parsed document.
        path: File the document came from, if any.
    """

    def __init__(self, doc: tomlkit.TOMLDocument, path: Path | None = None) -> None:
        self.doc = doc
        self.path = path

    @classmethod
    def load(cls, path: Path) -> PyProject:
        return cls(tomlkit.parse(path.read_text()), path)

    @classmethod
    def load_if_exists(cls, path: Path) -> PyProject:
        """Like `load`, but a missing file reads as an empty document."""
        if not path.exists():
            return cls(tomlkit.document(), path)
        return cls.load(path)

    @property
    def has_project(self) -> bool:
        return "project" in self.doc

    @property
    def is_packable(self) -> bool:
        """False for virtual members, which have no [build-system] table."""
        return "build-system" in self.doc

    def project_name(self, fallback: str) -> str:
        """Canonical (PEP 503) [project].name, or `fallback` canonicalized."""
        return canonicalize_name(self.doc.get("project", {}).get("name", fallback))

    def requirement_strings(self) -> list[str]:
        """Every PEP 508 requirement the project declares.

        Runtime dependencies, each optional-dependencies extra, and each
        PEP 735 dependency group. `{include-group = ...}` entries inside a
        dependency group name another group, not a requirement, and are
        skipped.
        """
        project = self.doc.get("project", {})
        reqs: list[str] = list(project.get("dependencies", []))
        for extra in project.get("optional-dependencies", {}).values():
            reqs.extend(extra)
        for group in self.doc.get("dependency-groups", {}).values():
            reqs.extend(item for item in group if isinstance(item, str))
        return reqs

    def workspace_members(self) -> list[str]:
        """[tool.uv.workspace].members globs; empty outside a workspace root."""
        members = self.doc.get("tool", {}).get("uv", {}).get("workspace", {}).get("members")
        return list(members) if members else []

    def tool_table(self, name: str) -> dict[str, Any]:
        """[tool.<name>] as plain Python data (empty dict if missing)."""
        table = self.doc.get("tool", {}).get(name)
        if table is None:
            return {}
        return table.unwrap()
