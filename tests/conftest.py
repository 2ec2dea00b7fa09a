"""Shared test fixtures."""

from __future__ import annotations

import datetime as dt
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest
import tomlkit

from monover.config import VersioningRequest, merge_configs
from monover.models import CommitInfo, ProjectInfo


class FakeGit:
    """In-memory, linear git history implementing GitHistory.

    Commits are appended oldest first; tags point at commit shas. A tag
    pointing at a sha that is not in the history is not an ancestor of
    HEAD.
    """

    def __init__(self, branch: str = "main", shallow: bool = False) -> None:
        self.branch = branch
        self.shallow = shallow
        self.history: list[tuple[str, str, list[str]]] = []
        self.tags: dict[str, str] = {}
        self.submodules: set[str] = set()
        self.calls: list[tuple] = []

    def commit(self, message: str, *files: str) -> str:
        sha = f"{len(self.history) + 1:040x}"
        self.history.append((sha, message, list(files)))
        return sha

    def tag(self, name: str, sha: str | None = None) -> None:
        self.tags[name] = sha or self.history[-1][0]

    def _after(self, since: str | None) -> list[tuple[str, str, list[str]]]:
        shas = [sha for sha, _, _ in self.history]
        if since is None or since not in shas:
            return list(self.history)
        return self.history[shas.index(since) + 1 :]

    def current_branch(self) -> str:
        self.calls.append(("current_branch",))
        return self.branch

    def list_tags(self) -> list[tuple[str, str]]:
        self.calls.append(("list_tags",))
        return sorted(self.tags.items())

    def is_ancestor(self, candidate: str, tip: str = "HEAD") -> bool:
        self.calls.append(("is_ancestor", candidate))
        return any(sha == candidate for sha, _, _ in self.history)

    def changed_files(self, since: str | None) -> list[str]:
        self.calls.append(("changed_files", since))
        files = {f for _, _, changed in self._after(since) for f in changed}
        return sorted(files)

    def commits(self, since: str | None, paths: Sequence[str] = ()) -> list[CommitInfo]:
        self.calls.append(("commits", since, tuple(paths)))
        prefixes = [p.strip("/") for p in paths]
        result = []
        for sha, message, changed in reversed(self._after(since)):
            if prefixes and not any(
                f == p or f.startswith(p + "/") for f in changed for p in prefixes
            ):
                continue
            result.append(CommitInfo(sha=sha, message=message))
        return result

    def commit_height(self, since: str | None) -> int:
        return len(self._after(since))

    def is_shallow(self) -> bool:
        return self.shallow

    def changed_submodules(self, since: str | None) -> list[str]:
        files = {f for _, _, changed in self._after(since) for f in changed}
        return sorted(files & self.submodules)


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fixed_clock():
    """Clock factory: fixed_clock(2025, 11, 3) returns a date-returning callable."""

    def make(year: int, month: int, day: int):
        return lambda: dt.date(year, month, day)

    return make


def make_request(
    project: str = "pkg-a",
    path: str | None = None,
    deps: list[str] | None = None,
    projects: dict[str, ProjectInfo] | None = None,
    force_version: str | None = None,
    major_approved: bool = False,
    **config: Any,
) -> VersioningRequest:
    """Build a VersioningRequest; keyword arguments become config values."""
    projects = dict(projects or {})
    info = projects.get(project) or ProjectInfo(
        path=path or f"packages/{project}", deps=deps or []
    )
    projects[project] = info
    return VersioningRequest(
        repo_root="/repo",
        project=project,
        info=info,
        projects=projects,
        config=merge_configs(config),
        force_version=force_version,
        major_approved=major_approved,
    )


@pytest.fixture
def tmp_pyproject(tmp_path: Path) -> Path:
    """Create a temporary pyproject.toml file."""
    content = """\
[project]
name = "test-package"
version = "1.0.0"
dependencies = [
    "requests>=2.0",
    "internal-dep>=1.0",
]

[project.optional-dependencies]
dev = ["pytest>=8.0", "another-internal>=0.5"]

[dependency-groups]
test = ["pytest>=8.0", "group-internal>=0.1"]

[tool.monover]
tag-prefix = "v"
prerelease-type = "beta"

[tool.monover.commit-conventions]
minor-patterns = ["feat:"]
"""
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(content)
    return pyproject


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
"""
    return tomlkit.parse(content)


def write_workspace(root: Path, members: dict[str, list[str]], root_extra: str = "") -> None:
    """Write a uv workspace: members maps project name → dependency strings."""
    (root / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n' + root_extra
    )
    for name, deps in members.items():
        d = root / "packages" / name
        d.mkdir(parents=True)
        dep_list = ", ".join(f'"{dep}"' for dep in deps)
        (d / "pyproject.toml").write_text(
            f'[project]\nname = "{name}"\nversion = "0.0.0"\ndependencies = [{dep_list}]\n\n'
            '[build-system]\nrequires = ["hatchling"]\nbuild-backend = "hatchling.build"\n'
        )
