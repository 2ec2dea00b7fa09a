"""Multi-project versioning run: discover → configure → resolve → coordinate → validate.

This module orchestrates a monover run over a uv workspace:
1. Find the git repository (the only failure that aborts the run)
2. Discover workspace projects and their internal dependencies
3. Load [tool.monover] configuration from the root and member pyprojects
4. Resolve every project independently on a thread pool, sharing one
   cached view of git history
5. Apply the version policy across projects (lock-step groups)
6. Validate each result against its constraints

A failure while resolving one project is recorded for that project and
does not stop the others.
"""

from __future__ import annotations

import datetime as dt
import glob
import logging
import sys
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from packaging.utils import canonicalize_name

from .config import VersioningConfig, VersioningRequest, load_tool_config, merge_configs
from .constraints import VersionConstraintValidator
from .deps import internal_dependencies
from .errors import (
    CircularDependencyError,
    ErrorKind,
    MonoverError,
    RepositoryNotFoundError,
)
from .git import CachingGitHistory, GitCli, GitHistory
from .graph import DependencyGraph
from .models import Diagnostic, ProjectInfo, ResolutionFailure, VersioningReport, VersionResult
from .policy import VersionPolicyCoordinator
from .resolver import VersionResolver
from .shell import fatal, step
from .toml import PyProject

logger = logging.getLogger(__name__)

_TEST_SUFFIXES = ("-test", "-tests")
_TEST_PREFIXES = ("test-", "tests-")


def is_test_project(name: str) -> bool:
    """Guess from the canonical name whether a project only holds tests."""
    if name in ("test", "tests"):
        return True
    return name.endswith(_TEST_SUFFIXES) or name.startswith(_TEST_PREFIXES)


def discover_projects(root: Path) -> dict[str, ProjectInfo]:
    """Scan the workspace and discover all projects.

    Reads [tool.uv.workspace].members from the root pyproject.toml to find
    project directories, then extracts the name and internal deps from
    each project's pyproject.toml. A repository without workspace members
    but with a [project] table is a single project at ".".

    A member without a [build-system] table is a virtual project that
    produces no distribution, so it is marked non-packable.
    """
    step("Discovering workspace projects")

    root_doc = PyProject.load(root / "pyproject.toml")
    member_globs = root_doc.workspace_members()

    # Expand globs to find all project directories
    member_dirs: list[Path] = []
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match)
            if (p / "pyproject.toml").exists():
                member_dirs.append(p)

    if not member_dirs and root_doc.has_project:
        member_dirs = [root]
    if not member_dirs:
        fatal("No projects found matching workspace members")

    projects: dict[str, ProjectInfo] = {}
    raw_deps: dict[str, list[str]] = {}

    for d in member_dirs:
        doc = PyProject.load(d / "pyproject.toml")
        name = doc.project_name(d.name)
        rel = d.relative_to(root).as_posix()
        projects[name] = ProjectInfo(
            path=rel,
            is_test=is_test_project(name),
            is_packable=doc.is_packable,
        )
        raw_deps[name] = doc.requirement_strings()

    # Second pass: only deps within the workspace become graph edges
    workspace_names = set(projects)
    for name, deps in raw_deps.items():
        projects[name].deps.extend(
            d for d in internal_dependencies(deps, workspace_names) if d != name
        )

    for name in sorted(projects):
        info = projects[name]
        deps = f" → [{', '.join(info.deps)}]" if info.deps else ""
        print(f"  {name} ({info.path}){deps}", file=sys.stderr)

    return projects


def load_config(
    root: Path,
    projects: Mapping[str, ProjectInfo],
    overrides: Mapping[str, Any] | None = None,
) -> VersioningConfig:
    """Build the run configuration.

    Layers, lowest first: defaults, root [tool.monover], command-line
    overrides. Each member's own [tool.monover] table becomes its
    per-project override, under any [tool.monover.projects.<name>] entry
    in the root file.
    """
    root_table = load_tool_config(root / "pyproject.toml")
    project_tables = dict(root_table.get("projects", {}))
    for name, info in projects.items():
        if info.path in ("", "."):
            continue
        member_table = load_tool_config(root / info.path / "pyproject.toml")
        if member_table:
            project_tables[name] = {**member_table, **project_tables.get(name, {})}
    if project_tables:
        root_table = {**root_table, "projects": project_tables}
    return merge_configs(root_table, overrides)


def build_requests(
    root: Path,
    projects: Mapping[str, ProjectInfo],
    config: VersioningConfig,
    *,
    selected: Iterable[str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    major_approved: bool = False,
) -> dict[str, VersioningRequest]:
    """One request per selected project, with its effective configuration."""
    names = sorted(selected) if selected is not None else sorted(projects)
    return {
        name: VersioningRequest(
            repo_root=str(root),
            project=name,
            info=projects[name],
            projects=dict(projects),
            config=config.for_project(name, overrides),
            major_approved=major_approved,
        )
        for name in names
    }


def resolve_all(
    resolver: VersionResolver,
    requests: Mapping[str, VersioningRequest],
    max_workers: int | None = None,
) -> tuple[dict[str, VersionResult], dict[str, ResolutionFailure]]:
    """Compute every request on a thread pool, isolating failures."""
    results: dict[str, VersionResult] = {}
    failures: dict[str, ResolutionFailure] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {name: pool.submit(resolver.compute, req) for name, req in requests.items()}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except Exception as exc:
                logger.exception("Failed to resolve %s", name)
                failures[name] = ResolutionFailure(
                    project=name,
                    kind=exc.kind if isinstance(exc, MonoverError) else ErrorKind.RESOLUTION_ERROR,
                    message=str(exc) or type(exc).__name__,
                )
    return results, failures


def order_results(
    results: Mapping[str, VersionResult], projects: Mapping[str, ProjectInfo]
) -> dict[str, VersionResult]:
    """Return results with dependencies before dependents.

    On a dependency cycle the order falls back to alphabetical and every
    project on a cycle gets a CIRCULAR_DEPENDENCY diagnostic.
    """
    graph = DependencyGraph.from_projects(projects)
    subset = [n for n in results if n in projects]
    cycle_of: dict[str, list[str]] = {}
    try:
        order = graph.topological_order(subset)
    except CircularDependencyError as exc:
        logger.warning("%s; falling back to alphabetical order", exc)
        order = sorted(subset)
        for cycle in graph.find_cycles():
            for name in cycle[:-1]:
                cycle_of.setdefault(name, cycle)

    ordered: dict[str, VersionResult] = {}
    for name in [*order, *sorted(set(results) - set(order))]:
        result = results[name]
        if name in cycle_of:
            diagnostic = Diagnostic(
                kind=ErrorKind.CIRCULAR_DEPENDENCY,
                message=f"Dependency cycle: {' -> '.join(cycle_of[name])}",
            )
            result = result.model_copy(update={"diagnostics": [*result.diagnostics, diagnostic]})
        ordered[name] = result
    return ordered


def run_versioning(
    root: Path,
    *,
    projects: Iterable[str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    max_workers: int | None = None,
    git: GitHistory | None = None,
    clock: Callable[[], dt.date] | None = None,
    major_approved: bool = False,
) -> VersioningReport:
    """Run the full versioning pipeline.

    Args:
        root: Repository root containing the workspace pyproject.toml.
        projects: Project names to resolve; defaults to all.
        overrides: Command-line configuration layer (highest precedence).
        max_workers: Thread pool size for per-project resolution.
        git: History provider; defaults to the git CLI at `root`.
        clock: Date source for CalVer.
        major_approved: Approves major bumps under require_major_approval.
    """
    if git is None:
        try:
            git = GitCli.discover(str(root))
        except RepositoryNotFoundError as exc:
            fatal(str(exc))

    all_projects = discover_projects(root)
    config = load_config(root, all_projects, overrides)

    selected = list(projects) if projects else sorted(all_projects)
    wanted = {canonicalize_name(n) for n in selected}
    unknown = sorted(wanted - set(all_projects))
    if unknown:
        fatal(f"Unknown project(s): {', '.join(unknown)}")

    # Lock-step members need their siblings' versions even when not selected.
    coordinator = VersionPolicyCoordinator(config.version_policy)
    needed = set().union(*(coordinator.linked(n, all_projects) for n in wanted))
    if needed - wanted:
        logger.info("Also resolving group members: %s", ", ".join(sorted(needed - wanted)))

    step(f"Resolving versions for {len(wanted)} project(s)")
    requests = build_requests(
        root,
        all_projects,
        config,
        selected=needed,
        overrides=overrides,
        major_approved=major_approved,
    )
    resolver = VersionResolver(CachingGitHistory(git), clock=clock)
    results, failures = resolve_all(resolver, requests, max_workers)

    for error in coordinator.validate(results):
        logger.warning("Version policy: %s", error)
    results, conflicts = coordinator.coordinate(results)
    failures.update(conflicts)
    results = {n: r for n, r in results.items() if n in wanted}
    failures = {n: f for n, f in failures.items() if n in wanted}

    for name, result in results.items():
        validator = VersionConstraintValidator(requests[name].config.constraints)
        validation = validator.validate_result(result, major_approved=major_approved)
        if not validation.is_valid:
            logger.warning("%s: %s", name, validation.summary)
        results[name] = result.model_copy(update={"validation": validation})

    return VersioningReport(
        results=order_results(results, all_projects),
        failures=dict(sorted(failures.items())),
    )

