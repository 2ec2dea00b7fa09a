"""Dependency graph utilities.

An edge A → B means project A depends on project B, so a change in B
must be considered a change in A. All traversals are iterative with an
explicit visited set: arbitrarily deep graphs cannot exhaust the call
stack and cycles terminate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .errors import CircularDependencyError
from .models import ProjectInfo


class DependencyGraph:
    """Directed project-reference graph.

    Args:
        edges: (dependent, dependency) pairs.
        nodes: Extra project names with no edges.
    """

    def __init__(
        self, edges: Iterable[tuple[str, str]] = (), nodes: Iterable[str] = ()
    ) -> None:
        self._deps: dict[str, list[str]] = {n: [] for n in nodes}
        self._rdeps: dict[str, list[str]] = {n: [] for n in nodes}
        for src, dst in edges:
            self._deps.setdefault(src, [])
            self._deps.setdefault(dst, [])
            self._rdeps.setdefault(src, [])
            self._rdeps.setdefault(dst, [])
            if dst not in self._deps[src]:
                self._deps[src].append(dst)
                self._rdeps[dst].append(src)

    @classmethod
    def from_projects(cls, projects: Mapping[str, ProjectInfo]) -> DependencyGraph:
        """Build the graph from each project's internal deps list."""
        return cls(
            edges=((name, dep) for name, info in projects.items() for dep in info.deps),
            nodes=projects.keys(),
        )

    @property
    def nodes(self) -> list[str]:
        return sorted(self._deps)

    def dependencies_of(self, name: str) -> list[str]:
        return sorted(self._deps.get(name, []))

    def dependents_of(self, name: str) -> list[str]:
        return sorted(self._rdeps.get(name, []))

    def transitive_dependencies(self, name: str) -> list[str]:
        """Every project reachable from `name`, in depth-first order.

        Uses an explicit stack; `name` itself is only included if a cycle
        leads back to it.
        """
        visited: set[str] = set()
        order: list[str] = []
        # Reverse so the alphabetically first dependency is visited first.
        stack = list(reversed(self.dependencies_of(name)))
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            order.append(node)
            stack.extend(reversed(self.dependencies_of(node)))
        return order

    def propagate(self, changed: Iterable[str]) -> set[str]:
        """Return `changed` plus every project that transitively depends on it.

        Breadth-first over reverse edges.
        """
        dirty = set(changed)
        queue = sorted(dirty)
        while queue:
            node = queue.pop(0)
            for dependent in self.dependents_of(node):
                if dependent not in dirty:
                    dirty.add(dependent)
                    queue.append(dependent)
        return dirty

    def find_cycles(self) -> list[list[str]]:
        """Return one representative path for each cycle found.

        Iterative DFS with white/grey/black colouring; each back edge
        yields the cycle it closes, e.g. ["a", "b", "a"].
        """
        white, grey, black = 0, 1, 2
        colour = dict.fromkeys(self._deps, white)
        cycles: list[list[str]] = []
        for root in self.nodes:
            if colour[root] != white:
                continue
            path: list[str] = [root]
            colour[root] = grey
            stack: list[list[str]] = [self.dependencies_of(root)]
            while stack:
                pending = stack[-1]
                if not pending:
                    stack.pop()
                    colour[path.pop()] = black
                    continue
                node = pending.pop(0)
                if colour[node] == grey:
                    cycles.append(path[path.index(node) :] + [node])
                elif colour[node] == white:
                    colour[node] = grey
                    path.append(node)
                    stack.append(self.dependencies_of(node))
        return cycles

    def topological_order(self, names: Iterable[str] | None = None) -> list[str]:
        """Order projects so that dependencies come before dependents.

        Kahn's algorithm over the edges among `names` (default: every
        node); edges leaving that set are ignored. Ready projects are
        taken alphabetically, so the output is deterministic.

        Raises:
            CircularDependencyError: If the projects contain a cycle.

        Example:
            If A depends on B, and B depends on C → [C, B, A]
        """
        wanted = set(self._deps if names is None else names)
        in_degree = {n: sum(d in wanted for d in self._deps.get(n, [])) for n in wanted}
        queue = sorted(n for n, d in in_degree.items() if d == 0)
        order: list[str] = []

        while queue:
            node = queue.pop(0)
            order.append(node)
            for dependent in self.dependents_of(node):
                if dependent in wanted:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)

        if len(order) != len(wanted):
            remaining = ", ".join(sorted(wanted - set(order)))
            raise CircularDependencyError(f"Dependency cycle detected involving: {remaining}")
        return order
