"""Package dependency DAG with deterministic ordering and fingerprints.

Packages are held in a flat ``name -> Package`` map with adjacency lists in
both directions.  The graph enforces:

- Every dependency names a package in the graph.
- No cycles (depth-first search with visited / in-progress marking).
- Topological order puts each package after all of its dependencies, ties
  broken lexically by name.
- A package's compile fingerprint folds in the fingerprints of all of its
  transitive dependencies.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable

from cpiforge.core.errors import DependencyCycleError, UnknownDependencyError
from cpiforge.core.hasher import compute_package_fingerprint
from cpiforge.models.release import Package

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


class PackageGraph:
    """Directed acyclic graph of release packages.

    Built once from the release's package list; immutable afterwards.
    """

    def __init__(self, packages: Iterable[Package]) -> None:
        self._packages: dict[str, Package] = {}
        for package in packages:
            self._packages[package.name] = package

        # Forward edges: name -> dependency names (sorted, de-duplicated)
        self._dependencies: dict[str, list[str]] = {
            name: sorted(set(pkg.dependencies)) for name, pkg in self._packages.items()
        }
        # Reverse edges: name -> names of packages that depend on it
        self._dependents: dict[str, list[str]] = {name: [] for name in self._packages}
        for name, deps in self._dependencies.items():
            for dep in deps:
                if dep not in self._packages:
                    raise UnknownDependencyError(name, dep)
                self._dependents[dep].append(name)
        for dependents in self._dependents.values():
            dependents.sort()

        self._validate_no_cycles()
        self._order = self._compute_order()
        self._fingerprints = self._compute_fingerprints()

    def _validate_no_cycles(self) -> None:
        """Depth-first search; an edge into an in-progress node is a cycle."""
        marks = {name: _UNVISITED for name in self._packages}

        for root in sorted(self._packages):
            if marks[root] != _UNVISITED:
                continue
            path: list[str] = [root]
            marks[root] = _IN_PROGRESS
            stack = [iter(self._dependencies[root])]
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    marks[path.pop()] = _DONE
                    continue
                if marks[dep] == _IN_PROGRESS:
                    cycle = path[path.index(dep):] + [dep]
                    raise DependencyCycleError(cycle)
                if marks[dep] == _UNVISITED:
                    marks[dep] = _IN_PROGRESS
                    path.append(dep)
                    stack.append(iter(self._dependencies[dep]))

    def _compute_order(self) -> list[str]:
        """Kahn's algorithm with a min-heap so ties resolve by name."""
        in_degree = {name: len(deps) for name, deps in self._dependencies.items()}
        ready = [name for name, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[str] = []
        while ready:
            name = heapq.heappop(ready)
            order.append(name)
            for dependent in self._dependents[name]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, dependent)
        return order

    def _compute_fingerprints(self) -> dict[str, str]:
        fingerprints: dict[str, str] = {}
        for name in self._order:
            package = self._packages[name]
            fingerprints[name] = compute_package_fingerprint(
                name,
                package.source_fingerprint,
                {dep: fingerprints[dep] for dep in self._dependencies[name]},
            )
        return fingerprints

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    def topological_order(self) -> list[str]:
        """Return package names, dependencies first, ties by name."""
        return list(self._order)

    def get_package(self, name: str) -> Package:
        """Return the Package for a name."""
        return self._packages[name]

    def get_dependencies(self, name: str) -> list[str]:
        """Return direct dependency names for a package."""
        return list(self._dependencies.get(name, []))

    def get_dependents(self, name: str) -> list[str]:
        """Return all transitive dependent names (BFS)."""
        result = []
        queue = deque(self._dependents.get(name, []))
        visited: set[str] = set()
        while queue:
            node = queue.popleft()
            if node in visited:
                continue
            visited.add(node)
            result.append(node)
            queue.extend(self._dependents.get(node, []))
        return result

    def fingerprint(self, name: str) -> str:
        """Return the compile fingerprint of a package."""
        return self._fingerprints[name]

    @property
    def names(self) -> list[str]:
        return sorted(self._packages)

    def __len__(self) -> int:
        return len(self._packages)

    def __contains__(self, name: object) -> bool:
        return name in self._packages
