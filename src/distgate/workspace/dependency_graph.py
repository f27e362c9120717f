"""Internal dependency resolution and deterministic install ordering."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from heapq import heapify, heappop, heappush
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from distgate.workspace.discovery import Package


class CycleError(ValueError):
    """Raised when workspace packages depend on each other in a cycle."""

    cycles: tuple[tuple[str, ...], ...]

    def __init__(self, cycles: Iterable[Sequence[str]]) -> None:
        normalized: tuple[tuple[str, ...], ...] = tuple(tuple(path) for path in cycles)
        self.cycles = normalized

        if not normalized:
            message = "Workspace dependency graph contains at least one cycle."
        else:
            preview = ", ".join(" -> ".join(path) for path in normalized[:3])
            suffix = "..." if len(normalized) > 3 else ""
            message = f"Workspace dependency graph contains cycle(s): {preview}{suffix}"
        super().__init__(message)


def resolve_internal_dependencies(
    package: Package,
    discovered: Iterable[Package],
) -> tuple[Package, ...]:
    """Return discovered packages whose declared name ``package`` depends on.

    Dependencies and peer dependencies are unioned. Names that match no
    discovered package (registry packages, or workspace packages without build
    output) are omitted.
    """

    wanted = package.declared_dependency_names()
    internal = [
        candidate
        for candidate in discovered
        if candidate.name != package.name and candidate.declared_name in wanted
    ]
    return tuple(sorted(internal, key=lambda item: item.name))


class DependencyGraph:
    """Directed graph over discovered packages; edges point dependency -> dependent."""

    __slots__ = ("_nodes", "_dependents", "_dependencies")

    def __init__(
        self,
        nodes: Iterable[str] | None = None,
        edges: Iterable[tuple[str, str]] | None = None,
    ) -> None:
        self._nodes: set[str] = set()
        self._dependents: dict[str, set[str]] = {}
        self._dependencies: dict[str, set[str]] = {}

        if nodes is not None:
            for node_id in nodes:
                self.add_node(node_id)

        if edges is not None:
            for dependency, dependent in edges:
                self.add_edge(dependency, dependent)

    @classmethod
    def from_packages(cls, packages: Sequence[Package]) -> DependencyGraph:
        graph = cls(nodes=(package.name for package in packages))
        for package in packages:
            for dependency in resolve_internal_dependencies(package, packages):
                graph.add_edge(dependency.name, package.name)
        return graph

    @property
    def nodes(self) -> tuple[str, ...]:
        return tuple(sorted(self._nodes))

    @property
    def edges(self) -> tuple[tuple[str, str], ...]:
        """All edges as ``(dependency, dependent)`` pairs in deterministic order."""
        ordered: list[tuple[str, str]] = []
        for dependency in sorted(self._nodes):
            for dependent in sorted(self._dependents[dependency]):
                ordered.append((dependency, dependent))
        return tuple(ordered)

    def add_node(self, node_id: str) -> None:
        if not node_id:
            raise ValueError("Node ID must be non-empty.")
        if node_id in self._nodes:
            return
        self._nodes.add(node_id)
        self._dependents[node_id] = set()
        self._dependencies[node_id] = set()

    def add_edge(self, dependency: str, dependent: str) -> None:
        """Record that ``dependent`` must be installed after ``dependency``."""
        self.add_node(dependency)
        self.add_node(dependent)
        self._dependents[dependency].add(dependent)
        self._dependencies[dependent].add(dependency)

    def dependencies_of(self, node_id: str, *, transitive: bool = False) -> tuple[str, ...]:
        self._assert_node_exists(node_id)
        if not transitive:
            return tuple(sorted(self._dependencies[node_id]))

        visited: set[str] = set()
        pending: list[str] = list(self._dependencies[node_id])
        while pending:
            node = pending.pop()
            if node in visited:
                continue
            visited.add(node)
            pending.extend(item for item in self._dependencies[node] if item not in visited)
        visited.discard(node_id)
        return tuple(sorted(visited))

    def topological_sort(self, subset: Iterable[str] | None = None) -> tuple[str, ...]:
        """Return a deterministic dependencies-first order or raise ``CycleError``.

        Ties are broken lexically. With ``subset``, only edges between the
        given nodes are considered.
        """
        members = set(self._nodes) if subset is None else set(subset)
        for node in members:
            self._assert_node_exists(node)

        indegree = {node: len(self._dependencies[node] & members) for node in members}
        ready = [node for node, degree in indegree.items() if degree == 0]
        heapify(ready)

        order: list[str] = []
        while ready:
            node = heappop(ready)
            order.append(node)
            for dependent in sorted(self._dependents[node] & members):
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heappush(ready, dependent)

        if len(order) != len(members):
            raise CycleError(self.detect_cycles(members))
        return tuple(order)

    def install_order(self, node_id: str) -> tuple[str, ...]:
        """Transitive internal dependencies of ``node_id``, dependencies first.

        The package itself is not included. A cycle anywhere in its dependency
        closure (including through ``node_id``) raises ``CycleError``.
        """
        closure = set(self.dependencies_of(node_id, transitive=True))
        ordered = self.topological_sort(closure | {node_id})
        return tuple(node for node in ordered if node != node_id)

    def detect_cycles(self, subset: Iterable[str] | None = None) -> tuple[tuple[str, ...], ...]:
        """Return cycles as closed paths, e.g. ``("a", "b", "a")``."""
        members = set(self._nodes) if subset is None else set(subset)
        state: dict[str, int] = {}
        stack: list[str] = []
        stack_index: dict[str, int] = {}
        cycles: dict[tuple[str, ...], None] = {}

        def children(node: str) -> Iterator[str]:
            return iter(sorted(self._dependents[node] & members))

        for start in sorted(members):
            if state.get(start, 0) != 0:
                continue

            state[start] = 1
            stack.append(start)
            stack_index[start] = 0
            frames: list[tuple[str, Iterator[str]]] = [(start, children(start))]

            while frames:
                node, child_iter = frames[-1]
                try:
                    child = next(child_iter)
                except StopIteration:
                    frames.pop()
                    state[node] = 2
                    stack.pop()
                    del stack_index[node]
                    continue

                child_state = state.get(child, 0)
                if child_state == 0:
                    state[child] = 1
                    stack_index[child] = len(stack)
                    stack.append(child)
                    frames.append((child, children(child)))
                elif child_state == 1:
                    cycle = tuple(stack[stack_index[child] :] + [child])
                    cycles[_canonicalize_cycle(cycle)] = None

        return tuple(sorted(cycles))

    def _assert_node_exists(self, node_id: str) -> None:
        if node_id not in self._nodes:
            raise KeyError(f"Unknown package: {node_id}")


def _canonicalize_cycle(cycle: Sequence[str]) -> tuple[str, ...]:
    core = tuple(cycle[:-1])
    if len(core) == 1:
        return (core[0], core[0])

    best = core
    for offset in range(1, len(core)):
        rotated = core[offset:] + core[:offset]
        if rotated < best:
            best = rotated
    return best + (best[0],)


__all__ = ["CycleError", "DependencyGraph", "resolve_internal_dependencies"]
