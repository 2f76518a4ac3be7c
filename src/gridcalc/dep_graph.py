"""Directed dependency graph over cell addresses.

An edge ``from -> to`` records that the formula in ``from`` reads ``to``.
The graph keeps two adjacency maps, dependencies and dependents, which
are exact inverses of each other after every operation.  The maps are
private; accessors return copies.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable


class DependencyGraph:
    """Bidirectional adjacency store with cycle checks and Kahn ordering.

    Usage::

        g = DependencyGraph()
        g.add_dependency("A3", "A1")
        g.add_dependency("A3", "A2")
        g.get_evaluation_order(["A3", "A1"])   # ["A1", "A3"]
    """

    def __init__(self) -> None:
        self._dependencies: dict[str, set[str]] = {}
        self._dependents: dict[str, set[str]] = {}

    def __len__(self) -> int:
        return sum(len(deps) for deps in self._dependencies.values())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_dependency(self, from_cell: str, to_cell: str) -> None:
        """Record that *from_cell*'s formula reads *to_cell*."""
        self._dependencies.setdefault(from_cell, set()).add(to_cell)
        self._dependents.setdefault(to_cell, set()).add(from_cell)

    def clear_dependencies(self, cell: str) -> None:
        """Drop the outgoing edges of *cell*, keeping cells that read it."""
        for dep in self._dependencies.pop(cell, set()):
            readers = self._dependents.get(dep)
            if readers is not None:
                readers.discard(cell)
                if not readers:
                    del self._dependents[dep]

    def remove_dependencies(self, cell: str) -> None:
        """Remove *cell* from the graph as both source and target."""
        self.clear_dependencies(cell)
        for reader in self._dependents.pop(cell, set()):
            deps = self._dependencies.get(reader)
            if deps is not None:
                deps.discard(cell)
                if not deps:
                    del self._dependencies[reader]

    def clear(self) -> None:
        self._dependencies.clear()
        self._dependents.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_dependencies(self, cell: str) -> set[str]:
        return set(self._dependencies.get(cell, ()))

    def get_dependents(self, cell: str) -> set[str]:
        return set(self._dependents.get(cell, ()))

    def get_transitive_dependents(self, cell: str) -> set[str]:
        """All cells downstream of *cell*, excluding *cell* unless it is on a cycle."""
        seen: set[str] = set()
        queue = deque(self._dependents.get(cell, ()))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._dependents.get(current, ()))
        return seen

    def has_cycle(self, from_cell: str, to_cell: str) -> bool:
        """Would adding ``from_cell -> to_cell`` close a cycle?

        True when *from_cell* is reachable from *to_cell* along existing
        dependency edges.  The graph is not modified.
        """
        visited: set[str] = set()
        stack = [to_cell]
        while stack:
            current = stack.pop()
            if current == from_cell:
                return True
            if current in visited:
                continue
            visited.add(current)
            stack.extend(
                dep for dep in self._dependencies.get(current, ()) if dep not in visited
            )
        return False

    def get_evaluation_order(self, cells: Iterable[str]) -> list[str]:
        """Topologically sort *cells*, dependencies first (Kahn's algorithm).

        Only edges with both ends inside *cells* count.  Cells on a cycle
        (or downstream of one) are left out, so a result shorter than the
        input signals a cycle among the remainder.
        """
        members = list(dict.fromkeys(cells))
        in_degree = {cell: 0 for cell in members}
        for cell in members:
            for dep in self._dependencies.get(cell, ()):
                if dep in in_degree:
                    in_degree[cell] += 1

        queue = deque(cell for cell in members if in_degree[cell] == 0)
        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            for reader in sorted(self._dependents.get(current, ())):
                if reader in in_degree:
                    in_degree[reader] -= 1
                    if in_degree[reader] == 0:
                        queue.append(reader)
        return order
