"""Per-call dependency closure graph.

Nodes are coordinates in visitation order; edges are "requires" relations
read from descriptors. Unlike a build DAG the graph may contain cycles
(``A -> B -> A``): a node is only ever added once, and an edge to an
existing node is recorded without revisiting it. The graph is built fresh
for every top-level resolution and never persisted.
"""

from __future__ import annotations

from collections import deque

from runenv.models.coordinates import DependencyCoordinate


class ClosureGraph:
    """Directed graph rooted at the requested coordinate."""

    def __init__(self, root: DependencyCoordinate) -> None:
        self._root = root
        # Insertion order doubles as deterministic visitation order
        self._requires: dict[DependencyCoordinate, list[DependencyCoordinate]] = {root: []}
        self._required_by: dict[DependencyCoordinate, list[DependencyCoordinate]] = {root: []}

    @property
    def root(self) -> DependencyCoordinate:
        return self._root

    def __contains__(self, coordinate: object) -> bool:
        return coordinate in self._requires

    def __len__(self) -> int:
        return len(self._requires)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add(self, parent: DependencyCoordinate, child: DependencyCoordinate) -> bool:
        """Record ``parent -> child``. Returns True if ``child`` is new."""
        is_new = child not in self._requires
        if is_new:
            self._requires[child] = []
            self._required_by[child] = []
        if child not in self._requires[parent]:
            self._requires[parent].append(child)
            self._required_by[child].append(parent)
        return is_new

    # ------------------------------------------------------------------
    # Query methods
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> list[DependencyCoordinate]:
        """All coordinates, root first, in visitation order."""
        return list(self._requires)

    def requires(self, coordinate: DependencyCoordinate) -> list[DependencyCoordinate]:
        """Direct requirements of a coordinate."""
        return list(self._requires.get(coordinate, []))

    def required_by(self, coordinate: DependencyCoordinate) -> list[DependencyCoordinate]:
        """Coordinates that directly require this one."""
        return list(self._required_by.get(coordinate, []))

    def path_to(self, coordinate: DependencyCoordinate) -> list[DependencyCoordinate]:
        """Shortest requirement chain from the root to ``coordinate`` (BFS)."""
        if coordinate not in self._requires:
            return []
        previous: dict[DependencyCoordinate, DependencyCoordinate | None] = {self._root: None}
        queue = deque([self._root])
        while queue:
            node = queue.popleft()
            if node == coordinate:
                break
            for child in self._requires[node]:
                if child not in previous:
                    previous[child] = node
                    queue.append(child)
        chain: list[DependencyCoordinate] = []
        cursor: DependencyCoordinate | None = coordinate
        while cursor is not None:
            chain.append(cursor)
            cursor = previous.get(cursor)
        return list(reversed(chain))
