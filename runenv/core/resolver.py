"""Transitive resolver: expands a root coordinate into its closure.

Policy, applied to every declared child:

- dropped if ``ignore_optional`` is set and the child is optional;
- dropped if its scope is not in the requested scope set;
- not re-resolved if its exact coordinate is already in the closure, which
  also breaks cycles;
- a malformed or unreachable child either drops its branch
  (``ignore_exception``) or fails the whole call with ``UnresolvedChild``.

Visitation is depth-first pre-order over declaration order, so the closure
order is stable across runs given identical descriptors.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from runenv.core.closure_graph import ClosureGraph
from runenv.core.descriptor import DescriptorStore
from runenv.errors import RunEnvError, UnresolvedChild
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.descriptor import Descriptor, DescriptorDependency
from runenv.models.relocation import RelocationRule
from runenv.models.repository import Repository, merge_repositories
from runenv.models.requests import ResolvedDependency
from runenv.models.scopes import DEFAULT_SCOPES, DependencyScope

logger = logging.getLogger(__name__)


class ResolveOptions(BaseModel):
    """Options for one top-level resolution."""

    model_config = ConfigDict(frozen=True)

    scopes: frozenset[DependencyScope] = DEFAULT_SCOPES
    ignore_optional: bool = True
    ignore_exception: bool = False
    transitive: bool = True
    relocation: tuple[RelocationRule, ...] = ()


class Closure:
    """Result of a resolution: ordered dependencies plus what produced them."""

    def __init__(self, root: ResolvedDependency, descriptor: Descriptor, repositories: Sequence[Repository]) -> None:
        self.graph = ClosureGraph(root.coordinate)
        self._entries: dict[DependencyCoordinate, ResolvedDependency] = {root.coordinate: root}
        self.descriptors: dict[DependencyCoordinate, Descriptor] = {root.coordinate: descriptor}
        self.repositories: dict[DependencyCoordinate, list[Repository]] = {
            root.coordinate: list(repositories)
        }

    def __contains__(self, coordinate: object) -> bool:
        return coordinate in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        parent: DependencyCoordinate,
        entry: ResolvedDependency,
        descriptor: Descriptor,
        repositories: Sequence[Repository],
    ) -> None:
        self.graph.add(parent, entry.coordinate)
        self._entries[entry.coordinate] = entry
        self.descriptors[entry.coordinate] = descriptor
        self.repositories[entry.coordinate] = list(repositories)

    @property
    def dependencies(self) -> list[ResolvedDependency]:
        """Resolved dependencies, root first, in visitation order."""
        return [self._entries[c] for c in self.graph.nodes]

    @property
    def coordinates(self) -> list[DependencyCoordinate]:
        return self.graph.nodes


class TransitiveResolver:
    """Builds the closure of a root coordinate from its descriptors.

    Parameters
    ----------
    descriptors:
        Store used to load (cached or fetched) descriptors.
    """

    def __init__(self, descriptors: DescriptorStore) -> None:
        self._descriptors = descriptors

    def resolve(
        self,
        root: DependencyCoordinate,
        repositories: Sequence[Repository],
        options: ResolveOptions | None = None,
    ) -> Closure:
        """Resolve ``root`` completely before returning.

        The root descriptor is always loaded (and cached); a failure there is
        fatal regardless of ``ignore_exception``. With ``transitive=False``
        its children are not walked.
        """
        options = options or ResolveOptions()
        root_descriptor = self._descriptors.load(root, repositories, transitive=options.transitive)
        root_entry = ResolvedDependency(
            coordinate=root,
            scope=DependencyScope.RUNTIME,
            relocation=options.relocation,
        )
        closure = Closure(root_entry, root_descriptor, repositories)
        if not options.transitive:
            return closure

        # Stack of (parent, declared child, repositories visible to the child)
        stack: list[tuple[DependencyCoordinate, DescriptorDependency, list[Repository]]] = []
        self._push_children(stack, root, root_descriptor, repositories)

        while stack:
            parent, declared, repos = stack.pop()
            if options.ignore_optional and declared.optional:
                logger.debug("Skipping optional %s (required by %s)", declared.declared, parent)
                continue
            if declared.scope not in options.scopes:
                logger.debug("Skipping %s in scope %s", declared.declared, declared.scope.value)
                continue
            try:
                coordinate = declared.to_coordinate()
                if coordinate in closure:
                    closure.graph.add(parent, coordinate)
                    continue
                descriptor = self._descriptors.load(coordinate, repos, transitive=True)
            except RunEnvError as exc:
                self._unresolved(declared, parent, exc, options)
                continue

            closure.add(
                parent,
                ResolvedDependency(
                    coordinate=coordinate,
                    scope=declared.scope,
                    optional=declared.optional,
                    relocation=options.relocation,
                ),
                descriptor,
                repos,
            )
            self._push_children(stack, coordinate, descriptor, repos)

        return closure

    @staticmethod
    def _push_children(
        stack: list[tuple[DependencyCoordinate, DescriptorDependency, list[Repository]]],
        parent: DependencyCoordinate,
        descriptor: Descriptor,
        repositories: Sequence[Repository],
    ) -> None:
        child_repos = merge_repositories(repositories, descriptor.repositories)
        # Reversed so the first declared child is popped first
        for declared in reversed(descriptor.dependencies):
            stack.append((parent, declared, child_repos))

    @staticmethod
    def _unresolved(
        declared: DescriptorDependency,
        parent: DependencyCoordinate,
        exc: RunEnvError,
        options: ResolveOptions,
    ) -> None:
        if options.ignore_exception:
            logger.warning(
                "Dropping %s (required by %s): %s", declared.declared, parent, exc
            )
            return
        raise UnresolvedChild(declared.declared, str(parent), exc) from exc
