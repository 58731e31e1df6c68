"""Dependency scope model."""

from __future__ import annotations

from enum import Enum


class DependencyScope(str, Enum):
    """When a dependency is needed, as declared in a descriptor."""

    COMPILE = "compile"
    RUNTIME = "runtime"
    TEST = "test"
    PROVIDED = "provided"
    SYSTEM = "system"
    IMPORT = "import"

    @classmethod
    def parse(cls, value: str | None) -> DependencyScope:
        """Parse a descriptor scope; a missing scope means COMPILE."""
        if not value or not value.strip():
            return cls.COMPILE
        return cls(value.strip().lower())


DEFAULT_SCOPES: frozenset[DependencyScope] = frozenset(
    {DependencyScope.RUNTIME, DependencyScope.COMPILE}
)
