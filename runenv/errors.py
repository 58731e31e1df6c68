"""Error taxonomy for dependency resolution and artifact acquisition.

Validation errors (``MalformedCoordinate``, ``MalformedRelocationRule``) are
raised before any I/O and are never retried. Acquisition errors carry enough
context (coordinate, repositories attempted) to diagnose a missing or
unreachable dependency.
"""

from __future__ import annotations

from collections.abc import Sequence


class RunEnvError(RuntimeError):
    """Base class for every runenv failure."""


class MalformedCoordinate(RunEnvError, ValueError):
    """Raised when a coordinate is not of the form ``group:artifact:version``."""


class MalformedRelocationRule(RunEnvError, ValueError):
    """Raised when a relocation list is not made of pattern/replacement pairs."""


class IntegrityMismatch(RunEnvError):
    """Raised when fetched content does not match its expected checksum."""

    def __init__(self, target: str, expected: str, actual: str) -> None:
        super().__init__(
            f"Checksum mismatch for {target}: expected {expected}, got {actual}"
        )
        self.target = target
        self.expected = expected
        self.actual = actual


class RepositoryUnreachable(RunEnvError):
    """Raised when every configured repository failed to serve a resource."""

    def __init__(self, target: str, attempted: Sequence[str], cause: str = "") -> None:
        tried = ", ".join(attempted) or "<none>"
        message = f"Unable to fetch {target} from any repository (tried: {tried})"
        if cause:
            message += f": {cause}"
        super().__init__(message)
        self.target = target
        self.attempted = list(attempted)


class MalformedDescriptor(RunEnvError):
    """Raised when a descriptor document cannot be parsed or is incomplete."""


class MissingDescriptorEntry(RunEnvError):
    """Raised when an archived asset does not contain the expected entry."""


class UnresolvedChild(RunEnvError):
    """Raised when a transitive child dependency cannot be resolved."""

    def __init__(self, coordinate: str, parent: str, cause: Exception) -> None:
        super().__init__(
            f"Unable to resolve {coordinate} (required by {parent}): {cause}"
        )
        self.coordinate = coordinate
        self.parent = parent
        self.cause = cause
