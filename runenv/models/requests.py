"""Declaration, resolution and asset models handed between pipeline stages."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from runenv.models.coordinates import DependencyCoordinate
from runenv.models.relocation import RelocationRule
from runenv.models.scopes import DEFAULT_SCOPES, DependencyScope


class DependencyDeclaration(BaseModel):
    """One declared runtime dependency of a consumer, as plain data.

    ``coordinate`` and ``relocate`` are kept raw (possibly escaped) so that
    validation happens inside the pipeline, before any I/O.
    """

    model_config = ConfigDict(frozen=True)

    coordinate: str
    relocate: tuple[str, ...] = ()
    repository: str = ""
    ignore_optional: bool = True
    ignore_exception: bool = False
    transitive: bool = True
    scopes: frozenset[DependencyScope] = DEFAULT_SCOPES
    test: str = ""


class AssetDescriptor(BaseModel):
    """A plain asset file identified by its checksum."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    checksum: str = Field(pattern=r"^(?:[0-9a-fA-F]{32}|[0-9a-fA-F]{40}|[0-9a-fA-F]{64})$")
    source_url: str = Field(min_length=1)
    is_archived: bool = False

    @property
    def remote_name(self) -> str:
        """Last path segment of the source address."""
        return self.source_url.rstrip("/").rsplit("/", 1)[-1]


class ResolvedDependency(BaseModel):
    """A coordinate pulled into a closure, with its relocation rules."""

    model_config = ConfigDict(frozen=True)

    coordinate: DependencyCoordinate
    scope: DependencyScope = DependencyScope.RUNTIME
    optional: bool = False
    relocation: tuple[RelocationRule, ...] = ()

    def __str__(self) -> str:
        return str(self.coordinate)


class SharedRuntime(BaseModel):
    """A runtime library set that consumers in one process share.

    ``namespaces`` are the top-level packages of the runtime. When the
    runtime is relocated, ``kotlin.`` becomes ``kotlin1822.`` for version
    ``1.8.22``, and the relocated namespace doubles as the marker telling
    later consumers that this exact version is already loaded.
    """

    model_config = ConfigDict(frozen=True)

    version: str = Field(min_length=1)
    coordinates: tuple[str, ...]
    namespaces: tuple[str, ...]
    transitive: bool = True

    @property
    def version_tag(self) -> str:
        return self.version.replace(".", "")

    def relocated_namespace(self, namespace: str) -> str:
        return f"{namespace}{self.version_tag}"

    @property
    def marker(self) -> str:
        """Module name that is importable once this version is loaded."""
        return self.relocated_namespace(self.namespaces[0])
