"""Parsed repository descriptor (POM) models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from runenv.errors import MalformedCoordinate
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.repository import Repository
from runenv.models.scopes import DependencyScope


class DescriptorDependency(BaseModel):
    """A direct dependency as declared in a descriptor.

    The version is kept as written (after property substitution). It may be
    empty or still hold a placeholder or range; such a child is malformed and
    ``to_coordinate`` rejects it.
    """

    model_config = ConfigDict(frozen=True)

    group: str
    artifact: str
    version: str = ""
    scope: DependencyScope = DependencyScope.COMPILE
    optional: bool = False

    @property
    def declared(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version or '?'}"

    def to_coordinate(self) -> DependencyCoordinate:
        """Return the exact coordinate, or raise MalformedCoordinate."""
        if not (self.group and self.artifact and self.version):
            raise MalformedCoordinate(f"Incomplete dependency {self.declared}")
        if "${" in self.version or self.version[0] in "[(":
            raise MalformedCoordinate(f"Unresolvable version in {self.declared}")
        return DependencyCoordinate(
            group=self.group, artifact=self.artifact, version=self.version
        )


class Descriptor(BaseModel):
    """The parts of a descriptor the resolver needs.

    ``properties`` and ``managed`` hold the effective ``<properties>`` and
    ``<dependencyManagement>`` entries, parent chain and imported BOMs
    included, so that a child descriptor can inherit them.
    """

    model_config = ConfigDict(frozen=True)

    coordinate: DependencyCoordinate
    packaging: str = "jar"
    parent: DependencyCoordinate | None = None
    dependencies: tuple[DescriptorDependency, ...] = ()
    managed: tuple[DescriptorDependency, ...] = ()
    properties: dict[str, str] = Field(default_factory=dict)
    repositories: tuple[Repository, ...] = ()

    @property
    def has_binary(self) -> bool:
        """Descriptor-only coordinates (``pom`` packaging) ship no jar."""
        return self.packaging != "pom"
