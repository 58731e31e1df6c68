"""Dependency coordinate model and parsing."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from runenv.errors import MalformedCoordinate
from runenv.literal import unescape


class DependencyCoordinate(BaseModel):
    """A ``group:artifact:version`` triple.

    Identity (equality, hashing, cache keys) is the full triple. Versions are
    exact; there is no range matching.
    """

    model_config = ConfigDict(frozen=True)

    group: str = Field(min_length=1)
    artifact: str = Field(min_length=1)
    version: str = Field(min_length=1)

    def __str__(self) -> str:
        return f"{self.group}:{self.artifact}:{self.version}"

    @property
    def group_path(self) -> str:
        """Group with its ``.`` separators translated into path segments."""
        return self.group.replace(".", "/")

    @property
    def base_path(self) -> str:
        """Repository-relative directory holding this coordinate's files."""
        return f"{self.group_path}/{self.artifact}/{self.version}"

    def file_path(self, extension: str) -> str:
        """Repository-relative path of ``{artifact}-{version}.{extension}``."""
        return f"{self.base_path}/{self.artifact}-{self.version}.{extension}"

    @property
    def descriptor_path(self) -> str:
        return self.file_path("pom")

    @property
    def artifact_path(self) -> str:
        return self.file_path("jar")


def parse_coordinate(text: str) -> DependencyCoordinate:
    """Parse ``group:artifact:version``.

    The field count is checked on the raw text, before the literal-escape
    marker is stripped; the stripped result is then checked again.

    Raises
    ------
    MalformedCoordinate
        If there are not exactly three fields or any field is empty.
    """
    _check_fields(text, text)
    fields = _check_fields(unescape(text), text)
    return DependencyCoordinate(group=fields[0], artifact=fields[1], version=fields[2])


def _check_fields(value: str, original: str) -> list[str]:
    fields = value.split(":")
    if len(fields) != 3 or any(not f for f in fields):
        raise MalformedCoordinate(
            f"Invalid coordinate {original!r}: expected 'group:artifact:version'"
        )
    return fields
