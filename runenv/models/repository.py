"""Repository endpoint model."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from pydantic import BaseModel, ConfigDict, field_validator

REPOSITORY_PROPERTY_PREFIX = "repo-"


class Repository(BaseModel):
    """A Maven-layout repository endpoint.

    Identity is the resolved address; ``name`` is informational only, so two
    logical names redirected to the same address are the same repository.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    name: str = ""

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("Repository url must not be empty")
        return value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Repository):
            return NotImplemented
        return self.url == other.url

    def __hash__(self) -> int:
        return hash(self.url)

    def __str__(self) -> str:
        return self.url

    def url_for(self, relative_path: str) -> str:
        return f"{self.url}/{relative_path.lstrip('/')}"


def resolve_repository(
    value: str | None,
    central: str,
    overrides: Mapping[str, str],
) -> Repository:
    """Resolve a caller-supplied repository name or address.

    Empty input selects ``central``. A logical name with a ``repo-<name>``
    override resolves to the override's address. Anything else is taken as a
    literal address.
    """
    if not value:
        return Repository(url=central, name="central")
    key = f"{REPOSITORY_PROPERTY_PREFIX}{value}"
    if key in overrides:
        return Repository(url=overrides[key], name=value)
    return Repository(url=value)


def merge_repositories(*groups: Iterable[Repository]) -> list[Repository]:
    """Concatenate repository lists in priority order, dropping duplicates."""
    merged: list[Repository] = []
    for group in groups:
        for repo in group:
            if repo not in merged:
                merged.append(repo)
    return merged
