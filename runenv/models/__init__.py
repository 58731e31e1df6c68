"""runenv data models: all Pydantic v2, all frozen (immutable)."""

from runenv.models.coordinates import DependencyCoordinate, parse_coordinate
from runenv.models.descriptor import Descriptor, DescriptorDependency
from runenv.models.relocation import RelocationRule, rules_from_pairs
from runenv.models.repository import Repository, merge_repositories, resolve_repository
from runenv.models.requests import (
    AssetDescriptor,
    DependencyDeclaration,
    ResolvedDependency,
    SharedRuntime,
)
from runenv.models.scopes import DEFAULT_SCOPES, DependencyScope

__all__ = [
    # coordinates
    "DependencyCoordinate",
    "parse_coordinate",
    # scopes
    "DependencyScope",
    "DEFAULT_SCOPES",
    # relocation
    "RelocationRule",
    "rules_from_pairs",
    # repositories
    "Repository",
    "resolve_repository",
    "merge_repositories",
    # descriptors
    "Descriptor",
    "DescriptorDependency",
    # requests
    "DependencyDeclaration",
    "ResolvedDependency",
    "AssetDescriptor",
    "SharedRuntime",
]
