"""Injector: the entry point that provisions a consumer's runtime needs.

For every declared dependency the injector runs one linear pipeline:

1. skip-if-satisfied test (no I/O);
2. validation of relocation pairs and coordinate (no I/O);
3. descriptor fetch and full transitive resolution;
4. download and verification of every binary in the closure;
5. relocation of each binary into a separate cached copy;
6. hand-off of the ordered binaries to the runtime search path.

Nothing is handed to the search path unless every earlier step succeeded
for the whole closure. Network state (the HTTP client, staged files) lives
for one call and is released on every exit path.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

import httpx

from runenv.config import RunEnvConfig
from runenv.core.cache import AssetCache, LibraryCache
from runenv.core.descriptor import DescriptorStore
from runenv.core.downloader import ArtifactDownloader
from runenv.core.relocator import Relocator
from runenv.core.resolver import Closure, ResolveOptions, TransitiveResolver
from runenv.core.search_path import SearchPath, SysPathSearchPath
from runenv.core.transport import RepositoryClient
from runenv.literal import unescape
from runenv.markers import scan
from runenv.models.coordinates import DependencyCoordinate, parse_coordinate
from runenv.models.relocation import rules_from_pairs
from runenv.models.repository import Repository, merge_repositories, resolve_repository
from runenv.models.requests import AssetDescriptor, DependencyDeclaration, SharedRuntime
from runenv.models.scopes import DEFAULT_SCOPES, DependencyScope

logger = logging.getLogger(__name__)


class Injector:
    """Resolves, acquires and injects runtime dependencies and assets.

    Parameters
    ----------
    config:
        Runtime configuration. Uses environment-driven defaults if omitted.
    search_path:
        Capability that answers presence queries and performs injection.
        Defaults to ``sys.path``.
    client_factory:
        Builds the ``httpx.Client`` used for one call.
    """

    def __init__(
        self,
        config: RunEnvConfig | None = None,
        *,
        search_path: SearchPath | None = None,
        client_factory: Callable[[], httpx.Client] | None = None,
    ) -> None:
        self.config = config or RunEnvConfig()
        self.search_path = search_path if search_path is not None else SysPathSearchPath()
        self._client_factory = client_factory or self._default_client
        self.libraries = LibraryCache(self.config.library_dir)
        self.assets = AssetCache(self.config.assets_dir)

    def _default_client(self) -> httpx.Client:
        return httpx.Client(timeout=self.config.http_timeout, follow_redirects=True)

    def _session(self) -> RepositoryClient:
        return RepositoryClient(self._client_factory())

    # ------------------------------------------------------------------
    # Consumers
    # ------------------------------------------------------------------

    def inject(self, consumer: Any) -> list[Path]:
        """Load a consumer's declared assets, then its declared dependencies."""
        self.load_assets(consumer)
        return self.load_dependencies(consumer)

    def load_assets(self, consumer: Any) -> list[Path]:
        _, resources = scan(consumer)
        return [self.fetch_asset(asset) for asset in resources]

    def load_dependencies(self, consumer: Any) -> list[Path]:
        dependencies, _ = scan(consumer)
        injected: list[Path] = []
        for declaration in dependencies:
            injected.extend(self.load_declaration(declaration))
        return injected

    def load_declaration(self, declaration: DependencyDeclaration) -> list[Path]:
        """Run the pipeline for one declaration unless its test is satisfied."""
        if self.is_satisfied(declaration.test):
            logger.debug("Skipping %s: %s already present", declaration.coordinate, declaration.test)
            return []
        return self.load_dependency(
            declaration.coordinate,
            relocate=declaration.relocate,
            repository=declaration.repository,
            ignore_optional=declaration.ignore_optional,
            ignore_exception=declaration.ignore_exception,
            transitive=declaration.transitive,
            scopes=declaration.scopes,
        )

    # ------------------------------------------------------------------
    # Skip-if-satisfied
    # ------------------------------------------------------------------

    def is_satisfied(self, test: str) -> bool:
        """True only if every comma-separated marker is already present.

        An empty marker (after unescaping) is never present.
        """
        return all(self._marker_present(part) for part in test.split(","))

    def _marker_present(self, part: str) -> bool:
        marker = unescape(part.strip())
        return bool(marker) and self.search_path.is_present(marker)

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def repositories_for(self, repository: str | None = None) -> list[Repository]:
        """Requested (or central) repository first, then configured fallbacks."""
        primary = resolve_repository(
            repository,
            self.config.central_repository,
            self.config.repository_overrides(),
        )
        fallbacks = [Repository(url=url) for url in self.config.fallback_repositories]
        return merge_repositories([primary], fallbacks)

    def resolve(
        self,
        coordinate: str | DependencyCoordinate,
        *,
        repository: str | None = None,
        options: ResolveOptions | None = None,
    ) -> Closure:
        """Resolve the closure of ``coordinate`` without downloading binaries."""
        root = _as_coordinate(coordinate)
        repositories = self.repositories_for(repository)
        with self._session() as transport:
            resolver = TransitiveResolver(DescriptorStore(self.libraries, transport))
            return resolver.resolve(root, repositories, options)

    def acquire(
        self,
        coordinate: str | DependencyCoordinate,
        *,
        repository: str | None = None,
        options: ResolveOptions | None = None,
    ) -> list[Path]:
        """Resolve, download and relocate; returns the binaries to inject.

        The closure is complete before any download starts, and every binary
        is downloaded before any relocation.
        """
        root = _as_coordinate(coordinate)
        options = options or ResolveOptions()
        repositories = self.repositories_for(repository)
        with self._session() as transport:
            resolver = TransitiveResolver(DescriptorStore(self.libraries, transport))
            closure = resolver.resolve(root, repositories, options)
            downloader = ArtifactDownloader(self.libraries, self.assets, transport)
            fetched = downloader.fetch_closure(closure, ignore_exception=options.ignore_exception)
        relocator = Relocator(self.libraries)
        return [relocator.relocate_archive(path, dep.relocation) for dep, path in fetched]

    def load_dependency(
        self,
        coordinate: str,
        *,
        relocate: Sequence[str] = (),
        repository: str | None = None,
        ignore_optional: bool = True,
        ignore_exception: bool = False,
        transitive: bool = True,
        scopes: Iterable[DependencyScope] = DEFAULT_SCOPES,
    ) -> list[Path]:
        """Acquire ``coordinate`` and its closure and inject the result.

        Raises ``MalformedRelocationRule`` or ``MalformedCoordinate`` before
        any network access.
        """
        rules = rules_from_pairs(relocate)
        root = parse_coordinate(coordinate)
        options = ResolveOptions(
            scopes=frozenset(scopes),
            ignore_optional=ignore_optional,
            ignore_exception=ignore_exception,
            transitive=transitive,
            relocation=tuple(rules),
        )
        paths = self.acquire(root, repository=repository, options=options)
        self.search_path.append(paths)
        return paths

    # ------------------------------------------------------------------
    # Shared runtimes
    # ------------------------------------------------------------------

    def load_shared_runtime(self, runtime: SharedRuntime) -> list[Path]:
        """Load a runtime shared between consumers, at most once per process.

        Outside isolated mode the presence check runs first: if another
        consumer already injected this version, nothing is acquired or
        injected. Otherwise the runtime's namespaces are relocated to their
        versioned names unless ``skip_shared_relocate`` is set.
        """
        relocate: list[str] = []
        if not self.config.isolated_mode:
            relocating = not self.config.skip_shared_relocate
            marker = runtime.marker if relocating else runtime.namespaces[0]
            if self.search_path.is_present(marker):
                logger.info("Shared runtime %s already present (%s)", runtime.version, marker)
                return []
            if relocating:
                for namespace in runtime.namespaces:
                    relocate += [f"{namespace}.", f"{runtime.relocated_namespace(namespace)}."]

        injected: list[Path] = []
        for coordinate in runtime.coordinates:
            injected.extend(
                self.load_dependency(coordinate, relocate=relocate, transitive=runtime.transitive)
            )
        return injected

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def fetch_asset(self, asset: AssetDescriptor) -> Path:
        with self._session() as transport:
            return ArtifactDownloader(self.libraries, self.assets, transport).fetch_asset(asset)

    def load_asset(self, source_url: str, checksum: str, *, name: str = "", is_archived: bool = False) -> Path:
        """Ensure an asset is present in the asset cache and return its path."""
        return self.fetch_asset(
            AssetDescriptor(name=name, checksum=checksum, source_url=source_url, is_archived=is_archived)
        )


def _as_coordinate(coordinate: str | DependencyCoordinate) -> DependencyCoordinate:
    if isinstance(coordinate, DependencyCoordinate):
        return coordinate
    return parse_coordinate(coordinate)
