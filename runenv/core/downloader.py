"""Artifact downloader and verifier.

Binaries are fetched into the library cache next to their descriptors and
checked against the repository's ``.sha1`` sidecar. Assets are fetched into
the asset cache and checked against the checksum the caller declared.
Archived assets arrive as ``{source_url}.zip``; the container is staged
beside the final path and removed on every exit path.

Every fetch is staged to a temporary file and verified before it is
published, so a checksum mismatch never leaves visible content behind. A
mismatch triggers one re-fetch; a second mismatch raises
``IntegrityMismatch``.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Sequence
from pathlib import Path

from runenv.core.cache import AssetCache, LibraryCache, publish, staging_file
from runenv.core.hasher import algorithm_for, digest_file, matches, parse_sidecar
from runenv.core.resolver import Closure
from runenv.core.transport import RepositoryClient
from runenv.errors import IntegrityMismatch, MissingDescriptorEntry, RunEnvError
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.repository import Repository
from runenv.models.requests import AssetDescriptor, ResolvedDependency

logger = logging.getLogger(__name__)

_FETCH_ATTEMPTS = 2


class ArtifactDownloader:
    """Fetches and verifies library binaries and assets.

    Parameters
    ----------
    libraries:
        Cache for descriptors and binaries.
    assets:
        Cache for plain asset files.
    transport:
        Repository client used on cache misses.
    """

    def __init__(self, libraries: LibraryCache, assets: AssetCache, transport: RepositoryClient) -> None:
        self._libraries = libraries
        self._assets = assets
        self._transport = transport

    # ------------------------------------------------------------------
    # Libraries
    # ------------------------------------------------------------------

    def fetch_library(
        self, coordinate: DependencyCoordinate, repositories: Sequence[Repository]
    ) -> Path:
        """Return the cached binary for ``coordinate``, downloading it if needed."""
        path = self._libraries.artifact_file(coordinate)
        if self._libraries.is_valid(path):
            logger.debug("Artifact cache hit for %s", coordinate)
            return path

        relative = coordinate.artifact_path
        target = f"{coordinate} binary"
        attempt = 1
        while True:
            with staging_file(path) as staged:
                repo = self._transport.download_from(relative, repositories, staged, target=target)
                actual = digest_file(staged, "sha1")
                remote = self._transport.get_optional(repo.url_for(f"{relative}.sha1"))
                if remote is None:
                    logger.warning("No checksum published for %s at %s", target, repo.url)
                    return self._libraries.store_file(staged, path)
                expected = parse_sidecar(remote.decode("ascii", errors="replace"))
                if actual == expected:
                    return self._libraries.store_file(staged, path)
                mismatch = IntegrityMismatch(target, expected, actual)
            if attempt == _FETCH_ATTEMPTS:
                raise mismatch
            logger.warning("%s; re-fetching", mismatch)
            attempt += 1

    def fetch_closure(
        self, closure: Closure, *, ignore_exception: bool = False
    ) -> list[tuple[ResolvedDependency, Path]]:
        """Fetch every binary in ``closure``, in closure order.

        Descriptor-only coordinates are skipped. A failing child is dropped
        when ``ignore_exception`` is set; a failing root is always fatal.
        """
        fetched: list[tuple[ResolvedDependency, Path]] = []
        root = closure.graph.root
        for dep in closure.dependencies:
            if not closure.descriptors[dep.coordinate].has_binary:
                logger.debug("%s has no binary, skipping download", dep)
                continue
            try:
                path = self.fetch_library(dep.coordinate, closure.repositories[dep.coordinate])
            except RunEnvError as exc:
                if dep.coordinate == root or not ignore_exception:
                    raise
                logger.warning("Dropping %s: %s", dep, exc)
                continue
            fetched.append((dep, path))
        return fetched

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def fetch_asset(self, asset: AssetDescriptor) -> Path:
        """Return the cached asset file, downloading and verifying it if needed."""
        path = self._assets.path_for(asset)
        if matches(path, asset.checksum):
            logger.debug("Asset cache hit for %s", path.name)
            return path

        logger.info("Downloading assets %s", asset.remote_name)
        expected = asset.checksum.lower()
        algorithm = algorithm_for(expected)
        attempt = 1
        while True:
            with staging_file(path) as staged:
                if asset.is_archived:
                    self._extract_archived(asset, path, staged)
                else:
                    self._transport.download_url(asset.source_url, staged, target=asset.remote_name)
                actual = digest_file(staged, algorithm)
                if actual == expected:
                    return publish(staged, path)
                mismatch = IntegrityMismatch(f"asset {asset.remote_name}", expected, actual)
            if attempt == _FETCH_ATTEMPTS:
                raise mismatch
            logger.warning("%s; re-fetching", mismatch)
            attempt += 1

    def _extract_archived(self, asset: AssetDescriptor, path: Path, staged: Path) -> None:
        """Download ``{source_url}.zip`` and extract the asset's entry into ``staged``."""
        entry = asset.remote_name
        with staging_file(path, suffix=".zip") as container:
            self._transport.download_url(
                f"{asset.source_url}.zip", container, target=f"{entry}.zip"
            )
            try:
                with zipfile.ZipFile(container) as archive:
                    try:
                        info = archive.getinfo(entry)
                    except KeyError:
                        raise MissingDescriptorEntry(
                            f"Archive {entry}.zip has no entry named {entry!r}"
                        ) from None
                    with archive.open(info) as src, staged.open("wb") as dst:
                        shutil.copyfileobj(src, dst)
            except zipfile.BadZipFile as exc:
                raise MissingDescriptorEntry(f"Archive {entry}.zip is not a valid zip: {exc}") from exc
