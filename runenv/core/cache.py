"""On-disk caches for descriptors, artifacts and assets.

Library layout mirrors the repository::

    {library_dir}/{group/path}/{artifact}/{version}/{artifact}-{version}.pom
    {library_dir}/{group/path}/{artifact}/{version}/{artifact}-{version}.pom.sha1
    {library_dir}/{group/path}/{artifact}/{version}/{artifact}-{version}.jar
    {library_dir}/{group/path}/{artifact}/{version}/{artifact}-{version}.jar.sha1

Asset layout::

    {assets_dir}/{name}                       # named assets
    {assets_dir}/{checksum[0:2]}/{checksum}   # unnamed assets

Entries are append-only: a validated entry is never rewritten, only replaced
wholesale after it fails validation. Every write goes to a temporary file in
the destination directory and is published with ``os.replace`` so readers
never observe a partially written file.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from collections.abc import Iterator
from pathlib import Path

from runenv.core.hasher import digest_file, parse_sidecar, sha1_hex
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.requests import AssetDescriptor

SIDECAR_SUFFIX = ".sha1"


@contextlib.contextmanager
def staging_file(destination: Path, suffix: str = ".part") -> Iterator[Path]:
    """Yield a temporary path beside ``destination``; removed on exit.

    Callers publish by moving the staged file over ``destination`` with
    :func:`publish`; whatever is left behind on any exit path is deleted.
    """
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(
        prefix=f".{destination.name}.", suffix=suffix, dir=destination.parent
    )
    os.close(fd)
    staged = Path(name)
    try:
        yield staged
    finally:
        staged.unlink(missing_ok=True)


def publish(staged: Path, destination: Path) -> Path:
    """Atomically move a staged file into place."""
    os.replace(staged, destination)
    return Path(destination)


def atomic_write(destination: Path, data: bytes) -> Path:
    """Write ``data`` to ``destination`` through a staged file."""
    with staging_file(destination) as staged:
        staged.write_bytes(data)
        return publish(staged, destination)


def sidecar_path(path: Path) -> Path:
    return Path(f"{path}{SIDECAR_SUFFIX}")


class LibraryCache:
    """Repository-shaped cache of descriptors and binary artifacts.

    Parameters
    ----------
    base_path:
        Root directory of the library cache.
    """

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def descriptor_file(self, coordinate: DependencyCoordinate) -> Path:
        return self._base / coordinate.descriptor_path

    def artifact_file(self, coordinate: DependencyCoordinate) -> Path:
        return self._base / coordinate.artifact_path

    def relocated_dir(self, rules_digest: str) -> Path:
        return self._base / "relocated" / rules_digest

    def relative(self, path: Path) -> Path | None:
        """``path`` relative to the cache root, or None if it lies outside."""
        try:
            return Path(path).resolve().relative_to(self._base.resolve())
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def is_valid(self, path: Path) -> bool:
        """True if ``path`` and its sidecar both exist and agree."""
        sidecar = sidecar_path(path)
        if not Path(path).is_file() or not sidecar.is_file():
            return False
        expected = parse_sidecar(sidecar.read_text(encoding="utf-8", errors="replace"))
        return bool(expected) and digest_file(path, "sha1") == expected

    # ------------------------------------------------------------------
    # Publication
    # ------------------------------------------------------------------

    def store(self, path: Path, data: bytes) -> Path:
        """Publish ``data`` at ``path`` together with its SHA-1 sidecar."""
        atomic_write(path, data)
        atomic_write(sidecar_path(path), sha1_hex(data).encode("ascii"))
        return Path(path)

    def store_file(self, staged: Path, path: Path) -> Path:
        """Publish an already-staged file at ``path`` with its sidecar."""
        digest = digest_file(staged, "sha1")
        publish(staged, path)
        atomic_write(sidecar_path(path), digest.encode("ascii"))
        return Path(path)

    def read(self, path: Path) -> bytes:
        return Path(path).read_bytes()


class AssetCache:
    """Cache of plain asset files, keyed by name or by checksum."""

    def __init__(self, base_path: Path) -> None:
        self._base = Path(base_path)

    @property
    def base_path(self) -> Path:
        return self._base

    def path_for(self, asset: AssetDescriptor) -> Path:
        """Named assets live at their name; unnamed ones are sharded by checksum."""
        if asset.name:
            return self._base / asset.name
        checksum = asset.checksum.lower()
        return self._base / checksum[:2] / checksum
