"""Shared test fixtures for runenv."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from runenv.config import RunEnvConfig
from runenv.core.cache import AssetCache, LibraryCache
from runenv.core.descriptor import DescriptorStore
from runenv.core.downloader import ArtifactDownloader
from runenv.core.injector import Injector
from runenv.core.resolver import TransitiveResolver
from runenv.core.transport import RepositoryClient
from runenv.models.repository import Repository
from tests.support import REPO_URL, FakeRepository, RecordingSearchPath


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo root-logger reconfiguration (e.g. the CLI's basicConfig) between tests."""
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.setLevel(level)
    root.handlers[:] = handlers


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for caches."""
    return tmp_path


@pytest.fixture
def config(tmp_dir: Path) -> RunEnvConfig:
    """Configuration pointing every cache into the temp directory."""
    return RunEnvConfig(
        _env_file=None,
        library_dir=tmp_dir / "libs",
        assets_dir=tmp_dir / "assets",
        properties_file=tmp_dir / "env.properties",
        central_repository=REPO_URL,
    )


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def repositories() -> list[Repository]:
    return [Repository(url=REPO_URL, name="central")]


@pytest.fixture
def library_cache(config: RunEnvConfig) -> LibraryCache:
    return LibraryCache(config.library_dir)


@pytest.fixture
def asset_cache(config: RunEnvConfig) -> AssetCache:
    return AssetCache(config.assets_dir)


@pytest.fixture
def transport(repo: FakeRepository):
    client = repo.client()
    yield client
    client.close()


@pytest.fixture
def descriptor_store(library_cache: LibraryCache, transport: RepositoryClient) -> DescriptorStore:
    return DescriptorStore(library_cache, transport)


@pytest.fixture
def resolver(descriptor_store: DescriptorStore) -> TransitiveResolver:
    return TransitiveResolver(descriptor_store)


@pytest.fixture
def downloader(
    library_cache: LibraryCache, asset_cache: AssetCache, transport: RepositoryClient
) -> ArtifactDownloader:
    return ArtifactDownloader(library_cache, asset_cache, transport)


@pytest.fixture
def search_path() -> RecordingSearchPath:
    return RecordingSearchPath()


@pytest.fixture
def injector(config: RunEnvConfig, repo: FakeRepository, search_path: RecordingSearchPath) -> Injector:
    """Injector wired to the in-memory repository and a recording search path."""
    return Injector(config, search_path=search_path, client_factory=repo.client_factory())
