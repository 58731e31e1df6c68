"""HTTP access to Maven-layout repositories.

Wraps an ``httpx.Client``. A failure against one repository (transport
error, timeout, non-2xx status) moves on to the next repository in priority
order; the same repository is never retried. When every repository has
failed, ``RepositoryUnreachable`` names the target and everything attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import httpx

from runenv.errors import RepositoryUnreachable
from runenv.models.repository import Repository

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class RepositoryClient:
    """Fetches descriptors, binaries and sidecars over HTTP.

    Parameters
    ----------
    client:
        The ``httpx.Client`` to use. Closed together with this object.
    """

    def __init__(self, client: httpx.Client | None = None, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def __enter__(self) -> RepositoryClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Single-address operations
    # ------------------------------------------------------------------

    def get(self, url: str) -> bytes:
        """GET ``url`` and return the body. Raises ``httpx.HTTPError``."""
        response = self._client.get(url)
        response.raise_for_status()
        return response.content

    def get_optional(self, url: str) -> bytes | None:
        """GET ``url``, returning None when it cannot be fetched."""
        try:
            return self.get(url)
        except httpx.HTTPError as exc:
            logger.debug("Optional resource %s unavailable: %s", url, exc)
            return None

    def download(self, url: str, destination: Path) -> None:
        """Stream ``url`` into ``destination``. Raises ``httpx.HTTPError``."""
        with self._client.stream("GET", url) as response:
            response.raise_for_status()
            with Path(destination).open("wb") as fh:
                for chunk in response.iter_bytes():
                    fh.write(chunk)

    def download_url(self, url: str, destination: Path, *, target: str) -> None:
        """Stream ``url`` into ``destination``, raising RepositoryUnreachable."""
        try:
            self.download(url, destination)
        except httpx.HTTPError as exc:
            raise RepositoryUnreachable(target, [url], _describe(exc)) from exc

    # ------------------------------------------------------------------
    # Fail-over across repositories
    # ------------------------------------------------------------------

    def fetch(
        self,
        relative_path: str,
        repositories: Sequence[Repository],
        *,
        target: str,
    ) -> tuple[bytes, Repository]:
        """GET ``relative_path`` from the first repository that serves it."""
        attempted: list[str] = []
        last_error = ""
        for repo in repositories:
            url = repo.url_for(relative_path)
            attempted.append(repo.url)
            try:
                return self.get(url), repo
            except httpx.HTTPError as exc:
                last_error = _describe(exc)
                logger.warning("Fetching %s from %s failed: %s", target, repo.url, last_error)
        raise RepositoryUnreachable(target, attempted, last_error)

    def download_from(
        self,
        relative_path: str,
        repositories: Sequence[Repository],
        destination: Path,
        *,
        target: str,
    ) -> Repository:
        """Stream ``relative_path`` from the first repository that serves it."""
        attempted: list[str] = []
        last_error = ""
        for repo in repositories:
            url = repo.url_for(relative_path)
            attempted.append(repo.url)
            try:
                self.download(url, destination)
                return repo
            except httpx.HTTPError as exc:
                last_error = _describe(exc)
                logger.warning("Downloading %s from %s failed: %s", target, repo.url, last_error)
        raise RepositoryUnreachable(target, attempted, last_error)


def _describe(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    return f"{type(exc).__name__}: {exc}"
