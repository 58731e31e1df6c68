"""Test support: descriptor/archive builders and in-memory collaborators."""

from __future__ import annotations

import hashlib
import io
import zipfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import httpx

from runenv.core.transport import RepositoryClient
from runenv.models.coordinates import parse_coordinate

REPO_URL = "https://repo.test/maven2"
MIRROR_URL = "https://mirror.test/maven2"

# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_pom(
    coordinate: str,
    dependencies: Iterable[tuple[str, str | None, bool]] = (),
    *,
    packaging: str | None = None,
    extra: str = "",
) -> bytes:
    """Build a minimal namespaced POM.

    ``dependencies`` holds ``(coordinate, scope, optional)`` triples; a
    ``None`` scope omits the element.
    """
    group, artifact, version = coordinate.split(":")
    deps = []
    for dep, scope, optional in dependencies:
        g, a, v = dep.split(":")
        parts = [f"<groupId>{g}</groupId>", f"<artifactId>{a}</artifactId>"]
        if v:
            parts.append(f"<version>{v}</version>")
        if scope:
            parts.append(f"<scope>{scope}</scope>")
        if optional:
            parts.append("<optional>true</optional>")
        deps.append(f"<dependency>{''.join(parts)}</dependency>")
    packaging_el = f"<packaging>{packaging}</packaging>" if packaging else ""
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        "<modelVersion>4.0.0</modelVersion>"
        f"<groupId>{group}</groupId><artifactId>{artifact}</artifactId>"
        f"<version>{version}</version>{packaging_el}{extra}"
        f"<dependencies>{''.join(deps)}</dependencies>"
        "</project>"
    ).encode("utf-8")


def make_zip(entries: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


# ---------------------------------------------------------------------------
# In-memory repository
# ---------------------------------------------------------------------------


class FakeRepository:
    """Serves files over ``httpx.MockTransport`` and records every request."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.requests: list[str] = []
        self.failing_hosts: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if request.url.host in self.failing_hosts:
            raise httpx.ConnectError("connection refused", request=request)
        if url in self.files:
            return httpx.Response(200, content=self.files[url])
        return httpx.Response(404)

    def client_factory(self) -> Callable[[], httpx.Client]:
        return lambda: httpx.Client(transport=httpx.MockTransport(self.handler))

    def client(self) -> RepositoryClient:
        return RepositoryClient(self.client_factory()())

    def put(self, url: str, data: bytes, *, checksum: bool = True) -> None:
        self.files[url] = data
        if checksum:
            self.files[f"{url}.sha1"] = sha1(data).encode("ascii")

    def publish(
        self,
        coordinate: str,
        dependencies: Iterable[tuple[str, str | None, bool]] = (),
        *,
        jar: dict[str, bytes] | None = None,
        base: str = REPO_URL,
        packaging: str | None = None,
        extra: str = "",
    ) -> None:
        """Publish a POM and (unless ``packaging='pom'``) a jar for ``coordinate``."""
        coord = parse_coordinate(coordinate)
        self.put(f"{base}/{coord.descriptor_path}", make_pom(coordinate, dependencies, packaging=packaging, extra=extra))
        if packaging != "pom":
            contents = jar if jar is not None else {f"{coord.artifact}/__init__.py": b"VERSION = '%s'\n" % coord.version.encode()}
            self.put(f"{base}/{coord.artifact_path}", make_zip(contents))

    def count(self, suffix: str = "") -> int:
        return sum(1 for url in self.requests if url.endswith(suffix))


class RecordingSearchPath:
    """Search path that records appends and reports configured markers."""

    def __init__(self, present: Sequence[str] = ()) -> None:
        self.present = set(present)
        self.appended: list[Path] = []
        self.queries: list[str] = []

    def is_present(self, marker: str) -> bool:
        self.queries.append(marker)
        return marker in self.present

    def append(self, paths: Sequence[Path]) -> list[Path]:
        added = [Path(p) for p in paths if Path(p) not in self.appended]
        self.appended.extend(added)
        return added

