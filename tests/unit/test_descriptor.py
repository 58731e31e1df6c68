"""Tests for descriptor parsing and the verified descriptor store."""

from __future__ import annotations

import logging

import pytest

from runenv.core.cache import LibraryCache, sidecar_path
from runenv.core.descriptor import DescriptorStore, parse_descriptor
from runenv.errors import IntegrityMismatch, MalformedDescriptor, RepositoryUnreachable
from runenv.models.coordinates import parse_coordinate
from runenv.models.scopes import DependencyScope

from tests.support import REPO_URL, FakeRepository, make_pom, sha1

LIB = "org.example:lib:1.0.0"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestParseDescriptor:
    def test_coordinates_and_dependencies(self):
        data = make_pom(
            LIB,
            [("org.example:util:2.0.0", "runtime", False), ("org.example:test-helper:1.0", "test", True)],
        )
        descriptor = parse_descriptor(data)
        assert str(descriptor.coordinate) == LIB
        assert descriptor.packaging == "jar"
        assert descriptor.has_binary is True
        util, helper = descriptor.dependencies
        assert util.declared == "org.example:util:2.0.0"
        assert util.scope == DependencyScope.RUNTIME
        assert util.optional is False
        assert helper.scope == DependencyScope.TEST
        assert helper.optional is True

    def test_missing_scope_is_compile(self):
        descriptor = parse_descriptor(make_pom(LIB, [("g:a:1", None, False)]))
        assert descriptor.dependencies[0].scope == DependencyScope.COMPILE

    def test_pom_packaging_has_no_binary(self):
        descriptor = parse_descriptor(make_pom("g:bom:1", packaging="pom"))
        assert descriptor.has_binary is False

    def test_property_substitution(self):
        extra = "<properties><util.version>2.5</util.version></properties>"
        data = make_pom(LIB, [("org.example:util:${util.version}", None, False)], extra=extra)
        assert parse_descriptor(data).dependencies[0].version == "2.5"

    def test_project_version_substitution(self):
        data = make_pom(LIB, [("${project.groupId}:sibling:${project.version}", None, False)])
        dep = parse_descriptor(data).dependencies[0]
        assert dep.declared == "org.example:sibling:1.0.0"

    def test_dependency_management_version(self):
        extra = (
            "<dependencyManagement><dependencies><dependency>"
            "<groupId>org.example</groupId><artifactId>util</artifactId>"
            "<version>3.1</version><scope>runtime</scope>"
            "</dependency></dependencies></dependencyManagement>"
        )
        data = make_pom(LIB, [("org.example:util:", None, False)], extra=extra)
        dep = parse_descriptor(data).dependencies[0]
        assert dep.version == "3.1"
        assert dep.scope == DependencyScope.RUNTIME

    def test_parent_inheritance(self):
        data = (
            b'<project xmlns="http://maven.apache.org/POM/4.0.0">'
            b"<parent><groupId>org.parent</groupId><artifactId>p</artifactId><version>9</version></parent>"
            b"<artifactId>child</artifactId></project>"
        )
        assert str(parse_descriptor(data).coordinate) == "org.parent:child:9"

    def test_declared_repositories(self):
        extra = (
            "<repositories><repository><id>extra</id>"
            "<url>https://extra.test/maven2/</url></repository></repositories>"
        )
        descriptor = parse_descriptor(make_pom(LIB, extra=extra))
        assert [(r.name, r.url) for r in descriptor.repositories] == [("extra", "https://extra.test/maven2")]

    def test_unparseable(self):
        with pytest.raises(MalformedDescriptor):
            parse_descriptor(b"<project><unclosed></project>")

    def test_missing_coordinates(self):
        with pytest.raises(MalformedDescriptor):
            parse_descriptor(b"<project><artifactId>x</artifactId></project>")

    def test_unknown_scope(self):
        with pytest.raises(MalformedDescriptor, match="everywhere"):
            parse_descriptor(make_pom(LIB, [("g:a:1", "everywhere", False)]))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class TestDescriptorStore:
    def test_fetch_caches_with_sidecar(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, library_cache: LibraryCache, repositories
    ):
        repo.publish(LIB)
        coord = parse_coordinate(LIB)
        descriptor = descriptor_store.load(coord, repositories)
        assert descriptor.coordinate == coord
        path = library_cache.descriptor_file(coord)
        assert library_cache.is_valid(path)
        assert sidecar_path(path).read_text() == sha1(path.read_bytes())

    def test_cache_hit_makes_no_requests(self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories):
        repo.publish(LIB)
        coord = parse_coordinate(LIB)
        descriptor_store.load(coord, repositories)
        repo.requests.clear()
        descriptor_store.load(coord, repositories)
        assert repo.requests == []

    def test_corrupted_cache_is_refetched(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, library_cache: LibraryCache, repositories
    ):
        repo.publish(LIB)
        coord = parse_coordinate(LIB)
        descriptor_store.load(coord, repositories)
        library_cache.descriptor_file(coord).write_bytes(b"<garbage/>")
        repo.requests.clear()
        descriptor = descriptor_store.load(coord, repositories)
        assert descriptor.coordinate == coord
        assert repo.count(".pom") == 1

    def test_remote_mismatch_refetched_once_then_fatal(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, library_cache: LibraryCache, repositories
    ):
        repo.publish(LIB)
        coord = parse_coordinate(LIB)
        repo.files[f"{REPO_URL}/{coord.descriptor_path}.sha1"] = b"0" * 40
        with pytest.raises(IntegrityMismatch) as info:
            descriptor_store.load(coord, repositories)
        assert info.value.expected == "0" * 40
        assert repo.count(".pom") == 2
        assert not library_cache.descriptor_file(coord).exists()

    def test_missing_remote_sidecar_accepted(self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories):
        coord = parse_coordinate(LIB)
        repo.put(f"{REPO_URL}/{coord.descriptor_path}", make_pom(LIB), checksum=False)
        assert descriptor_store.load(coord, repositories).coordinate == coord

    def test_unreachable(self, descriptor_store: DescriptorStore, repositories):
        with pytest.raises(RepositoryUnreachable) as info:
            descriptor_store.load(parse_coordinate(LIB), repositories)
        assert info.value.attempted == [REPO_URL]

    def test_download_is_logged(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories, caplog: pytest.LogCaptureFixture
    ):
        repo.publish(LIB)
        with caplog.at_level(logging.INFO, logger="runenv.core.descriptor"):
            descriptor_store.load(parse_coordinate(LIB), repositories, transitive=True)
        assert f"Downloading library {LIB} (transitive)" in caplog.text

    def test_download_without_transitive_flag(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories, caplog: pytest.LogCaptureFixture
    ):
        repo.publish(LIB)
        with caplog.at_level(logging.INFO, logger="runenv.core.descriptor"):
            descriptor_store.load(parse_coordinate(LIB), repositories, transitive=False)
        assert caplog.messages == [f"Downloading library {LIB}"]

    def test_mismatch_warns_once_before_failing(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories, caplog: pytest.LogCaptureFixture
    ):
        repo.publish(LIB)
        coord = parse_coordinate(LIB)
        repo.files[f"{REPO_URL}/{coord.descriptor_path}.sha1"] = b"0" * 40
        with caplog.at_level(logging.WARNING, logger="runenv.core.descriptor"):
            with pytest.raises(IntegrityMismatch):
                descriptor_store.load(coord, repositories)
        assert sum("re-fetching" in message for message in caplog.messages) == 1


# ---------------------------------------------------------------------------
# Inheritance
# ---------------------------------------------------------------------------

PARENT_REF = (
    "<parent><groupId>org.example</groupId><artifactId>parent</artifactId>"
    "<version>1</version></parent>"
)


def _managed(group: str, artifact: str, version: str, scope: str = "") -> str:
    scope_el = f"<scope>{scope}</scope>" if scope else ""
    return (
        "<dependencyManagement><dependencies><dependency>"
        f"<groupId>{group}</groupId><artifactId>{artifact}</artifactId>"
        f"<version>{version}</version>{scope_el}"
        "</dependency></dependencies></dependencyManagement>"
    )


class TestInheritance:
    def test_parent_property_substituted(self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories):
        repo.publish(
            "org.example:parent:1",
            packaging="pom",
            extra="<properties><dep.version>2</dep.version></properties>",
        )
        repo.publish("org.example:lib:1", [("org.example:dep:${dep.version}", None, False)], extra=PARENT_REF)
        descriptor = descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
        assert descriptor.parent == parse_coordinate("org.example:parent:1")
        assert descriptor.dependencies[0].declared == "org.example:dep:2"
        assert descriptor.properties == {"dep.version": "2"}

    def test_own_property_overrides_parent(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories
    ):
        repo.publish(
            "org.example:parent:1",
            packaging="pom",
            extra="<properties><dep.version>2</dep.version></properties>",
        )
        repo.publish(
            "org.example:lib:1",
            [("org.example:dep:${dep.version}", None, False)],
            extra=PARENT_REF + "<properties><dep.version>3</dep.version></properties>",
        )
        descriptor = descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
        assert descriptor.dependencies[0].version == "3"

    def test_parent_managed_version_inherited(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories
    ):
        repo.publish("org.example:parent:1", packaging="pom", extra=_managed("org.example", "dep", "4.2", "runtime"))
        repo.publish("org.example:lib:1", [("org.example:dep:", None, False)], extra=PARENT_REF)
        dep = descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories).dependencies[0]
        assert dep.version == "4.2"
        assert dep.scope == DependencyScope.RUNTIME

    def test_parent_dependencies_inherited(self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories):
        repo.publish("org.example:parent:1", [("org.example:common:1", None, False)], packaging="pom")
        repo.publish("org.example:lib:1", [("org.example:dep:1", None, False)], extra=PARENT_REF)
        descriptor = descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
        assert [d.declared for d in descriptor.dependencies] == ["org.example:dep:1", "org.example:common:1"]

    def test_imported_bom_supplies_version(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories
    ):
        repo.publish("org.example:bom:5", packaging="pom", extra=_managed("org.example", "dep", "5.0"))
        repo.publish(
            "org.example:lib:1",
            [("org.example:dep:", None, False)],
            extra=_managed("org.example", "bom", "5", "import"),
        )
        dep = descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories).dependencies[0]
        assert dep.version == "5.0"
        assert dep.scope == DependencyScope.COMPILE

    def test_parent_cached_with_sidecar(
        self, repo: FakeRepository, descriptor_store: DescriptorStore, library_cache: LibraryCache, repositories
    ):
        repo.publish("org.example:parent:1", packaging="pom")
        repo.publish("org.example:lib:1", extra=PARENT_REF)
        descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
        assert library_cache.is_valid(library_cache.descriptor_file(parse_coordinate("org.example:parent:1")))
        repo.requests.clear()
        descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
        assert repo.requests == []

    def test_parent_cycle_is_malformed(self, repo: FakeRepository, descriptor_store: DescriptorStore, repositories):
        repo.publish(
            "org.example:parent:1",
            packaging="pom",
            extra="<parent><groupId>org.example</groupId><artifactId>lib</artifactId>"
            "<version>1</version></parent>",
        )
        repo.publish("org.example:lib:1", extra=PARENT_REF)
        with pytest.raises(MalformedDescriptor, match="cycle"):
            descriptor_store.load(parse_coordinate("org.example:lib:1"), repositories)
