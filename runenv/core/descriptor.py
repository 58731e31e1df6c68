"""Descriptor (POM) fetch, cache and parsing.

A descriptor is served at
``{repository}/{group/path}/{artifact}/{version}/{artifact}-{version}.pom``
and cached under the same relative path with a ``.sha1`` sidecar. A cached
copy whose sidecar matches is authoritative; anything else is re-fetched.

A descriptor's ``<parent>`` and any BOM it imports through
``<dependencyManagement>`` are loaded through the same store, so inherited
properties and managed versions are available when the child is parsed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from xml.etree import ElementTree

from runenv.core.cache import LibraryCache
from runenv.core.hasher import parse_sidecar, sha1_hex
from runenv.core.transport import RepositoryClient
from runenv.errors import IntegrityMismatch, MalformedDescriptor
from runenv.models.coordinates import DependencyCoordinate
from runenv.models.descriptor import Descriptor, DescriptorDependency
from runenv.models.repository import Repository, merge_repositories
from runenv.models.scopes import DependencyScope

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{([^}]+)\}")
_MAX_SUBSTITUTION_PASSES = 8
_FETCH_ATTEMPTS = 2

RelatedLoader = Callable[[DependencyCoordinate], Descriptor]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _strip_namespaces(root: ElementTree.Element) -> None:
    for el in root.iter():
        if isinstance(el.tag, str) and "}" in el.tag:
            el.tag = el.tag.split("}", 1)[1]


def _text(el: ElementTree.Element | None, path: str) -> str:
    if el is None:
        return ""
    found = el.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _substitute(value: str, props: dict[str, str]) -> str:
    for _ in range(_MAX_SUBSTITUTION_PASSES):
        replaced = _PLACEHOLDER.sub(lambda m: props.get(m.group(1), m.group(0)), value)
        if replaced == value:
            break
        value = replaced
    return value


def _builtin_properties(
    parent: ElementTree.Element | None, group: str, artifact: str, version: str
) -> dict[str, str]:
    return {
        "project.groupId": group,
        "project.artifactId": artifact,
        "project.version": version,
        "pom.groupId": group,
        "pom.version": version,
        "version": version,
        "parent.groupId": _text(parent, "groupId"),
        "parent.version": _text(parent, "version"),
        "project.parent.groupId": _text(parent, "groupId"),
        "project.parent.version": _text(parent, "version"),
    }


def _declared_properties(root: ElementTree.Element) -> dict[str, str]:
    props: dict[str, str] = {}
    properties = root.find("properties")
    if properties is not None:
        for prop in properties:
            if isinstance(prop.tag, str):
                props[prop.tag] = (prop.text or "").strip()
    return props


def _parent_coordinate(parent: ElementTree.Element | None) -> DependencyCoordinate | None:
    fields = [_text(parent, tag) for tag in ("groupId", "artifactId", "version")]
    if not all(fields):
        return None
    return DependencyCoordinate(group=fields[0], artifact=fields[1], version=fields[2])


def _parse_scope(raw: str, where: str) -> DependencyScope:
    try:
        return DependencyScope.parse(raw)
    except ValueError:
        raise MalformedDescriptor(f"Unknown scope {raw!r} in {where}") from None


def _managed_dependencies(
    root: ElementTree.Element,
    props: dict[str, str],
    source: str,
    inherited: Iterable[DescriptorDependency],
    load_related: RelatedLoader | None,
) -> dict[tuple[str, str], DescriptorDependency]:
    """Effective managed entries: own first, then inherited, then imported BOMs."""
    managed: dict[tuple[str, str], DescriptorDependency] = {}
    imports: list[DescriptorDependency] = []
    for dep in root.findall("dependencyManagement/dependencies/dependency"):
        entry = DescriptorDependency(
            group=_substitute(_text(dep, "groupId"), props),
            artifact=_substitute(_text(dep, "artifactId"), props),
            version=_substitute(_text(dep, "version"), props),
            scope=_parse_scope(_substitute(_text(dep, "scope"), props), source),
        )
        if entry.scope == DependencyScope.IMPORT:
            imports.append(entry)
            continue
        managed.setdefault((entry.group, entry.artifact), entry)

    for entry in inherited:
        managed.setdefault((entry.group, entry.artifact), entry)

    if load_related is not None:
        for entry in imports:
            bom = load_related(entry.to_coordinate())
            for imported in bom.managed:
                managed.setdefault((imported.group, imported.artifact), imported)
    return managed


def parse_descriptor(
    data: bytes,
    source: str = "<descriptor>",
    load_related: RelatedLoader | None = None,
) -> Descriptor:
    """Parse POM bytes into a :class:`Descriptor`.

    Group and version fall back to ``<parent>``; ``${...}`` placeholders are
    substituted from ``<properties>`` and the project/parent coordinates;
    missing child versions are looked up in ``<dependencyManagement>``.

    Parameters
    ----------
    data:
        Raw descriptor bytes.
    source:
        Label used in error messages.
    load_related:
        Returns the parsed descriptor of a parent or imported BOM. Without
        it, only the current document is considered.

    Raises
    ------
    MalformedDescriptor
        If the document is not XML or lacks its own coordinates.
    """
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as exc:
        raise MalformedDescriptor(f"Unparseable descriptor {source}: {exc}") from exc
    _strip_namespaces(root)

    parent_el = root.find("parent")
    parent_coordinate = _parent_coordinate(parent_el)
    parent: Descriptor | None = None
    if load_related is not None and parent_coordinate is not None:
        parent = load_related(parent_coordinate)

    group = _text(root, "groupId") or _text(parent_el, "groupId")
    artifact = _text(root, "artifactId")
    version = _text(root, "version") or _text(parent_el, "version")

    # Inherited properties are overridden by the project keys, then by own ones
    declared = dict(parent.properties) if parent is not None else {}
    declared.update(_declared_properties(root))
    props = _builtin_properties(parent_el, group, artifact, version)
    props.update(declared)
    group, artifact, version = (_substitute(v, props) for v in (group, artifact, version))
    if not (group and artifact and version):
        raise MalformedDescriptor(f"Descriptor {source} does not declare its coordinates")

    managed = _managed_dependencies(
        root, props, source, parent.managed if parent is not None else (), load_related
    )

    dependencies: list[DescriptorDependency] = []
    for dep in root.findall("dependencies/dependency"):
        dep_group = _substitute(_text(dep, "groupId"), props)
        dep_artifact = _substitute(_text(dep, "artifactId"), props)
        entry = managed.get((dep_group, dep_artifact))
        raw_scope = _substitute(_text(dep, "scope"), props)
        if raw_scope or entry is None:
            scope = _parse_scope(raw_scope, source)
        else:
            scope = entry.scope
        dependencies.append(
            DescriptorDependency(
                group=dep_group,
                artifact=dep_artifact,
                version=_substitute(_text(dep, "version"), props) or (entry.version if entry else ""),
                scope=scope,
                optional=_substitute(_text(dep, "optional"), props).lower() == "true",
            )
        )

    repositories = [
        Repository(url=url, name=_text(repo, "id"))
        for repo in root.findall("repositories/repository")
        if (url := _substitute(_text(repo, "url"), props))
    ]

    if parent is not None:
        # Dependencies declared by the parent apply unless redeclared here
        declared_keys = {(d.group, d.artifact) for d in dependencies}
        dependencies.extend(
            d for d in parent.dependencies if (d.group, d.artifact) not in declared_keys
        )
        repositories = merge_repositories(repositories, parent.repositories)

    return Descriptor(
        coordinate=DependencyCoordinate(group=group, artifact=artifact, version=version),
        packaging=_substitute(_text(root, "packaging"), props) or "jar",
        parent=parent_coordinate,
        dependencies=tuple(dependencies),
        managed=tuple(managed.values()),
        properties={key: _substitute(value, props) for key, value in declared.items()},
        repositories=tuple(repositories),
    )


# ---------------------------------------------------------------------------
# Fetch and cache
# ---------------------------------------------------------------------------


class DescriptorStore:
    """Loads descriptors from the library cache, falling back to the network.

    Parameters
    ----------
    cache:
        Library cache holding descriptors and their sidecars.
    transport:
        Repository client used on cache misses.
    """

    def __init__(self, cache: LibraryCache, transport: RepositoryClient) -> None:
        self._cache = cache
        self._transport = transport

    def load(
        self,
        coordinate: DependencyCoordinate,
        repositories: Sequence[Repository],
        *,
        transitive: bool = True,
    ) -> Descriptor:
        """Return the parsed descriptor for ``coordinate``.

        Parents and imported BOMs are loaded from the same repositories.
        Raises ``RepositoryUnreachable``, ``IntegrityMismatch`` or
        ``MalformedDescriptor``.
        """
        return self._load(coordinate, repositories, transitive, ())

    def _load(
        self,
        coordinate: DependencyCoordinate,
        repositories: Sequence[Repository],
        transitive: bool,
        lineage: tuple[DependencyCoordinate, ...],
    ) -> Descriptor:
        if coordinate in lineage:
            chain = " -> ".join(str(c) for c in (*lineage, coordinate))
            raise MalformedDescriptor(f"Descriptor inheritance cycle: {chain}")
        data = self._read(coordinate, repositories, transitive)
        lineage = (*lineage, coordinate)

        def load_related(related: DependencyCoordinate) -> Descriptor:
            return self._load(related, repositories, transitive, lineage)

        return parse_descriptor(data, source=str(coordinate), load_related=load_related)

    def _read(
        self, coordinate: DependencyCoordinate, repositories: Sequence[Repository], transitive: bool
    ) -> bytes:
        path = self._cache.descriptor_file(coordinate)
        if self._cache.is_valid(path):
            logger.debug("Descriptor cache hit for %s", coordinate)
            return self._cache.read(path)
        logger.info(
            "Downloading library %s%s",
            coordinate,
            " (transitive)" if transitive else "",
        )
        data = self._fetch_verified(coordinate, repositories)
        self._cache.store(path, data)
        return data

    def _fetch_verified(
        self, coordinate: DependencyCoordinate, repositories: Sequence[Repository]
    ) -> bytes:
        """Fetch the descriptor and check it against the remote sidecar.

        A mismatch is re-fetched once; a second mismatch is fatal.
        """
        relative = coordinate.descriptor_path
        attempt = 1
        while True:
            data, repo = self._transport.fetch(relative, repositories, target=str(coordinate))
            remote = self._transport.get_optional(repo.url_for(f"{relative}.sha1"))
            if remote is None:
                logger.warning("No checksum published for %s at %s", coordinate, repo.url)
                return data
            expected = parse_sidecar(remote.decode("ascii", errors="replace"))
            actual = sha1_hex(data)
            if actual == expected:
                return data
            mismatch = IntegrityMismatch(f"{coordinate} descriptor", expected, actual)
            if attempt == _FETCH_ATTEMPTS:
                raise mismatch
            logger.warning("%s; re-fetching", mismatch)
            attempt += 1
