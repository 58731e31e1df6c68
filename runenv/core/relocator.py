"""Namespace relocation for downloaded binaries.

``relocate(data, rules)`` is a pure byte transform. Every rule contributes
its dotted form (``kotlin.``) and its path form (``kotlin/``); all forms are
compiled into one alternation in declaration order and applied in a single
left-to-right, non-overlapping pass. Where patterns overlap at the same
position the rule declared first wins, and replaced text is never matched
again by a later rule.

``Relocator.relocate_archive`` applies the transform to every entry name and
entry body of a zip archive (jar) and publishes the result under
``{library_dir}/relocated/{rules-digest}/{source-relative-path}``. The cached
original is never modified.
"""

from __future__ import annotations

import logging
import re
import zipfile
from collections.abc import Sequence
from pathlib import Path

from runenv.core.cache import LibraryCache, atomic_write, staging_file
from runenv.core.hasher import digest_file, sha1_hex
from runenv.models.relocation import RelocationRule

logger = logging.getLogger(__name__)


def _compile(rules: Sequence[RelocationRule]) -> tuple[re.Pattern[bytes], dict[bytes, bytes]]:
    replacements: dict[bytes, bytes] = {}
    for rule in rules:
        for pattern, replacement in rule.variants():
            replacements.setdefault(pattern.encode("utf-8"), replacement.encode("utf-8"))
    alternation = b"|".join(re.escape(p) for p in replacements)
    return re.compile(alternation), replacements


def relocate(data: bytes, rules: Sequence[RelocationRule]) -> bytes:
    """Rewrite every reference matched by ``rules`` in ``data``."""
    if not rules or not data:
        return data
    pattern, replacements = _compile(rules)
    return pattern.sub(lambda m: replacements[m.group(0)], data)


def relocate_name(name: str, rules: Sequence[RelocationRule]) -> str:
    """Apply ``rules`` to an archive entry name."""
    return relocate(name.encode("utf-8"), rules).decode("utf-8")


def rules_digest(rules: Sequence[RelocationRule]) -> str:
    """Short stable identifier for an ordered rule list."""
    canonical = "\n".join(f"{r.pattern}\x00{r.replacement}" for r in rules)
    return sha1_hex(canonical.encode("utf-8"))[:16]


class Relocator:
    """Produces relocated copies of cached archives.

    Parameters
    ----------
    cache:
        Library cache; relocated archives live under its ``relocated`` tree.
    """

    def __init__(self, cache: LibraryCache) -> None:
        self._cache = cache

    def relocate_archive(self, source: Path, rules: Sequence[RelocationRule]) -> Path:
        """Return a relocated copy of ``source`` (or ``source`` if no rules).

        The copy keeps the source's cache-relative path, so same-named jars
        from different groups never share a slot. A ``.source`` marker holds
        the digest of the archive it was built from; a copy whose marker no
        longer matches the source is rebuilt.
        """
        if not rules:
            return Path(source)
        source = Path(source)
        source_digest = digest_file(source, "sha1")
        relative = self._cache.relative(source) or Path(source_digest) / source.name
        destination = self._cache.relocated_dir(rules_digest(rules)) / relative
        marker = Path(f"{destination}.source")
        if (
            self._cache.is_valid(destination)
            and marker.is_file()
            and marker.read_text(encoding="ascii").strip() == source_digest
        ):
            logger.debug("Relocated archive cache hit for %s", destination.name)
            return destination

        logger.debug("Relocating %s with %d rule(s)", source.name, len(rules))
        with staging_file(destination) as staged:
            with zipfile.ZipFile(source) as src, zipfile.ZipFile(staged, "w", zipfile.ZIP_DEFLATED) as out:
                written: set[str] = set()
                for info in src.infolist():
                    name = relocate_name(info.filename, rules)
                    if name in written:
                        continue
                    written.add(name)
                    relocated = zipfile.ZipInfo(name, date_time=info.date_time)
                    relocated.compress_type = info.compress_type
                    relocated.external_attr = info.external_attr
                    data = src.read(info)
                    out.writestr(relocated, data if info.is_dir() else relocate(data, rules))
            self._cache.store_file(staged, destination)
        atomic_write(marker, source_digest.encode("ascii"))
        return destination
