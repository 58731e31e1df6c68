"""Runtime search-path primitive.

The injector only decides *what* to inject and in which order; a
``SearchPath`` decides *how*. The default implementation appends archives to
``sys.path`` (``zipimport`` serves modules straight out of a jar or zip) and
answers presence queries with ``importlib.util.find_spec``.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import sys
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Shared by every instance, since several may wrap the same list
_APPEND_LOCK = threading.Lock()


@runtime_checkable
class SearchPath(Protocol):
    """Capability handed to the injector."""

    def is_present(self, marker: str) -> bool:
        """True if ``marker`` is already resolvable in this process."""
        ...

    def append(self, paths: Sequence[Path]) -> list[Path]:
        """Make ``paths`` resolvable; returns the ones newly added."""
        ...


class SysPathSearchPath:
    """Injects archives into ``sys.path``.

    Appending is idempotent: an archive already on the path is not added a
    second time, so repeated or concurrent injections of the same closure do
    not duplicate entries.

    Parameters
    ----------
    path_list:
        The list to append to. Defaults to ``sys.path``.
    """

    def __init__(self, path_list: list[str] | None = None) -> None:
        self._path = sys.path if path_list is None else path_list

    def is_present(self, marker: str) -> bool:
        try:
            return importlib.util.find_spec(marker) is not None
        except (ImportError, ValueError):
            return False

    def append(self, paths: Sequence[Path]) -> list[Path]:
        added: list[Path] = []
        with _APPEND_LOCK:
            for path in paths:
                entry = str(Path(path).resolve())
                if entry in self._path:
                    continue
                self._path.append(entry)
                added.append(Path(entry))
        if added:
            importlib.invalidate_caches()
            logger.debug("Appended %d archive(s) to the search path", len(added))
        return added
