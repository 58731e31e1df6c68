"""Literal-escape convention for user-supplied strings.

A leading ``!`` marks the remainder as a literal value. The marker lets a
declaration carry a string that a build-time shading tool would otherwise
rewrite (``"!kotlin."`` survives relocation of ``kotlin.``). It is applied
uniformly to coordinates, test expressions and relocation patterns.
"""

from __future__ import annotations

ESCAPE_MARKER = "!"


def unescape(value: str) -> str:
    """Strip a single leading escape marker, if present."""
    return value[1:] if value.startswith(ESCAPE_MARKER) else value
