"""Relocation rule model."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from runenv.errors import MalformedRelocationRule
from runenv.literal import unescape


class RelocationRule(BaseModel):
    """Rewrite references to ``pattern`` as ``replacement``.

    Patterns are written in dotted module form (``kotlin.``). The path form
    (``kotlin/``) used by archive entry names is derived from it.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(min_length=1)
    replacement: str

    def variants(self) -> list[tuple[str, str]]:
        """Return (pattern, replacement) in dotted form, then in path form."""
        pairs = [(self.pattern, self.replacement)]
        path_pattern = self.pattern.replace(".", "/")
        if path_pattern != self.pattern:
            pairs.append((path_pattern, self.replacement.replace(".", "/")))
        return pairs


def rules_from_pairs(values: Sequence[str]) -> list[RelocationRule]:
    """Build rules from a flat ``[pattern, replacement, ...]`` list.

    Raises
    ------
    MalformedRelocationRule
        If the list has odd length or a pattern is empty.
    """
    if len(values) % 2 != 0:
        raise MalformedRelocationRule(
            f"Relocation list must hold pattern/replacement pairs, got {len(values)} values"
        )
    rules: list[RelocationRule] = []
    for i in range(0, len(values), 2):
        pattern = unescape(values[i])
        if not pattern:
            raise MalformedRelocationRule(f"Empty relocation pattern at position {i}")
        rules.append(RelocationRule(pattern=pattern, replacement=unescape(values[i + 1])))
    return rules
