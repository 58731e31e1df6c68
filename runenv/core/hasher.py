"""Checksum helpers for cache validation and download verification.

Repositories publish SHA-1 sidecars next to every file; asset declarations
may carry MD5, SHA-1 or SHA-256 digests. The algorithm is inferred from the
digest length.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

_ALGORITHMS_BY_LENGTH = {32: "md5", 40: "sha1", 64: "sha256"}
_CHUNK_SIZE = 1 << 16


def algorithm_for(digest: str) -> str:
    """Return the hashlib algorithm name matching a hex digest's length."""
    try:
        return _ALGORITHMS_BY_LENGTH[len(digest.strip())]
    except KeyError:
        raise ValueError(f"Unrecognised checksum length: {digest!r}") from None


def sha1_hex(data: bytes) -> str:
    """Return the SHA-1 hex digest of raw bytes."""
    return hashlib.sha1(data).hexdigest()


def digest_bytes(data: bytes, algorithm: str = "sha1") -> str:
    return hashlib.new(algorithm, data).hexdigest()


def digest_file(path: Path, algorithm: str = "sha1") -> str:
    """Hash a file in chunks."""
    h = hashlib.new(algorithm)
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def parse_sidecar(text: str) -> str:
    """Extract the digest from a checksum sidecar.

    Sidecars are either the bare digest or ``<digest>  <filename>``.
    """
    parts = text.strip().split()
    return parts[0].lower() if parts else ""


def matches(path: Path, expected: str) -> bool:
    """True if ``path`` exists and hashes to ``expected``."""
    path = Path(path)
    if not path.is_file() or not expected:
        return False
    try:
        algorithm = algorithm_for(expected)
    except ValueError:
        return False
    return digest_file(path, algorithm) == expected.strip().lower()
