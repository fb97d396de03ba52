"""Content fingerprints for change detection."""

from __future__ import annotations

import hashlib

# Bump whenever extraction or normalization changes output for the same
# input; every stored hash then goes stale and posts are re-indexed.
#   v1: initial extraction logic
CONTENT_HASH_VERSION = "v1"

DIGEST_BYTES = 8


def hash_content(text: str, *, version: str = CONTENT_HASH_VERSION) -> str:
    """Return the first 64 bits of SHA-256 over ``"<version>:<text>"`` as hex.

    Truncation keeps stored hashes compact; this is not a security primitive.
    """

    digest = hashlib.sha256(f"{version}:{text}".encode("utf-8")).digest()
    return digest[:DIGEST_BYTES].hex()


__all__ = ["CONTENT_HASH_VERSION", "hash_content"]
