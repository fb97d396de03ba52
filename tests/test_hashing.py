from __future__ import annotations

from postsearch.hashing import CONTENT_HASH_VERSION, hash_content


def test_hash_is_truncated_sha256_with_version_prefix() -> None:
    assert CONTENT_HASH_VERSION == "v1"
    assert hash_content("hello world") == "65eeeca313ec0632"
    assert hash_content("") == "f7c3668944a7d72c"


def test_hash_is_deterministic_and_sensitive_to_text() -> None:
    assert hash_content("same text") == hash_content("same text")
    assert hash_content("same text") != hash_content("same text!")


def test_version_change_invalidates_hashes() -> None:
    assert hash_content("post body", version="v2") != hash_content("post body")


def test_hash_handles_unicode() -> None:
    digest = hash_content("日本語のブログ 🚀")
    assert len(digest) == 16
    int(digest, 16)
