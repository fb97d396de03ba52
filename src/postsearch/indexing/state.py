"""Index bookkeeping: stored content hashes and per-document leases."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Protocol

from postsearch.errors import IndexingError


class IndexStateStore(Protocol):
    """Persists the content hash each post was last indexed with."""

    def get_content_hash(self, uri: str) -> str | None:
        """Return the stored hash, or None when the post was never indexed."""

    def set_content_hash(self, uri: str, content_hash: str) -> None:
        """Record the hash of the text that is now indexed."""

    def clear(self, uri: str) -> None:
        """Forget the post so its next pass re-indexes it."""


class InMemoryIndexStateStore:
    """Process-local state store for tests and single-process jobs."""

    def __init__(self) -> None:
        self._hashes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_content_hash(self, uri: str) -> str | None:
        with self._lock:
            return self._hashes.get(uri)

    def set_content_hash(self, uri: str, content_hash: str) -> None:
        with self._lock:
            self._hashes[uri] = content_hash

    def clear(self, uri: str) -> None:
        with self._lock:
            self._hashes.pop(uri, None)


class DocumentLeases:
    """Per-URI mutual exclusion so one process never indexes a post twice at once.

    This only serializes work inside a single process; jobs running in
    separate workers need a lease in the scheduler as well.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._holders: Dict[str, int] = {}

    @contextmanager
    def hold(self, uri: str, timeout: float | None = None) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(uri, threading.Lock())
            self._holders[uri] = self._holders.get(uri, 0) + 1
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        try:
            if not acquired:
                raise IndexingError(f"Document {uri} is already being indexed")
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                self._holders[uri] -= 1
                if self._holders[uri] == 0:
                    del self._holders[uri]
                    del self._locks[uri]

    def is_held(self, uri: str) -> bool:
        with self._guard:
            lock = self._locks.get(uri)
        return lock is not None and lock.locked()
