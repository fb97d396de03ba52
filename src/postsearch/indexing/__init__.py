"""Write-path orchestration."""

from .service import IndexingService, IndexRequest, IndexResult, IndexStatus
from .state import DocumentLeases, IndexStateStore, InMemoryIndexStateStore

__all__ = [
    "DocumentLeases",
    "IndexRequest",
    "IndexResult",
    "IndexStatus",
    "IndexStateStore",
    "IndexingService",
    "InMemoryIndexStateStore",
]
