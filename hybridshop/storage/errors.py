"""
Storage Errors
==============

Error taxonomy shared by the three store adapters and the hybrid coordinator.

Kinds:
- NotFound: record absent from the store consulted (a no-op for delete)
- StoreUnavailable: adapter cannot reach its backend
- InvalidEmbedding: malformed or wrong-dimension vector, never retried
- EmbeddingError: embedding provider failed (caught by the coordinator)
- PartialSyncFailure: secondary-store write failed; logged, never raised

"No match" after the threshold cascade is an empty list, not an exception.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


class HybridStoreError(Exception):
    """Base class for storage errors."""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        entity_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.store = store
        self.entity_id = entity_id


class NotFound(HybridStoreError):
    """Entity absent from the store consulted."""


class StoreUnavailable(HybridStoreError):
    """Store adapter cannot be reached."""


class InvalidEmbedding(HybridStoreError):
    """Malformed or wrong-dimension embedding vector."""


class EmbeddingError(HybridStoreError):
    """Embedding provider failed to produce a vector."""


@dataclass
class PartialSyncFailure:
    """
    A secondary-store write or delete that failed during an otherwise
    successful operation.

    Kept by the coordinator for out-of-band reconciliation.

    Attributes:
        store: "vector" or "graph"
        entity_id: Id of the entity being synchronized
        operation: create, update, remove or sync
        error: String form of the underlying exception
    """
    store: str
    entity_id: str
    operation: str
    error: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return (
            f"<PartialSyncFailure(store={self.store}, entity_id={self.entity_id}, "
            f"operation={self.operation}, error={self.error[:60]})>"
        )
