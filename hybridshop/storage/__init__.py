"""
Storage Layer
=============

Products live in three stores kept in sync by HybridProductRepository.

Components:
- documents/: authoritative records (SQLAlchemy async, PostgreSQL/SQLite)
- vectors/: embeddings in Qdrant + Ollama embedding provider
- graph/: product knowledge graph in FalkorDB
- hybrid/: the coordinator (fan-out writes, cascading reads)

Architecture:
                    HybridProductRepository
                             |
        +--------------------+--------------------+
        |                    |                    |
        v                    v                    v
  [DocumentStore]      [VectorStore]         [GraphStore]
  source of truth      semantic search       relationships
        |                    |                    |
   id lookups          threshold cascade     similar / popular /
   pagination          t, 0.7t, 0.5t, 0.1    bought-together
"""

from hybridshop.storage.documents import DocumentStore, DocumentStoreConfig
from hybridshop.storage.errors import (
    EmbeddingError,
    HybridStoreError,
    InvalidEmbedding,
    NotFound,
    PartialSyncFailure,
    StoreUnavailable,
)
from hybridshop.storage.graph import FalkorDBClient, FalkorDBConfig, GraphStore
from hybridshop.storage.hybrid import HybridProductRepository, ProductInsights, SyncReport
from hybridshop.storage.vectors import (
    EmbeddingConfig,
    OllamaEmbeddingProvider,
    VectorStore,
    VectorStoreConfig,
)

__all__ = [
    # Documents
    "DocumentStore",
    "DocumentStoreConfig",
    # Vectors
    "EmbeddingConfig",
    "OllamaEmbeddingProvider",
    "VectorStore",
    "VectorStoreConfig",
    # Graph
    "FalkorDBClient",
    "FalkorDBConfig",
    "GraphStore",
    # Coordinator
    "HybridProductRepository",
    "ProductInsights",
    "SyncReport",
    # Errors
    "EmbeddingError",
    "HybridStoreError",
    "InvalidEmbedding",
    "NotFound",
    "PartialSyncFailure",
    "StoreUnavailable",
]
