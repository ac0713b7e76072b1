"""
Vector Storage
==============

Qdrant product embeddings and the Ollama embedding provider.
"""

from hybridshop.storage.vectors.config import EmbeddingConfig, VectorStoreConfig
from hybridshop.storage.vectors.embeddings import OllamaEmbeddingProvider
from hybridshop.storage.vectors.store import VectorHit, VectorStore, validate_vector

__all__ = [
    "EmbeddingConfig",
    "OllamaEmbeddingProvider",
    "VectorHit",
    "VectorStore",
    "VectorStoreConfig",
    "validate_vector",
]
