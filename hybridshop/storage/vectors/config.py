"""
Vector Store and Embedding Configuration
========================================

Environment Variables:
    QDRANT_HOST: Qdrant host (default: localhost)
    QDRANT_PORT: Qdrant port (default: 6333)
    QDRANT_LOCATION: Optional location (e.g. ":memory:"); overrides host/port
    QDRANT_COLLECTION: Collection name (default: hybridshop_dev_products)
    OLLAMA_BASE_URL: Ollama server (default: http://localhost:11434)
    EMBEDDING_MODEL: Embedding model (default: nomic-embed-text:latest)
    EMBEDDING_DIMENSION: Vector size (default: 768)
    EMBEDDING_TIMEOUT_S: HTTP timeout in seconds (default: 30)
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _get_env_str(key: str, default: str) -> str:
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


@dataclass
class VectorStoreConfig:
    """
    Qdrant connection settings.

    Attributes:
        host / port: Qdrant server
        location: Alternative to host/port, e.g. ":memory:" for local runs
        collection_name: Product collection
        dimension: Vector size; must match the embedding model
    """
    host: str = field(default_factory=lambda: _get_env_str("QDRANT_HOST", "localhost"))
    port: int = field(default_factory=lambda: _get_env_int("QDRANT_PORT", 6333))
    location: Optional[str] = field(default_factory=lambda: _get_env_str("QDRANT_LOCATION", "") or None)
    collection_name: str = field(default_factory=lambda: _get_env_str("QDRANT_COLLECTION", "hybridshop_dev_products"))
    dimension: int = field(default_factory=lambda: _get_env_int("EMBEDDING_DIMENSION", 768))

    def __post_init__(self):
        if self.dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {self.dimension}")

    @classmethod
    def from_environment(cls, env_config) -> "VectorStoreConfig":
        return cls(collection_name=env_config.qdrant_collection)


@dataclass
class EmbeddingConfig:
    """Ollama embedding endpoint settings."""
    base_url: str = field(default_factory=lambda: _get_env_str("OLLAMA_BASE_URL", "http://localhost:11434"))
    model: str = field(default_factory=lambda: _get_env_str("EMBEDDING_MODEL", "nomic-embed-text:latest"))
    dimension: int = field(default_factory=lambda: _get_env_int("EMBEDDING_DIMENSION", 768))
    timeout_s: int = field(default_factory=lambda: _get_env_int("EMBEDDING_TIMEOUT_S", 30))
