"""
hybridshop Test Configuration
=============================

Shared fixtures for all tests.

The document store runs for real on in-memory SQLite (aiosqlite). Qdrant,
FalkorDB and Ollama are replaced by in-process doubles.
"""

import math
from typing import Dict, List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest
import pytest_asyncio

from hybridshop.config import SearchWeights
from hybridshop.storage.errors import EmbeddingError
from hybridshop.storage.vectors.store import VectorHit, validate_vector

DIMENSION = 4


def unit_vector_at(cosine: float) -> List[float]:
    """4-d unit vector whose cosine with [1, 0, 0, 0] is ``cosine``."""
    return [cosine, math.sqrt(max(0.0, 1.0 - cosine * cosine)), 0.0, 0.0]


QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]


class FakeVectorStore:
    """
    In-memory stand-in for VectorStore with the same async surface.

    Scores are cosine similarities computed with numpy; every
    nearest_neighbors call is recorded in ``searches``.
    """

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.points: Dict[str, Dict] = {}
        self.searches: List[float] = []
        self.fail_with: Optional[Exception] = None

    async def upsert(self, entity_id: str, properties: Dict, vector: Sequence[float]) -> None:
        if self.fail_with:
            raise self.fail_with
        values = validate_vector(vector, self.dimension)
        self.points[entity_id] = {"vector": values, "payload": dict(properties)}

    async def nearest_neighbors(self, vector, limit, min_certainty, active_only=True) -> List[VectorHit]:
        if self.fail_with:
            raise self.fail_with
        values = np.asarray(validate_vector(vector, self.dimension))
        self.searches.append(min_certainty)

        hits = []
        for point_id, point in self.points.items():
            if active_only and not point["payload"].get("is_active", True):
                continue
            other = np.asarray(point["vector"])
            norm = np.linalg.norm(values) * np.linalg.norm(other)
            score = float(np.dot(values, other) / norm) if norm else 0.0
            if score >= min_certainty:
                hits.append(VectorHit(id=point_id, certainty=score, payload=point["payload"]))
        hits.sort(key=lambda h: h.certainty, reverse=True)
        return hits[:limit]

    async def get_vector(self, entity_id: str) -> Optional[List[float]]:
        point = self.points.get(entity_id)
        return list(point["vector"]) if point else None

    async def delete(self, entity_id: str) -> None:
        if self.fail_with:
            raise self.fail_with
        self.points.pop(entity_id, None)

    async def health_check(self) -> bool:
        return self.fail_with is None


class FakeEmbeddings:
    """Text -> vector lookup; unknown text maps to ``default``."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None):
        self.vectors = dict(vectors or {})
        self.default = default or [0.0, 0.0, 1.0, 0.0]
        self.fail = False
        self.calls: List[str] = []

    @property
    def dimension(self) -> int:
        return len(self.default)

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("embedding provider down", store="embedding")
        return list(self.vectors.get(text, self.default))

    async def health_check(self) -> bool:
        return not self.fail

    async def close(self):
        pass


# Environment fixtures
@pytest.fixture
def test_config():
    """Get test environment configuration."""
    from hybridshop.config import get_environment_config, TEST_ENV
    return get_environment_config(TEST_ENV)


@pytest.fixture
def weights():
    """Default search weights (independent of the packaged YAML)."""
    return SearchWeights()


# Mock FalkorDB client for unit tests
@pytest.fixture
def mock_falkordb():
    """Mock FalkorDB client for unit tests."""
    from hybridshop.storage.graph import FalkorDBConfig

    client = MagicMock()
    client.connect = AsyncMock()
    client.config = FalkorDBConfig(graph_name="hybridshop_test", max_hops=3)
    client.close = AsyncMock()
    client.query = AsyncMock(return_value=[])
    client.shortest_path = AsyncMock(return_value=None)
    client.health_check = AsyncMock(return_value=True)
    return client


@pytest.fixture
def mock_graph():
    """GraphStore double: every coroutine is an AsyncMock with empty results."""
    from hybridshop.storage.graph import GraphStore

    graph = MagicMock(spec=GraphStore)
    graph.create_node = AsyncMock(return_value=None)
    graph.replace_node_properties = AsyncMock(return_value=None)
    graph.ensure_node = AsyncMock(return_value=None)
    graph.create_edge = AsyncMock(return_value=True)
    graph.delete_edges = AsyncMock(return_value=None)
    graph.delete_node = AsyncMock(return_value=True)
    graph.get_node = AsyncMock(return_value=None)
    graph.get_neighbors = AsyncMock(return_value=[])
    graph.find_structurally_similar = AsyncMock(return_value=[])
    graph.find_products_in_category = AsyncMock(return_value=[])
    graph.find_frequently_bought_together = AsyncMock(return_value=[])
    graph.find_recommendations_for_customer = AsyncMock(return_value=[])
    graph.find_popular_products = AsyncMock(return_value=[])
    graph.find_related = AsyncMock(return_value=[])
    graph.path_between = AsyncMock(return_value=None)
    graph.count_nodes_by_label = AsyncMock(return_value={})
    graph.count_edges_by_type = AsyncMock(return_value={})
    graph.health_check = AsyncMock(return_value=True)
    return graph


@pytest.fixture
def vector_at():
    """Factory for 4-d vectors with a given cosine against ``query_vector``."""
    return unit_vector_at


@pytest.fixture
def query_vector():
    return list(QUERY_VECTOR)


@pytest.fixture
def fake_vectors():
    return FakeVectorStore()


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddings()


@pytest_asyncio.fixture
async def document_store():
    """Connected DocumentStore on in-memory SQLite."""
    from hybridshop.storage.documents import DocumentStore, DocumentStoreConfig

    store = DocumentStore(DocumentStoreConfig.in_memory())
    await store.connect()
    await store.ensure_table_exists()

    yield store

    await store.close()


@pytest_asyncio.fixture
async def repository(document_store, fake_vectors, mock_graph, fake_embeddings, weights):
    """HybridProductRepository over SQLite + fakes."""
    from hybridshop.storage.hybrid import HybridProductRepository

    return HybridProductRepository(document_store, fake_vectors, mock_graph, fake_embeddings, weights)
