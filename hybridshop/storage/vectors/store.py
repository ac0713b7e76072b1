"""
Vector Store
============

One embedding per product in a Qdrant collection (cosine distance).

The point id is the product id assigned by the document store. The
payload carries the fields needed to filter (is_active) and to rebuild a
minimal product when the document store cannot be reached.

qdrant-client's QdrantClient is synchronous; calls run in the default
executor, as FalkorDBClient does.
"""

import asyncio
import math
import structlog
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from qdrant_client import QdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointIdsList,
    PointStruct,
    VectorParams,
)

from hybridshop.storage.errors import InvalidEmbedding, StoreUnavailable
from hybridshop.storage.vectors.config import VectorStoreConfig

log = structlog.get_logger()

STORE_NAME = "vector"


@dataclass
class VectorHit:
    """
    Nearest-neighbour result.

    Attributes:
        id: Product id
        certainty: Cosine similarity reported by Qdrant
        payload: Stored payload
    """
    id: str
    certainty: float
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return bool(self.payload.get("is_active", True))

    def __repr__(self) -> str:
        return f"<VectorHit(id={self.id[:8]}..., certainty={self.certainty:.3f})>"


def validate_vector(vector: Sequence[float], dimension: int) -> List[float]:
    """
    Check a query or document vector before it reaches Qdrant.

    Raises:
        InvalidEmbedding: empty, wrong dimension, non-numeric or non-finite values
    """
    if vector is None or len(vector) == 0:
        raise InvalidEmbedding("Embedding is empty", store=STORE_NAME)
    if len(vector) != dimension:
        raise InvalidEmbedding(
            f"Embedding dimension mismatch: expected {dimension}, got {len(vector)}",
            store=STORE_NAME,
        )
    try:
        values = [float(x) for x in vector]
    except (TypeError, ValueError) as e:
        raise InvalidEmbedding(f"Embedding has non-numeric values: {e}", store=STORE_NAME) from e
    if not all(math.isfinite(x) for x in values):
        raise InvalidEmbedding("Embedding has NaN or infinite values", store=STORE_NAME)
    return values


class VectorStore:
    """
    Qdrant adapter.

    Example:
        store = VectorStore(VectorStoreConfig(location=":memory:", dimension=4))
        await store.connect()
        await store.upsert(product.id, product.vector_payload(), vector)
        hits = await store.nearest_neighbors(query_vector, limit=5, min_certainty=0.7)
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None, client: Optional[QdrantClient] = None):
        self.config = config or VectorStoreConfig()
        self._client: Optional[QdrantClient] = client
        self._connected = client is not None

        log.info(
            f"VectorStore initialized - "
            f"collection={self.config.collection_name}, dimension={self.config.dimension}"
        )

    @property
    def dimension(self) -> int:
        return self.config.dimension

    async def connect(self):
        if self._connected:
            log.debug("Already connected to Qdrant")
            return

        if self.config.location:
            self._client = QdrantClient(location=self.config.location)
        else:
            self._client = QdrantClient(host=self.config.host, port=self.config.port)
        self._connected = True
        try:
            await self.ensure_collection()
        except StoreUnavailable:
            await self.close()
            raise
        log.info(f"Qdrant connected: {self.config.collection_name}")

    async def close(self):
        if not self._connected:
            return
        self._client.close()
        self._connected = False
        self._client = None
        log.info("Disconnected from Qdrant")

    async def _run(self, method: str, **kwargs):
        """
        Call ``QdrantClient.<method>`` in the executor.

        Raises:
            StoreUnavailable: not connected, or Qdrant failed to answer
        """
        if not self._connected or self._client is None:
            raise StoreUnavailable("Not connected to Qdrant. Call connect() first.", store=STORE_NAME)
        fn = getattr(self._client, method)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, partial(fn, **kwargs))
        except (UnexpectedResponse, ResponseHandlingException, OSError) as e:
            log.error(f"Qdrant {method} failed: {e}")
            raise StoreUnavailable(f"Qdrant {method} failed: {e}", store=STORE_NAME) from e

    async def ensure_collection(self) -> None:
        """Create the collection (cosine distance) if it does not exist."""
        response = await self._run("get_collections")
        existing = [c.name for c in response.collections]
        if self.config.collection_name in existing:
            return

        await self._run(
            "create_collection",
            collection_name=self.config.collection_name,
            vectors_config=VectorParams(size=self.config.dimension, distance=Distance.COSINE),
        )
        log.info(f"Created Qdrant collection: {self.config.collection_name}")

    async def upsert(self, entity_id: str, properties: Dict[str, Any], vector: Sequence[float]) -> None:
        """Insert or replace the single embedding of ``entity_id``."""
        values = validate_vector(vector, self.config.dimension)
        point = PointStruct(id=entity_id, vector=values, payload=dict(properties))
        await self._run(
            "upsert",
            collection_name=self.config.collection_name,
            points=[point],
        )
        log.debug(f"Upserted vector for {entity_id}")

    async def nearest_neighbors(
        self,
        vector: Sequence[float],
        limit: int,
        min_certainty: float,
        active_only: bool = True,
    ) -> List[VectorHit]:
        """
        Nearest neighbours with certainty >= ``min_certainty``.

        Args:
            vector: Query vector (validated)
            limit: Maximum hits
            min_certainty: Cosine similarity cut-off
            active_only: Push the is_active filter down to Qdrant
        """
        values = validate_vector(vector, self.config.dimension)
        query_filter = None
        if active_only:
            query_filter = Filter(must=[FieldCondition(key="is_active", match=MatchValue(value=True))])

        response = await self._run(
            "query_points",
            collection_name=self.config.collection_name,
            query=values,
            limit=limit,
            score_threshold=min_certainty,
            query_filter=query_filter,
            with_payload=True,
        )

        # Qdrant applies score_threshold; re-check in case a backend ignores it
        return [
            VectorHit(id=str(p.id), certainty=float(p.score), payload=p.payload or {})
            for p in response.points
            if p.score >= min_certainty
        ]

    async def get_vector(self, entity_id: str) -> Optional[List[float]]:
        points = await self._run(
            "retrieve",
            collection_name=self.config.collection_name,
            ids=[entity_id],
            with_vectors=True,
        )
        if not points:
            return None
        return list(points[0].vector)

    async def delete(self, entity_id: str) -> None:
        """Delete the embedding of ``entity_id`` (no-op if absent)."""
        await self._run(
            "delete",
            collection_name=self.config.collection_name,
            points_selector=PointIdsList(points=[entity_id]),
        )
        log.debug(f"Deleted vector for {entity_id}")

    async def health_check(self) -> bool:
        try:
            if not self._connected:
                await self.connect()
            await self._run("get_collections")
            return True
        except Exception as e:
            log.error(f"Qdrant health check failed: {e}")
            return False
