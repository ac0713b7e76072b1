"""
HybridProductRepository
=======================

One product repository over three stores:

    create / update / remove
            |
            v
    [DocumentStore]  <- source of truth, synchronous, may abort
            |
            +----------------------+
            |                      |
            v                      v
      [VectorStore]           [GraphStore]
      embedding upsert        node + edges
            |                      |
            +---- best effort -----+
                  (PartialSyncFailure on error, never raised)

Reads pick a primary store by query shape and cascade on empty results:
- id lookup -> DocumentStore
- natural language -> VectorStore, adaptive-threshold cascade
- relationships / recommendations -> GraphStore, then vector or document fallback
- hybrid search / recommendations -> vector and graph (or document) results merged
"""

import asyncio
import structlog
from typing import Any, Dict, List, Optional, Sequence

from hybridshop.config import SearchWeights, load_search_weights
from hybridshop.models import Product, ProductData
from hybridshop.storage.documents import DocumentStore
from hybridshop.storage.errors import (
    InvalidEmbedding,
    NotFound,
    PartialSyncFailure,
    StoreUnavailable,
)
from hybridshop.storage.graph import GraphStore
from hybridshop.storage.graph.models import (
    EdgeType,
    GraphNode,
    NodeType,
    product_relationship,
)
from hybridshop.storage.hybrid.models import ProductInsights, SyncReport, product_to_graph
from hybridshop.storage.vectors import OllamaEmbeddingProvider, VectorHit, VectorStore
from hybridshop.storage.vectors.store import validate_vector

log = structlog.get_logger()

# Edges recreated from product fields on every update
_DERIVED_EDGE_TYPES = (
    EdgeType.BELONGS_TO_CATEGORY,
    EdgeType.MADE_BY,
    EdgeType.TAGGED_WITH,
)

# Category documents scanned for the text part of hybrid_search
HYBRID_SEARCH_SCAN = 200


class HybridProductRepository:
    """
    Product repository fronting the document, vector and graph stores.

    Example:
        >>> repo = HybridProductRepository(documents, vectors, graph, embeddings)
        >>> product = await repo.create(ProductData(name="Red leather wallet"))
        >>> await repo.semantic_search("red wallet", limit=5, threshold=0.9)
        [<Product(id=..., name=Red leather wallet, active=True)>]
    """

    def __init__(
        self,
        documents: DocumentStore,
        vectors: VectorStore,
        graph: GraphStore,
        embeddings: OllamaEmbeddingProvider,
        weights: Optional[SearchWeights] = None,
    ):
        self.documents = documents
        self.vectors = vectors
        self.graph = graph
        self.embeddings = embeddings
        self.weights = weights or load_search_weights()
        self.sync_failures: List[PartialSyncFailure] = []

        log.info(
            f"HybridProductRepository initialized - "
            f"cascade={self.weights.cascade.multipliers} floor={self.weights.cascade.floor}, "
            f"graph_blend=({self.weights.graph_similarity.category_weight}, "
            f"{self.weights.graph_similarity.feature_weight})"
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, data: ProductData) -> Product:
        """
        Create a product in all stores.

        The document store assigns the id; vector and graph writes reuse it.

        Raises:
            StoreUnavailable: document store write failed (nothing else attempted)
        """
        product = await self.documents.create(data)
        log.info(f"Product created in document store: {product.id}")

        await self._fan_out(
            product.id,
            "create",
            vector=self._write_vector(product),
            graph=self._write_graph(product, replace=False),
        )
        return product

    async def update(self, product_id: str, fields: Dict[str, Any]) -> Product:
        """
        Merge ``fields`` into a product and rewrite its derived representations.

        Raises:
            NotFound: no product with this id
            StoreUnavailable: document store write failed
        """
        product = await self.documents.update(product_id, fields)
        if product is None:
            raise NotFound(f"Product {product_id} not found", store="document", entity_id=product_id)
        log.info(f"Product updated in document store: {product_id}")

        await self._fan_out(
            product_id,
            "update",
            vector=self._write_vector(product),
            graph=self._write_graph(product, replace=True),
        )
        return product

    async def remove(self, product_id: str) -> None:
        """
        Delete a product everywhere. Missing records are not an error.

        Raises:
            StoreUnavailable: document store delete failed
        """
        removed = await self.documents.delete(product_id)
        if not removed:
            log.debug(f"Product {product_id} already absent from document store")

        await self._fan_out(
            product_id,
            "remove",
            vector=self.vectors.delete(product_id),
            graph=self.graph.delete_node(NodeType.PRODUCT, product_id),
        )

    async def _fan_out(self, entity_id: str, operation: str, **writes) -> List[PartialSyncFailure]:
        """
        Run secondary writes concurrently; convert failures into PartialSyncFailure.

        The gather is shielded so a cancelled caller does not abort writes
        already in flight.
        """
        stores = list(writes.keys())
        results = await asyncio.shield(
            asyncio.gather(*writes.values(), return_exceptions=True)
        )

        failures = []
        for store, res in zip(stores, results):
            if isinstance(res, BaseException):
                failure = PartialSyncFailure(
                    store=store,
                    entity_id=entity_id,
                    operation=operation,
                    error=str(res) or res.__class__.__name__,
                )
                log.warning(
                    "partial_sync_failure",
                    store=store,
                    entity_id=entity_id,
                    operation=operation,
                    error=failure.error,
                )
                self.sync_failures.append(failure)
                failures.append(failure)
        return failures

    async def _embed_or_zero(self, text: str, entity_id: str) -> List[float]:
        """Embedding of ``text``; zero vector if the provider fails or returns garbage."""
        try:
            vector = await self.embeddings.embed(text)
            return validate_vector(vector, self.vectors.dimension)
        except Exception as e:
            log.warning(f"Embedding failed for {entity_id}, storing zero vector: {e}")
            return [0.0] * self.vectors.dimension

    async def _write_vector(self, product: Product) -> None:
        vector = await self._embed_or_zero(product.vectorizable_text(), product.id)
        await self.vectors.upsert(product.id, product.vector_payload(), vector)
        log.debug(f"Product {product.id} written to vector store")

    async def _write_graph(self, product: Product, replace: bool) -> None:
        node, related, edges = product_to_graph(product)

        if replace:
            await self.graph.replace_node_properties(node)
            for edge_type in _DERIVED_EDGE_TYPES:
                await self.graph.delete_edges(edge_type, NodeType.PRODUCT, product.id)
        else:
            await self.graph.create_node(node)

        for related_node in related:
            await self.graph.ensure_node(related_node)
        for edge in edges:
            await self.graph.create_edge(edge)

        log.debug(f"Product {product.id} written to graph store ({len(edges)} edges)")

    # ------------------------------------------------------------------
    # Id lookups
    # ------------------------------------------------------------------

    async def find_by_id(self, product_id: str) -> Product:
        """
        Raises:
            NotFound: product absent
            StoreUnavailable: document store unreachable
        """
        product = await self.documents.find_by_id(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found", store="document", entity_id=product_id)
        return product

    async def find_by_ids(self, product_ids: List[str]) -> List[Product]:
        return await self.documents.find_by_ids(product_ids)

    async def find_all_with_pagination(self, page: int = 1, page_size: int = 20) -> List[Product]:
        return await self.documents.find_page(page, page_size)

    # ------------------------------------------------------------------
    # Semantic search
    # ------------------------------------------------------------------

    async def semantic_search(self, query_text: str, limit: int = 10, threshold: float = 0.7) -> List[Product]:
        """
        Natural-language search with an adaptive-threshold cascade.

        An empty list means no match at any tier (or an unembeddable query);
        it is not an error.

        Raises:
            InvalidEmbedding: the provider returned a malformed vector
        """
        try:
            vector = await self.embeddings.embed(query_text)
        except Exception as e:
            log.warning(f"Query embedding failed, no semantic results: {e}")
            return []

        return await self.semantic_search_by_vector(vector, limit, threshold)

    async def semantic_search_by_vector(
        self,
        vector: Sequence[float],
        limit: int = 10,
        threshold: float = 0.7,
    ) -> List[Product]:
        """
        Cascade over relaxed thresholds for a caller-supplied query vector.

        Tiers: threshold, threshold * m for each configured multiplier,
        then the floor. The first tier with at least one active hit wins.

        Raises:
            InvalidEmbedding: malformed or wrong-dimension vector (before any store call)
            ValueError: threshold outside [0, 1] or limit < 1
        """
        values = validate_vector(vector, self.vectors.dimension)
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        if not any(values):
            # A zero query vector has no cosine similarity to anything
            log.info("semantic_search: zero query vector, no match")
            return []

        for tier in self.weights.cascade.tiers(threshold):
            try:
                hits = await self.vectors.nearest_neighbors(values, limit, tier)
            except InvalidEmbedding:
                raise
            except Exception as e:
                log.error(f"Vector store unavailable during semantic search: {e}")
                return []

            active = [h for h in hits if h.is_active]
            log.debug(f"semantic_search tier={tier:.3f} hits={len(hits)} active={len(active)}")
            if active:
                log.info(f"semantic_search matched {len(active)} at threshold {tier:.3f}")
                return await self._hydrate(active[:limit])

        log.info(f"semantic_search: no match down to floor {self.weights.cascade.floor}")
        return []

    async def _hydrate(self, hits: List[VectorHit]) -> List[Product]:
        """
        Authoritative records for vector hits, in hit order.

        Falls back to the vector payloads when the document store is down.
        """
        ids = [h.id for h in hits]
        try:
            products = await self.documents.find_by_ids(ids)
        except StoreUnavailable as e:
            log.warning(f"Document store unavailable, returning vector payloads: {e}")
            return [Product.from_vector_payload(h.id, h.payload) for h in hits]

        missing = set(ids) - {p.id for p in products}
        if missing:
            log.warning(f"Vector hits without document record: {sorted(missing)}")
        return [p for p in products if p.is_active]

    async def _products_for_ids(self, product_ids: List[str]) -> List[Product]:
        """Active documents for graph-derived ids; [] if the document store is down."""
        if not product_ids:
            return []
        try:
            products = await self.documents.find_by_ids(product_ids)
        except StoreUnavailable as e:
            log.warning(f"Document store unavailable for graph results: {e}")
            return []
        return [p for p in products if p.is_active]

    # ------------------------------------------------------------------
    # Relationship reads
    # ------------------------------------------------------------------

    async def find_similar_products(self, product_id: str, limit: int = 10) -> List[Product]:
        """
        Similar products: graph structure first, vector neighbours as fallback.

        Graph score = category_weight * shared categories
                      + feature_weight * shared features
        """
        blend = self.weights.graph_similarity
        try:
            pairs = await self.graph.find_structurally_similar(
                product_id, limit, blend.category_weight, blend.feature_weight
            )
        except Exception as e:
            log.warning(f"Graph similarity failed for {product_id}, falling back to vectors: {e}")
            pairs = []

        if pairs:
            products = await self._products_for_ids([pid for pid, _ in pairs])
            if products:
                log.debug(f"find_similar_products {product_id}: {len(products)} via graph")
                return products

        return await self._similar_by_vector(product_id, limit)

    async def _similar_by_vector(self, product_id: str, limit: int) -> List[Product]:
        try:
            vector = await self.vectors.get_vector(product_id)
            if vector is None or not any(vector):
                log.debug(f"No usable vector for {product_id}, no similar products")
                return []
            hits = await self.vectors.nearest_neighbors(
                vector, limit + 1, self.weights.cascade.floor
            )
        except Exception as e:
            log.warning(f"Vector similarity failed for {product_id}: {e}")
            return []

        hits = [h for h in hits if h.id != product_id and h.is_active][:limit]
        log.debug(f"find_similar_products {product_id}: {len(hits)} via vectors")
        return await self._hydrate(hits) if hits else []

    async def find_by_category(self, category_id: str, page: int = 1, page_size: int = 20) -> List[Product]:
        """Products of a category: graph traversal, document filter as fallback."""
        page = max(page, 1)
        try:
            ids = await self.graph.find_products_in_category(
                category_id, skip=(page - 1) * page_size, limit=page_size
            )
        except Exception as e:
            log.warning(f"Graph category lookup failed for {category_id}: {e}")
            ids = []

        if ids:
            products = await self._products_for_ids(ids)
            if products:
                return products

        return await self.documents.find_by_category(category_id, page, page_size)

    async def find_frequently_bought_together(self, product_id: str, limit: int = 5) -> List[Product]:
        try:
            pairs = await self.graph.find_frequently_bought_together(product_id, limit)
        except Exception as e:
            log.warning(f"Frequently-bought-together failed for {product_id}: {e}")
            return []
        return await self._products_for_ids([pid for pid, _ in pairs])

    async def get_product_recommendations(self, customer_id: str, limit: int = 10) -> List[Product]:
        """Products matching the customer's category/brand preferences."""
        try:
            pairs = await self.graph.find_recommendations_for_customer(customer_id, limit)
        except Exception as e:
            log.warning(f"Recommendations failed for customer {customer_id}: {e}")
            return []
        return await self._products_for_ids([pid for pid, _ in pairs])

    async def get_popular_products(self, limit: int = 10, category_id: Optional[str] = None) -> List[Product]:
        """Most purchased/viewed products; newest active documents when the graph has none."""
        try:
            pairs = await self.graph.find_popular_products(limit, category_id=category_id)
        except Exception as e:
            log.warning(f"Graph popularity query failed: {e}")
            pairs = []

        if pairs:
            products = await self._products_for_ids([pid for pid, _ in pairs])
            if products:
                return products

        return await self.documents.find_page(1, limit, active_only=True, category_id=category_id)

    async def find_related(self, product_id: str, hops: int = 2, limit: int = 20) -> List[Product]:
        """
        Products reachable from ``product_id`` within ``hops`` graph edges, nearest first.

        Paths may run through categories, brands, features or customers.
        Records come from the document store; [] when the graph is down.

        Raises:
            ValueError: hops outside [1, max_hops]
        """
        try:
            related = await self.graph.find_related(
                NodeType.PRODUCT, product_id, hops, target_type=NodeType.PRODUCT, limit=limit
            )
        except ValueError:
            raise
        except Exception as e:
            log.warning(f"Graph traversal failed for {product_id}: {e}")
            return []
        return await self._products_for_ids([node_id for _, node_id, _ in related])

    async def find_connection(self, product_id_a: str, product_id_b: str) -> Optional[Dict[str, Any]]:
        """Shortest graph path between two products ({"edges", "nodes", "length"}), or None."""
        try:
            return await self.graph.path_between(NodeType.PRODUCT, product_id_a, NodeType.PRODUCT, product_id_b)
        except Exception as e:
            log.warning(f"Path lookup {product_id_a} -> {product_id_b} failed: {e}")
            return None

    async def hybrid_recommendations(self, product_id: str, limit: int = 6) -> List[Product]:
        """
        Half graph neighbours (one hop), half vector neighbours, without duplicates.

        Graph results come first; vector results fill the remaining slots.

        Raises:
            NotFound: product absent
        """
        await self.find_by_id(product_id)
        graph_share = limit // 2

        graph_part = await self.find_related(product_id, hops=1, limit=graph_share) if graph_share else []
        vector_part = await self._similar_by_vector(product_id, limit - graph_share)

        seen = {product_id}
        merged = []
        for product in graph_part[:graph_share] + vector_part:
            if product.id not in seen:
                seen.add(product.id)
                merged.append(product)
        return merged[:limit]

    async def hybrid_search(
        self,
        query_text: str,
        limit: int = 10,
        threshold: float = 0.7,
        category_id: Optional[str] = None,
        brand_id: Optional[str] = None,
    ) -> List[Product]:
        """
        Semantic search merged with a text match over the category's documents.

        With ``category_id`` the category's active products whose name or
        description contains ``query_text`` (case-insensitive) are appended.
        The results are then restricted to ``category_id`` and ``brand_id``.
        Order: semantic hits first, duplicates dropped.
        """
        results = await self.semantic_search(query_text, limit=max(limit, 15), threshold=threshold)

        if category_id is not None:
            needle = query_text.lower()
            try:
                in_category = await self.documents.find_page(
                    1, HYBRID_SEARCH_SCAN, active_only=True, category_id=category_id
                )
            except StoreUnavailable as e:
                log.warning(f"Document text match skipped for category {category_id}: {e}")
                in_category = []
            results = results + [
                p for p in in_category
                if needle in p.name.lower() or needle in (p.description or "").lower()
            ]
            results = [p for p in results if p.category and p.category.id == category_id]

        if brand_id is not None:
            results = [p for p in results if p.brand and p.brand.id == brand_id]

        seen = set()
        unique = []
        for product in results:
            if product.id not in seen:
                seen.add(product.id)
                unique.append(product)
        return unique[:limit]

    async def get_product_insights(self, product_id: str) -> ProductInsights:
        """
        Similar, co-purchased and category views of one product, gathered concurrently.

        Raises:
            NotFound: product absent
        """
        product = await self.find_by_id(product_id)
        category_id = product.category.id if product.category else None

        async def _category() -> Optional[GraphNode]:
            nodes = await self.graph.get_neighbors(
                NodeType.PRODUCT, product_id, EdgeType.BELONGS_TO_CATEGORY, NodeType.CATEGORY, limit=1
            )
            return nodes[0] if nodes else None

        async def _popular_in_category() -> List[Product]:
            if category_id is None:
                return []
            popular = await self.get_popular_products(limit=5, category_id=category_id)
            return [p for p in popular if p.id != product_id]

        results = await asyncio.gather(
            self.find_similar_products(product_id, limit=5),
            self.find_frequently_bought_together(product_id, limit=5),
            _category(),
            _popular_in_category(),
            return_exceptions=True,
        )

        for i, res in enumerate(results):
            if isinstance(res, Exception):
                log.warning(f"Insight part {i} failed for {product_id}: {res}")

        def _ok(res, default):
            return default if isinstance(res, Exception) else res

        return ProductInsights(
            product=product,
            similar=_ok(results[0], []),
            frequently_bought_with=_ok(results[1], []),
            category=_ok(results[2], None),
            popular_in_category=_ok(results[3], []),
        )

    async def create_product_relationship(
        self,
        from_id: str,
        to_id: str,
        edge_type: EdgeType,
        weight: float = 1.0,
        confidence: float = 1.0,
        properties: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Explicit product-to-product edge.

        Returns:
            False if either product node is missing from the graph

        Raises:
            ValueError: edge type is not a product-to-product relationship
            StoreUnavailable: graph store failed
        """
        edge = product_relationship(edge_type, from_id, to_id, weight, confidence, properties)
        try:
            return await self.graph.create_edge(edge)
        except Exception as e:
            log.error(f"Failed to create {edge_type.value} {from_id} -> {to_id}: {e}")
            raise StoreUnavailable(f"Graph write failed: {e}", store="graph", entity_id=from_id) from e

    # ------------------------------------------------------------------
    # Reconciliation and health
    # ------------------------------------------------------------------

    async def sync_product_to_all_stores(self, product_id: str) -> SyncReport:
        """
        Rewrite the vector and graph representations from the document record.

        Out-of-band repair for PartialSyncFailure entries.

        Raises:
            NotFound: product absent from the document store
        """
        product = await self.find_by_id(product_id)
        failures = await self._fan_out(
            product_id,
            "sync",
            vector=self._write_vector(product),
            graph=self._write_graph(product, replace=True),
        )
        failed_stores = {f.store for f in failures}
        report = SyncReport(
            product_id=product_id,
            vector_synced="vector" not in failed_stores,
            graph_synced="graph" not in failed_stores,
            failures=failures,
        )
        log.info(
            f"Product {product_id} synced - vector={report.vector_synced}, graph={report.graph_synced}"
        )
        return report

    async def reconcile_failures(self) -> List[SyncReport]:
        """
        Retry every product with a recorded PartialSyncFailure.

        Products that no longer exist in the document store are removed from
        the secondary stores instead. Failures that persist stay recorded.
        """
        pending = list(dict.fromkeys(f.entity_id for f in self.sync_failures))
        self.sync_failures = []

        reports = []
        for product_id in pending:
            try:
                reports.append(await self.sync_product_to_all_stores(product_id))
            except NotFound:
                log.info(f"Product {product_id} gone from document store, cleaning secondary stores")
                await self._fan_out(
                    product_id,
                    "remove",
                    vector=self.vectors.delete(product_id),
                    graph=self.graph.delete_node(NodeType.PRODUCT, product_id),
                )
        return reports

    async def health_check(self) -> Dict[str, bool]:
        document_ok, vector_ok, graph_ok, embedding_ok = await asyncio.gather(
            self.documents.health_check(),
            self.vectors.health_check(),
            self.graph.health_check(),
            self.embeddings.health_check(),
        )
        return {
            "document": document_ok,
            "vector": vector_ok,
            "graph": graph_ok,
            "embedding": embedding_ok,
        }
