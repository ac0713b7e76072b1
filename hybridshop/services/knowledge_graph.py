"""
Knowledge Graph Service
=======================

Derived structures on top of the product graph:

- Feature nodes extracted from product text by one LLM call
- SIMILAR_TO edges from cosine similarity of product embeddings
- Customer behaviour edges (PURCHASED, VIEWED, PREFERS_*) and orders
- Catalog structure: category hierarchy, related categories, suppliers
- Explained recommendations, threaded through an explicit ConversationContext
- Graph statistics and category analytics

The LLM is treated as unreliable: every LLM-backed operation has a
non-LLM result on failure and is never retried.
"""

import asyncio
import json
import re
import structlog
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from hybridshop.config import SearchWeights, load_search_weights
from hybridshop.llm import CompletionOptions, CompletionResult, ConversationContext, OllamaCompletionService
from hybridshop.models import Product
from hybridshop.storage.documents import DocumentStore
from hybridshop.storage.errors import InvalidEmbedding, NotFound
from hybridshop.storage.graph import GraphStore
from hybridshop.storage.graph.models import (
    EdgeType,
    FeatureType,
    GraphNode,
    NodeType,
    has_feature,
    parent_category,
    prefers_brand,
    prefers_category,
    purchased,
    related_category,
    similar_to,
    slugify,
    supplied_by,
    viewed,
)
from hybridshop.storage.vectors import OllamaEmbeddingProvider, VectorStore

log = structlog.get_logger()

DEFAULT_EXPLANATION = "Based on your interests"

FEATURE_PROMPT = """Extract the key product features from this product.

Product: {name}
Description: {description}
Price: {price}
Color: {color}
Size: {size}
Weight: {weight}
Dimensions: {dimensions}

Answer with a JSON array only, no prose. Each element:
{{"name": string, "value": string, "type": "specification" | "benefit" | "attribute" | "tag", "unit": string or null}}"""

EXPLANATION_PROMPT = """Write a short explanation (max 50 words) of why this product is recommended.
Product: {product}
Customer previously bought: {purchased}
Customer prefers: {preferred}
Start with "Because you..." or "Since you..." and name the connection."""

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


@dataclass
class ExplainedRecommendation:
    product: Product
    score: float
    explanation: str


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in float64.

    Zero-magnitude vectors give 0.0. The result is clipped to [-1, 1].

    Raises:
        InvalidEmbedding: vectors of different length
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise InvalidEmbedding(f"Cannot compare vectors of shape {va.shape} and {vb.shape}")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / (norm_a * norm_b), -1.0, 1.0))


def similarity_reasons(a: Product, b: Product, price_tolerance: float = 0.2) -> List[str]:
    """Human-readable reasons two products are similar (symmetric)."""
    reasons = []
    if a.color and b.color and a.color.lower() == b.color.lower():
        reasons.append("Same color")
    if a.size and b.size and a.size.lower() == b.size.lower():
        reasons.append("Same size")
    if a.category and b.category and a.category.id == b.category.id:
        reasons.append("Same category")
    top = max(a.price, b.price)
    if top > 0 and abs(a.price - b.price) <= top * price_tolerance:
        reasons.append("Similar price range")
    return reasons


def parse_feature_list(text: str) -> List[Dict[str, Any]]:
    """
    Parse the LLM feature answer.

    Only a surrounding code fence is tolerated; anything that is not a JSON
    array of objects with a string ``name``, a ``value`` and a known ``type``
    is rejected as a whole.

    Raises:
        ValueError: malformed answer
    """
    text = text.strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)

    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")

    features = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str) or "value" not in item:
            raise ValueError(f"malformed feature: {item!r}")
        features.append({
            "name": item["name"].strip(),
            "value": str(item["value"]).strip(),
            "feature_type": FeatureType(str(item.get("type", "attribute")).lower()).value,
            "unit": item.get("unit"),
        })
    return features


class KnowledgeGraphService:
    """
    Builds derived graph structure for products.

    Example:
        service = KnowledgeGraphService(graph, vectors, documents, embeddings, llm)
        features = await service.generate_features(product)
        score = await service.calculate_similarity(a.id, b.id)
    """

    def __init__(
        self,
        graph: GraphStore,
        vectors: VectorStore,
        documents: DocumentStore,
        embeddings: OllamaEmbeddingProvider,
        llm: OllamaCompletionService,
        weights: Optional[SearchWeights] = None,
    ):
        self.graph = graph
        self.vectors = vectors
        self.documents = documents
        self.embeddings = embeddings
        self.llm = llm
        self.weights = weights or load_search_weights()

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    async def generate_features(self, product: Product) -> List[GraphNode]:
        """
        Extract Feature nodes from the product text and link them with HAS_FEATURE.

        One LLM call; on LLM or parse failure the product is left without
        derived features and [] is returned.
        """
        prompt = FEATURE_PROMPT.format(
            name=product.name,
            description=product.description,
            price=product.price,
            color=product.color or "N/A",
            size=product.size or "N/A",
            weight=product.weight if product.weight is not None else "N/A",
            dimensions=product.dimensions or "N/A",
        )

        try:
            result = await self.llm.complete(prompt, CompletionOptions(temperature=0.3, max_tokens=1000))
        except Exception as e:
            log.error(f"Feature generation failed for {product.id}: {e}")
            return []

        try:
            features = parse_feature_list(result.text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError
            log.error(f"Unparseable feature list for {product.id}: {e}")
            return []

        nodes = []
        try:
            for order, feature in enumerate(features):
                feature_id = f"{slugify(feature['name'])}:{slugify(feature['value'])}"
                node = GraphNode.create(
                    NodeType.FEATURE,
                    feature_id,
                    is_filterable=feature["feature_type"] in (
                        FeatureType.SPECIFICATION.value, FeatureType.ATTRIBUTE.value
                    ),
                    display_order=order,
                    **feature,
                )
                await self.graph.create_node(node)
                await self.graph.create_edge(has_feature(product.id, feature_id))
                nodes.append(node)
        except Exception as e:
            log.error(f"Failed to write features for {product.id}: {e}")
            return nodes

        log.info(f"Generated {len(nodes)} features for product {product.id}")
        return nodes

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    async def _vector_for(self, product: Product) -> List[float]:
        vector = await self.vectors.get_vector(product.id)
        if vector is not None and any(vector):
            return vector
        try:
            return await self.embeddings.embed(product.vectorizable_text())
        except Exception as e:
            log.warning(f"No embedding for {product.id}: {e}")
            return [0.0] * self.vectors.dimension

    async def calculate_similarity(self, product_id_a: str, product_id_b: str) -> float:
        """
        Cosine similarity of two products' embeddings.

        Scores above the configured bar (default 0.7) are persisted as a
        SIMILAR_TO edge with the score as weight and confidence. Symmetric:
        arguments are put in id order before any computation. A product is
        never compared with itself, so no SIMILAR_TO self-loop is written.

        Returns:
            Similarity, or 0.0 on any failure
        """
        if product_id_a == product_id_b:
            log.debug(f"Similarity of {product_id_a} with itself skipped")
            return 0.0

        first_id, second_id = sorted((product_id_a, product_id_b))
        try:
            products = await self.documents.find_by_ids([first_id, second_id])
            if len(products) != 2:
                raise NotFound(f"Products {first_id}, {second_id} not both found")
            first, second = products

            va, vb = await asyncio.gather(self._vector_for(first), self._vector_for(second))
            score = cosine_similarity(va, vb)

            kg = self.weights.knowledge_graph
            if score > kg.similarity_edge_threshold:
                reasons = similarity_reasons(first, second, kg.price_tolerance)
                await self.graph.create_edge(similar_to(first_id, second_id, score, reasons))
                log.info(f"SIMILAR_TO {first_id} <-> {second_id} score={score:.3f} reasons={reasons}")
            return score

        except Exception as e:
            log.error(f"Similarity between {first_id} and {second_id} failed: {e}")
            return 0.0

    async def build_similarity_graph(self, product_ids: Optional[List[str]] = None, page_size: int = 100) -> int:
        """
        Similarity for every unordered pair of active products.

        Returns:
            Number of pairs above the SIMILAR_TO bar
        """
        if product_ids is None:
            product_ids = []
            page = 1
            while True:
                batch = await self.documents.find_page(page, page_size, active_only=True)
                product_ids.extend(p.id for p in batch)
                if len(batch) < page_size:
                    break
                page += 1

        bar = self.weights.knowledge_graph.similarity_edge_threshold
        linked = 0
        for i in range(len(product_ids)):
            for j in range(i + 1, len(product_ids)):
                score = await self.calculate_similarity(product_ids[i], product_ids[j])
                if score > bar:
                    linked += 1

        log.info(f"Similarity graph built: {len(product_ids)} products, {linked} SIMILAR_TO edges")
        return linked

    # ------------------------------------------------------------------
    # Customer behaviour
    # ------------------------------------------------------------------

    async def _ensure_customer(self, customer_id: str) -> None:
        await self.graph.ensure_node(GraphNode.create(NodeType.CUSTOMER_PROFILE, customer_id))

    async def record_purchase(
        self, customer_id: str, product_id: str, quantity: int = 1, order_id: Optional[str] = None
    ) -> bool:
        await self._ensure_customer(customer_id)
        return await self.graph.create_edge(purchased(customer_id, product_id, quantity, order_id))

    async def record_order(
        self,
        customer_id: str,
        order_id: str,
        items: List[Tuple[str, int]],
        total: Optional[float] = None,
        currency: str = "EUR",
        status: str = "placed",
    ) -> int:
        """
        Store an Order node and one PURCHASED edge per line item.

        Each PURCHASED edge carries the ``order_id``.

        Returns:
            Number of line items linked (products missing from the graph are skipped)
        """
        await self.graph.create_node(GraphNode.create(
            NodeType.ORDER, order_id,
            status=status, total=total, currency=currency,
            placed_at=datetime.now(timezone.utc).isoformat(),
        ))
        linked = 0
        for product_id, quantity in items:
            if await self.record_purchase(customer_id, product_id, quantity, order_id=order_id):
                linked += 1
            else:
                log.warning(f"Order {order_id}: product {product_id} not in graph, PURCHASED not linked")
        return linked

    async def record_view(self, customer_id: str, product_id: str) -> bool:
        await self._ensure_customer(customer_id)
        return await self.graph.create_edge(viewed(customer_id, product_id))

    async def set_category_preference(self, customer_id: str, category_id: str, strength: float) -> bool:
        await self._ensure_customer(customer_id)
        return await self.graph.create_edge(prefers_category(customer_id, category_id, strength))

    async def set_brand_preference(self, customer_id: str, brand_id: str, strength: float) -> bool:
        await self._ensure_customer(customer_id)
        return await self.graph.create_edge(prefers_brand(customer_id, brand_id, strength))

    # ------------------------------------------------------------------
    # Catalog structure
    # ------------------------------------------------------------------

    async def set_parent_category(self, child_id: str, parent_id: str) -> bool:
        """Place a category under a parent; a category has at most one parent."""
        if child_id == parent_id:
            raise ValueError(f"Category {child_id} cannot be its own parent")
        for category_id in (child_id, parent_id):
            await self.graph.ensure_node(GraphNode.create(NodeType.CATEGORY, category_id))
        await self.graph.delete_edges(EdgeType.PARENT_CATEGORY, NodeType.CATEGORY, child_id)
        return await self.graph.create_edge(parent_category(child_id, parent_id))

    async def relate_categories(self, category_a: str, category_b: str, weight: float = 1.0) -> bool:
        for category_id in (category_a, category_b):
            await self.graph.ensure_node(GraphNode.create(NodeType.CATEGORY, category_id))
        return await self.graph.create_edge(related_category(category_a, category_b, weight))

    async def assign_supplier(self, product_id: str, supplier_id: str, name: Optional[str] = None) -> bool:
        """Link a product to its supplier; the Supplier node is created on first use."""
        props = {"name": name} if name else {}
        await self.graph.ensure_node(GraphNode.create(NodeType.SUPPLIER, supplier_id, **props))
        return await self.graph.create_edge(supplied_by(product_id, supplier_id))

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    async def generate_recommendation_explanation(
        self,
        customer_id: str,
        product_id: str,
        context: Optional[ConversationContext] = None,
    ) -> CompletionResult:
        """
        One-sentence explanation of a recommendation.

        Returns:
            CompletionResult; on any failure the default explanation with the
            caller's context unchanged
        """
        fallback = CompletionResult(text=DEFAULT_EXPLANATION, context=context or ConversationContext())
        try:
            product = await self.documents.find_by_id(product_id)
            bought = await self.graph.get_neighbors(
                NodeType.CUSTOMER_PROFILE, customer_id, EdgeType.PURCHASED, NodeType.PRODUCT, limit=3
            )
            preferred = await self.graph.get_neighbors(
                NodeType.CUSTOMER_PROFILE, customer_id, EdgeType.PREFERS_CATEGORY, NodeType.CATEGORY, limit=2
            )
            if product is None or (not bought and not preferred):
                return fallback

            prompt = EXPLANATION_PROMPT.format(
                product=product.name,
                purchased=", ".join(str(n.properties.get("name", n.id)) for n in bought) or "nothing yet",
                preferred=", ".join(str(n.properties.get("name", n.id)) for n in preferred) or "no categories yet",
            )
            result = await self.llm.complete(
                prompt, CompletionOptions(temperature=0.5, max_tokens=100), context=context
            )
            text = result.text.strip()
            if not text:
                return fallback
            return CompletionResult(text=text, context=result.context)

        except Exception as e:
            log.error(f"Failed to explain recommendation {product_id} for {customer_id}: {e}")
            return fallback

    async def get_personalized_recommendations(
        self,
        customer_id: str,
        limit: int = 10,
        context: Optional[ConversationContext] = None,
    ) -> List[ExplainedRecommendation]:
        """
        Graph recommendations, each with an explanation.

        Explanations are generated in order, each continuing the context
        returned by the previous one.
        """
        try:
            pairs = await self.graph.find_recommendations_for_customer(customer_id, limit)
            products = {p.id: p for p in await self.documents.find_by_ids([pid for pid, _ in pairs])}
        except Exception as e:
            log.error(f"Failed to get recommendations for customer {customer_id}: {e}")
            return []

        recommendations = []
        for product_id, score in pairs:
            product = products.get(product_id)
            if product is None:
                continue
            result = await self.generate_recommendation_explanation(customer_id, product_id, context)
            context = result.context
            recommendations.append(ExplainedRecommendation(product=product, score=score, explanation=result.text))
        return recommendations

    # ------------------------------------------------------------------
    # Analytics and health
    # ------------------------------------------------------------------

    async def get_category_analytics(self, category_id: str, page_size: int = 200) -> Dict[str, Any]:
        """
        Price and activity figures for one category.

        Raises:
            NotFound: category has no products in the document store
        """
        products: List[Product] = []
        page = 1
        while True:
            batch = await self.documents.find_page(page, page_size, category_id=category_id)
            products.extend(batch)
            if len(batch) < page_size:
                break
            page += 1

        if not products:
            raise NotFound(f"Category {category_id} not found", store="document", entity_id=category_id)

        prices = [p.price for p in products]
        return {
            "category_id": category_id,
            "total_products": len(products),
            "active_products": sum(1 for p in products if p.is_active),
            "average_price": sum(prices) / len(prices),
            "price_range": {"min": min(prices), "max": max(prices)},
            "featured_products": [p.name for p in products if p.is_featured],
            "total_stock": sum(p.stock for p in products),
        }

    async def get_graph_stats(self) -> Dict[str, Any]:
        try:
            nodes, edges = await asyncio.gather(
                self.graph.count_nodes_by_label(),
                self.graph.count_edges_by_type(),
            )
        except Exception as e:
            log.error(f"Failed to get graph stats: {e}")
            nodes, edges = {}, {}
        return {
            "nodes": nodes,
            "relationships": edges,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }

    async def health_check(self) -> Dict[str, Any]:
        graph_ok, llm_ok, vector_ok = await asyncio.gather(
            self.graph.health_check(),
            self.llm.health_check(),
            self.vectors.health_check(),
        )
        return {
            "status": "healthy" if (graph_ok and llm_ok and vector_ok) else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {"graph": graph_ok, "llm": llm_ok, "vector": vector_ok},
        }
