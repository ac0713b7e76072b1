"""
Hybrid Repository Models
========================

Dataclasses returned by HybridProductRepository, plus the mapping from a
product record to its graph representation.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from hybridshop.models import Product
from hybridshop.storage.errors import PartialSyncFailure
from hybridshop.storage.graph.models import (
    GraphEdge,
    GraphNode,
    NodeProperties,
    NodeType,
    belongs_to_category,
    made_by,
    tagged_with,
)


@dataclass
class ProductInsights:
    """
    Aggregated view of one product.

    Attributes:
        product: The authoritative record
        similar: Structurally or semantically similar products
        frequently_bought_with: Co-purchased products
        category: Category node, if linked in the graph
        popular_in_category: Popular products of the same category
    """
    product: Product
    similar: List[Product] = field(default_factory=list)
    frequently_bought_with: List[Product] = field(default_factory=list)
    category: Optional[GraphNode] = None
    popular_in_category: List[Product] = field(default_factory=list)

    def __repr__(self) -> str:
        return (
            f"<ProductInsights(product={self.product.id[:8]}..., "
            f"similar={len(self.similar)}, bought_with={len(self.frequently_bought_with)}, "
            f"popular_in_category={len(self.popular_in_category)})>"
        )


@dataclass
class SyncReport:
    """Outcome of a reconciliation pass for one product."""
    product_id: str
    vector_synced: bool = False
    graph_synced: bool = False
    failures: List[PartialSyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.vector_synced and self.graph_synced


def product_to_graph(product: Product) -> Tuple[GraphNode, List[GraphNode], List[GraphEdge]]:
    """
    Graph representation of a product.

    Returns:
        (product node, referenced category/brand/tag nodes, edges to them)
    """
    known = {
        "name": product.name,
        "description": product.description,
        "slug": product.slug,
        "price": product.price,
        "sale_price": product.sale_price,
        "stock": product.stock,
        "color": product.color,
        "size": product.size,
        "weight": product.weight,
        "dimensions": product.dimensions,
        "is_active": product.is_active,
        "is_featured": product.is_featured,
        "is_digital": product.is_digital,
    }
    product_node = GraphNode(
        type=NodeType.PRODUCT,
        id=product.id,
        properties=NodeProperties.build(NodeType.PRODUCT, {**product.extra, **known}),
    )

    related: List[GraphNode] = []
    edges: List[GraphEdge] = []

    if product.category:
        related.append(GraphNode.create(
            NodeType.CATEGORY, product.category.id,
            name=product.category.name, slug=product.category.slug,
        ))
        edges.append(belongs_to_category(product.id, product.category.id))

    if product.brand:
        related.append(GraphNode.create(NodeType.BRAND, product.brand.id, name=product.brand.name))
        edges.append(made_by(product.id, product.brand.id))

    for tag in product.tags:
        related.append(GraphNode.create(NodeType.TAG, tag.id, name=tag.name))
        edges.append(tagged_with(product.id, tag.id))

    return product_node, related, edges
