"""
Graph Models
============

Typed nodes and edges of the product knowledge graph.

Both are single dataclasses discriminated by an enum (NodeType / EdgeType);
the fields every node or edge carries live on the dataclass itself, and
per-kind differences are expressed through the property key sets and the
edge factory functions below.

Node properties are split into:
- known keys: the closed set declared in KNOWN_PROPERTY_KEYS for the node type
- extra: open-ended metadata, stored in the graph as one JSON string

Edge weight and confidence are always in [0, 1]. They are clamped on
construction and afterwards only change through update_weight() and
update_confidence().
"""

import json
import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class NodeType(Enum):
    """Node labels."""
    PRODUCT = "Product"
    CATEGORY = "Category"
    BRAND = "Brand"
    FEATURE = "Feature"
    CUSTOMER_PROFILE = "CustomerProfile"
    TAG = "Tag"
    ORDER = "Order"
    SUPPLIER = "Supplier"


class EdgeType(Enum):
    """Closed vocabulary of relationship types."""

    # Catalog structure
    BELONGS_TO_CATEGORY = "BELONGS_TO_CATEGORY"
    MADE_BY = "MADE_BY"
    TAGGED_WITH = "TAGGED_WITH"
    HAS_FEATURE = "HAS_FEATURE"
    SUPPLIED_BY = "SUPPLIED_BY"
    PARENT_CATEGORY = "PARENT_CATEGORY"
    RELATED_CATEGORY = "RELATED_CATEGORY"

    # Product to product
    SIMILAR_TO = "SIMILAR_TO"
    FREQUENTLY_BOUGHT_WITH = "FREQUENTLY_BOUGHT_WITH"
    RELATED_TO = "RELATED_TO"
    COMPLEMENT_OF = "COMPLEMENT_OF"
    BUNDLE_WITH = "BUNDLE_WITH"

    # Customer behaviour
    PURCHASED = "PURCHASED"
    VIEWED = "VIEWED"
    PREFERS_CATEGORY = "PREFERS_CATEGORY"
    PREFERS_BRAND = "PREFERS_BRAND"


# Edge types allowed between two products
PRODUCT_RELATIONSHIP_TYPES: FrozenSet[EdgeType] = frozenset({
    EdgeType.SIMILAR_TO,
    EdgeType.FREQUENTLY_BOUGHT_WITH,
    EdgeType.RELATED_TO,
    EdgeType.COMPLEMENT_OF,
    EdgeType.BUNDLE_WITH,
})


class FeatureType(Enum):
    SPECIFICATION = "specification"
    BENEFIT = "benefit"
    ATTRIBUTE = "attribute"
    TAG = "tag"


KNOWN_PROPERTY_KEYS: Dict[NodeType, FrozenSet[str]] = {
    NodeType.PRODUCT: frozenset({
        "name", "description", "slug", "price", "sale_price", "stock",
        "color", "size", "weight", "dimensions",
        "is_active", "is_featured", "is_digital",
    }),
    NodeType.CATEGORY: frozenset({"name", "slug", "description", "is_active"}),
    NodeType.BRAND: frozenset({"name", "description", "website"}),
    NodeType.FEATURE: frozenset({
        "name", "value", "feature_type", "unit", "is_filterable", "display_order",
    }),
    NodeType.CUSTOMER_PROFILE: frozenset({"name", "email", "segment"}),
    NodeType.TAG: frozenset({"name"}),
    NodeType.ORDER: frozenset({"status", "total", "currency", "placed_at"}),
    NodeType.SUPPLIER: frozenset({"name", "country", "contact_email"}),
}

EXTRA_PROPERTY_KEY = "extra_json"
_RESERVED_KEYS = frozenset({"id", "created_at", "updated_at", EXTRA_PROPERTY_KEY})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_unit(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    value = float(value)
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", str(text).lower()).strip("-")


@dataclass
class NodeProperties:
    """
    Property set of a node: known keys for its type plus an ``extra`` map.

    Use NodeProperties.build() to split an arbitrary dict.
    """
    node_type: NodeType
    values: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def build(cls, node_type: NodeType, data: Optional[Dict[str, Any]] = None) -> "NodeProperties":
        known = KNOWN_PROPERTY_KEYS[node_type]
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            if key in _RESERVED_KEYS:
                continue
            if key in known:
                values[key] = value
            else:
                extra[key] = value
        return cls(node_type=node_type, values=values, extra=extra)

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.values:
            return self.values[key]
        return self.extra.get(key, default)

    def to_graph_properties(self) -> Dict[str, Any]:
        """Flatten for a Cypher ``SET n += $props`` (None values dropped)."""
        props = {k: v for k, v in self.values.items() if v is not None}
        if self.extra:
            props[EXTRA_PROPERTY_KEY] = json.dumps(self.extra, default=str, sort_keys=True)
        return props

    @classmethod
    def from_graph_properties(cls, node_type: NodeType, props: Dict[str, Any]) -> "NodeProperties":
        data = dict(props)
        extra_raw = data.pop(EXTRA_PROPERTY_KEY, None)
        built = cls.build(node_type, data)
        if extra_raw:
            built.extra.update(json.loads(extra_raw))
        return built


@dataclass
class GraphNode:
    """
    A typed node. Identity is (type, id).

    Example:
        >>> node = GraphNode.create(NodeType.CATEGORY, "electronics", name="Electronics")
        >>> node.properties.get("name")
        'Electronics'
    """
    type: NodeType
    id: str
    properties: NodeProperties = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        if self.properties is None:
            self.properties = NodeProperties(node_type=self.type)
        elif self.properties.node_type != self.type:
            raise ValueError(
                f"properties are for {self.properties.node_type.value}, node is {self.type.value}"
            )

    @classmethod
    def create(cls, node_type: NodeType, node_id: str, **props: Any) -> "GraphNode":
        return cls(type=node_type, id=node_id, properties=NodeProperties.build(node_type, props))

    @property
    def label(self) -> str:
        return self.type.value

    @property
    def key(self) -> tuple:
        return (self.type, self.id)

    def to_graph_properties(self) -> Dict[str, Any]:
        props = self.properties.to_graph_properties()
        props["id"] = self.id
        props["created_at"] = self.created_at.isoformat()
        props["updated_at"] = self.updated_at.isoformat()
        return props

    @classmethod
    def from_graph_record(cls, node_type: NodeType, props: Dict[str, Any]) -> "GraphNode":
        """Rebuild a node from the ``properties`` of a FalkorDB node."""
        node = cls(
            type=node_type,
            id=str(props["id"]),
            properties=NodeProperties.from_graph_properties(node_type, props),
        )
        for stamp in ("created_at", "updated_at"):
            if props.get(stamp):
                setattr(node, stamp, datetime.fromisoformat(props[stamp]))
        return node


_SCORE_FIELDS = frozenset({"weight", "confidence"})


@dataclass
class GraphEdge:
    """
    A directed, typed edge.

    weight: relative importance in [0, 1]
    confidence: certainty that the relationship holds, in [0, 1]

    Direct assignment to weight/confidence after construction raises
    AttributeError; use update_weight() / update_confidence().
    """
    type: EdgeType
    from_id: str
    to_id: str
    from_type: NodeType
    to_type: NodeType
    weight: float = 1.0
    confidence: float = 1.0
    properties: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        object.__setattr__(self, "weight", clamp_unit(self.weight))
        object.__setattr__(self, "confidence", clamp_unit(self.confidence))
        object.__setattr__(self, "_scores_locked", True)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _SCORE_FIELDS and getattr(self, "_scores_locked", False):
            raise AttributeError(f"{name} is clamped; use update_{name}()")
        object.__setattr__(self, name, value)

    def update_weight(self, weight: float) -> None:
        object.__setattr__(self, "weight", clamp_unit(weight))
        self.updated_at = _utcnow()

    def update_confidence(self, confidence: float) -> None:
        object.__setattr__(self, "confidence", clamp_unit(confidence))
        self.updated_at = _utcnow()

    def to_graph_properties(self) -> Dict[str, Any]:
        return {
            **self.properties,
            "weight": self.weight,
            "confidence": self.confidence,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"<GraphEdge({self.from_type.value}:{self.from_id} "
            f"-[{self.type.value}]-> {self.to_type.value}:{self.to_id}, "
            f"w={self.weight:.2f}, c={self.confidence:.2f})>"
        )


# ---------------------------------------------------------------------------
# Edge factories
# ---------------------------------------------------------------------------

def belongs_to_category(product_id: str, category_id: str) -> GraphEdge:
    return GraphEdge(EdgeType.BELONGS_TO_CATEGORY, product_id, category_id, NodeType.PRODUCT, NodeType.CATEGORY)


def made_by(product_id: str, brand_id: str) -> GraphEdge:
    return GraphEdge(EdgeType.MADE_BY, product_id, brand_id, NodeType.PRODUCT, NodeType.BRAND)


def tagged_with(product_id: str, tag_id: str) -> GraphEdge:
    return GraphEdge(EdgeType.TAGGED_WITH, product_id, tag_id, NodeType.PRODUCT, NodeType.TAG)


def has_feature(product_id: str, feature_id: str, confidence: float = 1.0) -> GraphEdge:
    return GraphEdge(
        EdgeType.HAS_FEATURE, product_id, feature_id, NodeType.PRODUCT, NodeType.FEATURE,
        confidence=confidence,
    )


def similar_to(product_a: str, product_b: str, score: float, reasons: Optional[List[str]] = None) -> GraphEdge:
    """Similarity edge; the score is both weight and confidence."""
    return GraphEdge(
        EdgeType.SIMILAR_TO, product_a, product_b, NodeType.PRODUCT, NodeType.PRODUCT,
        weight=score, confidence=score,
        properties={"reasons": list(reasons or [])},
    )


def product_relationship(
    edge_type: EdgeType,
    from_id: str,
    to_id: str,
    weight: float = 1.0,
    confidence: float = 1.0,
    properties: Optional[Dict[str, Any]] = None,
) -> GraphEdge:
    if edge_type not in PRODUCT_RELATIONSHIP_TYPES:
        raise ValueError(f"{edge_type.value} is not a product-to-product relationship")
    return GraphEdge(
        edge_type, from_id, to_id, NodeType.PRODUCT, NodeType.PRODUCT,
        weight=weight, confidence=confidence, properties=dict(properties or {}),
    )


def purchased(customer_id: str, product_id: str, quantity: int = 1, order_id: Optional[str] = None) -> GraphEdge:
    properties: Dict[str, Any] = {"quantity": quantity}
    if order_id is not None:
        properties["order_id"] = order_id
    return GraphEdge(
        EdgeType.PURCHASED, customer_id, product_id, NodeType.CUSTOMER_PROFILE, NodeType.PRODUCT,
        weight=1.0, confidence=1.0, properties=properties,
    )


def viewed(customer_id: str, product_id: str) -> GraphEdge:
    return GraphEdge(
        EdgeType.VIEWED, customer_id, product_id, NodeType.CUSTOMER_PROFILE, NodeType.PRODUCT,
        weight=0.3, confidence=0.8,
    )


def prefers_category(customer_id: str, category_id: str, strength: float) -> GraphEdge:
    return GraphEdge(
        EdgeType.PREFERS_CATEGORY, customer_id, category_id, NodeType.CUSTOMER_PROFILE, NodeType.CATEGORY,
        weight=strength, confidence=0.9,
    )


def prefers_brand(customer_id: str, brand_id: str, strength: float) -> GraphEdge:
    return GraphEdge(
        EdgeType.PREFERS_BRAND, customer_id, brand_id, NodeType.CUSTOMER_PROFILE, NodeType.BRAND,
        weight=strength, confidence=0.9,
    )


def parent_category(child_id: str, parent_id: str) -> GraphEdge:
    return GraphEdge(EdgeType.PARENT_CATEGORY, child_id, parent_id, NodeType.CATEGORY, NodeType.CATEGORY)


def related_category(category_a: str, category_b: str, weight: float = 1.0) -> GraphEdge:
    return GraphEdge(
        EdgeType.RELATED_CATEGORY, category_a, category_b, NodeType.CATEGORY, NodeType.CATEGORY,
        weight=weight, confidence=0.8,
    )


def supplied_by(product_id: str, supplier_id: str) -> GraphEdge:
    return GraphEdge(EdgeType.SUPPLIED_BY, product_id, supplier_id, NodeType.PRODUCT, NodeType.SUPPLIER)
