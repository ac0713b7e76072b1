"""
Product Models
==============

Pydantic models for the product entity shared by the three stores.

- ProductData: writable fields (create input, update merge target)
- Product: ProductData plus the store-independent id and timestamps
- CategoryRef / BrandRef / TagRef: references that become graph nodes

The id is assigned by the document store and reused verbatim as the
Qdrant point id and as the ``id`` property of the graph node.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

# Text fields that feed the embedding, in order
VECTORIZED_FIELDS = (
    "name",
    "description",
    "meta_title",
    "meta_description",
    "color",
    "size",
)


class CategoryRef(BaseModel):
    id: str
    name: str
    slug: Optional[str] = None


class BrandRef(BaseModel):
    id: str
    name: str


class TagRef(BaseModel):
    id: str
    name: str


class ProductData(BaseModel):
    """
    Writable product fields.

    ``extra`` holds open-ended metadata that has no dedicated field.
    """
    name: str
    description: str = ""
    slug: Optional[str] = None
    price: float = Field(default=0.0, ge=0.0)
    cost_price: Optional[float] = None
    sale_price: Optional[float] = None
    stock: int = 0
    weight: Optional[float] = None
    dimensions: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    is_active: bool = True
    is_featured: bool = False
    is_digital: bool = False
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    published_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    category: Optional[CategoryRef] = None
    brand: Optional[BrandRef] = None
    tags: List[TagRef] = Field(default_factory=list)
    extra: Dict[str, Any] = Field(default_factory=dict)

    def vectorizable_text(self) -> str:
        """Text used to compute the product embedding (empty fields dropped)."""
        parts = [getattr(self, name) for name in VECTORIZED_FIELDS]
        return " ".join(str(p).strip() for p in parts if p and str(p).strip())

    def merged(self, fields: Dict[str, Any]) -> "ProductData":
        """Return a validated copy with ``fields`` applied on top."""
        data = self.model_dump()
        data.update(fields)
        return self.__class__.model_validate(data)


class Product(ProductData):
    """A persisted product."""
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_data(self) -> ProductData:
        return ProductData.model_validate(
            self.model_dump(exclude={"id", "created_at", "updated_at"})
        )

    def vector_payload(self) -> Dict[str, Any]:
        """Payload stored next to the embedding in the vector store."""
        return {
            "product_id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "color": self.color,
            "size": self.size,
            "is_active": self.is_active,
            "category_id": self.category.id if self.category else None,
            "brand_id": self.brand.id if self.brand else None,
        }

    @classmethod
    def from_vector_payload(cls, product_id: str, payload: Dict[str, Any]) -> "Product":
        """Best-effort product rebuilt from a vector payload (fields the payload lacks take defaults)."""
        return cls(
            id=product_id,
            name=payload.get("name") or "",
            description=payload.get("description") or "",
            price=payload.get("price") or 0.0,
            color=payload.get("color"),
            size=payload.get("size"),
            is_active=payload.get("is_active", True),
        )

    def __repr__(self) -> str:
        return f"<Product(id={self.id[:8]}..., name={self.name[:40]}, active={self.is_active})>"
