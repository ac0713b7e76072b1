"""
Document Store SQLAlchemy Models
================================

ORM model for the authoritative product record.

Queried columns (name, slug, price, is_active, category_id, brand_id) are
real columns; the full validated product lives in the ``data`` JSON column
so the schema does not churn with every new product attribute.

Supports per-environment tables (products_test / products).
"""

from datetime import datetime, timezone
from typing import Dict, Type

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, String
from sqlalchemy.orm import declarative_base

from hybridshop.models import Product, ProductData

Base = declarative_base()

# Cache for dynamic models (one class per table name)
_model_cache: Dict[str, Type["ProductRecordBase"]] = {}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_product_model(table_name: str = "products") -> Type["ProductRecordBase"]:
    """
    Factory for a ProductRecord model bound to a specific table.

    Example:
        >>> TestModel = get_product_model("products_test")
        >>> ProdModel = get_product_model("products")
    """
    if table_name in _model_cache:
        return _model_cache[table_name]

    model_class = type(
        f"ProductRecord_{table_name}",
        (ProductRecordBase, Base),
        {"__tablename__": table_name},
    )

    _model_cache[table_name] = model_class
    return model_class


class ProductRecordBase:
    """
    Mixin with the product columns.

    Do not use directly: go through get_product_model().
    """

    id = Column(String(36), primary_key=True)

    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, index=True)
    price = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    category_id = Column(String(64), nullable=True, index=True)
    brand_id = Column(String(64), nullable=True, index=True)

    data = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def apply(self, product_data: ProductData) -> None:
        """Copy a validated ProductData onto this row."""
        self.name = product_data.name
        self.slug = product_data.slug
        self.price = product_data.price
        self.is_active = product_data.is_active
        self.category_id = product_data.category.id if product_data.category else None
        self.brand_id = product_data.brand.id if product_data.brand else None
        self.data = product_data.model_dump(mode="json")

    def to_product(self) -> Product:
        return Product.model_validate({
            **self.data,
            "id": self.id,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        })

    def __repr__(self) -> str:
        return f"<ProductRecord(id={self.id}, name={self.name[:40]}, active={self.is_active})>"
