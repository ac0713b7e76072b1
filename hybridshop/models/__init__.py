"""
Domain models for hybridshop.
"""

from hybridshop.models.product import (
    VECTORIZED_FIELDS,
    BrandRef,
    CategoryRef,
    Product,
    ProductData,
    TagRef,
)

__all__ = [
    "VECTORIZED_FIELDS",
    "BrandRef",
    "CategoryRef",
    "Product",
    "ProductData",
    "TagRef",
]
