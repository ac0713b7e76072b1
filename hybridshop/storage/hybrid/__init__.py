"""
Hybrid product repository (document + vector + graph).
"""

from hybridshop.storage.hybrid.coordinator import HybridProductRepository
from hybridshop.storage.hybrid.models import ProductInsights, SyncReport, product_to_graph

__all__ = [
    "HybridProductRepository",
    "ProductInsights",
    "SyncReport",
    "product_to_graph",
]
