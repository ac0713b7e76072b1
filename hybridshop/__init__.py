"""
hybridshop
==========

Product catalog persisted across three stores:

- document store (PostgreSQL / SQLite via SQLAlchemy async): source of truth
- vector store (Qdrant): semantic search over product embeddings
- graph store (FalkorDB): categories, features, similarity and behaviour edges

HybridProductRepository keeps the three in sync and routes reads;
KnowledgeGraphService derives features, similarity edges and explained
recommendations on top.
"""

__version__ = "0.1.0"

from hybridshop.models import Product, ProductData
from hybridshop.services import KnowledgeGraphService
from hybridshop.storage import HybridProductRepository

__all__ = [
    "__version__",
    "HybridProductRepository",
    "KnowledgeGraphService",
    "Product",
    "ProductData",
]
