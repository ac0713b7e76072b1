"""
Document Store
==============

Authoritative product storage (SQLAlchemy async).

Example:
    from hybridshop.storage.documents import DocumentStore, DocumentStoreConfig

    store = DocumentStore(DocumentStoreConfig())
    await store.connect()
"""

from hybridshop.storage.documents.config import DocumentStoreConfig
from hybridshop.storage.documents.models import Base, get_product_model
from hybridshop.storage.documents.store import DocumentStore

__all__ = [
    "Base",
    "DocumentStore",
    "DocumentStoreConfig",
    "get_product_model",
]
