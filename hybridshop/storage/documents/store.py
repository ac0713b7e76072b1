"""
Document Store Service
======================

Authoritative CRUD for products over SQLAlchemy async.

Features:
- Id assignment on create (UUID4 string, reused by every other store)
- Point lookups, batch lookups, pagination, category filter
- One session per operation, released on success and failure
- Backend errors surface as StoreUnavailable
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hybridshop.models import Product, ProductData
from hybridshop.storage.documents.config import DocumentStoreConfig
from hybridshop.storage.documents.models import get_product_model
from hybridshop.storage.errors import StoreUnavailable

logger = logging.getLogger(__name__)

STORE_NAME = "document"


class DocumentStore:
    """
    Source of truth for product records.

    Example:
        store = DocumentStore(DocumentStoreConfig.in_memory())
        await store.connect()
        await store.ensure_table_exists()

        product = await store.create(ProductData(name="Wallet"))
        same = await store.find_by_id(product.id)

        await store.close()
    """

    def __init__(self, config: Optional[DocumentStoreConfig] = None):
        self.config = config or DocumentStoreConfig()
        self._engine = None
        self._session_maker = None
        self._connected = False

        self._model_class = get_product_model(self.config.table_name)

        logger.info(f"DocumentStore initialized - table={self.config.table_name}")

    async def connect(self):
        """Create engine and session factory."""
        if self._connected:
            logger.debug("Already connected to document store")
            return

        engine_kwargs: Dict[str, Any] = {"echo": False}
        if self.config.is_sqlite:
            # One shared connection, otherwise every session sees a fresh in-memory database
            engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_size"] = self.config.pool_size
            engine_kwargs["max_overflow"] = self.config.max_overflow

        self._engine = create_async_engine(self.config.get_connection_string(), **engine_kwargs)
        self._session_maker = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        self._connected = True
        logger.info(f"Connected to document store, table={self.config.table_name}")

    async def ensure_table_exists(self):
        """Create the products table if missing."""
        if not self._connected:
            await self.connect()

        table = self._model_class.__table__
        async with self._engine.begin() as conn:
            await conn.run_sync(table.create, checkfirst=True)

        logger.info(f"Table {self.config.table_name} ensured to exist")

    async def close(self):
        """Dispose the connection pool."""
        if not self._connected:
            return

        await self._engine.dispose()
        self._connected = False
        logger.info("Disconnected from document store")

    def _require_connection(self):
        if not self._connected:
            raise StoreUnavailable(
                "Not connected to document store. Call connect() first.",
                store=STORE_NAME,
            )

    async def create(self, data: ProductData) -> Product:
        """
        Insert a product and assign its id.

        Raises:
            StoreUnavailable: if the backend rejects or cannot take the write
        """
        self._require_connection()
        product_id = str(uuid4())

        try:
            async with self._session_maker() as session:
                async with session.begin():
                    record = self._model_class(id=product_id)
                    record.apply(data)
                    session.add(record)
                await session.refresh(record)
                return record.to_product()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Document create failed: {e}")
            raise StoreUnavailable(f"Document create failed: {e}", store=STORE_NAME) from e

    async def find_by_id(self, product_id: str) -> Optional[Product]:
        self._require_connection()
        try:
            async with self._session_maker() as session:
                record = await session.get(self._model_class, product_id)
                return record.to_product() if record else None
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(
                f"Document lookup failed: {e}", store=STORE_NAME, entity_id=product_id
            ) from e

    async def find_by_ids(self, product_ids: List[str]) -> List[Product]:
        """
        Batch lookup preserving the order of ``product_ids``.

        Missing ids are skipped.
        """
        self._require_connection()
        if not product_ids:
            return []

        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(self._model_class).where(self._model_class.id.in_(product_ids))
                )
                by_id = {r.id: r.to_product() for r in result.scalars().all()}
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Document batch lookup failed: {e}", store=STORE_NAME) from e

        return [by_id[pid] for pid in product_ids if pid in by_id]

    async def update(self, product_id: str, fields: Dict[str, Any]) -> Optional[Product]:
        """
        Merge ``fields`` into the stored product.

        Returns:
            Updated product, or None if no product has this id
        """
        self._require_connection()
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    record = await session.get(self._model_class, product_id)
                    if record is None:
                        return None
                    merged = record.to_product().to_data().merged(fields)
                    record.apply(merged)
                await session.refresh(record)
                return record.to_product()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Document update failed for {product_id}: {e}")
            raise StoreUnavailable(
                f"Document update failed: {e}", store=STORE_NAME, entity_id=product_id
            ) from e

    async def delete(self, product_id: str) -> bool:
        """
        Delete a product.

        Returns:
            True if a row was removed; False if it was already absent
        """
        self._require_connection()
        try:
            async with self._session_maker() as session:
                async with session.begin():
                    result = await session.execute(
                        delete(self._model_class).where(self._model_class.id == product_id)
                    )
                return result.rowcount > 0
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Document delete failed for {product_id}: {e}")
            raise StoreUnavailable(
                f"Document delete failed: {e}", store=STORE_NAME, entity_id=product_id
            ) from e

    async def find_page(
        self,
        page: int = 1,
        page_size: int = 20,
        active_only: bool = False,
        category_id: Optional[str] = None,
    ) -> List[Product]:
        """
        Page through products ordered by creation time (newest first).

        Args:
            page: 1-based page number
            page_size: Rows per page
            active_only: Skip inactive products
            category_id: Restrict to one category
        """
        self._require_connection()
        page = max(page, 1)

        stmt = select(self._model_class)
        if active_only:
            stmt = stmt.where(self._model_class.is_active.is_(True))
        if category_id is not None:
            stmt = stmt.where(self._model_class.category_id == category_id)
        stmt = (
            stmt.order_by(self._model_class.created_at.desc(), self._model_class.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        try:
            async with self._session_maker() as session:
                result = await session.execute(stmt)
                return [r.to_product() for r in result.scalars().all()]
        except (SQLAlchemyError, OSError) as e:
            raise StoreUnavailable(f"Document page query failed: {e}", store=STORE_NAME) from e

    async def find_by_category(self, category_id: str, page: int = 1, page_size: int = 20) -> List[Product]:
        return await self.find_page(page, page_size, active_only=True, category_id=category_id)

    async def count(self) -> int:
        self._require_connection()
        async with self._session_maker() as session:
            result = await session.execute(select(func.count()).select_from(self._model_class))
            return result.scalar()

    async def health_check(self) -> bool:
        """True if the backend answers a trivial query."""
        try:
            if not self._connected:
                await self.connect()
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Document store health check failed: {e}")
            return False
