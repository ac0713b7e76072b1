"""
Test Document Store
===================

CRUD and queries on the authoritative product table (in-memory SQLite).
"""

import pytest

from hybridshop.models import CategoryRef, ProductData
from hybridshop.storage.documents import DocumentStore, DocumentStoreConfig
from hybridshop.storage.errors import StoreUnavailable


def _wallet(**overrides) -> ProductData:
    data = {
        "name": "Red leather wallet",
        "description": "Slim bifold wallet",
        "price": 39.0,
        "color": "red",
        "category": CategoryRef(id="accessories", name="Accessories"),
        "extra": {"material": "leather"},
    }
    data.update(overrides)
    return ProductData(**data)


class TestDocumentStoreConfig:

    def test_postgres_connection_string(self):
        """Test asyncpg URL built from the parts."""
        config = DocumentStoreConfig(
            url=None, host="db", port=5432, database="shop", user="u", password="p"
        )
        assert config.get_connection_string() == "postgresql+asyncpg://u:p@db:5432/shop"
        assert config.is_sqlite is False

    def test_in_memory(self):
        """Test the SQLite config used by tests."""
        config = DocumentStoreConfig.in_memory()
        assert config.is_sqlite is True
        assert config.table_name == "products_test"

    def test_from_environment(self, test_config):
        """Test the products table comes from the environment."""
        assert DocumentStoreConfig.from_environment(test_config).table_name == "products_test"


class TestCrud:

    @pytest.mark.asyncio
    async def test_health_check(self, document_store):
        """Test SQLite health check."""
        assert await document_store.health_check() is True

    @pytest.mark.asyncio
    async def test_create_assigns_id(self, document_store):
        """Test create assigns a UUID and keeps every field."""
        product = await document_store.create(_wallet())

        assert len(product.id) == 36
        assert product.name == "Red leather wallet"
        assert product.category.id == "accessories"
        assert product.extra == {"material": "leather"}
        assert product.created_at is not None

        fetched = await document_store.find_by_id(product.id)
        assert fetched.model_dump(exclude={"created_at", "updated_at"}) == \
            product.model_dump(exclude={"created_at", "updated_at"})

    @pytest.mark.asyncio
    async def test_find_by_id_missing(self, document_store):
        """Test missing ids return None."""
        assert await document_store.find_by_id("does-not-exist") is None

    @pytest.mark.asyncio
    async def test_find_by_ids_keeps_order(self, document_store):
        """Test batch lookup preserves request order and skips missing ids."""
        a = await document_store.create(_wallet(name="A"))
        b = await document_store.create(_wallet(name="B"))

        products = await document_store.find_by_ids([b.id, "missing", a.id])

        assert [p.id for p in products] == [b.id, a.id]

    @pytest.mark.asyncio
    async def test_update_merges_fields(self, document_store):
        """Test update changes only the given fields."""
        product = await document_store.create(_wallet())

        updated = await document_store.update(product.id, {"price": 29.0, "color": "black"})

        assert updated.price == 29.0
        assert updated.color == "black"
        assert updated.description == "Slim bifold wallet"
        assert updated.extra == {"material": "leather"}

    @pytest.mark.asyncio
    async def test_update_missing(self, document_store):
        """Test update of an unknown id returns None."""
        assert await document_store.update("missing", {"price": 1.0}) is None

    @pytest.mark.asyncio
    async def test_delete_is_idempotent(self, document_store):
        """Test delete reports whether a row was removed."""
        product = await document_store.create(_wallet())

        assert await document_store.delete(product.id) is True
        assert await document_store.delete(product.id) is False
        assert await document_store.find_by_id(product.id) is None


class TestQueries:

    @pytest.mark.asyncio
    async def test_find_page_filters(self, document_store):
        """Test active-only and category filters."""
        await document_store.create(_wallet(name="Active wallet"))
        await document_store.create(_wallet(name="Old wallet", is_active=False))
        await document_store.create(_wallet(
            name="Phone", category=CategoryRef(id="electronics", name="Electronics")
        ))

        everything = await document_store.find_page(1, 10)
        active = await document_store.find_page(1, 10, active_only=True)
        accessories = await document_store.find_by_category("accessories")

        assert len(everything) == 3
        assert {p.name for p in active} == {"Active wallet", "Phone"}
        assert [p.name for p in accessories] == ["Active wallet"]
        assert await document_store.count() == 3

    @pytest.mark.asyncio
    async def test_pagination(self, document_store):
        """Test pages do not overlap."""
        for i in range(5):
            await document_store.create(_wallet(name=f"Wallet {i}"))

        first = await document_store.find_page(1, 2)
        second = await document_store.find_page(2, 2)
        third = await document_store.find_page(3, 2)

        ids = [p.id for p in first + second + third]
        assert len(ids) == 5
        assert len(set(ids)) == 5

    @pytest.mark.asyncio
    async def test_not_connected(self):
        """Test operations before connect raise StoreUnavailable."""
        store = DocumentStore(DocumentStoreConfig.in_memory())
        with pytest.raises(StoreUnavailable, match="Not connected"):
            await store.find_by_id("x")
