"""
Test hybridshop CLI
===================

Commands run through click's CliRunner with the repository wiring patched out.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from hybridshop import __version__
from hybridshop.cli import cli, open_repository
from hybridshop.models import Product
from hybridshop.storage.errors import NotFound, PartialSyncFailure, StoreUnavailable
from hybridshop.storage.hybrid import SyncReport


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.health_check = AsyncMock(return_value={"document": True, "vector": True, "graph": True, "embedding": True})
    repo.semantic_search = AsyncMock(return_value=[])
    repo.find_similar_products = AsyncMock(return_value=[])
    repo.sync_product_to_all_stores = AsyncMock()
    return repo


@pytest.fixture
def run(repo):
    """Invoke the CLI with open_repository yielding the mock repo."""
    @asynccontextmanager
    async def fake_open_repository():
        yield repo

    def _run(*args):
        with patch("hybridshop.cli.open_repository", fake_open_repository), \
                patch("hybridshop.cli.configure_logging"):
            return CliRunner().invoke(cli, list(args))
    return _run


class TestCli:

    def test_version(self, run):
        """Test --version prints the package version."""
        result = run("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_health_ok(self, run):
        """Test health lists every store."""
        result = run("health")
        assert result.exit_code == 0
        assert "document" in result.output
        assert "DOWN" not in result.output

    def test_health_down_exits_nonzero(self, run, repo):
        """Test a failing store gives exit code 1."""
        repo.health_check.return_value = {"document": True, "vector": False, "graph": True, "embedding": True}
        result = run("health")
        assert result.exit_code == 1
        assert "vector     DOWN" in result.output

    def test_search(self, run, repo):
        """Test search passes limit and threshold through."""
        repo.semantic_search.return_value = [Product(id="p-1", name="Red wallet", price=39.0)]

        result = run("search", "red wallet", "--limit", "5", "--threshold", "0.9")

        assert result.exit_code == 0
        repo.semantic_search.assert_awaited_once_with("red wallet", limit=5, threshold=0.9)
        assert "Red wallet" in result.output
        assert "Total: 1 products" in result.output

    def test_search_no_results(self, run):
        """Test an empty result is not an error."""
        result = run("search", "nothing")
        assert result.exit_code == 0
        assert "No matching products." in result.output

    def test_search_rejects_bad_threshold(self, run):
        """Test thresholds outside [0, 1] are rejected by click."""
        result = run("search", "x", "--threshold", "1.5")
        assert result.exit_code == 2

    def test_similar_json(self, run, repo):
        """Test JSON output for similar products."""
        repo.find_similar_products.return_value = [Product(id="p-2", name="Tablet", price=300.0)]

        result = run("similar", "p-1", "--format", "json")

        assert result.exit_code == 0
        assert '"id": "p-2"' in result.output

    def test_sync_reports_failures(self, run, repo):
        """Test a failed graph sync is reported with exit code 1."""
        repo.sync_product_to_all_stores.return_value = SyncReport(
            product_id="p-1",
            vector_synced=True,
            graph_synced=False,
            failures=[PartialSyncFailure(store="graph", entity_id="p-1", operation="sync", error="graph down")],
        )

        result = run("sync", "p-1")

        assert result.exit_code == 1
        assert "graph:  FAILED" in result.output

    def test_sync_unknown_product(self, run, repo):
        """Test NotFound becomes an error message."""
        repo.sync_product_to_all_stores.side_effect = NotFound("Product p-9 not found")

        result = run("sync", "p-9")

        assert result.exit_code == 1
        assert "not found" in result.output


def _store_mock():
    store = MagicMock()
    store.connect = AsyncMock()
    store.close = AsyncMock()
    store.ensure_table_exists = AsyncMock()
    return store


class TestOpenRepository:

    @pytest.fixture
    def stores(self):
        stores = {
            "DocumentStore": _store_mock(),
            "VectorStore": _store_mock(),
            "GraphStore": _store_mock(),
            "OllamaEmbeddingProvider": _store_mock(),
        }
        patches = [patch(f"hybridshop.cli.{name}", return_value=mock) for name, mock in stores.items()]
        patches.append(patch("hybridshop.cli.FalkorDBClient"))
        for p in patches:
            p.start()
        yield stores
        for p in patches:
            p.stop()

    @pytest.mark.asyncio
    async def test_connects_and_creates_table(self, stores):
        """Test every store is connected, the table created, and all closed on exit."""
        async with open_repository() as repo:
            assert repo.documents is stores["DocumentStore"]

        stores["DocumentStore"].ensure_table_exists.assert_awaited_once()
        for store in stores.values():
            store.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_connect_closes_opened_stores(self, stores):
        """Test a graph connect failure still closes the stores opened before it."""
        stores["GraphStore"].connect.side_effect = StoreUnavailable("graph down", store="graph")

        with pytest.raises(StoreUnavailable):
            async with open_repository():
                pass

        stores["DocumentStore"].connect.assert_awaited_once()
        stores["VectorStore"].connect.assert_awaited_once()
        for store in stores.values():
            store.close.assert_awaited_once()
