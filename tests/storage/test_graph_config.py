"""
Test FalkorDB Configuration
===========================

Unit tests for FalkorDBConfig and FalkorDBClient (no server needed).
"""

import os
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from hybridshop.storage.errors import StoreUnavailable


class TestFalkorDBConfig:
    """Test FalkorDBConfig dataclass."""

    def test_default_values(self):
        """Test default configuration values."""
        from hybridshop.storage.graph import FalkorDBConfig

        with patch.dict(os.environ, {}, clear=True):
            config = FalkorDBConfig()

        assert config.host == "localhost"
        assert config.port == 6380
        assert config.graph_name == "hybridshop_dev"
        assert config.timeout_ms == 5000
        assert config.password is None
        assert config.max_hops == 3
        assert config.address == "localhost:6380/hybridshop_dev"

    def test_invalid_values_rejected(self):
        """Test non-positive timeout and hop limits are rejected."""
        from hybridshop.storage.graph import FalkorDBConfig

        with pytest.raises(ValueError, match="max_hops"):
            FalkorDBConfig(max_hops=0)
        with pytest.raises(ValueError, match="timeout_ms"):
            FalkorDBConfig(timeout_ms=0)

    def test_custom_values(self):
        """Test custom configuration values."""
        from hybridshop.storage.graph import FalkorDBConfig

        config = FalkorDBConfig(
            host="db.example.com",
            port=6381,
            graph_name="custom_graph",
            timeout_ms=10000,
            password="secret"
        )

        assert config.host == "db.example.com"
        assert config.port == 6381
        assert config.graph_name == "custom_graph"
        assert config.timeout_ms == 10000
        assert config.password == "secret"

    def test_environment_variables(self):
        """Test that defaults are read from FALKORDB_* env vars at construction."""
        from hybridshop.storage.graph import FalkorDBConfig

        with patch.dict(os.environ, {
            "FALKORDB_HOST": "env-host.com",
            "FALKORDB_PORT": "6399",
            "FALKORDB_GRAPH_NAME": "hybridshop_prod",
        }):
            config = FalkorDBConfig()

        assert config.host == "env-host.com"
        assert config.port == 6399
        assert config.graph_name == "hybridshop_prod"

    def test_from_environment(self, test_config):
        """Test graph name taken from the environment config."""
        from hybridshop.storage.graph import FalkorDBConfig

        config = FalkorDBConfig.from_environment(test_config)
        assert config.graph_name == "hybridshop_test"


class TestFalkorDBClient:
    """Test FalkorDBClient without a server."""

    def test_client_initial_state(self):
        """Test client initial state is not connected."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()

        assert client.connected is False
        assert client._graph is None

    @pytest.mark.asyncio
    async def test_query_before_connect_raises(self):
        """Test that querying an unconnected client raises StoreUnavailable."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()

        with pytest.raises(StoreUnavailable, match="Not connected"):
            await client.query("RETURN 1")

    @pytest.mark.asyncio
    async def test_query_converts_nodes_edges_and_scalars(self):
        """Test that rows become dicts keyed by alias with plain nodes and edges."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()
        node = SimpleNamespace(properties={"id": "p1", "name": "Wallet"}, labels=["Product"], id=7)
        edge = SimpleNamespace(properties={"weight": 0.8}, relation="SIMILAR_TO", id=3)
        client._graph = MagicMock()
        client._graph.query.return_value = SimpleNamespace(
            header=[[1, "n"], [1, "r"], [1, "score"]],
            result_set=[[node, edge, 0.5]],
        )
        client._connected = True

        records = await client.query("MATCH (n)-[r]-() RETURN n, r, 0.5 AS score", {"id": "p1"})

        assert records == [{
            "n": {"labels": ["Product"], "properties": {"id": "p1", "name": "Wallet"}},
            "r": {"type": "SIMILAR_TO", "properties": {"weight": 0.8}},
            "score": 0.5,
        }]
        client._graph.query.assert_called_once_with(
            "MATCH (n)-[r]-() RETURN n, r, 0.5 AS score", {"id": "p1"}, timeout=client.config.timeout_ms
        )

    @pytest.mark.asyncio
    async def test_redis_errors_become_store_unavailable(self):
        """Test transport failures surface as StoreUnavailable for the graph store."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()
        client._connected = True
        client._graph = MagicMock()
        client._graph.query.side_effect = RedisConnectionError("Connection refused")

        with pytest.raises(StoreUnavailable) as exc_info:
            await client.query("RETURN 1")
        assert exc_info.value.store == "graph"
        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_connect_failure(self):
        """Test an unreachable server raises StoreUnavailable and stays disconnected."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()
        with patch("hybridshop.storage.graph.client.FalkorDB", side_effect=RedisConnectionError("refused")):
            with pytest.raises(StoreUnavailable, match="Cannot reach FalkorDB"):
                await client.connect()
        assert client.connected is False

    @pytest.mark.asyncio
    async def test_shortest_path(self):
        """Test shortest path result shape and the max_hops cap."""
        from hybridshop.storage.graph import FalkorDBClient, FalkorDBConfig

        client = FalkorDBClient(FalkorDBConfig(max_hops=2))
        client._connected = True
        client._graph = MagicMock()
        client._graph.query.return_value = SimpleNamespace(
            header=[[1, "edges"], [1, "nodes"], [1, "length"]],
            result_set=[[["BELONGS_TO_CATEGORY", "BELONGS_TO_CATEGORY"], ["a", "electronics", "b"], 2]],
        )

        path = await client.shortest_path("Product", "a", "Product", "b", max_hops=10)

        assert path == {
            "edges": ["BELONGS_TO_CATEGORY", "BELONGS_TO_CATEGORY"],
            "nodes": ["a", "electronics", "b"],
            "length": 2,
        }
        assert "[*1..2]" in client._graph.query.call_args.args[0]

    @pytest.mark.asyncio
    async def test_shortest_path_none_when_unreachable(self):
        """Test that an empty result means no path."""
        from hybridshop.storage.graph import FalkorDBClient

        client = FalkorDBClient()
        client._connected = True
        client._graph = MagicMock()
        client._graph.query.return_value = SimpleNamespace(header=[], result_set=[])

        assert await client.shortest_path("Product", "a", "Product", "z") is None
