"""
FalkorDB Client
===============

Async client for the FalkorDB product graph.

FalkorDB speaks the Redis protocol and runs Cypher; falkordb-py is
synchronous, so every call is pushed to the default executor. Redis
transport failures leave this module as StoreUnavailable(store="graph").
"""

import structlog
import asyncio
from typing import Dict, List, Any, Optional

from falkordb import FalkorDB, Graph
from redis.exceptions import RedisError

from hybridshop.storage.errors import StoreUnavailable
from hybridshop.storage.graph.config import FalkorDBConfig

log = structlog.get_logger()

STORE_NAME = "graph"


def to_plain(value: Any) -> Any:
    """
    Turn a FalkorDB result cell into plain Python.

    Nodes become {"labels", "properties"}, relationships become
    {"type", "properties"}; lists are converted element-wise. The internal
    FalkorDB ids are dropped: entities are addressed by their ``id``
    property only.
    """
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if hasattr(value, "properties"):
        if hasattr(value, "labels"):
            return {"labels": list(value.labels or []), "properties": dict(value.properties)}
        return {"type": getattr(value, "relation", None), "properties": dict(value.properties)}
    return value


class FalkorDBClient:
    """
    Async client for FalkorDB.

    Example:
        client = FalkorDBClient(config)
        await client.connect()

        rows = await client.query('''
            MATCH (p:Product {id: $id})-[:BELONGS_TO_CATEGORY]->(c:Category)
            RETURN c.id AS id, c.name AS name
        ''', {"id": product_id})

        await client.close()
    """

    def __init__(self, config: Optional[FalkorDBConfig] = None):
        self.config = config or FalkorDBConfig()
        self._db: Optional[FalkorDB] = None
        self._graph: Optional[Graph] = None
        self._connected = False

        log.info(f"FalkorDBClient initialized - {self.config.address}")

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self):
        if self._connected:
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._open)
        except (RedisError, OSError) as e:
            raise StoreUnavailable(f"Cannot reach FalkorDB at {self.config.address}: {e}", store=STORE_NAME) from e

        log.info(f"Connected to FalkorDB at {self.config.address}")

    def _open(self):
        self._db = FalkorDB(
            host=self.config.host,
            port=self.config.port,
            password=self.config.password,
        )
        self._graph = self._db.select_graph(self.config.graph_name)
        self._connected = True

    async def close(self):
        if not self._connected:
            return

        # The redis pool is owned by the FalkorDB handle; dropping it releases the pool
        self._connected = False
        self._db = None
        self._graph = None
        log.info("Disconnected from FalkorDB")

    async def query(
        self,
        cypher: str,
        params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """
        Run a Cypher query.

        Returns:
            One dict per row, keyed by column alias, values passed through to_plain()

        Raises:
            StoreUnavailable: not connected, or FalkorDB failed to answer
        """
        if not self._connected:
            raise StoreUnavailable("Not connected to FalkorDB. Call connect() first.", store=STORE_NAME)

        params = params or {}
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(None, self._execute, cypher, params)
        except (RedisError, OSError) as e:
            log.error(f"Graph query failed: {cypher.strip()[:100]}... Error: {e}")
            raise StoreUnavailable(f"Graph query failed: {e}", store=STORE_NAME) from e

        aliases = [h[1] if len(h) > 1 else f"col_{i}" for i, h in enumerate(result.header or [])]
        rows = [
            {alias: to_plain(cell) for alias, cell in zip(aliases, row)}
            for row in (result.result_set or [])
        ]
        log.debug(f"Graph query -> {len(rows)} rows (params={sorted(params)})")
        return rows

    def _execute(self, cypher: str, params: Dict[str, Any]):
        return self._graph.query(cypher, params, timeout=self.config.timeout_ms)

    async def shortest_path(
        self,
        start_label: str,
        start_id: str,
        end_label: str,
        end_id: str,
        max_hops: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Shortest undirected path between two nodes.

        ``max_hops`` is capped at ``config.max_hops``.

        Returns:
            {"edges": [edge types...], "nodes": [ids...], "length": int}, or None if no path
        """
        hops = min(max_hops or self.config.max_hops, self.config.max_hops)
        cypher = f"""
            MATCH (start:{start_label} {{id: $start_id}}), (end:{end_label} {{id: $end_id}})
            MATCH path = shortestPath((start)-[*1..{hops}]-(end))
            RETURN [r IN relationships(path) | type(r)] AS edges,
                   [n IN nodes(path) | n.id] AS nodes,
                   length(path) AS length
            LIMIT 1
        """
        rows = await self.query(cypher, {"start_id": start_id, "end_id": end_id})
        if not rows:
            return None
        row = rows[0]
        return {"edges": row.get("edges", []), "nodes": row.get("nodes", []), "length": row.get("length")}

    async def health_check(self) -> bool:
        try:
            if not self._connected:
                await self.connect()
            await self.query("RETURN 1")
            return True
        except StoreUnavailable as e:
            log.error(f"FalkorDB health check failed: {e}")
            return False
