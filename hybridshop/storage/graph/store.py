"""
Graph Store
===========

Node/edge adapter and product pattern queries over FalkorDBClient.

Labels and relationship types are interpolated from NodeType/EdgeType enum
values only; every user-supplied value travels as a query parameter.
"""

import structlog
from typing import Any, Dict, List, Optional, Tuple

from hybridshop.storage.graph.client import FalkorDBClient
from hybridshop.storage.graph.models import (
    EdgeType,
    GraphEdge,
    GraphNode,
    NodeType,
)

log = structlog.get_logger()


class GraphStore:
    """
    Graph adapter used by the hybrid coordinator and the knowledge graph service.

    Example:
        store = GraphStore(FalkorDBClient(config))
        await store.connect()

        await store.create_node(GraphNode.create(NodeType.CATEGORY, "electronics", name="Electronics"))
        await store.create_edge(belongs_to_category(product_id, "electronics"))
    """

    def __init__(self, client: FalkorDBClient):
        self.client = client

    async def connect(self):
        await self.client.connect()

    async def close(self):
        await self.client.close()

    async def query(self, cypher: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return await self.client.query(cypher, params)

    # ------------------------------------------------------------------
    # Nodes and edges
    # ------------------------------------------------------------------

    async def create_node(self, node: GraphNode) -> None:
        """
        Create or update a node by (type, id).

        Existing properties not present on ``node`` are kept; known
        properties are overwritten.
        """
        cypher = f"""
            MERGE (n:{node.label} {{id: $id}})
            ON CREATE SET n.created_at = $created_at
            SET n += $props
        """
        props = node.to_graph_properties()
        created_at = props.pop("created_at")
        props.pop("id")
        await self.client.query(cypher, {"id": node.id, "created_at": created_at, "props": props})

    async def replace_node_properties(self, node: GraphNode) -> None:
        """Create the node if absent, then replace all of its properties."""
        cypher = f"""
            MERGE (n:{node.label} {{id: $id}})
            ON CREATE SET n.created_at = $created_at
            WITH n, coalesce(n.created_at, $created_at) AS created
            SET n = $props
            SET n.id = $id, n.created_at = created
        """
        props = node.to_graph_properties()
        created_at = props.pop("created_at")
        props.pop("id")
        await self.client.query(cypher, {"id": node.id, "created_at": created_at, "props": props})

    async def ensure_node(self, node: GraphNode) -> None:
        """Create the node only if absent; never touches an existing node."""
        cypher = f"""
            MERGE (n:{node.label} {{id: $id}})
            ON CREATE SET n += $props
        """
        await self.client.query(cypher, {"id": node.id, "props": node.to_graph_properties()})

    async def create_edge(self, edge: GraphEdge) -> bool:
        """
        Create or update an edge between two existing nodes.

        Returns:
            False if either endpoint does not exist
        """
        cypher = f"""
            MATCH (a:{edge.from_type.value} {{id: $from_id}}), (b:{edge.to_type.value} {{id: $to_id}})
            MERGE (a)-[r:{edge.type.value}]->(b)
            SET r += $props
            RETURN type(r) AS type
        """
        results = await self.client.query(cypher, {
            "from_id": edge.from_id,
            "to_id": edge.to_id,
            "props": edge.to_graph_properties(),
        })
        if not results:
            log.warning(f"Edge not created, endpoint missing: {edge!r}")
            return False
        return True

    async def delete_edges(self, edge_type: EdgeType, from_type: NodeType, from_id: str) -> None:
        """Delete every outgoing ``edge_type`` edge of a node (no-op if none)."""
        cypher = f"""
            MATCH (a:{from_type.value} {{id: $id}})-[r:{edge_type.value}]->()
            DELETE r
        """
        await self.client.query(cypher, {"id": from_id})

    async def delete_node(self, node_type: NodeType, node_id: str) -> bool:
        """
        Delete a node and its edges.

        Returns:
            True if a node was deleted, False if it did not exist
        """
        cypher = f"""
            MATCH (n:{node_type.value} {{id: $id}})
            WITH n, n.id AS node_id
            DETACH DELETE n
            RETURN count(node_id) AS deleted
        """
        results = await self.client.query(cypher, {"id": node_id})
        return bool(results and results[0].get("deleted"))

    async def get_node(self, node_type: NodeType, node_id: str) -> Optional[GraphNode]:
        cypher = f"MATCH (n:{node_type.value} {{id: $id}}) RETURN n"
        results = await self.client.query(cypher, {"id": node_id})
        if not results:
            return None
        return GraphNode.from_graph_record(node_type, results[0]["n"]["properties"])

    async def get_neighbors(
        self,
        node_type: NodeType,
        node_id: str,
        edge_type: EdgeType,
        neighbor_type: NodeType,
        limit: int = 50,
    ) -> List[GraphNode]:
        """Outgoing neighbours of a node over one edge type."""
        cypher = f"""
            MATCH (a:{node_type.value} {{id: $id}})-[:{edge_type.value}]->(b:{neighbor_type.value})
            RETURN b
            LIMIT $limit
        """
        results = await self.client.query(cypher, {"id": node_id, "limit": limit})
        return [GraphNode.from_graph_record(neighbor_type, r["b"]["properties"]) for r in results]

    async def find_related(
        self,
        node_type: NodeType,
        node_id: str,
        hops: int = 2,
        target_type: Optional[NodeType] = None,
        limit: int = 50,
    ) -> List[Tuple[NodeType, str, int]]:
        """
        Nodes reachable within ``hops`` edges, in either direction.

        ``hops`` must lie in [1, config.max_hops]. Inactive products are skipped.

        Returns:
            (node type, id, distance) triples, nearest first
        """
        max_hops = self.client.config.max_hops
        if not 1 <= hops <= max_hops:
            raise ValueError(f"hops must be in [1, {max_hops}], got {hops}")

        target = f":{target_type.value}" if target_type else ""
        cypher = f"""
            MATCH path = (start:{node_type.value} {{id: $id}})-[*1..{hops}]-(other{target})
            WHERE other.id <> $id AND (NOT 'Product' IN labels(other) OR other.is_active = true)
            WITH other, min(length(path)) AS distance
            RETURN labels(other)[0] AS label, other.id AS id, distance
            ORDER BY distance ASC, id ASC
            LIMIT $limit
        """
        results = await self.client.query(cypher, {"id": node_id, "limit": limit})

        known = {t.value: t for t in NodeType}
        return [
            (known[r["label"]], r["id"], int(r["distance"]))
            for r in results
            if r["label"] in known
        ]

    async def path_between(
        self,
        from_type: NodeType,
        from_id: str,
        to_type: NodeType,
        to_id: str,
        max_hops: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Shortest connection between two nodes, or None when they are not linked."""
        return await self.client.shortest_path(from_type.value, from_id, to_type.value, to_id, max_hops)

    # ------------------------------------------------------------------
    # Product pattern queries
    # ------------------------------------------------------------------

    async def find_structurally_similar(
        self,
        product_id: str,
        limit: int,
        category_weight: float,
        feature_weight: float,
    ) -> List[Tuple[str, float]]:
        """
        Products sharing categories or features with ``product_id``.

        score = category_weight * shared_categories + feature_weight * shared_features

        Returns:
            (product_id, score) pairs, best first, active products only
        """
        cypher = """
            MATCH (p:Product {id: $id})-[:BELONGS_TO_CATEGORY|HAS_FEATURE]->(shared)
                  <-[:BELONGS_TO_CATEGORY|HAS_FEATURE]-(other:Product)
            WHERE other.id <> $id AND other.is_active = true
            WITH other,
                 sum(CASE WHEN 'Category' IN labels(shared) THEN 1 ELSE 0 END) AS shared_categories,
                 sum(CASE WHEN 'Feature' IN labels(shared) THEN 1 ELSE 0 END) AS shared_features
            RETURN other.id AS id,
                   shared_categories * $category_weight + shared_features * $feature_weight AS score
            ORDER BY score DESC, id ASC
            LIMIT $limit
        """
        results = await self.client.query(cypher, {
            "id": product_id,
            "limit": limit,
            "category_weight": category_weight,
            "feature_weight": feature_weight,
        })
        return [(r["id"], float(r["score"])) for r in results]

    async def find_products_in_category(self, category_id: str, skip: int = 0, limit: int = 20) -> List[str]:
        cypher = """
            MATCH (p:Product)-[:BELONGS_TO_CATEGORY]->(c:Category {id: $category_id})
            WHERE p.is_active = true
            RETURN p.id AS id
            ORDER BY p.name ASC
            SKIP $skip LIMIT $limit
        """
        results = await self.client.query(cypher, {"category_id": category_id, "skip": skip, "limit": limit})
        return [r["id"] for r in results]

    async def find_frequently_bought_together(self, product_id: str, limit: int = 5) -> List[Tuple[str, int]]:
        """Products bought by the same customers, with co-purchase counts."""
        cypher = """
            MATCH (p:Product {id: $id})<-[:PURCHASED]-(c:CustomerProfile)-[:PURCHASED]->(other:Product)
            WHERE other.id <> $id AND other.is_active = true
            RETURN other.id AS id, count(DISTINCT c) AS frequency
            ORDER BY frequency DESC, id ASC
            LIMIT $limit
        """
        results = await self.client.query(cypher, {"id": product_id, "limit": limit})
        return [(r["id"], int(r["frequency"])) for r in results]

    async def find_recommendations_for_customer(self, customer_id: str, limit: int = 10) -> List[Tuple[str, float]]:
        """Active products in preferred categories/brands the customer has not bought."""
        cypher = """
            MATCH (c:CustomerProfile {id: $id})-[pref:PREFERS_CATEGORY|PREFERS_BRAND]->(x)
                  <-[:BELONGS_TO_CATEGORY|MADE_BY]-(p:Product)
            WHERE p.is_active = true AND NOT (c)-[:PURCHASED]->(p)
            RETURN p.id AS id, sum(pref.weight * pref.confidence) AS score
            ORDER BY score DESC, id ASC
            LIMIT $limit
        """
        results = await self.client.query(cypher, {"id": customer_id, "limit": limit})
        return [(r["id"], float(r["score"])) for r in results]

    async def find_popular_products(self, limit: int = 10, category_id: Optional[str] = None) -> List[Tuple[str, float]]:
        """Active products ranked by incoming PURCHASED/VIEWED weight."""
        if category_id is None:
            cypher = """
                MATCH (p:Product)<-[r:PURCHASED|VIEWED]-(:CustomerProfile)
                WHERE p.is_active = true
                RETURN p.id AS id, sum(r.weight) AS popularity
                ORDER BY popularity DESC, id ASC
                LIMIT $limit
            """
            params: Dict[str, Any] = {"limit": limit}
        else:
            cypher = """
                MATCH (p:Product)-[:BELONGS_TO_CATEGORY]->(:Category {id: $category_id})
                MATCH (p)<-[r:PURCHASED|VIEWED]-(:CustomerProfile)
                WHERE p.is_active = true
                RETURN p.id AS id, sum(r.weight) AS popularity
                ORDER BY popularity DESC, id ASC
                LIMIT $limit
            """
            params = {"limit": limit, "category_id": category_id}

        results = await self.client.query(cypher, params)
        return [(r["id"], float(r["popularity"])) for r in results]

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    async def count_nodes_by_label(self) -> Dict[str, int]:
        results = await self.client.query(
            "MATCH (n) RETURN labels(n)[0] AS label, count(n) AS count"
        )
        return {r["label"]: int(r["count"]) for r in results}

    async def count_edges_by_type(self) -> Dict[str, int]:
        results = await self.client.query(
            "MATCH ()-[r]->() RETURN type(r) AS type, count(r) AS count"
        )
        return {r["type"]: int(r["count"]) for r in results}

    async def health_check(self) -> bool:
        return await self.client.health_check()
