"""
Graph Storage
=============

Product knowledge graph on FalkorDB (Cypher).

Components:
- FalkorDBClient: async Cypher client
- FalkorDBConfig: connection settings
- GraphStore: node/edge adapter and product pattern queries
- GraphNode / GraphEdge: typed graph model

Example:
    from hybridshop.storage.graph import FalkorDBClient, FalkorDBConfig, GraphStore

    client = FalkorDBClient(FalkorDBConfig(graph_name="hybridshop_test"))
    graph = GraphStore(client)
    await graph.connect()
"""

from hybridshop.storage.graph.client import FalkorDBClient
from hybridshop.storage.graph.config import FalkorDBConfig
from hybridshop.storage.graph.models import (
    EdgeType,
    FeatureType,
    GraphEdge,
    GraphNode,
    NodeProperties,
    NodeType,
    PRODUCT_RELATIONSHIP_TYPES,
    clamp_unit,
)
from hybridshop.storage.graph.store import GraphStore

__all__ = [
    # Client
    "FalkorDBClient",
    "FalkorDBConfig",
    "GraphStore",
    # Model
    "EdgeType",
    "FeatureType",
    "GraphEdge",
    "GraphNode",
    "NodeProperties",
    "NodeType",
    "PRODUCT_RELATIONSHIP_TYPES",
    "clamp_unit",
]
