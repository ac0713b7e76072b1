"""
FalkorDB Configuration
======================

Where the product graph lives and how far traversals may reach.

Environment Variables:
    FALKORDB_HOST / FALKORDB_PORT: Server address (default: localhost:6380)
    FALKORDB_PASSWORD: Optional password
    FALKORDB_GRAPH_NAME: Graph key (default: hybridshop_dev)
    FALKORDB_TIMEOUT_MS: Per-query timeout (default: 5000)
    FALKORDB_MAX_HOPS: Upper bound for multi-hop traversals (default: 3)
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env(key: str, default: str) -> str:
    return os.environ.get(key, default)


@dataclass
class FalkorDBConfig:
    """
    FalkorDB connection and traversal settings.

    ``graph_name`` differs per environment (see hybridshop.config), so test
    and prod data never share a graph key on the same server.
    """
    host: str = field(default_factory=lambda: _env("FALKORDB_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(_env("FALKORDB_PORT", "6380")))
    graph_name: str = field(default_factory=lambda: _env("FALKORDB_GRAPH_NAME", "hybridshop_dev"))
    timeout_ms: int = field(default_factory=lambda: int(_env("FALKORDB_TIMEOUT_MS", "5000")))
    password: Optional[str] = field(default_factory=lambda: _env("FALKORDB_PASSWORD", "") or None)
    max_hops: int = field(default_factory=lambda: int(_env("FALKORDB_MAX_HOPS", "3")))

    def __post_init__(self):
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.max_hops < 1:
            raise ValueError(f"max_hops must be >= 1, got {self.max_hops}")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}/{self.graph_name}"

    @classmethod
    def from_environment(cls, env_config) -> "FalkorDBConfig":
        """Config using the graph of an EnvironmentConfig from hybridshop.config."""
        return cls(graph_name=env_config.falkordb_graph)
