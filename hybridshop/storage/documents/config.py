"""
Document Store Configuration
============================

Connection settings for the authoritative product store (PostgreSQL via
asyncpg in deployment, SQLite via aiosqlite in tests).

Environment Variables:
    DOCUMENT_DB_URL: Full SQLAlchemy async URL (overrides host/port/...)
    DOCUMENT_DB_HOST: Host (default: localhost)
    DOCUMENT_DB_PORT: Port (default: 5433)
    DOCUMENT_DB_NAME: Database (default: hybridshop_dev)
    DOCUMENT_DB_USER / DOCUMENT_DB_PASSWORD: Credentials
    DOCUMENT_DB_TABLE: Products table (default: products)
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _get_env_str(key: str, default: str) -> str:
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


@dataclass
class DocumentStoreConfig:
    """
    Configuration for the document store connection.

    Attributes:
        url: Explicit SQLAlchemy async URL; when set, host/port/... are ignored
        pool_size: Connection pool size (ignored for SQLite)
        max_overflow: Extra connections above pool_size (ignored for SQLite)
        table_name: Products table (products_test / products)
    """
    url: Optional[str] = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_URL", "") or None)
    host: str = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: _get_env_int("DOCUMENT_DB_PORT", 5433))
    database: str = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_NAME", "hybridshop_dev"))
    user: str = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_USER", "dev"))
    password: str = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_PASSWORD", "devpassword"))
    pool_size: int = 10
    max_overflow: int = 20
    table_name: str = field(default_factory=lambda: _get_env_str("DOCUMENT_DB_TABLE", "products"))

    def get_connection_string(self) -> str:
        """Get async connection string."""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @property
    def is_sqlite(self) -> bool:
        return self.get_connection_string().startswith("sqlite")

    @classmethod
    def from_environment(cls, env_config) -> "DocumentStoreConfig":
        """Config using the table of an EnvironmentConfig from hybridshop.config."""
        return cls(table_name=env_config.products_table)

    @classmethod
    def in_memory(cls, table_name: str = "products_test") -> "DocumentStoreConfig":
        """In-memory SQLite, for tests."""
        return cls(url="sqlite+aiosqlite://", table_name=table_name)
