"""
Environment Configuration
=========================

Manages test/prod environment separation for the three product stores.

Usage:
    from hybridshop.config import get_environment_config, TEST_ENV, PROD_ENV

    config = get_environment_config(TEST_ENV)
    print(config.falkordb_graph)  # "hybridshop_test"
    print(config.qdrant_collection)  # "hybridshop_test_products"

    # Switch global environment
    set_current_environment(PROD_ENV)
    config = get_current_environment()
    print(config.name)  # "prod"
"""

import os
from dataclasses import dataclass
from enum import Enum


class Environment(Enum):
    """Available environments."""
    TEST = "test"
    PROD = "prod"


# Convenience aliases
TEST_ENV = Environment.TEST
PROD_ENV = Environment.PROD


@dataclass(frozen=True)
class EnvironmentConfig:
    """
    Configuration for a specific environment.

    Attributes:
        name: Environment name ("test" or "prod")
        falkordb_graph: FalkorDB graph name
        qdrant_collection: Qdrant collection name
        products_table: Document store table name
        description: Human-readable description
    """
    name: str
    falkordb_graph: str
    qdrant_collection: str
    products_table: str
    description: str


_ENVIRONMENTS = {
    Environment.TEST: EnvironmentConfig(
        name="test",
        falkordb_graph="hybridshop_test",
        qdrant_collection="hybridshop_test_products",
        products_table="products_test",
        description="Test environment for local runs and fixtures",
    ),
    Environment.PROD: EnvironmentConfig(
        name="prod",
        falkordb_graph="hybridshop_prod",
        qdrant_collection="hybridshop_prod_products",
        products_table="products",
        description="Production catalog",
    ),
}

# Current active environment (default: test for safety)
_current_environment: Environment = Environment.TEST


def get_environment_config(env: Environment) -> EnvironmentConfig:
    """
    Get configuration for a specific environment.

    Args:
        env: Environment enum value

    Returns:
        EnvironmentConfig for the specified environment
    """
    return _ENVIRONMENTS[env]


def get_current_environment() -> EnvironmentConfig:
    """
    Get configuration for the currently active environment.

    The current environment can be set via:
    1. set_current_environment() function
    2. HYBRIDSHOP_ENV environment variable (takes precedence)
    """
    env_var = os.environ.get("HYBRIDSHOP_ENV", "").lower()
    if env_var == "prod":
        return _ENVIRONMENTS[Environment.PROD]
    elif env_var == "test":
        return _ENVIRONMENTS[Environment.TEST]

    return _ENVIRONMENTS[_current_environment]


def set_current_environment(env: Environment) -> None:
    """Set the current active environment."""
    global _current_environment
    _current_environment = env
