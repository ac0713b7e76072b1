"""
Configuration module for hybridshop.
"""

from .environments import (
    EnvironmentConfig,
    Environment,
    get_environment_config,
    get_current_environment,
    set_current_environment,
    TEST_ENV,
    PROD_ENV,
)
from .search_weights import (
    SearchWeights,
    CascadeWeights,
    GraphSimilarityWeights,
    KnowledgeGraphWeights,
    load_search_weights,
)

__all__ = [
    "EnvironmentConfig",
    "Environment",
    "get_environment_config",
    "get_current_environment",
    "set_current_environment",
    "TEST_ENV",
    "PROD_ENV",
    "SearchWeights",
    "CascadeWeights",
    "GraphSimilarityWeights",
    "KnowledgeGraphWeights",
    "load_search_weights",
]
