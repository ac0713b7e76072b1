"""
Services built on top of the storage layer.
"""

from hybridshop.services.knowledge_graph import (
    DEFAULT_EXPLANATION,
    ExplainedRecommendation,
    KnowledgeGraphService,
    cosine_similarity,
    parse_feature_list,
    similarity_reasons,
)

__all__ = [
    "DEFAULT_EXPLANATION",
    "ExplainedRecommendation",
    "KnowledgeGraphService",
    "cosine_similarity",
    "parse_feature_list",
    "similarity_reasons",
]
