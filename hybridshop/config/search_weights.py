"""
Search Weight Configuration
===========================

Pydantic models for the tunable numbers of the hybrid search pipeline.

Values are loaded from ``search_weights.yaml`` next to this module; a missing
or unreadable file falls back to the built-in defaults. Out-of-range values
fail validation.

Example:
    >>> weights = load_search_weights()
    >>> weights.cascade.tiers(0.9)
    [0.9, 0.63, 0.45, 0.1]
"""

from pathlib import Path
from typing import List, Optional

import structlog
import yaml
from pydantic import BaseModel, Field, field_validator

log = structlog.get_logger()

DEFAULT_CONFIG_PATH = Path(__file__).parent / "search_weights.yaml"


class CascadeWeights(BaseModel):
    """
    Adaptive-threshold cascade.

    Attributes:
        multipliers: Factors applied to the requested threshold, in order
        floor: Last-resort threshold tried when every relaxed tier is empty
    """
    multipliers: List[float] = Field(default_factory=lambda: [0.7, 0.5])
    floor: float = Field(default=0.1, ge=0.0, le=1.0)

    @field_validator("multipliers")
    @classmethod
    def multipliers_in_unit_interval(cls, v: List[float]) -> List[float]:
        for m in v:
            if not 0.0 < m <= 1.0:
                raise ValueError(f"cascade multiplier must be in (0, 1], got {m}")
        return v

    def tiers(self, threshold: float) -> List[float]:
        """
        Thresholds to try for a requested threshold, strictest first.

        The requested threshold always comes first, even below the floor.
        Relaxed tiers are clamped to the floor and kept only while strictly
        decreasing.
        """
        tiers: List[float] = [round(threshold, 10)]
        for t in [threshold * m for m in self.multipliers] + [self.floor]:
            t = max(round(t, 10), self.floor)
            if t < tiers[-1]:
                tiers.append(t)
        return tiers


class GraphSimilarityWeights(BaseModel):
    """Linear blend for structural similarity (shared categories vs shared features)."""
    category_weight: float = Field(default=0.3, ge=0.0)
    feature_weight: float = Field(default=0.7, ge=0.0)


class KnowledgeGraphWeights(BaseModel):
    similarity_edge_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    price_tolerance: float = Field(default=0.2, ge=0.0, le=1.0)


class SearchWeights(BaseModel):
    """All search weights, as loaded from YAML."""
    version: str = Field(default="1.0")
    cascade: CascadeWeights = Field(default_factory=CascadeWeights)
    graph_similarity: GraphSimilarityWeights = Field(default_factory=GraphSimilarityWeights)
    knowledge_graph: KnowledgeGraphWeights = Field(default_factory=KnowledgeGraphWeights)


def load_search_weights(config_path: Optional[Path] = None) -> SearchWeights:
    """
    Load search weights from YAML.

    Falls back to defaults if the file is missing or cannot be parsed.
    Validation errors on a parsed file are raised: a typo in a weight
    should not silently become a default.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        log.warning(f"Search weights not found: {path}, using defaults")
        return SearchWeights()
    except yaml.YAMLError as e:
        log.error(f"Error parsing search weights {path}: {e}, using defaults")
        return SearchWeights()

    weights = SearchWeights.model_validate(data)
    log.debug("Loaded search weights", path=str(path), version=weights.version)
    return weights
