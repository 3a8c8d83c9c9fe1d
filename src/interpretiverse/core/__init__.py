# src/interpretiverse/core/__init__.py
"""
Interpretiverse core components.
"""

from interpretiverse.core.dataset import Dataset, FeatureSchema, FeatureSpec
from interpretiverse.core.execution import CancellationToken, run_units
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.core.grid import feature_grid, feature_pair_grid
from interpretiverse.core.registry import (
    ExplainerRegistry,
    ExplainerMeta,
    default_registry,
    get_default_registry,
)

__all__ = [
    "Dataset",
    "FeatureSchema",
    "FeatureSpec",
    "CancellationToken",
    "run_units",
    "BaseExplainer",
    "Explanation",
    "feature_grid",
    "feature_pair_grid",
    "ExplainerRegistry",
    "ExplainerMeta",
    "default_registry",
    "get_default_registry",
]
