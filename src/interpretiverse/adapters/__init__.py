# src/interpretiverse/adapters/__init__.py
"""
Model adapters - wrappers that give every engine one prediction interface.

Available adapters:
- PredictorAdapter: schema-aware, single-output wrapper used by all engines
- SklearnAdapter: raw scikit-learn output (probabilities or predictions)
"""

from interpretiverse.adapters.base_adapter import BaseModelAdapter
from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.adapters.sklearn_adapter import SklearnAdapter

__all__ = ["BaseModelAdapter", "PredictorAdapter", "SklearnAdapter"]
