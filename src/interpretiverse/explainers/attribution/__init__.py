# src/interpretiverse/explainers/attribution/__init__.py
"""
Attribution-based explainers - per-feature explanations of one prediction.
"""

from interpretiverse.explainers.attribution.local_surrogate import LocalSurrogateExplainer
from interpretiverse.explainers.attribution.shapley import ShapleyExplainer

__all__ = ["LocalSurrogateExplainer", "ShapleyExplainer"]
