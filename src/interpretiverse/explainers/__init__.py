# src/interpretiverse/explainers/__init__.py
"""
Interpretiverse Explainers.

Local Explainers (instance-level):
- LocalSurrogate: LIME local surrogate built on the lime library
- Shapley: permutation-sampled or exact Shapley values

Global Explainers (model-level):
- Partial Dependence / ICE: marginal and per-instance feature effects
- ALE: Accumulated Local Effects (unbiased for correlated features)
- H-statistic: Friedman's interaction strength
- Permutation Importance: loss increase under feature permutation
- Global Surrogate: interpretable model fit to the predictions
"""

from interpretiverse.explainers.attribution.local_surrogate import LocalSurrogateExplainer
from interpretiverse.explainers.attribution.shapley import ShapleyExplainer
from interpretiverse.explainers.global_explainers.ale import ALEExplainer
from interpretiverse.explainers.global_explainers.interaction import HStatisticExplainer
from interpretiverse.explainers.global_explainers.partial_dependence import (
    ICEExplainer,
    PartialDependenceExplainer,
)
from interpretiverse.explainers.global_explainers.permutation_importance import PermutationImportanceExplainer
from interpretiverse.explainers.global_explainers.surrogate import GlobalSurrogateExplainer

__all__ = [
    # Local explainers
    "LocalSurrogateExplainer",
    "ShapleyExplainer",
    # Global explainers
    "PartialDependenceExplainer",
    "ICEExplainer",
    "ALEExplainer",
    "HStatisticExplainer",
    "PermutationImportanceExplainer",
    "GlobalSurrogateExplainer",
]
