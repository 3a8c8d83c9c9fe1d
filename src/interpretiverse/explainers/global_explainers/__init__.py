# src/interpretiverse/explainers/global_explainers/__init__.py
"""
Global explainers - model-level explanations.

These explainers describe the overall model behavior over a reference
dataset, not individual predictions.
"""

from interpretiverse.explainers.global_explainers.ale import ALEExplainer
from interpretiverse.explainers.global_explainers.interaction import HStatisticExplainer
from interpretiverse.explainers.global_explainers.partial_dependence import (
    ICEExplainer,
    PartialDependenceExplainer,
)
from interpretiverse.explainers.global_explainers.permutation_importance import (
    PermutationImportanceExplainer
)
from interpretiverse.explainers.global_explainers.surrogate import GlobalSurrogateExplainer

__all__ = [
    "PartialDependenceExplainer",
    "ICEExplainer",
    "ALEExplainer",
    "HStatisticExplainer",
    "PermutationImportanceExplainer",
    "GlobalSurrogateExplainer",
]
