# src/interpretiverse/__init__.py
"""
Interpretiverse - model-agnostic explanations for black-box predictors.

Every engine talks to the model only through a PredictorAdapter and
explains it against a reference Dataset:

- Effects: Partial Dependence, ICE, ALE
- Interactions: Friedman's H-statistic
- Importance: permutation feature importance
- Surrogates: global (tree/linear) and local (LIME)
- Attributions: Shapley values (sampling and exact)

Quick Start:
    from interpretiverse import Dataset, PredictorAdapter, default_registry

    data = Dataset.from_array(X, feature_names, labels=y)
    adapter = PredictorAdapter.for_dataset(clf, data, task="classification")

    # List available explainers
    print(default_registry.list_explainers())

    # Create an explainer
    explainer = default_registry.create("shapley", model=adapter, data=data)
    explanation = explainer.explain(data.instance(0))
"""

import logging

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.adapters.sklearn_adapter import SklearnAdapter
from interpretiverse.core.dataset import Dataset, FeatureSchema, FeatureSpec
from interpretiverse.core.execution import CancellationToken
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.core.registry import (
    ExplainerRegistry,
    ExplainerMeta,
    default_registry,
    get_default_registry,
)
from interpretiverse.engine.suite import ExplanationSuite
from interpretiverse.exceptions import (
    ComputationCancelled,
    EmptyDataset,
    InterpretiverseError,
    MissingLabels,
    PredictorError,
    PredictorTimeout,
    SchemaMismatch,
    UnsupportedFeatureType,
)
from interpretiverse.explainers import (
    ALEExplainer,
    GlobalSurrogateExplainer,
    HStatisticExplainer,
    ICEExplainer,
    LocalSurrogateExplainer,
    PartialDependenceExplainer,
    PermutationImportanceExplainer,
    ShapleyExplainer,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Core
    "Dataset",
    "FeatureSchema",
    "FeatureSpec",
    "CancellationToken",
    "BaseExplainer",
    "Explanation",
    # Registry
    "ExplainerRegistry",
    "ExplainerMeta",
    "default_registry",
    "get_default_registry",
    # Adapters
    "PredictorAdapter",
    "SklearnAdapter",
    # Explainers
    "PartialDependenceExplainer",
    "ICEExplainer",
    "ALEExplainer",
    "HStatisticExplainer",
    "PermutationImportanceExplainer",
    "GlobalSurrogateExplainer",
    "LocalSurrogateExplainer",
    "ShapleyExplainer",
    # Engine
    "ExplanationSuite",
    # Errors
    "InterpretiverseError",
    "SchemaMismatch",
    "UnsupportedFeatureType",
    "EmptyDataset",
    "MissingLabels",
    "PredictorError",
    "PredictorTimeout",
    "ComputationCancelled",
]
