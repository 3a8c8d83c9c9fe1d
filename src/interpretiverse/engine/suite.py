# src/interpretiverse/engine/suite.py

import logging
from typing import Dict, List, Optional

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.core.dataset import Dataset
from interpretiverse.core.explanation import Explanation
from interpretiverse.core.registry import default_registry

logger = logging.getLogger(__name__)


class ExplanationSuite:
    """
    Runs several explainers against one model and compares their outputs.

    Example:
        >>> suite = ExplanationSuite(adapter, data, [
        ...     ("shapley", {"n_permutations": 200, "random_state": 0}),
        ...     ("lime", {"random_state": 0}),
        ...     ("ale", {}, {"feature": "age"}),
        ... ])
        >>> suite.run(instance=data.instance(0))
        >>> suite.compare()
    """

    def __init__(self, model, data, explainer_configs, registry=None):
        """
        Args:
            model: PredictorAdapter, or a raw model/callable wrapped in one
                built from the data's schema
            data: Reference Dataset (or mapping of feature -> column)
            explainer_configs: list of (name, kwargs) or
                (name, kwargs, explain_kwargs) tuples; ``name`` is a registry
                name, ``kwargs`` go to the constructor and ``explain_kwargs``
                to ``explain``
            registry: ExplainerRegistry to create explainers from
                (default: the package-wide registry)
        """
        self.data = Dataset.coerce(data)
        if not isinstance(model, PredictorAdapter):
            model = PredictorAdapter.for_dataset(model, self.data)
        self.model = model
        self.registry = registry if registry is not None else default_registry
        self.configs = [self._normalize_config(config) for config in explainer_configs]
        names = [name for name, _, _ in self.configs]
        if len(set(names)) != len(names):
            raise ValueError(f"Explainer names must be unique, got {names}")
        self.explanations: Dict[str, Explanation] = {}

    @staticmethod
    def _normalize_config(config):
        if len(config) == 2:
            name, params = config
            explain_params = {}
        elif len(config) == 3:
            name, params, explain_params = config
        else:
            raise ValueError(f"Explainer config must be (name, kwargs[, explain_kwargs]), got {config!r}")
        return name, dict(params or {}), dict(explain_params or {})

    def run(self, instance=None) -> Dict[str, Explanation]:
        """
        Run all configured explainers.

        Local explainers explain ``instance``; global explainers are called
        with their configured explain arguments.

        Raises:
            ValueError: If a local explainer is configured and no instance given
        """
        for name, params, explain_params in self.configs:
            meta = self.registry.get_meta(name)
            explainer = self.registry.create(name, model=self.model, data=self.data, **params)
            if meta.scope == "local":
                if instance is None:
                    raise ValueError(f"Local explainer '{name}' needs an instance to explain.")
                explanation = explainer.explain(instance, **explain_params)
            else:
                explanation = explainer.explain(**explain_params)
            self.explanations[name] = explanation
            logger.info("Suite ran '%s'", name)
        return self.explanations

    def comparison_table(self) -> Dict[str, Dict[str, Optional[float]]]:
        """{feature: {explainer name: attribution or None}} over every explainer run."""
        keys: List[str] = []
        for explanation in self.explanations.values():
            for key in explanation.get("feature_attributions", {}) or {}:
                if key not in keys:
                    keys.append(key)

        table = {}
        for key in keys:
            table[key] = {
                name: (explanation.get("feature_attributions", {}) or {}).get(key)
                for name, explanation in self.explanations.items()
            }
        return table

    def compare(self) -> Dict[str, Dict[str, Optional[float]]]:
        """
        Print attribution scores side-by-side and return the table.
        """
        table = self.comparison_table()

        print("\nSide-by-Side Comparison:")
        for key, row in table.items():
            cells = [f"{key}"]
            for name, value in row.items():
                cells.append(f"{name}: {value:.4f}" if isinstance(value, float) else f"{name}: -")
            print(" | ".join(cells))
        return table

    def suggest_best(self, scope_preference: Optional[str] = None) -> Optional[str]:
        """
        Suggest an explainer for this model and data from the registry's recommendations.
        """
        recommendations = self.registry.recommend(
            task_type=self.model.task,
            scope_preference=scope_preference,
            has_labels=self.data.labels is not None,
            max_results=1
        )
        return recommendations[0] if recommendations else None
