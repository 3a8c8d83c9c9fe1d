# src/interpretiverse/core/registry.py
"""
Explainer registry.

Engines are registered under a short name together with an ExplainerMeta
record; callers discover them by scope, model type, task or label needs,
build them by name, or ask for a recommendation.

    from interpretiverse.core.registry import default_registry, ExplainerMeta

    default_registry.filter(scope="global", requires_labels=False)
    explainer = default_registry.create("ale", model=adapter, data=data, n_bins=10)

    @default_registry.register_decorator(
        name="median_effect",
        meta=ExplainerMeta(scope="global", description="Median ICE curve")
    )
    class MedianEffectExplainer(BaseExplainer):
        ...
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from interpretiverse.core.explainer import BaseExplainer

SCOPES = ("local", "global")

_SCOPE_HEADINGS = {
    "local": "LOCAL EXPLAINERS (one instance):",
    "global": "GLOBAL EXPLAINERS (whole dataset):",
}


@dataclass
class ExplainerMeta:
    """
    What an explainer can explain and what it costs.

    Attributes:
        scope: "local" (one instance) or "global" (the model over a dataset)
        model_types: Model families it applies to; "any" matches everything
        data_types: Data kinds it accepts ("tabular")
        task_types: "classification" and/or "regression"
        description: One-line summary shown by ``summary()``
        paper_reference: Citation for the method
        complexity: Predictor evaluations, e.g. "O(grid_size * n_rows)"
        requires_labels: The reference Dataset must carry labels
        supports_batching: The class provides ``explain_batch``
    """
    scope: str
    model_types: List[str] = field(default_factory=lambda: ["any"])
    data_types: List[str] = field(default_factory=lambda: ["tabular"])
    task_types: List[str] = field(default_factory=lambda: ["classification", "regression"])
    description: str = ""
    paper_reference: Optional[str] = None
    complexity: Optional[str] = None
    requires_labels: bool = False
    supports_batching: bool = False

    def __post_init__(self):
        if self.scope not in SCOPES:
            raise ValueError(f"scope must be one of {SCOPES}, got '{self.scope}'")

    def matches(
        self,
        scope: Optional[str] = None,
        model_type: Optional[str] = None,
        data_type: Optional[str] = None,
        task_type: Optional[str] = None,
        requires_labels: Optional[bool] = None
    ) -> bool:
        """True when every given criterion holds; None means "don't care"."""
        checks = (
            scope is None or self.scope == scope,
            model_type is None or "any" in self.model_types or model_type in self.model_types,
            data_type is None or data_type in self.data_types,
            task_type is None or task_type in self.task_types,
            requires_labels is None or self.requires_labels == requires_labels,
        )
        return all(checks)


class ExplainerRegistry:
    """
    Name -> (explainer class, ExplainerMeta) table.

    Entries are plain dicts with "class" and "meta" keys and keep their
    registration order, which ``filter`` and ``recommend`` preserve.
    """

    def __init__(self):
        self._entries: Dict[str, Dict[str, Any]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _entry(self, name: str) -> Dict[str, Any]:
        try:
            return self._entries[name]
        except KeyError:
            raise KeyError(
                f"No explainer registered as '{name}'; known: {sorted(self._entries)}"
            ) from None

    def register(
        self,
        name: str,
        explainer_class: Type[BaseExplainer],
        meta: ExplainerMeta,
        override: bool = False
    ) -> None:
        """
        Add ``explainer_class`` under ``name``.

        Raises:
            TypeError: ``explainer_class`` is not a BaseExplainer subclass
            ValueError: ``name`` is taken and ``override`` is False
        """
        if not (isinstance(explainer_class, type) and issubclass(explainer_class, BaseExplainer)):
            raise TypeError(f"Explainer '{name}' must be a BaseExplainer subclass.")
        if name in self._entries and not override:
            raise ValueError(f"'{name}' is already registered; pass override=True to replace it.")
        self._entries[name] = {"class": explainer_class, "meta": meta}

    def unregister(self, name: str) -> None:
        """Remove ``name``; KeyError if it is unknown."""
        self._entry(name)
        del self._entries[name]

    def get(self, name: str) -> Dict[str, Any]:
        """The {"class": ..., "meta": ...} entry for ``name``; KeyError if unknown."""
        return self._entry(name)

    def get_meta(self, name: str) -> ExplainerMeta:
        return self._entry(name)["meta"]

    def list_explainers(self, with_meta: bool = False) -> Any:
        """Registered names, or a copy of the name -> entry table when ``with_meta``."""
        return dict(self._entries) if with_meta else list(self._entries)

    def filter(
        self,
        scope: Optional[str] = None,
        model_type: Optional[str] = None,
        data_type: Optional[str] = None,
        task_type: Optional[str] = None,
        requires_labels: Optional[bool] = None
    ) -> List[str]:
        """Names whose metadata matches every given criterion (see ``ExplainerMeta.matches``)."""
        return [
            name for name, entry in self._entries.items()
            if entry["meta"].matches(scope, model_type, data_type, task_type, requires_labels)
        ]

    def create(self, name: str, **kwargs) -> BaseExplainer:
        """Instantiate the explainer registered as ``name`` with ``kwargs``."""
        return self._entry(name)["class"](**kwargs)

    def register_decorator(
        self,
        name: str,
        meta: ExplainerMeta
    ) -> Callable[[Type[BaseExplainer]], Type[BaseExplainer]]:
        """Class decorator form of ``register``; returns the class unchanged."""
        def decorator(cls: Type[BaseExplainer]) -> Type[BaseExplainer]:
            self.register(name, cls, meta)
            return cls
        return decorator

    def summary(self) -> str:
        """Printable listing of the registered explainers, grouped by scope."""
        rule = "=" * 60
        lines = [rule, "Interpretiverse - Registered Explainers", rule, ""]

        for scope in SCOPES:
            rows = []
            for name, entry in self._entries.items():
                meta: ExplainerMeta = entry["meta"]
                if meta.scope != scope:
                    continue
                row = f"  {name}: {meta.description or '(no description)'}"
                if meta.requires_labels:
                    row += " [requires labels]"
                rows.append(row)
            if rows:
                lines.extend([_SCOPE_HEADINGS[scope], *rows, ""])

        lines.extend([f"Total: {len(self._entries)} explainers", rule])
        return "\n".join(lines)

    @staticmethod
    def _relevance(meta: ExplainerMeta, model_type: Optional[str], scope_preference: Optional[str]) -> int:
        score = 0
        if scope_preference and meta.scope == scope_preference:
            score += 10
        # An explicit model-type match beats "any"
        if model_type and model_type in meta.model_types:
            score += 5
        if meta.paper_reference:
            score += 2
        if meta.description:
            score += 1
        return score

    def recommend(
        self,
        model_type: Optional[str] = None,
        data_type: Optional[str] = None,
        task_type: Optional[str] = None,
        scope_preference: Optional[str] = None,
        has_labels: bool = True,
        max_results: int = 5
    ) -> List[str]:
        """
        Rank the compatible explainers for a use case.

        Args:
            model_type: Model family being explained
            data_type: Kind of data
            task_type: "classification" or "regression"
            scope_preference: "local" or "global" entries rank first
            has_labels: When False, explainers needing labels are left out
            max_results: Length cap of the returned list

        Returns:
            Explainer names, most relevant first; ties keep registration order
        """
        candidates = [
            name for name in self.filter(model_type=model_type, data_type=data_type, task_type=task_type)
            if has_labels or not self.get_meta(name).requires_labels
        ]
        ranked = sorted(
            candidates,
            key=lambda name: self._relevance(self.get_meta(name), model_type, scope_preference),
            reverse=True
        )
        return ranked[:max_results]


# =============================================================================
# Built-in explainers
# =============================================================================

def _build_default_registry() -> ExplainerRegistry:
    """A registry holding every built-in engine."""
    from interpretiverse.explainers.attribution.local_surrogate import LocalSurrogateExplainer
    from interpretiverse.explainers.attribution.shapley import ShapleyExplainer
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

    registry = ExplainerRegistry()

    # =========================================================================
    # Local Explainers (instance-level)
    # =========================================================================

    registry.register(
        name="lime",
        explainer_class=LocalSurrogateExplainer,
        meta=ExplainerMeta(
            scope="local",
            description="LIME local surrogate fit on a weighted neighborhood",
            paper_reference="Ribeiro et al., 2016 - 'Why Should I Trust You?'",
            complexity="O(n_samples)"
        )
    )

    registry.register(
        name="shapley",
        explainer_class=ShapleyExplainer,
        meta=ExplainerMeta(
            scope="local",
            description="Shapley values by permutation sampling or exact coalition enumeration",
            paper_reference="Strumbelj & Kononenko, 2014 - 'Explaining prediction models and individual predictions with feature contributions' (KAIS)",
            complexity="O(n_permutations * n_features) sampled, O(2^n_features * n_rows) exact",
            supports_batching=True
        )
    )

    # =========================================================================
    # Global Explainers (model-level)
    # =========================================================================

    registry.register(
        name="partial_dependence",
        explainer_class=PartialDependenceExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Marginal effect of features on predictions (PDP)",
            paper_reference="Friedman, 2001 - 'Greedy Function Approximation' (Annals of Statistics)",
            complexity="O(grid_size * n_rows)"
        )
    )

    registry.register(
        name="ice",
        explainer_class=ICEExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Individual Conditional Expectation curves, one per instance",
            paper_reference="Goldstein et al., 2015 - 'Peeking Inside the Black Box' (JCGS)",
            complexity="O(grid_size * n_rows)"
        )
    )

    registry.register(
        name="ale",
        explainer_class=ALEExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Accumulated Local Effects - unbiased alternative to PDP for correlated features",
            paper_reference="Apley & Zhu, 2020 - 'Visualizing the Effects of Predictor Variables' (JRSS-B)",
            complexity="O(n_rows)"
        )
    )

    registry.register(
        name="h_statistic",
        explainer_class=HStatisticExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Friedman's H-statistic of feature interaction strength",
            paper_reference="Friedman & Popescu, 2008 - 'Predictive Learning via Rule Ensembles' (AoAS)",
            complexity="O(sample_size^2) per feature or pair"
        )
    )

    registry.register(
        name="permutation_importance",
        explainer_class=PermutationImportanceExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Feature importance via permutation-based loss increase",
            paper_reference="Breiman, 2001 - 'Random Forests' (Machine Learning)",
            complexity="O(n_features * n_repeats * n_rows)",
            requires_labels=True
        )
    )

    registry.register(
        name="global_surrogate",
        explainer_class=GlobalSurrogateExplainer,
        meta=ExplainerMeta(
            scope="global",
            description="Interpretable tree or linear model fit to the black-box predictions",
            paper_reference="Craven & Shavlik, 1996 - 'Extracting Tree-Structured Representations of Trained Networks' (NIPS)",
            complexity="O(n_rows)"
        )
    )

    return registry


# Built on first use: the explainer modules import core.explainer, which this module imports
_default_registry: Optional[ExplainerRegistry] = None
_default_lock = threading.Lock()


def get_default_registry() -> ExplainerRegistry:
    """The package-wide registry of built-in explainers."""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            _default_registry = _build_default_registry()
    return _default_registry


class _LazyRegistry:
    """Proxy that defers building the default registry until it is used."""

    def __getattr__(self, name):
        return getattr(get_default_registry(), name)

    def __contains__(self, name):
        return name in get_default_registry()

    def __len__(self):
        return len(get_default_registry())

    def __repr__(self):
        return f"<default ExplainerRegistry: {get_default_registry().list_explainers()}>"


default_registry = _LazyRegistry()
