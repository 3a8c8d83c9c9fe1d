# tests/test_explainer_registry.py
"""
Tests for ExplainerRegistry: registration, discovery, instantiation and the
built-in default registry.
"""

import numpy as np
import pytest
from sklearn.datasets import load_iris
from sklearn.linear_model import LogisticRegression

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.core.dataset import Dataset
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.core.registry import ExplainerMeta, ExplainerRegistry, default_registry

BUILTIN_EXPLAINERS = {
    "lime", "shapley", "partial_dependence", "ice", "ale",
    "h_statistic", "permutation_importance", "global_surrogate",
}


class MeanShiftExplainer(BaseExplainer):
    """Toy explainer: each feature's distance from the data mean."""

    def __init__(self, model, data=None, scale=1.0):
        super().__init__(model, data)
        self.scale = scale

    def explain(self, instance, **kwargs):
        data = self._require_data()
        x = self._resolve_instance(instance)
        shift = (x - data.X.mean(axis=0)) * self.scale
        return Explanation(
            explainer_name="MeanShift",
            target_class=self.target_label,
            explanation_data={
                "feature_attributions": dict(zip(data.feature_names, shift.tolist()))
            },
            feature_names=data.feature_names
        )


@pytest.fixture
def registry():
    return ExplainerRegistry()


@pytest.fixture
def iris_setup():
    iris = load_iris()
    X, y = iris.data, iris.target
    model = LogisticRegression(max_iter=200).fit(X, y)
    data = Dataset.from_array(X, iris.feature_names, labels=(y == 0).astype(int))
    adapter = PredictorAdapter.for_dataset(
        model, data, task="classification",
        target_class="setosa", class_names=iris.target_names.tolist()
    )
    return {"data": data, "adapter": adapter}


# =============================================================================
# Registration
# =============================================================================

class TestRegistration:

    def test_register_and_get(self, registry):
        meta = ExplainerMeta(scope="local", description="Distance from the mean")
        registry.register("mean_shift", MeanShiftExplainer, meta)

        entry = registry.get("mean_shift")
        assert entry["class"] is MeanShiftExplainer
        assert entry["meta"] is meta
        assert "mean_shift" in registry
        assert len(registry) == 1

    def test_duplicate_name_rejected(self, registry):
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="local"))

        with pytest.raises(ValueError, match="already registered"):
            registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="global"))

    def test_override(self, registry):
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="local"))
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="global"), override=True)

        assert registry.get_meta("mean_shift").scope == "global"

    def test_non_explainer_class_rejected(self, registry):
        with pytest.raises(TypeError):
            registry.register("plain", dict, ExplainerMeta(scope="local"))

    def test_unknown_scope_rejected(self):
        with pytest.raises(ValueError):
            ExplainerMeta(scope="cohort")

    def test_meta_defaults(self):
        meta = ExplainerMeta(scope="global")

        assert meta.model_types == ["any"]
        assert meta.data_types == ["tabular"]
        assert meta.task_types == ["classification", "regression"]
        assert meta.requires_labels is False
        assert meta.supports_batching is False
        assert meta.paper_reference is None

    def test_unregister(self, registry):
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="local"))
        registry.unregister("mean_shift")

        assert "mean_shift" not in registry
        with pytest.raises(KeyError):
            registry.unregister("mean_shift")

    def test_unknown_name(self, registry):
        with pytest.raises(KeyError):
            registry.get("missing")
        with pytest.raises(KeyError):
            registry.get_meta("missing")
        with pytest.raises(KeyError):
            registry.create("missing", model=None)

    def test_decorator_returns_class(self, registry):
        @registry.register_decorator(name="decorated", meta=ExplainerMeta(scope="local"))
        class DecoratedExplainer(MeanShiftExplainer):
            MARKER = "kept"

        assert registry.get("decorated")["class"] is DecoratedExplainer
        assert DecoratedExplainer.MARKER == "kept"


# =============================================================================
# Discovery
# =============================================================================

class TestDiscovery:

    @pytest.fixture
    def populated(self, registry):
        registry.register("local_any", MeanShiftExplainer, ExplainerMeta(scope="local"))
        registry.register("global_tree", MeanShiftExplainer,
                          ExplainerMeta(scope="global", model_types=["tree"],
                                        task_types=["regression"]))
        registry.register("global_labeled", MeanShiftExplainer,
                          ExplainerMeta(scope="global", requires_labels=True,
                                        data_types=["tabular", "text"]))
        registry.register("local_linear", MeanShiftExplainer,
                          ExplainerMeta(scope="local", model_types=["linear"],
                                        description="Linear only", paper_reference="Doe, 2024"))
        return registry

    def test_filter_by_scope(self, populated):
        assert populated.filter(scope="local") == ["local_any", "local_linear"]
        assert populated.filter(scope="global") == ["global_tree", "global_labeled"]

    def test_filter_by_model_type_keeps_any(self, populated):
        assert populated.filter(model_type="tree") == ["local_any", "global_tree", "global_labeled"]

    def test_filter_by_data_and_task(self, populated):
        assert populated.filter(data_type="text") == ["global_labeled"]
        assert "global_tree" not in populated.filter(task_type="classification")

    def test_filter_by_labels(self, populated):
        assert populated.filter(requires_labels=True) == ["global_labeled"]
        assert "global_labeled" not in populated.filter(requires_labels=False)

    def test_filter_combined_and_empty(self, populated):
        assert populated.filter(scope="global", model_type="tree", task_type="regression") == [
            "global_tree", "global_labeled"
        ]
        assert populated.filter(scope="local", data_type="image") == []

    def test_list_with_meta(self, populated):
        details = populated.list_explainers(with_meta=True)

        assert list(details) == populated.list_explainers()
        assert details["local_linear"]["meta"].description == "Linear only"

    def test_recommend_ranks_scope_then_model_type(self, populated):
        ranked = populated.recommend(model_type="linear", scope_preference="local")

        assert ranked[0] == "local_linear"
        assert ranked[1] == "local_any"

    def test_recommend_without_labels(self, populated):
        assert "global_labeled" not in populated.recommend(has_labels=False)
        assert "global_labeled" in populated.recommend(has_labels=True)

    def test_recommend_max_results(self, populated):
        assert len(populated.recommend(max_results=2)) == 2

    def test_summary(self, populated):
        summary = populated.summary()

        assert "LOCAL EXPLAINERS" in summary
        assert "GLOBAL EXPLAINERS" in summary
        assert "global_labeled: (no description) [requires labels]" in summary
        assert "Total: 4 explainers" in summary


# =============================================================================
# Instantiation
# =============================================================================

class TestCreate:

    def test_create_passes_kwargs(self, registry, iris_setup):
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="local"))

        explainer = registry.create(
            "mean_shift", model=iris_setup["adapter"], data=iris_setup["data"], scale=2.0
        )

        assert isinstance(explainer, MeanShiftExplainer)
        assert explainer.scale == 2.0

    def test_create_and_explain(self, registry, iris_setup):
        registry.register("mean_shift", MeanShiftExplainer, ExplainerMeta(scope="local"))
        data = iris_setup["data"]

        explanation = registry.create("mean_shift", model=iris_setup["adapter"], data=data).explain(0)

        assert explanation.explainer_name == "MeanShift"
        assert explanation.target_class == "setosa"
        np.testing.assert_allclose(
            list(explanation["feature_attributions"].values()), data.X[0] - data.X.mean(axis=0)
        )


# =============================================================================
# Default registry
# =============================================================================

class TestDefaultRegistry:

    def test_builtin_explainers(self):
        assert set(default_registry.list_explainers()) == BUILTIN_EXPLAINERS
        assert len(default_registry) == len(BUILTIN_EXPLAINERS)
        assert "shapley" in default_registry

    def test_scopes(self):
        assert set(default_registry.filter(scope="local")) == {"lime", "shapley"}
        assert "ale" in default_registry.filter(scope="global")

    def test_only_permutation_importance_needs_labels(self):
        assert default_registry.filter(requires_labels=True) == ["permutation_importance"]
        assert "permutation_importance" not in default_registry.recommend(has_labels=False, max_results=10)

    def test_batching_flag_matches_class(self):
        for name, entry in default_registry.list_explainers(with_meta=True).items():
            if entry["meta"].supports_batching:
                assert hasattr(entry["class"], "explain_batch"), name

    def test_lime(self, iris_setup):
        explainer = default_registry.create(
            "lime", model=iris_setup["adapter"], data=iris_setup["data"],
            n_samples=300, random_state=0
        )

        explanation = explainer.explain(0)

        assert explanation.explainer_name == "LocalSurrogate"
        assert explanation.target_class == "setosa"
        assert len(explanation["feature_attributions"]) == 4

    def test_shapley(self, iris_setup):
        explainer = default_registry.create(
            "shapley", model=iris_setup["adapter"],
            data=iris_setup["data"].subset(range(0, 150, 5)), method="exact"
        )

        explanation = explainer.explain(iris_setup["data"].instance(0))

        assert explanation.explainer_name == "Shapley"
        assert abs(explanation["additivity_gap"]) < 1e-10
