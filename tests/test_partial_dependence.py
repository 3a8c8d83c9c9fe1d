# tests/test_partial_dependence.py
"""
Tests for Partial Dependence and ICE.
"""

import numpy as np
import pytest
from sklearn.datasets import make_regression
from sklearn.linear_model import LinearRegression

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.core.dataset import Dataset
from interpretiverse.core.explanation import Explanation
from interpretiverse.exceptions import EmptyDataset, SchemaMismatch
from interpretiverse.explainers.global_explainers.partial_dependence import (
    ICEExplainer,
    PartialDependenceExplainer,
)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def linear_setup():
    X, y = make_regression(n_samples=60, n_features=3, noise=5.0, random_state=0)
    data = Dataset.from_array(X, ["a", "b", "c"], labels=y)
    model = LinearRegression().fit(X, y)
    adapter = PredictorAdapter.for_dataset(model, data)
    return {"data": data, "model": model, "adapter": adapter}


@pytest.fixture
def mixed_setup():
    rng = np.random.RandomState(3)
    data = Dataset({
        "x": rng.uniform(0, 1, size=40),
        "city": rng.choice(["paris", "rome", "oslo"], size=40),
    })

    def predictor(X):
        return np.array([float(x) + (1.0 if city == "paris" else 0.0) for x, city in X])

    return {"data": data, "adapter": PredictorAdapter.for_dataset(predictor, data)}


# =============================================================================
# Partial Dependence
# =============================================================================

class TestPartialDependence:

    def test_basic(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"], grid_size=10)
        explanation = explainer.explain("a")

        assert isinstance(explanation, Explanation)
        assert explanation.explainer_name == "PartialDependence"
        assert explanation.target_class == "output"
        assert len(explanation["grid_values"]["a"]) == 10
        assert len(explanation["pdp_values"]["a"]) == 10
        assert "ice_values" not in explanation.explanation_data

    def test_pd_equals_mean_of_ice(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"])
        explanation = explainer.explain(["a", "b"], kind="both")

        for feature in ("a", "b"):
            ice = np.array(explanation["ice_values"][feature])
            np.testing.assert_allclose(
                ice.mean(axis=0), explanation["pdp_values"][feature], rtol=0, atol=1e-12
            )

    def test_linear_model_slope(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"])
        explanation = explainer.explain("b")

        grid = np.array(explanation["grid_values"]["b"])
        pdp = np.array(explanation["pdp_values"]["b"])
        slopes = np.diff(pdp) / np.diff(grid)
        np.testing.assert_allclose(slopes, linear_setup["model"].coef_[1], rtol=1e-6)

    def test_attribution_is_pd_range(self, linear_setup):
        explanation = PartialDependenceExplainer(
            linear_setup["adapter"], linear_setup["data"]
        ).explain(["a", "c"])

        for feature in ("a", "c"):
            pdp = explanation["pdp_values"][feature]
            assert explanation["feature_attributions"][feature] == pytest.approx(max(pdp) - min(pdp))

    def test_two_way(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"], grid_size=5)
        explanation = explainer.explain([("a", "b")])

        pdp = np.array(explanation["pdp_values"]["a_x_b"])
        assert pdp.shape == (5, 5)
        assert explanation["interaction"] is True
        assert len(explanation["grid_values"]["a_x_b"]["grid1"]) == 5

    def test_feature_by_index(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"])

        by_index = explainer.explain(0)
        by_name = explainer.explain("a")
        assert by_index["pdp_values"] == by_name["pdp_values"]
        assert explainer.explain(np.int64(0))["pdp_values"] == by_name["pdp_values"]

    def test_categorical_feature(self, mixed_setup):
        explainer = PartialDependenceExplainer(mixed_setup["adapter"], mixed_setup["data"])
        explanation = explainer.explain("city")

        grid = explanation["grid_values"]["city"]
        pdp = dict(zip(grid, explanation["pdp_values"]["city"]))
        assert grid == ["oslo", "paris", "rome"]
        assert pdp["paris"] - pdp["rome"] == pytest.approx(1.0)
        assert pdp["oslo"] == pytest.approx(pdp["rome"])

    def test_grid_method_uniform(self, linear_setup):
        explainer = PartialDependenceExplainer(
            linear_setup["adapter"], linear_setup["data"], grid_size=4, grid_method="uniform"
        )
        grid = np.array(explainer.explain("a")["grid_values"]["a"])

        np.testing.assert_allclose(np.diff(grid), np.diff(grid)[0])

    def test_invalid_kind(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"])

        with pytest.raises(ValueError):
            explainer.explain("a", kind="median")

    def test_unknown_feature(self, linear_setup):
        explainer = PartialDependenceExplainer(linear_setup["adapter"], linear_setup["data"])

        with pytest.raises(SchemaMismatch):
            explainer.explain("z")

    def test_empty_dataset(self, linear_setup):
        empty = Dataset({"a": [], "b": [], "c": []})
        explainer = PartialDependenceExplainer(linear_setup["adapter"], empty)

        with pytest.raises(EmptyDataset):
            explainer.explain("a")

    def test_schema_mismatch_with_adapter(self, linear_setup):
        other = Dataset({"a": [1.0, 2.0], "b": [1.0, 2.0]})

        with pytest.raises(SchemaMismatch):
            PartialDependenceExplainer(linear_setup["adapter"], other)


# =============================================================================
# ICE
# =============================================================================

class TestICE:

    def test_one_curve_per_instance(self, linear_setup):
        explainer = ICEExplainer(linear_setup["adapter"], linear_setup["data"], grid_size=8)
        explanation = explainer.explain("a")

        ice = np.array(explanation["ice_values"]["a"])
        assert explanation.explainer_name == "ICE"
        assert ice.shape == (60, 8)
        assert explanation["instance_indices"] == list(range(60))
        assert "pdp_values" not in explanation.explanation_data

    def test_curves_are_parallel_for_linear_model(self, linear_setup):
        explanation = ICEExplainer(linear_setup["adapter"], linear_setup["data"]).explain("c")

        ice = np.array(explanation["ice_values"]["c"])
        offsets = ice - ice[:, :1]
        np.testing.assert_allclose(offsets, np.tile(offsets[0], (ice.shape[0], 1)), atol=1e-8)

    def test_centered_curves_start_at_zero(self, linear_setup):
        explanation = ICEExplainer(linear_setup["adapter"], linear_setup["data"]).explain(
            "a", centered=True
        )

        ice = np.array(explanation["ice_values"]["a"])
        np.testing.assert_array_equal(ice[:, 0], 0.0)
        assert explanation["centered"] is True

    def test_instance_indices_follow_subsample(self, linear_setup):
        sample = linear_setup["data"].sample(15, random_state=2)
        explanation = ICEExplainer(linear_setup["adapter"], sample).explain("a")

        assert explanation["instance_indices"] == sample.index.tolist()
        assert len(explanation["ice_values"]["a"]) == 15
