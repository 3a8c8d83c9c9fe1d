# tests/test_shapley.py
"""
Tests for Shapley value attributions (sampling and exact).
"""

from math import comb

import numpy as np
import pytest
from sklearn.datasets import make_regression
from sklearn.linear_model import LinearRegression

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.core.dataset import Dataset
from interpretiverse.core.execution import CancellationToken
from interpretiverse.exceptions import ComputationCancelled, SchemaMismatch
from interpretiverse.explainers.attribution.shapley import ShapleyExplainer, shapley_weight


@pytest.fixture
def linear_setup():
    X, y = make_regression(n_samples=50, n_features=3, noise=2.0, random_state=3)
    data = Dataset.from_array(X, ["a", "b", "c"], labels=y)
    model = LinearRegression().fit(X, y)
    return {"data": data, "model": model, "adapter": PredictorAdapter.for_dataset(model, data)}


@pytest.fixture
def interaction_setup():
    rng = np.random.RandomState(2)
    data = Dataset({
        "a": rng.normal(size=40),
        "b": rng.normal(size=40),
        "c": rng.normal(size=40),
    })
    adapter = PredictorAdapter.for_dataset(lambda X: X[:, 0] * X[:, 1] + np.sin(X[:, 0]), data)
    return {"data": data, "adapter": adapter}


class TestExactShapley:

    def test_linear_model_closed_form(self, linear_setup):
        data = linear_setup["data"]
        explanation = ShapleyExplainer(linear_setup["adapter"], data, method="exact").explain(7)

        expected = linear_setup["model"].coef_ * (data.X[7] - data.X.mean(axis=0))
        np.testing.assert_allclose(
            [explanation["feature_attributions"][f] for f in ("a", "b", "c")], expected, atol=1e-8
        )

    def test_additivity(self, interaction_setup):
        explanation = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], method="exact"
        ).explain(0)

        assert abs(explanation["additivity_gap"]) < 1e-10
        total = explanation["expected_value"] + sum(explanation["feature_attributions"].values())
        assert total == pytest.approx(explanation["prediction"], abs=1e-10)
        assert "standard_errors" not in explanation.explanation_data

    def test_unused_feature_gets_zero(self, interaction_setup):
        explanation = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], method="exact"
        ).explain(5)

        assert explanation["feature_attributions"]["c"] == pytest.approx(0.0, abs=1e-12)

    def test_feature_limit(self, interaction_setup):
        explainer = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"],
            method="exact", max_exact_features=2
        )

        with pytest.raises(ValueError):
            explainer.explain(0)

    def test_weights_sum_to_one(self):
        n = 5
        # Each coalition size k occurs C(n-1, k) times for a fixed feature
        total = sum(shapley_weight(k, n) * comb(n - 1, k) for k in range(n))
        assert total == pytest.approx(1.0)

    def test_parallel_matches_serial(self, interaction_setup):
        serial = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], method="exact"
        ).explain(1)
        parallel = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], method="exact", n_jobs=4
        ).explain(1)

        assert serial["feature_attributions"] == parallel["feature_attributions"]


class TestSamplingShapley:

    def test_cancelled_between_permutations(self, interaction_setup):
        data = interaction_setup["data"]
        token = CancellationToken()
        chains = []

        def predictor(X):
            if len(X) == data.n_features + 1:
                chains.append(len(X))
                if len(chains) == 3:
                    token.cancel()
            return X[:, 0] * X[:, 1]

        explainer = ShapleyExplainer(
            PredictorAdapter.for_dataset(predictor, data), data,
            n_permutations=20, random_state=0, cancel_token=token
        )

        with pytest.raises(ComputationCancelled) as excinfo:
            explainer.explain(0)

        assert len(chains) == 3
        assert excinfo.value.details["permutation_index"] == 3

    def test_basic(self, interaction_setup):
        explanation = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], n_permutations=50, random_state=0
        ).explain(2)

        assert explanation.explainer_name == "Shapley"
        assert explanation["method"] == "sampling"
        assert set(explanation["feature_attributions"]) == {"a", "b", "c"}
        assert all(se >= 0 for se in explanation["standard_errors"].values())
        assert explanation.metadata["n_permutations"] == 50

    def test_expected_value_is_mean_prediction(self, interaction_setup):
        data = interaction_setup["data"]
        explainer = ShapleyExplainer(interaction_setup["adapter"], data, n_permutations=5)

        assert explainer.expected_value == pytest.approx(
            float(np.mean(data.X[:, 0] * data.X[:, 1] + np.sin(data.X[:, 0])))
        )

    def test_unused_feature_gets_exactly_zero(self, interaction_setup):
        explanation = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], n_permutations=30, random_state=4
        ).explain(3)

        assert explanation["feature_attributions"]["c"] == 0.0
        assert explanation["standard_errors"]["c"] == 0.0

    def test_same_seed_same_result(self, interaction_setup):
        first = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], n_permutations=40, random_state=9
        ).explain(0)
        second = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], n_permutations=40,
            random_state=9, n_jobs=4
        ).explain(0)

        assert first["feature_attributions"] == second["feature_attributions"]

    def test_additivity_gap_shrinks_with_permutations(self, interaction_setup):
        def mean_gap(n_permutations):
            gaps = [
                abs(ShapleyExplainer(
                    interaction_setup["adapter"], interaction_setup["data"],
                    n_permutations=n_permutations, random_state=seed
                ).explain(0)["additivity_gap"])
                for seed in range(30)
            ]
            return float(np.mean(gaps))

        assert mean_gap(1000) <= 0.5 * mean_gap(100) + 1e-12

    def test_single_permutation_has_zero_standard_error(self, interaction_setup):
        explanation = ShapleyExplainer(
            interaction_setup["adapter"], interaction_setup["data"], n_permutations=1, random_state=0
        ).explain(0)

        assert set(explanation["standard_errors"].values()) == {0.0}

    def test_mapping_instance(self, interaction_setup):
        data = interaction_setup["data"]
        explainer = ShapleyExplainer(interaction_setup["adapter"], data, n_permutations=20, random_state=1)

        by_index = explainer.explain(6)
        by_mapping = explainer.explain(data.instance(6))
        assert by_index["feature_attributions"] == by_mapping["feature_attributions"]

    def test_invalid_arguments(self, interaction_setup):
        with pytest.raises(ValueError):
            ShapleyExplainer(interaction_setup["adapter"], interaction_setup["data"], method="kernel")
        with pytest.raises(ValueError):
            ShapleyExplainer(interaction_setup["adapter"], interaction_setup["data"], n_permutations=0)


class TestExplainBatch:

    def test_one_explanation_per_row(self, interaction_setup):
        data = interaction_setup["data"]
        explainer = ShapleyExplainer(interaction_setup["adapter"], data, method="exact")

        explanations = explainer.explain_batch(data.subset([0, 1, 2]))

        assert len(explanations) == 3
        assert explanations[1]["feature_attributions"] == explainer.explain(1)["feature_attributions"]

    def test_failure_reports_instance_index(self, interaction_setup):
        explainer = ShapleyExplainer(interaction_setup["adapter"], interaction_setup["data"], method="exact")
        rows = [interaction_setup["data"].X[0], np.array([1.0, 2.0])]

        with pytest.raises(SchemaMismatch) as excinfo:
            explainer.explain_batch(rows)
        assert excinfo.value.details["instance_index"] == 1
