# src/interpretiverse/explainers/attribution/shapley.py
"""
Shapley value attributions.

Two estimators of the interventional Shapley values of a single prediction,
with the reference dataset as background distribution:

- ``method="sampling"``: Monte Carlo over feature permutations. Each
  permutation is paired with a background row drawn uniformly; switching
  the features of the background row to the instance's values one at a
  time in permutation order gives one marginal contribution per feature.
  The chain's |F| + 1 rows are predicted in a single batch.
- ``method="exact"``: enumerates all 2^|F| coalitions; a coalition's value
  is the mean prediction over the background with the coalition's features
  set to the instance's values.

The exact estimator satisfies additivity up to floating point; the
sampling estimator's additivity gap shrinks as 1/sqrt(n_permutations).

References:
    Shapley, L.S. (1953). A Value for n-Person Games. Contributions to the
    Theory of Games, 2(28), 307-317.

    Strumbelj, E. & Kononenko, I. (2014). Explaining prediction models and
    individual predictions with feature contributions. Knowledge and
    Information Systems, 41(3), 647-665.
"""

import logging
from math import factorial
from typing import List, Optional

import numpy as np

from interpretiverse.core.dataset import Dataset
from interpretiverse.core.execution import CancellationToken
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.exceptions import InterpretiverseError

logger = logging.getLogger(__name__)

SHAPLEY_METHODS = ("sampling", "exact")


def shapley_weight(coalition_size: int, n_features: int) -> float:
    """|S|! (n - |S| - 1)! / n!"""
    return (
        factorial(coalition_size) * factorial(n_features - coalition_size - 1)
        / factorial(n_features)
    )


class ShapleyExplainer(BaseExplainer):
    """
    Model-agnostic Shapley value explainer.

    Attributes:
        model: PredictorAdapter
        data: Background Dataset
        n_permutations: Permutations for the sampling estimator
        method: "sampling" or "exact"
        max_exact_features: Largest feature count accepted by "exact"
        random_state: Seed for permutations and background rows
    """

    def __init__(
        self,
        model,
        data,
        n_permutations: int = 100,
        method: str = "sampling",
        max_exact_features: int = 12,
        random_state: Optional[int] = None,
        n_jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the Shapley explainer.

        Args:
            model: PredictorAdapter (or any adapter with .predict())
            data: Background Dataset
            n_permutations: Number of sampled permutations (sampling only)
            method: "sampling" or "exact"
            max_exact_features: Feature limit for exact enumeration
            random_state: Seed; the same seed yields identical attributions
            n_jobs: Worker threads; permutations/coalitions are independent
            cancel_token: Checked between permutations/coalitions
        """
        if method not in SHAPLEY_METHODS:
            raise ValueError(f"method must be one of {SHAPLEY_METHODS}, got '{method}'")
        if n_permutations < 1:
            raise ValueError(f"n_permutations must be >= 1, got {n_permutations}")
        if max_exact_features < 1:
            raise ValueError(f"max_exact_features must be >= 1, got {max_exact_features}")
        super().__init__(model, data, n_jobs=n_jobs, cancel_token=cancel_token)
        self.n_permutations = n_permutations
        self.method = method
        self.max_exact_features = max_exact_features
        self.random_state = random_state
        self._expected_value: Optional[float] = None

    @property
    def expected_value(self) -> float:
        """Mean prediction over the background dataset."""
        if self._expected_value is None:
            data = self._require_data()
            self._expected_value = float(np.mean(self._predict(data.X)))
        return self._expected_value

    def _sampling_values(self, x: np.ndarray):
        data = self.data
        n_features = data.n_features
        rng = np.random.RandomState(self.random_state)
        permutations = [rng.permutation(n_features) for _ in range(self.n_permutations)]
        background_rows = rng.randint(data.n_rows, size=self.n_permutations)

        def _contributions(m: int) -> np.ndarray:
            order = permutations[m]
            chain = data.schema.empty_matrix(n_features + 1)
            chain[0] = data.X[background_rows[m]]
            for step, feature in enumerate(order):
                chain[step + 1] = chain[step]
                chain[step + 1, feature] = x[feature]
            predictions = self._predict(chain)
            contributions = np.empty(n_features)
            contributions[order] = np.diff(predictions)
            return contributions

        logger.debug(
            "Sampling %d permutations of %d features (%d predictions each)",
            self.n_permutations, n_features, n_features + 1
        )
        samples = np.vstack(self._run_units(
            _contributions,
            range(self.n_permutations),
            context=lambda _, m: {"permutation_index": m}
        ))

        values = samples.mean(axis=0)
        if self.n_permutations > 1:
            standard_errors = samples.std(axis=0, ddof=1) / np.sqrt(self.n_permutations)
        else:
            standard_errors = np.zeros(n_features)
        return values, standard_errors

    def _exact_values(self, x: np.ndarray) -> np.ndarray:
        data = self.data
        n_features = data.n_features
        if n_features > self.max_exact_features:
            raise ValueError(
                f"Exact Shapley enumeration is limited to {self.max_exact_features} "
                f"features, got {n_features}; use method='sampling'."
            )

        def _members(mask: int) -> List[int]:
            return [j for j in range(n_features) if mask >> j & 1]

        def _coalition_value(mask: int) -> float:
            members = _members(mask)
            X_coalition = data.copy_matrix()
            if members:
                X_coalition[:, members] = x[members]
            return float(np.mean(self._predict(X_coalition)))

        n_coalitions = 2 ** n_features
        logger.debug("Enumerating %d coalitions over %d background rows", n_coalitions, data.n_rows)
        coalition_values = np.array(self._run_units(
            _coalition_value,
            range(n_coalitions),
            context=lambda _, mask: {"coalition": [data.feature_names[j] for j in _members(mask)]}
        ))

        values = np.zeros(n_features)
        for mask in range(n_coalitions):
            size = bin(mask).count("1")
            for j in range(n_features):
                if not mask >> j & 1:
                    marginal = coalition_values[mask | (1 << j)] - coalition_values[mask]
                    values[j] += shapley_weight(size, n_features) * marginal
        return values

    def explain(self, instance, **kwargs) -> Explanation:
        """
        Compute Shapley values for a single instance.

        Args:
            instance: Mapping of feature -> value, a row index into the
                background data, or a 1-D schema-ordered row

        Returns:
            Explanation with "feature_attributions", "expected_value",
            "prediction" and "additivity_gap"; the sampling method also
            reports per-feature "standard_errors"
        """
        data = self._require_data()
        x = self._resolve_instance(instance)
        prediction = float(self._predict(x[np.newaxis, :])[0])
        expected_value = self.expected_value

        if self.method == "exact":
            values = self._exact_values(x)
            standard_errors = None
        else:
            values, standard_errors = self._sampling_values(x)

        additivity_gap = prediction - expected_value - float(np.sum(values))
        logger.info(
            "Shapley (%s) attributions: prediction=%.4f, expected=%.4f, additivity gap=%.3g",
            self.method, prediction, expected_value, additivity_gap
        )

        explanation_data = {
            "feature_attributions": {
                name: float(v) for name, v in zip(data.feature_names, values)
            },
            "expected_value": expected_value,
            "prediction": prediction,
            "additivity_gap": additivity_gap,
            "method": self.method,
            "instance": data.schema.to_records(x[np.newaxis, :])[0],
        }
        if standard_errors is not None:
            explanation_data["standard_errors"] = {
                name: float(se) for name, se in zip(data.feature_names, standard_errors)
            }

        return Explanation(
            explainer_name="Shapley",
            target_class=self.target_label,
            explanation_data=explanation_data,
            feature_names=data.feature_names,
            metadata={
                "n_permutations": self.n_permutations if self.method == "sampling" else None,
                "random_state": self.random_state,
            }
        )

    def explain_batch(self, instances) -> List[Explanation]:
        """
        Explain several instances.

        Args:
            instances: Dataset, 2-D schema-ordered array or sequence of
                mappings

        Returns:
            One Explanation per instance, in input order
        """
        if isinstance(instances, Dataset):
            rows = list(instances.X)
        elif isinstance(instances, np.ndarray):
            rows = list(np.atleast_2d(instances))
        else:
            rows = list(instances)

        explanations = []
        for i, row in enumerate(rows):
            try:
                explanations.append(self.explain(row))
            except InterpretiverseError as exc:
                exc.add_context(instance_index=i)
                raise
        return explanations
