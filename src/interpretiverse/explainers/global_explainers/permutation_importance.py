# src/interpretiverse/explainers/global_explainers/permutation_importance.py
"""
Permutation Feature Importance Explainer.

Measures feature importance by the increase in loss when a feature's values
are randomly shuffled across instances, which breaks its association with
the label while preserving its marginal distribution.

Whether to pass training or held-out data is left to the caller: the
explainer scores exactly the labeled dataset it is given.

Reference:
    Breiman, L. (2001). Random Forests. Machine Learning, 45(1), 5-32.
    Fisher, A., Rudin, C., & Dominici, F. (2019). All Models are Wrong, but
    Many are Useful. JMLR, 20(177), 1-81.
"""

import logging
from typing import Callable, Optional, Sequence, Union

import numpy as np
from sklearn.metrics import (
    brier_score_loss,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
)

from interpretiverse.core.execution import CancellationToken
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.exceptions import MissingLabels

logger = logging.getLogger(__name__)

LOSSES = {
    "mse": mean_squared_error,
    "mae": mean_absolute_error,
    "log_loss": lambda y_true, y_pred: log_loss(y_true, y_pred, labels=[0, 1]),
    "brier": brier_score_loss,
}


def resolve_loss(loss_fn: Union[str, Callable]) -> Callable:
    """Map a loss name to its scikit-learn metric, or pass a callable through."""
    if callable(loss_fn):
        return loss_fn
    if loss_fn not in LOSSES:
        raise ValueError(f"Unknown loss '{loss_fn}'. Use a callable or one of {sorted(LOSSES)}.")
    return LOSSES[loss_fn]


class PermutationImportanceExplainer(BaseExplainer):
    """
    Global explainer based on permutation feature importance.

    Attributes:
        model: PredictorAdapter
        data: Labeled reference Dataset
        y: True labels
        n_repeats: Number of times to permute each feature
        loss_fn: Function loss(y_true, y_pred) -> float, lower is better
        random_state: Random seed for reproducibility
    """

    def __init__(
        self,
        model,
        data,
        y: Optional[Sequence] = None,
        loss_fn: Union[str, Callable] = "mse",
        n_repeats: int = 5,
        random_state: Optional[int] = None,
        n_jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the Permutation Importance explainer.

        Args:
            model: PredictorAdapter (or any adapter with .predict())
            data: Reference Dataset; its labels are used when ``y`` is None
            y: True labels (n_samples,)
            loss_fn: Callable loss or one of "mse", "mae", "log_loss", "brier"
            n_repeats: Number of permutation repeats per feature
            random_state: Random seed; the same seed yields identical results
            n_jobs: Worker threads; repetitions are evaluated independently
            cancel_token: Checked between repetitions

        Raises:
            MissingLabels: If neither ``y`` nor ``data.labels`` is available
        """
        if n_repeats < 1:
            raise ValueError(f"n_repeats must be >= 1, got {n_repeats}")
        super().__init__(model, data, n_jobs=n_jobs, cancel_token=cancel_token)
        if y is not None:
            self.data = self.data.with_labels(y)
        if self.data.labels is None:
            raise MissingLabels(
                "Permutation importance requires labeled data; pass y or a labeled Dataset."
            )
        self.y = self.data.labels
        self.n_repeats = n_repeats
        self.loss_fn = resolve_loss(loss_fn)
        self.random_state = random_state

    def _compute_baseline_loss(self) -> float:
        """Compute model loss on unperturbed data."""
        predictions = self._predict(self.data.X)
        return float(self.loss_fn(self.y, predictions))

    def _draw_permutations(self, n_features: int, n_samples: int) -> np.ndarray:
        """All row permutations up front, feature-major, so results do not depend on n_jobs."""
        rng = np.random.RandomState(self.random_state)
        permutations = np.empty((n_features, self.n_repeats, n_samples), dtype=int)
        for idx in range(n_features):
            for repeat in range(self.n_repeats):
                permutations[idx, repeat] = rng.permutation(n_samples)
        return permutations

    def explain(self, **kwargs) -> Explanation:
        """
        Compute permutation feature importance.

        Returns:
            Explanation object with:
                - feature_attributions: {feature: importance}, ranked descending
                - permuted_loss: {feature: mean loss over repeats}
                - repeat_losses / repeat_importances: per-repetition values
                - std: {feature: std of importance across repeats}
                - baseline_loss: loss on the unperturbed data
                - ranking: feature names in descending importance
        """
        data = self._require_data()
        n_samples, n_features = data.X.shape
        baseline_loss = self._compute_baseline_loss()
        permutations = self._draw_permutations(n_features, n_samples)

        def _permuted_loss(unit) -> float:
            idx, repeat = unit
            X_permuted = data.copy_matrix()
            X_permuted[:, idx] = data.X[permutations[idx, repeat], idx]
            predictions = self._predict(X_permuted)
            return float(self.loss_fn(self.y, predictions))

        units = [(idx, repeat) for idx in range(n_features) for repeat in range(self.n_repeats)]
        losses = np.array(self._run_units(
            _permuted_loss,
            units,
            context=lambda _, unit: {"feature": data.feature_names[unit[0]], "repeat": unit[1]}
        )).reshape(n_features, self.n_repeats)

        importances = losses - baseline_loss
        order = sorted(range(n_features), key=lambda i: importances[i].mean(), reverse=True)
        ranking = [data.feature_names[i] for i in order]

        logger.info(
            "Permutation importance over %d features x %d repeats; top feature: %s",
            n_features, self.n_repeats, ranking[0]
        )

        return Explanation(
            explainer_name="PermutationImportance",
            target_class="global",
            explanation_data={
                "feature_attributions": {
                    data.feature_names[i]: float(importances[i].mean()) for i in order
                },
                "permuted_loss": {
                    data.feature_names[i]: float(losses[i].mean()) for i in order
                },
                "repeat_losses": {
                    data.feature_names[i]: losses[i].tolist() for i in order
                },
                "repeat_importances": {
                    data.feature_names[i]: importances[i].tolist() for i in order
                },
                "std": {
                    data.feature_names[i]: float(np.std(importances[i])) for i in order
                },
                "baseline_loss": baseline_loss,
                "ranking": ranking,
            },
            feature_names=data.feature_names,
            metadata={"n_repeats": self.n_repeats, "random_state": self.random_state}
        )
