# src/interpretiverse/explainers/global_explainers/ale.py
"""
Accumulated Local Effects (ALE) Explainer.

ALE plots are an alternative to Partial Dependence Plots that are unbiased
when features are correlated. Each instance is only moved across the
boundaries of the interval it actually falls in, so the model is never
queried far from the data.

Reference:
    Apley, D.W. & Zhu, J. (2020). Visualizing the Effects of Predictor Variables
    in Black Box Supervised Learning Models. Journal of the Royal Statistical Society
    Series B, 82(4), 1059-1086.
"""

import logging
from typing import List, Optional, Tuple, Union

import numpy as np

from interpretiverse.core.execution import CancellationToken
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.exceptions import UnsupportedFeatureType

logger = logging.getLogger(__name__)


class ALEExplainer(BaseExplainer):
    """
    Accumulated Local Effects (ALE) explainer.

    Only ordered (continuous) features are supported.

    Attributes:
        model: PredictorAdapter
        data: Reference Dataset
        n_bins: Number of quantile intervals
    """

    def __init__(
        self,
        model,
        data,
        n_bins: int = 20,
        n_jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the ALE explainer.

        Args:
            model: PredictorAdapter (or any adapter with .predict())
            data: Reference Dataset
            n_bins: Number of intervals for ALE computation
            n_jobs: Worker threads; intervals are evaluated independently
            cancel_token: Checked between intervals
        """
        if n_bins < 1:
            raise ValueError(f"n_bins must be >= 1, got {n_bins}")
        super().__init__(model, data, n_jobs=n_jobs, cancel_token=cancel_token)
        self.n_bins = n_bins

    def _compute_quantile_bins(self, values: np.ndarray) -> np.ndarray:
        """
        Compute bin edges using quantiles to ensure similar sample sizes per bin.
        """
        edges = np.quantile(values, np.linspace(0, 1, self.n_bins + 1))
        # Remove duplicate edges
        return np.unique(np.clip(edges, np.min(values), np.max(values)))

    @staticmethod
    def _assign_bins(values: np.ndarray, bin_edges: np.ndarray) -> np.ndarray:
        """Interval k holds edge[k] < x <= edge[k+1]; the minimum joins interval 0."""
        bins = np.searchsorted(bin_edges, values, side="left") - 1
        return np.clip(bins, 0, len(bin_edges) - 2)

    def _compute_ale_1d(
        self,
        feature_idx: int
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Compute 1D ALE for a single feature.

        Returns:
            Tuple of (bin_edges, ale_values at the edges, bin_centers,
            local_effects, bin_counts)
        """
        data = self._require_data()
        feature_name = data.feature_names[feature_idx]
        values = data.X[:, feature_idx].astype(float)
        bin_edges = self._compute_quantile_bins(values)

        if len(bin_edges) < 2:
            logger.warning("Feature '%s' has a single distinct value; ALE is flat.", feature_name)
            return (
                bin_edges, np.array([0.0]), bin_edges.copy(),
                np.zeros(0), np.array([data.n_rows])
            )

        n_intervals = len(bin_edges) - 1
        bins = self._assign_bins(values, bin_edges)
        counts = np.bincount(bins, minlength=n_intervals)

        def _local_effect(k: int) -> float:
            in_bin = bins == k
            if not np.any(in_bin):
                return 0.0
            X_bin = data.X[in_bin]
            n_in_bin = X_bin.shape[0]

            # Lower and upper boundary copies predicted in one batch
            X_edges = np.concatenate([X_bin, X_bin])
            X_edges[:n_in_bin, feature_idx] = bin_edges[k]
            X_edges[n_in_bin:, feature_idx] = bin_edges[k + 1]

            predictions = self._predict(X_edges)
            return float(np.mean(predictions[n_in_bin:] - predictions[:n_in_bin]))

        local_effects = np.array(self._run_units(
            _local_effect,
            range(n_intervals),
            context=lambda _, k: {"feature": feature_name, "interval": k}
        ))

        # Accumulate effects; the curve starts at 0 on the lowest edge
        ale_values = np.concatenate([[0.0], np.cumsum(local_effects)])

        # Center so that the count-weighted mean over the data is zero
        midpoints = (ale_values[:-1] + ale_values[1:]) / 2
        ale_values = ale_values - np.sum(midpoints * counts) / np.sum(counts)

        bin_centers = (bin_edges[:-1] + bin_edges[1:]) / 2
        return bin_edges, ale_values, bin_centers, local_effects, counts

    def explain(self, feature: Union[int, str], **kwargs) -> Explanation:
        """
        Compute ALE for a specified feature.

        Args:
            feature: Feature index or name

        Returns:
            Explanation object with ALE values at the bin edges

        Raises:
            UnsupportedFeatureType: If the feature is categorical
        """
        data = self._require_data()
        idx = data.schema.index(feature)
        spec = data.schema[idx]
        if spec.is_categorical:
            raise UnsupportedFeatureType(
                "ALE requires an ordered (continuous) feature.",
                details={"feature": spec.name, "kind": spec.kind}
            )

        bin_edges, ale_values, bin_centers, local_effects, counts = self._compute_ale_1d(idx)
        logger.info("Computed ALE for '%s' over %d intervals", spec.name, len(local_effects))

        return Explanation(
            explainer_name="ALE",
            target_class=self.target_label,
            explanation_data={
                "ale_values": ale_values.tolist(),
                "bin_edges": bin_edges.tolist(),
                "bin_centers": bin_centers.tolist(),
                "bin_counts": counts.tolist(),
                "local_effects": local_effects.tolist(),
                "feature": spec.name,
                "feature_attributions": {
                    spec.name: float(np.max(ale_values) - np.min(ale_values))
                }
            },
            feature_names=data.feature_names,
            metadata={"n_bins": self.n_bins}
        )

    def explain_all(self) -> List[Explanation]:
        """
        Compute ALE for every continuous feature.

        Returns:
            List of Explanation objects, one per continuous feature
        """
        data = self._require_data()
        return [
            self.explain(spec.name)
            for spec in data.schema
            if not spec.is_categorical
        ]
