# src/interpretiverse/explainers/global_explainers/partial_dependence.py
"""
Partial Dependence (PD) and Individual Conditional Expectation (ICE).

For each grid value of the feature(s) of interest, every instance of the
reference dataset is copied with that feature overwritten and the copies are
predicted in one batch. ICE keeps one curve per instance; PD is the
column-wise mean of the ICE matrix, which is how it is computed here, so
``PD == mean(ICE, axis=0)`` holds exactly.

PD marginalizes over the other features and therefore assumes the feature of
interest is independent of them; use ALE when features are correlated.

References:
    Friedman, J.H. (2001). Greedy function approximation: A gradient boosting machine.
    Annals of Statistics, 29(5), 1189-1232.

    Goldstein, A., Kapelner, A., Bleich, J., & Pitkin, E. (2015). Peeking Inside
    the Black Box: Visualizing Statistical Learning With Plots of Individual
    Conditional Expectation. Journal of Computational and Graphical Statistics, 24(1).
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from interpretiverse.core.execution import CancellationToken
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation
from interpretiverse.core.grid import feature_grid, feature_pair_grid

logger = logging.getLogger(__name__)

KINDS = ("average", "individual", "both")

FeatureSpec = Union[int, str, Tuple[Union[int, str], Union[int, str]]]


class PartialDependenceExplainer(BaseExplainer):
    """
    Partial Dependence / ICE explainer.

    Attributes:
        model: PredictorAdapter
        data: Reference Dataset
        grid_size: Number of grid points per continuous feature
        grid_method: "quantile" or "uniform"
    """

    def __init__(
        self,
        model,
        data,
        grid_size: int = 20,
        grid_method: str = "quantile",
        n_jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None
    ):
        """
        Initialize the PD explainer.

        Args:
            model: PredictorAdapter (or any adapter with .predict())
            data: Reference Dataset (or mapping of feature -> column)
            grid_size: Number of grid points for each continuous feature
            grid_method: "quantile" (default) or "uniform" grid placement
            n_jobs: Worker threads; grid points are evaluated independently
            cancel_token: Checked between grid points
        """
        super().__init__(model, data, n_jobs=n_jobs, cancel_token=cancel_token)
        self.grid_size = grid_size
        self.grid_method = grid_method

    def _ice_matrix(self, feature_indices: Sequence[int], points: np.ndarray) -> np.ndarray:
        """
        Predictions for every (instance, point) pair.

        Args:
            feature_indices: Columns overwritten at each point
            points: Array of shape (n_points, len(feature_indices))

        Returns:
            Array of shape (n_instances, n_points)
        """
        data = self._require_data()
        feature_indices = list(feature_indices)
        names = [data.feature_names[j] for j in feature_indices]
        feature_label = names[0] if len(names) == 1 else tuple(names)

        def _predict_at(k: int) -> np.ndarray:
            X_temp = data.copy_matrix()
            X_temp[:, feature_indices] = points[k]
            return self._predict(X_temp)

        logger.debug(
            "Evaluating %d grid points x %d instances for %s",
            len(points), data.n_rows, feature_label
        )
        columns = self._run_units(
            _predict_at,
            range(len(points)),
            context=lambda _, k: {"feature": feature_label, "grid_index": k}
        )
        return np.column_stack(columns)

    def partial_dependence_at(self, feature_indices: Sequence[int], points: np.ndarray) -> np.ndarray:
        """
        Partial dependence evaluated at arbitrary points.

        Args:
            feature_indices: Indices of the features held fixed
            points: Array of shape (n_points, len(feature_indices))

        Returns:
            1D array with the averaged prediction at each point
        """
        data = self._require_data()
        points = np.asarray(points, dtype=data.X.dtype)
        if points.ndim == 1:
            points = points.reshape(-1, 1)
        return self._ice_matrix(feature_indices, points).mean(axis=0)

    def _compute_1d(self, feature_idx: int) -> Tuple[np.ndarray, np.ndarray]:
        grid = feature_grid(self.data, feature_idx, self.grid_size, self.grid_method)
        ice = self._ice_matrix([feature_idx], grid.reshape(-1, 1))
        return grid, ice

    def _compute_2d(
        self,
        feature_idx1: int,
        feature_idx2: int
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        grid1, grid2, points = feature_pair_grid(
            self.data, (feature_idx1, feature_idx2), self.grid_size, self.grid_method
        )
        ice = self._ice_matrix([feature_idx1, feature_idx2], points)
        return grid1, grid2, ice.reshape(-1, len(grid1), len(grid2))

    def explain(
        self,
        features: Union[FeatureSpec, List[FeatureSpec]],
        kind: str = "average",
        centered: bool = False,
        **kwargs
    ) -> Explanation:
        """
        Compute partial dependence and/or ICE curves.

        Args:
            features: Feature name/index, a (feature, feature) tuple for a
                2D grid, or a list of these
            kind: "average" (PD), "individual" (ICE) or "both"
            centered: Shift each ICE curve so it starts at 0 (PD unaffected)

        Returns:
            Explanation with "grid_values" and "pdp_values" and/or
            "ice_values" keyed by feature (pairs are keyed "a_x_b")
        """
        if kind not in KINDS:
            raise ValueError(f"kind must be one of {KINDS}, got '{kind}'")
        data = self._require_data()
        if isinstance(features, (str, int, np.integer, tuple)):
            features = [features]

        pdp_results: Dict[str, list] = {}
        ice_results: Dict[str, list] = {}
        grid_results: Dict[str, object] = {}
        attributions: Dict[str, float] = {}

        for feature in features:
            if isinstance(feature, tuple):
                idx1 = data.schema.index(feature[0])
                idx2 = data.schema.index(feature[1])
                grid1, grid2, ice = self._compute_2d(idx1, idx2)

                key = f"{data.feature_names[idx1]}_x_{data.feature_names[idx2]}"
                grid_results[key] = {"grid1": grid1.tolist(), "grid2": grid2.tolist()}
            else:
                idx = data.schema.index(feature)
                grid, ice = self._compute_1d(idx)

                key = data.feature_names[idx]
                grid_results[key] = grid.tolist()

            pdp = ice.mean(axis=0)
            if kind in ("average", "both"):
                pdp_results[key] = pdp.tolist()
                if not isinstance(feature, tuple):
                    attributions[key] = float(np.max(pdp) - np.min(pdp))
            if kind in ("individual", "both"):
                if centered:
                    anchor = ice[(slice(None),) + (slice(0, 1),) * (ice.ndim - 1)]
                    ice = ice - anchor
                ice_results[key] = ice.tolist()

        logger.info("Computed %s dependence for %d feature set(s)", kind, len(features))

        explanation_data = {
            "grid_values": grid_results,
            "features_analyzed": [str(f) for f in features],
            "interaction": any(isinstance(f, tuple) for f in features),
            "kind": kind,
        }
        if pdp_results:
            explanation_data["pdp_values"] = pdp_results
            explanation_data["feature_attributions"] = attributions
        if ice_results:
            explanation_data["ice_values"] = ice_results
            explanation_data["instance_indices"] = data.index.tolist()
            explanation_data["centered"] = centered

        return Explanation(
            explainer_name="PartialDependence" if kind == "average" else "ICE",
            target_class=self.target_label,
            explanation_data=explanation_data,
            feature_names=data.feature_names,
            metadata={"grid_size": self.grid_size, "grid_method": self.grid_method}
        )


class ICEExplainer(PartialDependenceExplainer):
    """
    Individual Conditional Expectation explainer.

    Same engine as PartialDependenceExplainer with ``kind="individual"`` by
    default: one curve per instance, keyed by the instance's row index.
    """

    def explain(
        self,
        features: Union[FeatureSpec, List[FeatureSpec]],
        kind: str = "individual",
        centered: bool = False,
        **kwargs
    ) -> Explanation:
        return super().explain(features, kind=kind, centered=centered, **kwargs)
