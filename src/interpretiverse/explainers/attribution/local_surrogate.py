# src/interpretiverse/explainers/attribution/local_surrogate.py
"""
Local surrogate explainer (LIME).

Explains one prediction by sampling a neighborhood around the instance,
weighting the samples by their proximity to it and fitting an
interpretable model to the black-box predictions on that neighborhood.

Sampling, proximity kernel and the weighted fit are done by the lime
library's LimeTabularExplainer, sampling around the instance without
discretization: continuous features get Gaussian noise scaled by their
standard deviation, categorical features are resampled from their
observed frequencies and enter the surrogate as "same as the instance"
indicators.

Reference:
    Ribeiro, M.T., Singh, S., & Guestrin, C. (2016). "Why Should I Trust You?":
    Explaining the Predictions of Any Classifier. KDD 2016.
    https://arxiv.org/abs/1602.04938
"""

import logging
from typing import Dict, Optional, Tuple

import numpy as np
from lime.lime_tabular import LimeTabularExplainer
from sklearn.linear_model import Ridge
from sklearn.tree import DecisionTreeRegressor, export_text

from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation

logger = logging.getLogger(__name__)

LOCAL_MODEL_FAMILIES = ("linear", "tree")


class ImportanceTreeRegressor(DecisionTreeRegressor):
    """
    Decision tree readable by lime's linear-model interface.

    ``coef_`` are the impurity importances and ``intercept_`` the root
    value, the weighted mean prediction the tree refines.
    """

    @property
    def coef_(self) -> np.ndarray:
        return self.feature_importances_

    @property
    def intercept_(self) -> float:
        return float(self.tree_.value[0].ravel()[0])


class LocalSurrogateExplainer(BaseExplainer):
    """
    LIME explainer for local, model-agnostic explanations.

    Attributes:
        model: PredictorAdapter
        data: Reference Dataset providing feature statistics
        n_samples: Neighborhood size, the instance included
        kernel_width: Kernel width (default 0.75 * sqrt(n_features))
        model_family: "linear" (weighted Ridge) or "tree"
        alpha: Ridge regularization strength
        max_depth: Depth of a tree surrogate
        random_state: Seed for the neighborhood

    Example:
        >>> explainer = LocalSurrogateExplainer(adapter, data, random_state=0)
        >>> explanation = explainer.explain({"age": 42, "city": "paris"})
        >>> explanation.get_top_features(k=3)
    """

    def __init__(
        self,
        model,
        data,
        n_samples: int = 5000,
        kernel_width: Optional[float] = None,
        model_family: str = "linear",
        alpha: float = 1.0,
        max_depth: Optional[int] = 3,
        random_state: Optional[int] = None
    ):
        if n_samples < 1:
            raise ValueError(f"n_samples must be >= 1, got {n_samples}")
        if kernel_width is not None and kernel_width <= 0:
            raise ValueError(f"kernel_width must be positive, got {kernel_width}")
        if model_family not in LOCAL_MODEL_FAMILIES:
            raise ValueError(
                f"model_family must be one of {LOCAL_MODEL_FAMILIES}, got '{model_family}'"
            )
        super().__init__(model, data)
        self.n_samples = n_samples
        self.kernel_width = kernel_width
        self.model_family = model_family
        self.alpha = alpha
        self.max_depth = max_depth
        self.random_state = random_state

    def _kernel_width(self) -> float:
        if self.kernel_width is not None:
            return float(self.kernel_width)
        return 0.75 * np.sqrt(self.data.n_features)

    def _encode(self, x: np.ndarray) -> Tuple[np.ndarray, np.ndarray, Dict[int, np.ndarray]]:
        """
        Numeric view of the reference data and the instance for lime.

        Categorical values are replaced by their position in the feature's
        domain; a category seen only on the instance gets the next code.

        Returns:
            (training matrix, instance row, {feature index: code -> category})
        """
        data = self.data
        training = np.empty((data.n_rows, data.n_features))
        row = np.empty(data.n_features)
        decoders = {}
        for j, spec in enumerate(data.schema):
            if spec.is_categorical:
                categories = list(spec.domain)
                if x[j] not in categories:
                    categories.append(x[j])
                lookup = {c: i for i, c in enumerate(categories)}
                training[:, j] = [lookup[value] for value in data.X[:, j]]
                row[j] = lookup[x[j]]
                decoders[j] = np.array(categories, dtype=object)
            else:
                training[:, j] = data.X[:, j].astype(float)
                row[j] = float(x[j])
        return training, row, decoders

    def _decode(self, codes: np.ndarray, decoders: Dict[int, np.ndarray]) -> np.ndarray:
        Z = self.data.schema.empty_matrix(codes.shape[0])
        for j in range(codes.shape[1]):
            if j in decoders:
                Z[:, j] = decoders[j][codes[:, j].astype(int)]
            else:
                Z[:, j] = codes[:, j]
        return Z

    def _surrogate(self):
        if self.model_family == "linear":
            return Ridge(alpha=self.alpha)
        return ImportanceTreeRegressor(max_depth=self.max_depth, random_state=self.random_state)

    def explain(self, instance, **kwargs) -> Explanation:
        """
        Explain a single instance.

        Args:
            instance: Mapping of feature -> value, a row index into the
                reference data, or a 1-D schema-ordered row

        Returns:
            Explanation with per-feature "feature_attributions"
            (coefficients or importances), "intercept", "local_prediction",
            "model_prediction" and weighted R^2 "fidelity"
        """
        data = self._require_data()
        x = self._resolve_instance(instance)
        kernel_width = self._kernel_width()
        training, row, decoders = self._encode(x)

        lime_explainer = LimeTabularExplainer(
            training,
            mode="regression",
            feature_names=data.feature_names,
            categorical_features=sorted(decoders),
            kernel_width=kernel_width,
            feature_selection="none",
            discretize_continuous=False,
            sample_around_instance=True,
            random_state=self.random_state
        )

        def predict_fn(codes):
            logger.debug("Predicting %d neighborhood rows", codes.shape[0])
            return self._predict(self._decode(codes, decoders))

        surrogate = self._surrogate()
        lime_exp = lime_explainer.explain_instance(
            row,
            predict_fn,
            num_features=data.n_features,
            num_samples=self.n_samples,
            model_regressor=surrogate
        )

        coefficients = dict(lime_exp.local_exp[0])
        interpretation = {
            "feature_attributions": {
                name: float(coefficients[j]) for j, name in enumerate(data.feature_names)
            },
            "intercept": float(lime_exp.intercept[0]),
        }
        if self.model_family == "tree":
            interpretation["rules"] = export_text(surrogate, feature_names=data.feature_names)

        local_prediction = float(np.ravel(lime_exp.local_pred[0])[0])
        model_prediction = float(lime_exp.predicted_value)
        if self.n_samples > 1:
            fidelity = float(lime_exp.score[0])
        else:
            fidelity = 1.0 if np.isclose(local_prediction, model_prediction) else 0.0

        logger.info(
            "Local %s surrogate fit on %d samples (kernel width %.3f), fidelity %.4f",
            self.model_family, self.n_samples, kernel_width, fidelity
        )

        return Explanation(
            explainer_name="LocalSurrogate",
            target_class=self.target_label,
            explanation_data={
                **interpretation,
                "local_prediction": local_prediction,
                "model_prediction": model_prediction,
                "fidelity": fidelity,
                "kernel_width": kernel_width,
                "model_family": self.model_family,
                "instance": data.schema.to_records(x[np.newaxis, :])[0],
            },
            feature_names=data.feature_names,
            metadata={"n_samples": self.n_samples, "random_state": self.random_state}
        )
