# src/interpretiverse/explainers/global_explainers/surrogate.py
"""
Global Surrogate Explainer.

Fits an interpretable model (decision tree or linear model) to the
black-box predictions, not the true labels, over the reference dataset,
and reports how faithfully it reproduces them. A low fidelity is a result
to interpret, not an error.

Reference:
    Craven, M.W. & Shavlik, J.W. (1996). Extracting Tree-Structured
    Representations of Trained Networks. NIPS 8.
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import LinearRegression, LogisticRegression
from sklearn.metrics import accuracy_score, r2_score, roc_auc_score
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import OneHotEncoder
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor, export_text

from interpretiverse.core.dataset import Dataset
from interpretiverse.core.explainer import BaseExplainer
from interpretiverse.core.explanation import Explanation

logger = logging.getLogger(__name__)

MODEL_FAMILIES = ("tree", "linear")
SURROGATE_TASKS = ("regression", "classification")

# Fidelity below this is logged, never raised
LOW_FIDELITY = 0.5


def build_encoder(data: Dataset) -> ColumnTransformer:
    """One-hot encode categorical columns, pass continuous columns through."""
    categorical = [j for j, spec in enumerate(data.schema) if spec.is_categorical]
    continuous = [j for j, spec in enumerate(data.schema) if not spec.is_categorical]
    transformers = []
    if continuous:
        transformers.append(("continuous", "passthrough", continuous))
    if categorical:
        transformers.append((
            "categorical",
            OneHotEncoder(handle_unknown="ignore", sparse_output=False),
            categorical
        ))
    return ColumnTransformer(transformers)


def encoded_feature_names(data: Dataset, encoder: ColumnTransformer) -> List[str]:
    """Names of the encoder's output columns, e.g. "age" or "city=paris"."""
    names = []
    for name, transformer, columns in encoder.transformers_:
        if name == "continuous":
            names.extend(data.feature_names[j] for j in columns)
        elif name == "categorical":
            for j, categories in zip(columns, transformer.categories_):
                names.extend(f"{data.feature_names[j]}={c}" for c in categories)
    return names


class GlobalSurrogateExplainer(BaseExplainer):
    """
    Global surrogate explainer.

    Attributes:
        model: PredictorAdapter
        data: Reference Dataset
        model_family: "tree" or "linear"
        task: "regression" (fit the predictions, R^2 fidelity) or
            "classification" (fit predictions >= threshold, accuracy fidelity)
        max_depth: Depth of the surrogate tree
        threshold: Decision threshold for classification surrogates
    """

    def __init__(
        self,
        model,
        data,
        model_family: str = "tree",
        task: str = "regression",
        max_depth: Optional[int] = 3,
        threshold: float = 0.5,
        random_state: Optional[int] = None
    ):
        """
        Initialize the global surrogate explainer.

        Args:
            model: PredictorAdapter (or any adapter with .predict())
            data: Reference Dataset the surrogate is trained on
            model_family: "tree" (decision tree) or "linear"
            task: "regression" or "classification" surrogate
            max_depth: Maximum depth of the surrogate tree
            threshold: Probability threshold turning predictions into
                labels for a classification surrogate
            random_state: Seed for the tree's tie-breaking
        """
        if model_family not in MODEL_FAMILIES:
            raise ValueError(f"model_family must be one of {MODEL_FAMILIES}, got '{model_family}'")
        if task not in SURROGATE_TASKS:
            raise ValueError(f"task must be one of {SURROGATE_TASKS}, got '{task}'")
        super().__init__(model, data)
        self.model_family = model_family
        self.task = task
        self.max_depth = max_depth
        self.threshold = threshold
        self.random_state = random_state

    def _make_estimator(self):
        if self.model_family == "tree":
            if self.task == "regression":
                return DecisionTreeRegressor(max_depth=self.max_depth, random_state=self.random_state)
            return DecisionTreeClassifier(max_depth=self.max_depth, random_state=self.random_state)
        if self.task == "regression":
            return LinearRegression()
        return LogisticRegression(max_iter=1000)

    def _fidelity(self, surrogate: Pipeline, X: np.ndarray, target: np.ndarray) -> Tuple[float, Dict[str, float]]:
        if self.task == "regression":
            fitted = surrogate.predict(X)
            if np.allclose(target, target[0]):
                # R^2 is undefined for a constant target; exact reproduction counts as perfect
                score = 1.0 if np.allclose(fitted, target) else 0.0
            else:
                score = float(r2_score(target, fitted))
            return score, {"r2": score}

        labels = surrogate.predict(X)
        scores = {"accuracy": float(accuracy_score(target, labels))}
        if len(np.unique(target)) == 2:
            scores["roc_auc"] = float(roc_auc_score(target, surrogate.predict_proba(X)[:, 1]))
        return scores["accuracy"], scores

    def _interpretation(self, surrogate: Pipeline, names: List[str]) -> Dict[str, object]:
        estimator = surrogate.named_steps["surrogate"]
        if self.model_family == "linear":
            coefficients = np.ravel(estimator.coef_)
            intercept = float(np.ravel(estimator.intercept_)[0])
            return {
                "feature_attributions": {n: float(c) for n, c in zip(names, coefficients)},
                "coefficients": {n: float(c) for n, c in zip(names, coefficients)},
                "intercept": intercept,
            }
        return {
            "feature_attributions": {
                n: float(v) for n, v in zip(names, estimator.feature_importances_)
            },
            "rules": export_text(estimator, feature_names=names),
            "tree_depth": int(estimator.get_depth()),
            "n_leaves": int(estimator.get_n_leaves()),
        }

    def explain(self, **kwargs) -> Explanation:
        """
        Fit the surrogate and report its fidelity.

        Returns:
            Explanation with "surrogate_model" (fitted scikit-learn Pipeline),
            "fidelity", "fidelity_scores" and the surrogate's interpretable
            parameters (coefficients or tree rules and importances)
        """
        data = self._require_data()
        predictions = self._predict(data.X)

        if self.task == "regression":
            target = predictions
        else:
            target = (predictions >= self.threshold).astype(int)

        surrogate = Pipeline([
            ("encode", build_encoder(data)),
            ("surrogate", self._make_estimator()),
        ])

        if self.task == "classification" and len(np.unique(target)) < 2:
            # A single label cannot train a classifier; the surrogate is that constant
            logger.info("Black-box labels are constant; classification surrogate is trivial.")
            surrogate.steps[-1] = ("surrogate", DecisionTreeClassifier(max_depth=1))
            model_family_used = "tree"
        else:
            model_family_used = self.model_family
        surrogate.fit(data.X, target)

        fidelity, scores = self._fidelity(surrogate, data.X, target)
        names = encoded_feature_names(data, surrogate.named_steps["encode"])
        if model_family_used == self.model_family:
            interpretation = self._interpretation(surrogate, names)
        else:
            interpretation = {"feature_attributions": {n: 0.0 for n in names}}

        if fidelity < LOW_FIDELITY:
            logger.warning("Global %s surrogate fidelity is low: %.3f", self.model_family, fidelity)
        logger.info("Global %s surrogate fidelity: %.4f", self.model_family, fidelity)

        return Explanation(
            explainer_name="GlobalSurrogate",
            target_class=self.target_label,
            explanation_data={
                "surrogate_model": surrogate,
                "model_family": self.model_family,
                "task": self.task,
                "fidelity": fidelity,
                "fidelity_metric": "r2" if self.task == "regression" else "accuracy",
                "fidelity_scores": scores,
                "encoded_feature_names": names,
                **interpretation,
            },
            feature_names=data.feature_names,
            metadata={"max_depth": self.max_depth, "threshold": self.threshold}
        )
