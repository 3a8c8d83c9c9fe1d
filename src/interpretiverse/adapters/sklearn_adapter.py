# src/interpretiverse/adapters/sklearn_adapter.py
"""
Adapter for scikit-learn style estimators.
"""

from typing import List, Optional

import numpy as np
from sklearn.base import BaseEstimator, is_classifier

from interpretiverse.adapters.base_adapter import BaseModelAdapter


class SklearnAdapter(BaseModelAdapter):
    """
    Wraps a fitted scikit-learn estimator.

    Classifiers return class probabilities, shape (n_samples, n_classes).
    Classifiers without ``predict_proba`` return a one-hot encoding of
    ``predict``. Regressors return ``predict`` unchanged.

    Example:
        >>> adapter = SklearnAdapter(LogisticRegression().fit(X, y), class_names=["a", "b"])
        >>> adapter.predict(X[:5]).shape
        (5, 2)
    """

    def __init__(
        self,
        model,
        feature_names: Optional[List[str]] = None,
        class_names: Optional[List[str]] = None
    ):
        super().__init__(model, feature_names)
        self.class_names = list(class_names) if class_names is not None else None

    def _is_classifier(self) -> bool:
        # is_classifier needs estimator tags, which plain objects with predict lack
        if isinstance(self.model, BaseEstimator) and is_classifier(self.model):
            return True
        return hasattr(self.model, "classes_")

    def predict(self, data) -> np.ndarray:
        if hasattr(self.model, "predict_proba") and self._is_classifier():
            return np.asarray(self.model.predict_proba(data))

        predictions = np.asarray(self.model.predict(data))
        if not self._is_classifier():
            return predictions

        # One-hot fallback for classifiers without probabilities
        classes = list(getattr(self.model, "classes_", []))
        if not classes:
            classes = sorted(set(predictions.tolist()))
        one_hot = np.zeros((len(predictions), len(classes)))
        lookup = {c: i for i, c in enumerate(classes)}
        for row, label in enumerate(predictions.tolist()):
            one_hot[row, lookup[label]] = 1.0
        return one_hot
