# src/interpretiverse/core/explainer.py
"""
Base class shared by every explainer.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from interpretiverse.core.dataset import Dataset
from interpretiverse.core.execution import CancellationToken, run_units
from interpretiverse.core.explanation import Explanation
from interpretiverse.exceptions import EmptyDataset, SchemaMismatch


class BaseExplainer(ABC):
    """
    Abstract base class for all explainers.

    Holds the model (normally a PredictorAdapter) and, for data-driven
    explainers, the reference Dataset. Subclasses implement ``explain``.

    Attributes:
        model: Model adapter with a ``predict`` method
        data: Reference Dataset, or None
        n_jobs: Worker threads for independent units of work
        cancel_token: Optional CancellationToken checked between units
    """

    def __init__(
        self,
        model,
        data=None,
        n_jobs: int = 1,
        cancel_token: Optional[CancellationToken] = None
    ):
        self.model = model
        self.data = Dataset.coerce(data) if data is not None else None
        self.n_jobs = n_jobs
        self.cancel_token = cancel_token

        if self.data is not None:
            adapter_schema = getattr(model, "schema", None)
            if adapter_schema is not None and adapter_schema != self.data.schema:
                raise SchemaMismatch(
                    "Dataset schema does not match the predictor adapter schema.",
                    details={"adapter": adapter_schema.names, "dataset": self.data.feature_names}
                )

    @property
    def feature_names(self) -> List[str]:
        return self.data.feature_names if self.data is not None else []

    @property
    def target_label(self) -> str:
        return getattr(self.model, "target_label", "output")

    def _require_data(self) -> Dataset:
        if self.data is None or self.data.n_rows == 0:
            raise EmptyDataset(f"{self.__class__.__name__} requires a non-empty dataset.")
        return self.data

    def _resolve_instance(self, instance) -> np.ndarray:
        """Schema-ordered 1-D row from a mapping, a row index or an array-like row."""
        data = self._require_data()
        if isinstance(instance, Mapping):
            return data.schema.to_matrix([instance])[0]
        if isinstance(instance, (int, np.integer)) and not isinstance(instance, bool):
            if not -data.n_rows <= instance < data.n_rows:
                raise IndexError(f"Row {instance} is out of range for {data.n_rows} rows.")
            return data.copy_matrix()[instance]
        row = np.asarray(instance, dtype=data.X.dtype)
        if row.ndim == 2 and row.shape[0] == 1:
            row = row[0]
        if row.ndim != 1 or row.shape[0] != data.n_features:
            raise SchemaMismatch(
                "Instance does not match the feature schema.",
                details={"expected_features": data.n_features, "shape": list(row.shape)}
            )
        return row

    def _predict(self, X) -> np.ndarray:
        return np.asarray(self.model.predict(X), dtype=float)

    def _run_units(
        self,
        fn: Callable[[Any], Any],
        units: Sequence[Any],
        context: Optional[Callable[[int, Any], Dict[str, Any]]] = None
    ) -> List[Any]:
        return run_units(
            fn,
            units,
            n_jobs=self.n_jobs,
            cancel_token=self.cancel_token,
            context=context
        )

    @abstractmethod
    def explain(self, *args, **kwargs) -> Explanation:
        """Compute an explanation."""
        raise NotImplementedError
