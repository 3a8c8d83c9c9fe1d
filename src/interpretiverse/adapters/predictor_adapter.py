# src/interpretiverse/adapters/predictor_adapter.py
"""
Predictor Adapter - the single entry point every engine calls the model through.

Wraps any supervised model (a plain callable, a BaseModelAdapter, or a
scikit-learn style estimator) behind one contract:

    predict(instances) -> 1D float array, same length and order

For classification the values are the probability of one target class,
fixed at construction. The adapter validates instances against the cached
feature schema, enforces an optional per-call timeout, splits large
batches, and can memoize predictions row by row for its whole lifetime.

Example:
    from interpretiverse import Dataset, PredictorAdapter

    data = Dataset({"a": a_values, "b": b_values})
    adapter = PredictorAdapter.for_dataset(
        clf, data, task="classification", target_class=1, timeout=30.0
    )
    probs = adapter.predict(data.X)
"""

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from interpretiverse.adapters.base_adapter import BaseModelAdapter
from interpretiverse.adapters.sklearn_adapter import SklearnAdapter
from interpretiverse.core.dataset import Dataset, FeatureSchema
from interpretiverse.exceptions import (
    EmptyDataset,
    InterpretiverseError,
    PredictorError,
    PredictorTimeout,
    SchemaMismatch,
)

logger = logging.getLogger(__name__)

TASKS = ("regression", "classification")
INPUT_FORMATS = ("array", "records")


class PredictorAdapter(BaseModelAdapter):
    """
    Schema-aware, single-output wrapper around a black-box predictor.

    Attributes:
        model: The wrapped model or callable
        schema: FeatureSchema every instance must conform to
        task: "regression" or "classification"
        target_class: Index of the class whose probability is returned
        class_names: Optional class names (for name-based target selection)
        input_format: What the model receives: "array" (schema-ordered
            matrix) or "records" (list of dicts)
        timeout: Seconds allowed per underlying model call, or None
        batch_size: Maximum rows per underlying model call, or None
    """

    def __init__(
        self,
        model,
        schema: FeatureSchema,
        task: str = "regression",
        target_class: Optional[Union[int, str]] = None,
        class_names: Optional[List[str]] = None,
        input_format: str = "array",
        timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        cache: bool = False
    ):
        """
        Initialize the adapter.

        Args:
            model: Callable, BaseModelAdapter, or estimator with
                ``predict``/``predict_proba``
            schema: Feature schema (usually ``dataset.schema``)
            task: "regression" or "classification"
            target_class: Class index or name from ``class_names``. When None,
                a two-column output uses column 1; wider outputs are rejected.
            class_names: Optional list of class names
            input_format: "array" or "records"
            timeout: Per-call time budget in seconds; exceeded calls raise
                PredictorTimeout
            batch_size: Split batches larger than this into several calls
            cache: Memoize predictions per row for the adapter's lifetime
        """
        if task not in TASKS:
            raise ValueError(f"task must be one of {TASKS}, got '{task}'")
        if input_format not in INPUT_FORMATS:
            raise ValueError(f"input_format must be one of {INPUT_FORMATS}, got '{input_format}'")
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        super().__init__(model, schema.names)
        self.schema = schema
        self.task = task
        self.class_names = list(class_names) if class_names is not None else None
        self.target_class = self._resolve_target_class(target_class)
        self.input_format = input_format
        self.timeout = timeout
        self.batch_size = batch_size

        self._predict_fn = self._resolve_predict_fn(model)
        self._cache = {} if cache else None
        self._lock = threading.Lock()
        self._n_calls = 0

    @classmethod
    def for_dataset(cls, model, data, **kwargs) -> "PredictorAdapter":
        """Build an adapter using the schema cached on ``data``."""
        return cls(model, Dataset.coerce(data).schema, **kwargs)

    def _resolve_target_class(self, target_class) -> Optional[int]:
        if target_class is None:
            return None
        if isinstance(target_class, (int, np.integer)) and not isinstance(target_class, bool):
            return int(target_class)
        if self.class_names is None or target_class not in self.class_names:
            raise ValueError(
                f"target_class '{target_class}' is not an index and not in class_names {self.class_names}"
            )
        return self.class_names.index(target_class)

    def _resolve_predict_fn(self, model) -> Callable:
        if isinstance(model, BaseModelAdapter):
            return model.predict
        if hasattr(model, "predict_proba") or hasattr(model, "predict"):
            return SklearnAdapter(model, class_names=self.class_names).predict
        if callable(model):
            return model
        raise TypeError(
            f"Expected a callable or an object with predict/predict_proba, got {type(model).__name__}."
        )

    @property
    def target_label(self) -> str:
        """Human-readable name of the explained output."""
        if self.task == "regression":
            return "output"
        index = 1 if self.target_class is None else self.target_class
        if self.class_names is not None and index < len(self.class_names):
            return str(self.class_names[index])
        return f"class_{index}"

    @property
    def n_calls(self) -> int:
        """Number of underlying model invocations so far."""
        return self._n_calls

    def clear_cache(self) -> None:
        if self._cache is not None:
            with self._lock:
                self._cache.clear()

    # ------------------------------------------------------------------ #
    # Input handling
    # ------------------------------------------------------------------ #

    def _to_matrix(self, instances) -> np.ndarray:
        if isinstance(instances, Dataset):
            if instances.schema != self.schema:
                raise SchemaMismatch(
                    "Dataset schema does not match the adapter schema.",
                    details={"expected": self.schema.names, "got": instances.feature_names}
                )
            return instances.X

        if isinstance(instances, np.ndarray):
            matrix = instances.reshape(1, -1) if instances.ndim == 1 else instances
        else:
            instances = list(instances)
            if not instances:
                raise EmptyDataset("predict was called with an empty batch.")
            if all(isinstance(inst, Mapping) for inst in instances):
                return self.schema.to_matrix(instances)
            dtype = float if self.schema.all_continuous else object
            matrix = np.array(instances, dtype=dtype)
            if matrix.ndim == 1:
                matrix = matrix.reshape(1, -1)

        if matrix.ndim != 2 or matrix.shape[1] != len(self.schema):
            raise SchemaMismatch(
                "Instances do not match the feature schema.",
                details={"expected_columns": len(self.schema), "shape": matrix.shape}
            )
        return matrix

    # ------------------------------------------------------------------ #
    # Prediction
    # ------------------------------------------------------------------ #

    def predict(self, instances) -> np.ndarray:
        """
        Predict a batch of instances.

        Args:
            instances: 2D array in schema column order, a sequence of
                mappings from feature name to value, or a Dataset

        Returns:
            1D float array with one prediction per instance, in input order

        Raises:
            EmptyDataset: If the batch is empty
            SchemaMismatch: If an instance is missing or has extra features
            PredictorError: If the model fails or returns malformed output
            PredictorTimeout: If a model call exceeds ``timeout``
        """
        matrix = self._to_matrix(instances)
        if matrix.shape[0] == 0:
            raise EmptyDataset("predict was called with an empty batch.")

        if self._cache is None:
            return self._predict_matrix(matrix)
        return self._predict_cached(matrix)

    def _predict_cached(self, matrix: np.ndarray) -> np.ndarray:
        keys = [tuple(row.tolist()) for row in matrix]
        with self._lock:
            known = {key: self._cache[key] for key in keys if key in self._cache}

        missing = {}
        for row, key in enumerate(keys):
            if key not in known and key not in missing:
                missing[key] = row

        if missing:
            predictions = self._predict_matrix(matrix[list(missing.values())])
            fresh = dict(zip(missing.keys(), predictions.tolist()))
            known.update(fresh)
            with self._lock:
                self._cache.update(fresh)

        # Answer from the local copy; clear_cache may run on another thread
        return np.array([known[key] for key in keys], dtype=float)

    def _predict_matrix(self, matrix: np.ndarray) -> np.ndarray:
        n_samples = matrix.shape[0]
        if self.batch_size is None or n_samples <= self.batch_size:
            return self._call_model(matrix)

        outputs = []
        for i in range(0, n_samples, self.batch_size):
            outputs.append(self._call_model(matrix[i:i + self.batch_size]))
        return np.concatenate(outputs)

    def _call_model(self, batch: np.ndarray) -> np.ndarray:
        n_samples = batch.shape[0]
        if self.input_format == "records":
            payload = self.schema.to_records(batch)
        else:
            payload = batch if batch.flags.writeable else batch.copy()

        with self._lock:
            self._n_calls += 1

        try:
            if self.timeout is None:
                raw = self._predict_fn(payload)
            else:
                raw = self._call_with_timeout(payload, n_samples)
        except InterpretiverseError:
            raise
        except Exception as exc:
            raise PredictorError(
                f"Predictor raised {type(exc).__name__}: {exc}",
                details={"batch_size": n_samples}
            ) from exc

        return self._normalize(raw, n_samples)

    def _call_with_timeout(self, payload, n_samples: int):
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._predict_fn, payload)
        try:
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            if future.done():
                raise
            logger.warning("Predictor call on %d rows exceeded %.3fs", n_samples, self.timeout)
            raise PredictorTimeout(
                f"Predictor call exceeded the {self.timeout}s time budget.",
                details={"timeout": self.timeout, "batch_size": n_samples}
            ) from None
        finally:
            # A timed-out call keeps running on its own thread; it is abandoned.
            executor.shutdown(wait=False)

    def _normalize(self, raw, n_samples: int) -> np.ndarray:
        try:
            output = np.asarray(raw, dtype=float)
        except (TypeError, ValueError) as exc:
            raise PredictorError(
                "Predictor output is not numeric.", details={"batch_size": n_samples}
            ) from exc

        if output.ndim == 2 and output.shape[1] == 1:
            output = output[:, 0]
        elif output.ndim == 2:
            index = self.target_class
            if index is None:
                if output.shape[1] != 2:
                    raise ValueError(
                        f"Predictor returns {output.shape[1]} columns; set target_class to choose one."
                    )
                index = 1
            if index >= output.shape[1]:
                raise PredictorError(
                    f"target_class {index} out of range for {output.shape[1]} output columns.",
                    details={"batch_size": n_samples}
                )
            output = output[:, index]
        elif output.ndim != 1:
            raise PredictorError(
                f"Predictor output has unsupported shape {output.shape}.",
                details={"batch_size": n_samples}
            )

        if output.shape[0] != n_samples:
            raise PredictorError(
                f"Predictor returned {output.shape[0]} predictions for {n_samples} instances.",
                details={"batch_size": n_samples}
            )
        if self.task == "classification" and np.any((output < 0.0) | (output > 1.0)):
            raise PredictorError(
                "Classification predictor returned values outside [0, 1].",
                details={"batch_size": n_samples}
            )
        return output
