# tests/test_execution.py
"""
Tests for unit execution: ordering, parallelism, cancellation and error
context, on their own and through the engines.
"""

import os
import threading
import time

import numpy as np
import pytest
from sklearn.datasets import make_regression

from interpretiverse.adapters.predictor_adapter import PredictorAdapter
from interpretiverse.core.dataset import Dataset
from interpretiverse.core.execution import CancellationToken, resolve_n_jobs, run_units
from interpretiverse.exceptions import ComputationCancelled, PredictorError, PredictorTimeout
from interpretiverse.explainers.attribution.shapley import ShapleyExplainer
from interpretiverse.explainers.global_explainers.partial_dependence import PartialDependenceExplainer


@pytest.fixture
def data():
    X, _ = make_regression(n_samples=30, n_features=3, random_state=1)
    return Dataset.from_array(X, ["a", "b", "c"])


class TestRunUnits:

    def test_results_follow_unit_order(self):
        def slow_square(u):
            time.sleep(0.001 * (10 - u % 10))
            return u * u

        results = run_units(slow_square, range(20), n_jobs=4)

        assert results == [u * u for u in range(20)]

    def test_parallel_uses_several_threads(self):
        seen = set()
        lock = threading.Lock()

        def record(u):
            with lock:
                seen.add(threading.get_ident())
            time.sleep(0.01)
            return u

        run_units(record, range(16), n_jobs=4)

        assert len(seen) > 1

    def test_empty_units(self):
        assert run_units(lambda u: u, [], n_jobs=4) == []

    def test_cancelled_before_start(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ComputationCancelled):
            run_units(lambda u: u, range(5), cancel_token=token)

    def test_cancelled_between_units(self):
        token = CancellationToken()
        calls = []

        def work(u):
            calls.append(u)
            if u == 2:
                token.cancel()
            return u

        with pytest.raises(ComputationCancelled) as excinfo:
            run_units(work, range(10), cancel_token=token, context=lambda _, u: {"repeat": u})

        assert calls == [0, 1, 2]
        assert excinfo.value.details["repeat"] == 3

    def test_error_gets_unit_context(self):
        def work(u):
            if u == 3:
                raise PredictorError("bad batch", details={"batch_size": 10})
            return u

        with pytest.raises(PredictorError) as excinfo:
            run_units(work, range(6), context=lambda _, u: {"grid_index": u})

        assert excinfo.value.details == {"batch_size": 10, "grid_index": 3}

    def test_first_error_propagates_in_parallel(self):
        def work(u):
            if u == 5:
                raise KeyError("missing")
            return u

        with pytest.raises(KeyError):
            run_units(work, range(12), n_jobs=3)

    def test_resolve_n_jobs(self):
        assert resolve_n_jobs(None) == 1
        assert resolve_n_jobs(1) == 1
        assert resolve_n_jobs(3) == 3
        assert resolve_n_jobs(-1) == (os.cpu_count() or 1)


class TestEngineExecution:
    """Cancellation and timeouts abort an engine without a partial result."""

    def test_cancelled_partial_dependence(self, data):
        adapter = PredictorAdapter.for_dataset(lambda X: X.sum(axis=1), data)
        token = CancellationToken()
        token.cancel()
        explainer = PartialDependenceExplainer(adapter, data, cancel_token=token)

        with pytest.raises(ComputationCancelled) as excinfo:
            explainer.explain("b")
        assert excinfo.value.details["feature"] == "b"
        assert excinfo.value.details["grid_index"] == 0

    def test_cancel_from_another_thread(self, data):
        token = CancellationToken()

        def slowish(X):
            time.sleep(0.01)
            return X.sum(axis=1)

        adapter = PredictorAdapter.for_dataset(slowish, data)
        explainer = ShapleyExplainer(adapter, data, n_permutations=10000, cancel_token=token)
        timer = threading.Timer(0.1, token.cancel)
        timer.start()
        try:
            with pytest.raises(ComputationCancelled) as excinfo:
                explainer.explain(0)
        finally:
            timer.cancel()
        assert "permutation_index" in excinfo.value.details

    def test_timeout_in_engine_carries_unit_context(self, data):
        def slow(X):
            time.sleep(0.5)
            return X.sum(axis=1)

        adapter = PredictorAdapter.for_dataset(slow, data, timeout=0.05)
        explainer = PartialDependenceExplainer(adapter, data, grid_size=3)

        with pytest.raises(PredictorTimeout) as excinfo:
            explainer.explain("a")
        assert excinfo.value.details["feature"] == "a"
        assert excinfo.value.details["grid_index"] == 0

    def test_parallel_matches_serial(self, data):
        adapter = PredictorAdapter.for_dataset(lambda X: X[:, 0] * X[:, 1] + X[:, 2], data)
        serial = PartialDependenceExplainer(adapter, data, n_jobs=1).explain("a", kind="both")
        parallel = PartialDependenceExplainer(adapter, data, n_jobs=4).explain("a", kind="both")

        np.testing.assert_array_equal(serial["pdp_values"]["a"], parallel["pdp_values"]["a"])
        np.testing.assert_array_equal(serial["ice_values"]["a"], parallel["ice_values"]["a"])
