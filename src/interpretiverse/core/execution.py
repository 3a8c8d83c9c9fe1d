# src/interpretiverse/core/execution.py
"""
Execution of independent units of work.

Engines split a computation into units (grid points, ALE intervals,
permutation repetitions, Shapley permutations, ...) that share no mutable
state. Each unit's result lands in its own slot of a pre-sized list, so the
units may complete in any order; the engine then reduces the slots with a
mean or a sum.

Cancellation is cooperative: the token is checked before a unit starts,
never while a predictor call is in flight.
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence

from interpretiverse.exceptions import ComputationCancelled, InterpretiverseError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Flag used to abort a long-running computation between units of work.

    Example:
        >>> token = CancellationToken()
        >>> explainer = HStatisticExplainer(adapter, data, cancel_token=token)
        >>> # from another thread
        >>> token.cancel()
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, **context) -> None:
        if self._event.is_set():
            raise ComputationCancelled("Computation was cancelled.", details=context)


def resolve_n_jobs(n_jobs: Optional[int]) -> int:
    """Map ``n_jobs`` to a worker count; -1 means one worker per CPU."""
    if n_jobs is None or n_jobs == 0:
        return 1
    if n_jobs < 0:
        return max(1, (os.cpu_count() or 1) + 1 + n_jobs)
    return int(n_jobs)


def run_units(
    fn: Callable[[Any], Any],
    units: Sequence[Any],
    n_jobs: int = 1,
    cancel_token: Optional[CancellationToken] = None,
    context: Optional[Callable[[int, Any], Dict[str, Any]]] = None
) -> List[Any]:
    """
    Run ``fn`` over every unit and return the results in unit order.

    Args:
        fn: Function applied to each unit
        units: Independent units of work
        n_jobs: Number of worker threads (1 runs inline, -1 uses all CPUs)
        cancel_token: Checked before each unit starts
        context: Maps (position, unit) to the context merged into the
            ``details`` of an InterpretiverseError raised by that unit

    Returns:
        List with one result per unit, aligned with ``units``

    Raises:
        ComputationCancelled: If the token is cancelled before all units ran
        Exception: The first error raised by a unit; pending units are
            cancelled and no partial result is returned
    """
    units = list(units)
    results: List[Any] = [None] * len(units)
    max_workers = min(resolve_n_jobs(n_jobs), max(1, len(units)))

    def _run(position: int, unit: Any) -> Any:
        unit_context = context(position, unit) if context is not None else {}
        if cancel_token is not None:
            cancel_token.raise_if_cancelled(**unit_context)
        try:
            return fn(unit)
        except InterpretiverseError as exc:
            exc.add_context(**unit_context)
            raise

    if max_workers == 1:
        for position, unit in enumerate(units):
            results[position] = _run(position, unit)
        return results

    logger.debug("Running %d units on %d worker threads", len(units), max_workers)
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_idx = {
            executor.submit(_run, position, unit): position
            for position, unit in enumerate(units)
        }
        try:
            for fut in as_completed(future_to_idx):
                results[future_to_idx[fut]] = fut.result()
        except BaseException:
            for fut in future_to_idx:
                fut.cancel()
            raise
    return results
