"""
Parallel Objective Evaluation
=============================

Feasibility-gated evaluation of candidate positions, split into contiguous
batches and dispatched to a worker pool.

- Positions outside the search bounds are scored +inf and never evaluated
- Exceptions raised by the objective are mapped to +inf
- Results come back in input order regardless of batch or worker count
"""

import os
import math
import warnings
import numpy as np
from itertools import repeat
from typing import Callable, List, Optional
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor


BACKENDS = ('thread', 'process', 'serial')


def partition(n_tasks: int, n_batches: int) -> List[range]:
    """
    Split task indices 0..n_tasks-1 into contiguous, disjoint ranges.

    Uses a fixed batch size of ceil(n_tasks / n_batches); trailing empty
    batches are dropped, so fewer than `n_batches` ranges may be returned.
    """
    if n_tasks < 0:
        raise ValueError(f"n_tasks must be non-negative, got {n_tasks}")
    if n_batches < 1:
        raise ValueError(f"n_batches must be at least 1, got {n_batches}")

    if n_tasks == 0:
        return []

    batch_size = math.ceil(n_tasks / n_batches)
    return [
        range(start, min(start + batch_size, n_tasks))
        for start in range(0, n_tasks, batch_size)
    ]


def safe_evaluate(objective: Callable[[np.ndarray], float], position: np.ndarray) -> float:
    """Evaluate the objective, mapping exceptions and NaN to +inf."""
    try:
        value = float(objective(position))
    except Exception as exc:
        warnings.warn(
            f"Objective evaluation failed at {np.array2string(position, precision=4)}: {exc!r}",
            RuntimeWarning
        )
        return np.inf

    if np.isnan(value):
        return np.inf
    return value


def evaluate_batch(objective, bounds, positions: np.ndarray) -> List[float]:
    """Evaluate one batch of positions. Runs inside a worker."""
    values = []
    for position in positions:
        if bounds.contains(position):
            values.append(safe_evaluate(objective, position))
        else:
            values.append(np.inf)
    return values


class ParallelEvaluator:
    """
    Evaluates the objective for many positions across a worker pool.

    Backends:
        - 'thread': ThreadPoolExecutor (objective may be any callable)
        - 'process': ProcessPoolExecutor (objective and bounds must pickle)
        - 'serial': batches evaluated in the calling thread

    A pool is created on first use and kept until `shutdown()`.
    """

    def __init__(
        self,
        objective_function: Callable[[np.ndarray], float],
        bounds,
        n_workers: Optional[int] = None,
        n_batches: Optional[int] = None,
        backend: str = 'thread'
    ):
        if backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {backend} (expected one of {BACKENDS})")

        self.objective_fn = objective_function
        self.bounds = bounds
        self.n_workers = n_workers if n_workers is not None else (os.cpu_count() or 1)
        self.n_batches = n_batches if n_batches is not None else self.n_workers
        self.backend = backend

        if self.n_workers < 1:
            raise ValueError(f"n_workers must be at least 1, got {self.n_workers}")
        if self.n_batches < 1:
            raise ValueError(f"n_batches must be at least 1, got {self.n_batches}")

        self._executor: Optional[Executor] = None

    @property
    def is_serial(self) -> bool:
        return self.backend == 'serial' or self.n_workers == 1

    def _get_executor(self) -> Executor:
        if self._executor is None:
            if self.backend == 'process':
                self._executor = ProcessPoolExecutor(max_workers=self.n_workers)
            else:
                self._executor = ThreadPoolExecutor(max_workers=self.n_workers)
        return self._executor

    def evaluate(self, positions: np.ndarray) -> np.ndarray:
        """
        Evaluate all positions.

        Args:
            positions: Array of shape (n, dim)

        Returns:
            Values of shape (n,), in the same order as `positions`
        """
        positions = np.asarray(positions, dtype=float)
        if positions.ndim == 1:
            positions = positions[np.newaxis, :]

        ranges = partition(len(positions), self.n_batches)
        batches = [positions[r.start:r.stop] for r in ranges]

        if self.is_serial:
            results = [evaluate_batch(self.objective_fn, self.bounds, b) for b in batches]
        else:
            executor = self._get_executor()
            # list() blocks until every batch has finished
            results = list(executor.map(
                evaluate_batch,
                repeat(self.objective_fn),
                repeat(self.bounds),
                batches
            ))

        values = np.empty(len(positions))
        for r, batch_values in zip(ranges, results):
            values[r.start:r.stop] = batch_values
        return values

    def evaluate_swarm(self, swarm) -> np.ndarray:
        """Evaluate every particle and store the result in its `value`."""
        values = self.evaluate(swarm.positions)
        for particle, value in zip(swarm.particles, values):
            particle.value = float(value)
        return values

    def shutdown(self):
        """Release the worker pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
