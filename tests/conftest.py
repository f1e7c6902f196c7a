"""
Shared fixtures: headless matplotlib and simple objective functions.
"""

import threading

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


class CountingObjective:
    """Sphere cost around `target` that records every position it sees."""

    def __init__(self, target=(1.0, 2.0, 3.0)):
        self.target = np.asarray(target, dtype=float)
        self.calls = []
        self._lock = threading.Lock()

    def __call__(self, position):
        with self._lock:
            self.calls.append(np.array(position, dtype=float))
        return float(np.sum((np.asarray(position) - self.target) ** 2))


@pytest.fixture
def counting_objective():
    return CountingObjective()


@pytest.fixture
def sphere():
    target = np.array([3.0, 4.0, 5.0])

    def objective(position):
        return float(np.sum((np.asarray(position) - target) ** 2))

    objective.target = target
    return objective
