"""
Linear Plant Model
==================

SISO linear time-invariant plant described by a transfer function

    G(s) = N(s) / D(s)

closed in a unity negative-feedback loop with a PID controller C(s):

    T(s) = C(s)G(s) / (1 + C(s)G(s))

The default plant is the third-order system

    G(s) = (s + 1) / (s³ + 8s² + 3s + 2)
"""

import numpy as np
import control as ctrl
from dataclasses import dataclass
from typing import Optional, Tuple

from .pid_controller import PIDGains, pid_transfer_function


@dataclass
class PlantParams:
    """Transfer function coefficients, highest power of s first."""
    numerator: Tuple[float, ...] = (1.0, 1.0)
    denominator: Tuple[float, ...] = (1.0, 8.0, 3.0, 2.0)


class LinearPlant:
    """
    Linear plant with unity-feedback PID closed loop.

    Only the coefficient tuples are stored, transfer functions are built
    on demand, so instances can be shipped to worker processes.
    """

    def __init__(
        self,
        params: Optional[PlantParams] = None,
        derivative_filter_tau: Optional[float] = None
    ):
        self.params = params or PlantParams()
        self.derivative_filter_tau = derivative_filter_tau

        num = np.atleast_1d(np.asarray(self.params.numerator, dtype=float))
        den = np.atleast_1d(np.asarray(self.params.denominator, dtype=float))
        if den.size == 0 or den[0] == 0:
            raise ValueError("Plant denominator must have a non-zero leading coefficient")
        if num.size == 0 or not np.any(num):
            raise ValueError("Plant numerator must not be identically zero")
        if np.trim_zeros(num, 'f').size > den.size:
            raise ValueError("Plant transfer function must be proper")

    @property
    def transfer_function(self) -> ctrl.TransferFunction:
        return ctrl.tf(list(self.params.numerator), list(self.params.denominator))

    def controller(self, gains: PIDGains) -> ctrl.TransferFunction:
        return pid_transfer_function(gains, self.derivative_filter_tau)

    def closed_loop(self, gains: Optional[PIDGains] = None) -> ctrl.TransferFunction:
        """
        Unity-feedback closed loop.

        Args:
            gains: PID gains. None closes the loop around the bare plant.
        """
        G = self.transfer_function
        if gains is None:
            return ctrl.feedback(G, 1)
        return ctrl.feedback(self.controller(gains) * G, 1)

    def is_stable(self, gains: Optional[PIDGains] = None) -> bool:
        """All closed-loop poles strictly in the left half-plane."""
        poles = ctrl.poles(self.closed_loop(gains))
        return bool(np.all(np.real(poles) < 0))

    def step_info(
        self,
        gains: Optional[PIDGains] = None,
        duration: Optional[float] = None
    ) -> dict:
        """
        Step response characteristics (rise time, settling time, overshoot,
        peak, steady-state value) of the closed loop.
        """
        T = self.closed_loop(gains)
        info = ctrl.step_info(T, duration)
        return {key: float(value) for key, value in info.items()}


def simulate_step_response(
    plant: LinearPlant,
    gains: Optional[PIDGains] = None,
    duration: float = 20.0,
    n_points: int = 2001,
    setpoint: float = 1.0
) -> dict:
    """
    Simulate the closed-loop response to a step of height `setpoint`.

    Returns:
        Dictionary with time, output, error, setpoint histories and dt
    """
    if duration <= 0:
        raise ValueError(f"duration must be positive, got {duration}")
    if n_points < 2:
        raise ValueError(f"n_points must be at least 2, got {n_points}")

    time = np.linspace(0.0, duration, n_points)
    T = plant.closed_loop(gains)

    response_time, output = ctrl.step_response(T, time)
    output = setpoint * np.asarray(output, dtype=float).reshape(-1)
    response_time = np.asarray(response_time, dtype=float).reshape(-1)

    return {
        'time': response_time,
        'output': output,
        'error': setpoint - output,
        'setpoint': np.full_like(output, setpoint),
        'dt': duration / (n_points - 1)
    }
