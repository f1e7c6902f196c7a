"""
PID Controller Representation
=============================

Continuous-time PID controller in parallel form:

    C(s) = Kp + Ki/s + Kd*s = (Kd*s² + Kp*s + Ki) / s

Optionally with a first-order filter on the derivative term:

    C(s) = Kp + Ki/s + Kd*s / (τ_d*s + 1)
"""

import numpy as np
import control as ctrl
from dataclasses import dataclass
from typing import Optional


@dataclass
class PIDGains:
    """PID controller gains."""
    Kp: float = 1.0
    Ki: float = 0.0
    Kd: float = 0.0

    def to_array(self) -> np.ndarray:
        return np.array([self.Kp, self.Ki, self.Kd], dtype=float)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'PIDGains':
        if len(arr) != 3:
            raise ValueError(f"Expected 3 gains (Kp, Ki, Kd), got {len(arr)}")
        return cls(Kp=float(arr[0]), Ki=float(arr[1]), Kd=float(arr[2]))

    def to_dict(self) -> dict:
        return {'Kp': self.Kp, 'Ki': self.Ki, 'Kd': self.Kd}

    def __repr__(self):
        return f"PIDGains(Kp={self.Kp:.4f}, Ki={self.Ki:.4f}, Kd={self.Kd:.4f})"


def pid_transfer_function(
    gains: PIDGains,
    derivative_filter_tau: Optional[float] = None
) -> ctrl.TransferFunction:
    """
    Build the PID controller transfer function C(s).

    Args:
        gains: Controller gains
        derivative_filter_tau: Time constant of the derivative low-pass
            filter. None gives the ideal (unfiltered) derivative.

    Returns:
        Controller transfer function
    """
    Kp, Ki, Kd = gains.Kp, gains.Ki, gains.Kd

    if derivative_filter_tau is None:
        return ctrl.tf([Kd, Kp, Ki], [1, 0])

    tau = derivative_filter_tau
    if tau <= 0:
        raise ValueError(f"derivative_filter_tau must be positive, got {tau}")

    # Common denominator s*(τs + 1)
    num = [Kp * tau + Kd, Kp + Ki * tau, Ki]
    den = [tau, 1, 0]
    return ctrl.tf(num, den)
