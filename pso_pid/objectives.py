"""
Step-Response Cost Function
===========================

Scalar cost of a PID gain triple, computed from the unit-step response of
the unity-feedback closed loop:

    J = w₁·ITAE + w₂·OS + w₃·Tₛ + w₄·|e_ss|

ITAE: Integral Time-weighted Absolute Error
    ITAE = ∫₀ᵀ t|e(t)|dt
OS: Percentage overshoot
Tₛ: Settling time (2% criterion), capped at the simulation horizon
e_ss: Steady-state error at the end of the horizon

Unstable loops and failed simulations cost `failure_cost`, a large finite
number, so candidates can always be compared.
"""

import numpy as np
from dataclasses import dataclass, field

from .pid_controller import PIDGains
from .plant import LinearPlant, simulate_step_response


@dataclass
class ObjectiveWeights:
    """Weights for scalarizing step-response metrics into a single cost."""
    w_itae: float = 1.0
    w_overshoot: float = 0.02
    w_settling: float = 0.1
    w_ss_error: float = 10.0


def compute_itae(time: np.ndarray, error: np.ndarray) -> float:
    """
    Compute Integral of Time-weighted Absolute Error (ITAE).

    ITAE = ∫₀ᵀ t|e(t)|dt

    This metric penalizes errors that persist over time more heavily,
    encouraging fast settling with minimal steady-state error.

    Args:
        time: Time array
        error: Error array (same length as time)

    Returns:
        ITAE value (lower is better)
    """
    if len(time) < 2:
        return 0.0

    integrand = time * np.abs(error)

    # Trapezoidal integration
    return float(np.trapezoid(integrand, time))


def compute_iae(error: np.ndarray, dt: float) -> float:
    """
    Compute Integral of Absolute Error (IAE).

    IAE = ∫₀ᵀ |e(t)|dt
    """
    time = np.arange(len(error)) * dt
    return float(np.trapezoid(np.abs(error), time))


def compute_ise(error: np.ndarray, dt: float) -> float:
    """
    Compute Integral of Squared Error (ISE).

    ISE = ∫₀ᵀ e(t)²dt
    """
    time = np.arange(len(error)) * dt
    return float(np.trapezoid(error**2, time))


def compute_settling_time(
    time: np.ndarray,
    output: np.ndarray,
    setpoint: float,
    tolerance: float = 0.02
) -> float:
    """
    Compute settling time (2% criterion by default).

    Args:
        time: Time array
        output: Output response array
        setpoint: Target setpoint
        tolerance: Settling tolerance (default 2%)

    Returns:
        Settling time in seconds, inf if the response never settles
    """
    if len(time) < 2:
        return np.inf

    error_band = tolerance * abs(setpoint)
    within_band = np.abs(output - setpoint) <= error_band

    if not within_band[-1]:
        return np.inf

    # Last exit from the band
    outside = np.flatnonzero(~within_band)
    if outside.size == 0:
        return 0.0
    return float(time[outside[-1] + 1])


def compute_overshoot(output: np.ndarray, setpoint: float) -> float:
    """
    Compute percentage overshoot.

    Args:
        output: Output response array
        setpoint: Target setpoint

    Returns:
        Overshoot percentage (0-100+)
    """
    if setpoint == 0:
        return 0.0

    max_out = np.max(output)
    if max_out > setpoint:
        return float(100.0 * (max_out - setpoint) / setpoint)
    return 0.0


def compute_rise_time(
    time: np.ndarray,
    output: np.ndarray,
    setpoint: float,
    low_pct: float = 0.1,
    high_pct: float = 0.9
) -> float:
    """
    Compute rise time (10% to 90% by default).

    Returns:
        Rise time in seconds, inf if the response never crosses both levels
    """
    if len(time) < 2 or setpoint == 0:
        return np.inf

    low_val = low_pct * setpoint
    high_val = high_pct * setpoint

    low_idx = np.argmax(output >= low_val)
    high_idx = np.argmax(output >= high_val)

    if low_idx == 0 and output[0] < low_val:
        return np.inf
    if high_idx == 0 and output[0] < high_val:
        return np.inf

    return float(time[high_idx] - time[low_idx])


def get_performance_summary(sim_result: dict, setpoint: float = 1.0) -> dict:
    """
    Get comprehensive performance summary.

    Args:
        sim_result: Dictionary from simulate_step_response
        setpoint: Target setpoint

    Returns:
        Dictionary of performance metrics
    """
    time = sim_result['time']
    output = sim_result['output']
    error = sim_result['error']
    dt = sim_result['dt']

    return {
        'itae': compute_itae(time, error),
        'iae': compute_iae(error, dt),
        'ise': compute_ise(error, dt),
        'settling_time': compute_settling_time(time, output, setpoint),
        'overshoot': compute_overshoot(output, setpoint),
        'rise_time': compute_rise_time(time, output, setpoint),
        'steady_state_error': float(abs(output[-1] - setpoint))
    }


def scalarize(summary: dict, weights: ObjectiveWeights, horizon: float) -> float:
    """
    Weighted sum of step-response metrics.

    Settling time is capped at `horizon` so responses that never settle
    remain comparable.
    """
    settling = min(summary['settling_time'], horizon)
    return (
        weights.w_itae * summary['itae']
        + weights.w_overshoot * summary['overshoot']
        + weights.w_settling * settling
        + weights.w_ss_error * summary['steady_state_error']
    )


@dataclass
class StepResponseObjective:
    """
    Cost of PID gains [Kp, Ki, Kd] on a linear plant.

    Plain dataclass of picklable fields, usable from a process pool.
    """
    plant: LinearPlant = field(default_factory=LinearPlant)
    weights: ObjectiveWeights = field(default_factory=ObjectiveWeights)
    duration: float = 20.0
    n_points: int = 2001
    failure_cost: float = 1e6

    def __call__(self, genes: np.ndarray) -> float:
        gains = PIDGains.from_array(genes)

        try:
            # Closed-loop poles on or right of the imaginary axis
            if not self.plant.is_stable(gains):
                return self.failure_cost

            sim = simulate_step_response(
                self.plant, gains,
                duration=self.duration,
                n_points=self.n_points
            )
        except (ValueError, TypeError, ArithmeticError, np.linalg.LinAlgError):
            return self.failure_cost

        cost = scalarize(get_performance_summary(sim), self.weights, self.duration)

        if not np.isfinite(cost):
            return self.failure_cost

        return float(cost)
