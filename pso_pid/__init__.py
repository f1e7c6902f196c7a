# PID Gain Tuning with Particle Swarm Optimization
# ================================================
#
# This package tunes the Kp, Ki, Kd gains of a PID controller for a linear
# plant by minimizing a step-response cost with Particle Swarm Optimization.
#
# Core:
#   Particle / Swarm: positions, velocities, personal and global bests
#   ParallelEvaluator: feasibility-gated evaluation across a worker pool
#   PSOOptimizer: iteration loop with a decaying/growing coefficient schedule

from .pid_controller import PIDGains, pid_transfer_function
from .plant import LinearPlant, PlantParams, simulate_step_response
from .objectives import ObjectiveWeights, StepResponseObjective, get_performance_summary
from .evaluation import ParallelEvaluator
from .pso import (
    OptimizationBounds,
    PSOConfig,
    HyperparameterSchedule,
    Particle,
    Swarm,
    SwarmSnapshot,
    SnapshotRecorder,
    OptimizationResult,
    PSOOptimizer,
)

__all__ = [
    'PIDGains',
    'pid_transfer_function',
    'LinearPlant',
    'PlantParams',
    'simulate_step_response',
    'ObjectiveWeights',
    'StepResponseObjective',
    'get_performance_summary',
    'ParallelEvaluator',
    'OptimizationBounds',
    'PSOConfig',
    'HyperparameterSchedule',
    'Particle',
    'Swarm',
    'SwarmSnapshot',
    'SnapshotRecorder',
    'OptimizationResult',
    'PSOOptimizer',
]
