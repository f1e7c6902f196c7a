"""
Particle Swarm Optimization
===========================

Particle Swarm Optimization for PID gain tuning.

Features:
- Uniform random initialization inside the search box
- Feasibility-gated parallel evaluation (out-of-bounds particles cost +inf)
- Personal-best and global-best tracking
- Velocity clamping on the Euclidean norm
- Per-dimension step scaling relative to the search-space extent
- Time-varying inertia, cognitive and social weights
- Per-iteration snapshots for headless observers (plotting, logging)
"""

import numpy as np
from typing import Callable, List, Optional, Sequence
from dataclasses import dataclass, field, replace

from .evaluation import BACKENDS, ParallelEvaluator
from .pid_controller import PIDGains


@dataclass
class OptimizationBounds:
    """Search space bounds for PID gains (closed intervals)."""
    Kp_min: float = 0.0
    Kp_max: float = 500.0
    Ki_min: float = 0.0
    Ki_max: float = 100.0
    Kd_min: float = 0.0
    Kd_max: float = 100.0

    @property
    def lower(self) -> np.ndarray:
        return np.array([self.Kp_min, self.Ki_min, self.Kd_min], dtype=float)

    @property
    def upper(self) -> np.ndarray:
        return np.array([self.Kp_max, self.Ki_max, self.Kd_max], dtype=float)

    @property
    def width(self) -> np.ndarray:
        return self.upper - self.lower

    def contains(self, position: np.ndarray) -> bool:
        """True if every coordinate lies inside its interval, edges included."""
        position = np.asarray(position, dtype=float)
        return bool(np.all(position >= self.lower) and np.all(position <= self.upper))

    def velocity_scaler(self) -> np.ndarray:
        """Bound widths normalized to unit length."""
        return self.width / np.linalg.norm(self.width)

    def validate(self):
        for name, lo, hi in zip(('Kp', 'Ki', 'Kd'), self.lower, self.upper):
            if not (np.isfinite(lo) and np.isfinite(hi)):
                raise ValueError(f"Bounds for {name} must be finite, got [{lo}, {hi}]")
            if lo > hi:
                raise ValueError(f"Inverted bounds for {name}: min {lo} > max {hi}")
        if np.linalg.norm(self.width) == 0:
            raise ValueError("Search space has zero extent in every dimension")


@dataclass
class PSOConfig:
    """PSO run configuration."""
    population_size: int = 30
    max_iterations: int = 200

    inertia_weight: float = 100.0      # momentum
    inertia_damping: float = 0.99      # inertia decay per iteration
    cognitive_weight: float = 5.0      # pull towards the particle's own best
    cognitive_decrease: float = 1.0    # cognitive decay per iteration
    social_weight: float = 12.0        # pull towards the swarm's best
    social_increase: float = 1.02      # social growth per iteration
    max_velocity: float = 2.0

    bounds: OptimizationBounds = field(default_factory=OptimizationBounds)

    seed: Optional[int] = None
    n_workers: Optional[int] = None    # None: one per CPU
    n_batches: Optional[int] = None    # None: one per worker
    backend: str = 'thread'
    verbose: bool = True

    def validate(self):
        """Raise ValueError for any setting that would make the run meaningless."""
        if self.population_size <= 0:
            raise ValueError(f"population_size must be positive, got {self.population_size}")
        if self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")
        if not self.max_velocity > 0:
            raise ValueError(f"max_velocity must be positive, got {self.max_velocity}")

        for name in ('inertia_damping', 'cognitive_decrease', 'social_increase'):
            value = getattr(self, name)
            if not value > 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend: {self.backend} (expected one of {BACKENDS})")
        if self.n_workers is not None and self.n_workers < 1:
            raise ValueError(f"n_workers must be at least 1, got {self.n_workers}")
        if self.n_batches is not None and self.n_batches < 1:
            raise ValueError(f"n_batches must be at least 1, got {self.n_batches}")

        self.bounds.validate()


@dataclass(frozen=True)
class HyperparameterSchedule:
    """
    Time-varying PSO coefficients.

    High inertia and cognition early favour exploration; the growing
    social weight pulls the swarm towards the global best later on.
    """
    inertia_weight: float
    cognitive_weight: float
    social_weight: float
    inertia_damping: float = 1.0
    cognitive_decrease: float = 1.0
    social_increase: float = 1.0

    @classmethod
    def from_config(cls, config: PSOConfig) -> 'HyperparameterSchedule':
        return cls(
            inertia_weight=config.inertia_weight,
            cognitive_weight=config.cognitive_weight,
            social_weight=config.social_weight,
            inertia_damping=config.inertia_damping,
            cognitive_decrease=config.cognitive_decrease,
            social_increase=config.social_increase
        )

    def advance(self) -> 'HyperparameterSchedule':
        """Schedule for the next iteration."""
        return replace(
            self,
            inertia_weight=self.inertia_weight * self.inertia_damping,
            cognitive_weight=self.cognitive_weight * self.cognitive_decrease,
            social_weight=self.social_weight * self.social_increase
        )


@dataclass
class Particle:
    """A particle in the swarm."""
    position: np.ndarray  # [Kp, Ki, Kd]
    velocity: Optional[np.ndarray] = None
    value: float = np.inf
    best_position: Optional[np.ndarray] = None
    best_value: float = np.inf

    def __post_init__(self):
        self.position = np.array(self.position, dtype=float)
        if self.velocity is None:
            self.velocity = np.zeros_like(self.position)
        if self.best_position is None:
            self.best_position = self.position.copy()

    def update_best(self) -> bool:
        """Adopt the current position as personal best if strictly better."""
        if self.value < self.best_value:
            self.best_value = self.value
            self.best_position = self.position.copy()
            return True
        return False


@dataclass
class SwarmSnapshot:
    """State of the swarm after one iteration."""
    iteration: int
    global_best_position: np.ndarray
    global_best_value: float
    positions: np.ndarray  # (n_particles, 3), after the move
    values: np.ndarray     # (n_particles,), evaluated before the move


class Swarm:
    """Fixed-size ordered population plus the global best."""

    def __init__(self, particles: Sequence[Particle]):
        if len(particles) == 0:
            raise ValueError("A swarm needs at least one particle")
        self.particles: List[Particle] = list(particles)
        self.global_best_value = np.inf
        self.global_best_position: Optional[np.ndarray] = None

    @classmethod
    def initialize(
        cls,
        population_size: int,
        bounds: OptimizationBounds,
        rng: np.random.Generator
    ) -> 'Swarm':
        """Particles uniformly distributed in the bounds box, at rest."""
        if population_size <= 0:
            raise ValueError(f"population_size must be positive, got {population_size}")

        lower, upper = bounds.lower, bounds.upper
        positions = rng.uniform(lower, upper, size=(population_size, len(lower)))

        return cls([Particle(position=p) for p in positions])

    @classmethod
    def from_positions(cls, positions: np.ndarray) -> 'Swarm':
        return cls([Particle(position=p) for p in np.atleast_2d(positions)])

    def __len__(self) -> int:
        return len(self.particles)

    @property
    def positions(self) -> np.ndarray:
        return np.array([p.position for p in self.particles])

    @property
    def values(self) -> np.ndarray:
        return np.array([p.value for p in self.particles])

    def update_bests(self):
        """
        Personal bests (strict improvement), then global best.

        Runs sequentially in particle order. Ties promote to the global
        best, so the last tied particle wins.
        """
        for particle in self.particles:
            particle.update_best()

            if particle.best_value <= self.global_best_value:
                self.global_best_value = particle.best_value
                self.global_best_position = particle.best_position.copy()

    def move(
        self,
        schedule: HyperparameterSchedule,
        max_velocity: float,
        velocity_scaler: np.ndarray,
        rng: np.random.Generator
    ):
        """Velocity and position update for every particle."""
        if self.global_best_position is None:
            raise RuntimeError("update_bests() must run before move()")

        for particle in self.particles:
            dim = len(particle.position)
            r1 = rng.random(dim)
            r2 = rng.random(dim)

            cognitive = schedule.cognitive_weight * r1 * (particle.best_position - particle.position)
            social = schedule.social_weight * r2 * (self.global_best_position - particle.position)
            velocity = schedule.inertia_weight * particle.velocity + cognitive + social

            # Limit velocity
            norm = np.linalg.norm(velocity)
            if norm > max_velocity:
                velocity = velocity * (max_velocity / norm)

            particle.velocity = velocity
            particle.position = particle.position + max_velocity * velocity * velocity_scaler

    def snapshot(self, iteration: int) -> SwarmSnapshot:
        best = None if self.global_best_position is None else self.global_best_position.copy()
        return SwarmSnapshot(
            iteration=iteration,
            global_best_position=best,
            global_best_value=self.global_best_value,
            positions=self.positions,
            values=self.values
        )


class SnapshotRecorder:
    """Observer that keeps every snapshot it receives."""

    def __init__(self):
        self.snapshots: List[SwarmSnapshot] = []

    def __call__(self, snapshot: SwarmSnapshot):
        self.snapshots.append(snapshot)


@dataclass
class OptimizationResult:
    """Outcome of a PSO run."""
    best_position: np.ndarray
    best_value: float
    iterations: int
    history: dict

    @property
    def best_gains(self) -> PIDGains:
        return PIDGains.from_array(self.best_position)


class PSOOptimizer:
    """
    PSO optimizer for PID tuning.

    Each iteration:
        1. Evaluate all particles in parallel (barrier)
        2. Update personal and global bests (serial)
        3. Move particles
        4. Advance the coefficient schedule
    """

    def __init__(
        self,
        objective_function: Callable[[np.ndarray], float],
        config: Optional[PSOConfig] = None,
        initial_positions: Optional[np.ndarray] = None,
        evaluator: Optional[ParallelEvaluator] = None
    ):
        self.objective_fn = objective_function
        self.config = config or PSOConfig()
        self.config.validate()

        if initial_positions is not None:
            initial_positions = np.array(initial_positions, dtype=float)
            expected = (self.config.population_size, 3)
            if initial_positions.shape != expected:
                raise ValueError(
                    f"initial_positions must have shape {expected}, got {initial_positions.shape}"
                )
        self.initial_positions = initial_positions

        self.evaluator = evaluator or ParallelEvaluator(
            objective_function,
            self.config.bounds,
            n_workers=self.config.n_workers,
            n_batches=self.config.n_batches,
            backend=self.config.backend
        )

        self.rng: Optional[np.random.Generator] = None
        self.swarm: Optional[Swarm] = None
        self.schedule: Optional[HyperparameterSchedule] = None
        self.velocity_scaler: Optional[np.ndarray] = None
        self.iteration = 0
        self.history = self._empty_history()

    @staticmethod
    def _empty_history() -> dict:
        return {
            'iterations': [],
            'global_best_value': [],
            'global_best_position': [],
            'mean_value': [],
            'n_feasible': [],
            'inertia_weight': [],
            'cognitive_weight': [],
            'social_weight': []
        }

    def initialize(self):
        """Fresh swarm, schedule and history."""
        cfg = self.config
        self.rng = np.random.default_rng(cfg.seed)

        if self.initial_positions is not None:
            self.swarm = Swarm.from_positions(self.initial_positions)
        else:
            self.swarm = Swarm.initialize(cfg.population_size, cfg.bounds, self.rng)

        self.schedule = HyperparameterSchedule.from_config(cfg)
        self.velocity_scaler = cfg.bounds.velocity_scaler()
        self.iteration = 0
        self.history = self._empty_history()

    def step(self, observers: Sequence[Callable[[SwarmSnapshot], None]] = ()) -> SwarmSnapshot:
        """Run one iteration and notify observers."""
        if self.swarm is None:
            self.initialize()

        self.evaluator.evaluate_swarm(self.swarm)
        self.swarm.update_bests()
        self.swarm.move(self.schedule, self.config.max_velocity, self.velocity_scaler, self.rng)
        self.schedule = self.schedule.advance()
        self.iteration += 1

        self._record_history()

        snapshot = self.swarm.snapshot(self.iteration)
        for observer in observers:
            observer(snapshot)
        return snapshot

    def _record_history(self):
        values = self.swarm.values
        finite = values[np.isfinite(values)]

        self.history['iterations'].append(self.iteration)
        self.history['global_best_value'].append(self.swarm.global_best_value)
        self.history['global_best_position'].append(self.swarm.global_best_position.copy())
        self.history['mean_value'].append(float(finite.mean()) if finite.size else np.nan)
        self.history['n_feasible'].append(int(finite.size))
        self.history['inertia_weight'].append(self.schedule.inertia_weight)
        self.history['cognitive_weight'].append(self.schedule.cognitive_weight)
        self.history['social_weight'].append(self.schedule.social_weight)

    def run(
        self,
        observers: Sequence[Callable[[SwarmSnapshot], None]] = ()
    ) -> OptimizationResult:
        """
        Run PSO for `max_iterations` iterations.

        Returns:
            OptimizationResult with the global best gains and cost
        """
        cfg = self.config
        b = cfg.bounds

        if cfg.verbose:
            print("=" * 60)
            print("Particle Swarm Optimization - PID Tuning")
            print("=" * 60)
            print(f"Population size: {cfg.population_size}")
            print(f"Iterations: {cfg.max_iterations}")
            print(f"Search space: Kp=[{b.Kp_min}, {b.Kp_max}], "
                  f"Ki=[{b.Ki_min}, {b.Ki_max}], "
                  f"Kd=[{b.Kd_min}, {b.Kd_max}]")
            print(f"Evaluation: {self.evaluator.backend}, "
                  f"{self.evaluator.n_workers} workers, {self.evaluator.n_batches} batches")
            print("-" * 60)

        self.initialize()

        try:
            for _ in range(cfg.max_iterations):
                self.step(observers)

                if cfg.verbose and (self.iteration % 10 == 0 or self.iteration == cfg.max_iterations):
                    Kp, Ki, Kd = self.swarm.global_best_position
                    print(f"Iter {self.iteration:4d} | Best cost: {self.swarm.global_best_value:.6g} | "
                          f"Kp={Kp:.4f}, Ki={Ki:.4f}, Kd={Kd:.4f} | "
                          f"Feasible: {self.history['n_feasible'][-1]:3d}")
        finally:
            self.evaluator.shutdown()

        if cfg.verbose:
            print("-" * 60)
            print(f"Optimization complete! Best cost: {self.swarm.global_best_value:.6g}")

        return OptimizationResult(
            best_position=self.swarm.global_best_position.copy(),
            best_value=self.swarm.global_best_value,
            iterations=self.iteration,
            history=self.history
        )
