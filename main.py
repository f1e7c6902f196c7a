"""
PID Tuning with Particle Swarm Optimization
===========================================

Main pipeline for tuning a PID controller on the plant

    G(s) = (s + 1) / (s³ + 8s² + 3s + 2)

This script:
1. Builds the plant and the step-response cost function
2. Runs PSO with a decaying inertia and growing social weight
3. Reports the best gains and step-response characteristics
4. Generates the swarm, convergence and step-response figures
"""

import json
import time
import matplotlib.pyplot as plt
from pathlib import Path

from pso_pid.plant import LinearPlant, PlantParams, simulate_step_response
from pso_pid.objectives import StepResponseObjective, ObjectiveWeights, get_performance_summary
from pso_pid.pso import PSOConfig, OptimizationBounds, PSOOptimizer, SnapshotRecorder
from pso_pid.visualization import SwarmVisualizer


def print_step_info(name: str, info: dict):
    print(f"\n{name}:")
    print(f"  Rise time: {info['RiseTime']:.4f} s")
    print(f"  Settling time: {info['SettlingTime']:.4f} s")
    print(f"  Overshoot: {info['Overshoot']:.2f}%")
    print(f"  Peak: {info['Peak']:.4f}")
    print(f"  Steady-state value: {info['SteadyStateValue']:.4f}")


def main():
    """Main optimization and analysis pipeline."""
    print("=" * 70)
    print("  PID Tuning with Particle Swarm Optimization")
    print("=" * 70)
    print()

    # Plant: G(s) = (s + 1) / (s^3 + 8s^2 + 3s + 2)
    PLANT_NUM = (1.0, 1.0)
    PLANT_DEN = (1.0, 8.0, 3.0, 2.0)
    SIMULATION_DURATION = 20.0  # seconds
    N_POINTS = 2001

    # PSO parameters
    MAX_ITERATIONS = 200
    POPULATION = 30
    INERTIA_WEIGHT = 100.0
    INERTIA_DAMPING = 0.99
    COGNITIVE_WEIGHT = 5.0
    COGNITIVE_DECREASE = 1.0
    SOCIAL_WEIGHT = 12.0
    SOCIAL_INCREASE = 1.02
    MAX_VELOCITY = 2.0
    SEED = 42

    # Output directory
    output_dir = Path("figures")
    output_dir.mkdir(exist_ok=True)

    plant = LinearPlant(PlantParams(numerator=PLANT_NUM, denominator=PLANT_DEN))
    print(f"Plant: {plant.transfer_function}")

    objective_fn = StepResponseObjective(
        plant=plant,
        weights=ObjectiveWeights(),
        duration=SIMULATION_DURATION,
        n_points=N_POINTS
    )

    # Search bounds
    bounds = OptimizationBounds(
        Kp_min=0.0, Kp_max=500.0,
        Ki_min=0.0, Ki_max=100.0,
        Kd_min=0.0, Kd_max=100.0
    )

    config = PSOConfig(
        population_size=POPULATION,
        max_iterations=MAX_ITERATIONS,
        inertia_weight=INERTIA_WEIGHT,
        inertia_damping=INERTIA_DAMPING,
        cognitive_weight=COGNITIVE_WEIGHT,
        cognitive_decrease=COGNITIVE_DECREASE,
        social_weight=SOCIAL_WEIGHT,
        social_increase=SOCIAL_INCREASE,
        max_velocity=MAX_VELOCITY,
        bounds=bounds,
        seed=SEED,
        backend='process',
        verbose=True
    )

    optimizer = PSOOptimizer(objective_fn, config)
    recorder = SnapshotRecorder()

    print("\nStarting PSO Optimization...")
    start_time = time.time()

    result = optimizer.run(observers=[recorder])

    elapsed = time.time() - start_time
    print(f"\nOptimization completed in {elapsed:.1f} seconds")

    gains = result.best_gains

    print("\n" + "=" * 70)
    print("  OPTIMIZATION RESULTS")
    print("=" * 70)
    print("\nBest found PID controller:")
    print(f"  Kp = {gains.Kp:.4f}")
    print(f"  Ki = {gains.Ki:.4f}")
    print(f"  Kd = {gains.Kd:.4f}")
    print(f"  Cost = {result.best_value:.6g}")

    # Step-response characteristics
    print("\n" + "-" * 70)
    print_step_info("Without PID", plant.step_info(None, SIMULATION_DURATION))
    print_step_info("With PID", plant.step_info(gains, SIMULATION_DURATION))

    uncompensated = simulate_step_response(plant, None, SIMULATION_DURATION, N_POINTS)
    compensated = simulate_step_response(plant, gains, SIMULATION_DURATION, N_POINTS)

    # Generate all visualizations
    print("\n" + "-" * 70)
    print("Generating figures...")

    viz = SwarmVisualizer(output_dir=str(output_dir))

    print("  - Final swarm...")
    viz.plot_swarm_3d(recorder.snapshots[-1], bounds, save_name="swarm_final.png")

    print("  - Swarm animation...")
    viz.animate_swarm(recorder.snapshots[::2], bounds, save_name="swarm_animation.gif")

    print("  - Convergence plot...")
    viz.plot_convergence(result.history, save_name="convergence.png")

    print("  - Gain trajectories...")
    viz.plot_gain_trajectories(result.history, bounds, save_name="gain_trajectories.png")

    print("  - Step response comparison...")
    viz.plot_step_comparison(uncompensated, compensated, save_name="step_comparison.png")

    plt.close('all')

    # Save results to JSON
    results_data = {
        'configuration': {
            'plant': {'numerator': list(PLANT_NUM), 'denominator': list(PLANT_DEN)},
            'population_size': POPULATION,
            'max_iterations': MAX_ITERATIONS,
            'inertia_weight': INERTIA_WEIGHT,
            'inertia_damping': INERTIA_DAMPING,
            'cognitive_weight': COGNITIVE_WEIGHT,
            'cognitive_decrease': COGNITIVE_DECREASE,
            'social_weight': SOCIAL_WEIGHT,
            'social_increase': SOCIAL_INCREASE,
            'max_velocity': MAX_VELOCITY,
            'seed': SEED
        },
        'best_gains': gains.to_dict(),
        'best_cost': float(result.best_value),
        'performance': {
            'without_pid': get_performance_summary(uncompensated),
            'with_pid': get_performance_summary(compensated)
        },
        'optimization_time_seconds': elapsed
    }

    with open(output_dir / 'optimization_results.json', 'w') as f:
        json.dump(results_data, f, indent=2)

    print("\n" + "=" * 70)
    print(f"  ALL FIGURES SAVED TO: ./{output_dir}/")
    print("=" * 70)
    for f in sorted(output_dir.glob("*.png")) + sorted(output_dir.glob("*.gif")):
        print(f"  - {f.name}")
    print("  - optimization_results.json")

    return result


if __name__ == "__main__":
    main()
