"""
Visualization Module
====================

Figures for PSO-based PID tuning:
- 3D swarm in (Kp, Ki, Kd) space with the global best
- Swarm animation over the iterations
- Convergence of the global best cost and the coefficient schedule
- Global best gain trajectories
- Step response without and with the tuned PID controller
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from mpl_toolkits.mplot3d import Axes3D  # noqa: F401  (registers the 3d projection)
from typing import List, Optional
from pathlib import Path

from .pso import OptimizationBounds, SwarmSnapshot


# Set professional style
plt.rcParams.update({
    'font.family': 'serif',
    'font.size': 11,
    'axes.labelsize': 12,
    'axes.titlesize': 14,
    'legend.fontsize': 10,
    'xtick.labelsize': 10,
    'ytick.labelsize': 10,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'axes.grid': True,
    'grid.alpha': 0.3,
})


class SwarmVisualizer:
    """Visualization tools for PSO runs."""

    def __init__(self, output_dir: str = "figures"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        # Color scheme
        self.colors = {
            'particle': '#e74c3c',    # Red
            'best': '#2ecc71',        # Green
            'mean': '#3498db',        # Blue
            'inertia': '#9b59b6',     # Purple
            'cognitive': '#f39c12',   # Orange
            'social': '#1abc9c',      # Teal
            'reference': '#95a5a6',   # Gray
        }

    def _setup_gain_axes(self, ax, bounds: OptimizationBounds):
        ax.set_xlim(bounds.Kp_min, bounds.Kp_max)
        ax.set_ylim(bounds.Ki_min, bounds.Ki_max)
        ax.set_zlim(bounds.Kd_min, bounds.Kd_max)
        ax.set_xlabel(r'$K_p$', labelpad=8)
        ax.set_ylabel(r'$K_i$', labelpad=8)
        ax.set_zlabel(r'$K_d$', labelpad=8)
        ax.view_init(elev=25, azim=-60)

    def plot_swarm_3d(
        self,
        snapshot: SwarmSnapshot,
        bounds: OptimizationBounds,
        title: Optional[str] = None,
        save_name: str = "swarm_3d.png"
    ) -> plt.Figure:
        """
        Plot particle positions and the global best in gain space.

        Particles outside the bounds are clipped by the axis limits.
        """
        fig = plt.figure(figsize=(10, 8))
        ax = fig.add_subplot(111, projection='3d')

        positions = snapshot.positions
        ax.scatter(positions[:, 0], positions[:, 1], positions[:, 2],
                   c=self.colors['particle'], s=20, alpha=0.8, label='Particles')

        if snapshot.global_best_position is not None:
            ax.scatter(*snapshot.global_best_position, c=self.colors['best'],
                       s=120, marker='*', edgecolors='black', linewidth=1,
                       label='Global best', zorder=5)

        self._setup_gain_axes(ax, bounds)
        ax.set_title(title or f"Swarm at iteration {snapshot.iteration}",
                     fontweight='bold')
        ax.legend(loc='upper left')

        fig.savefig(self.output_dir / save_name, dpi=300, bbox_inches='tight',
                    facecolor='white', edgecolor='none')

        return fig

    def animate_swarm(
        self,
        snapshots: List[SwarmSnapshot],
        bounds: OptimizationBounds,
        save_name: str = "swarm_animation.gif",
        fps: int = 10,
        dpi: int = 80
    ) -> FuncAnimation:
        """Animate the swarm over the recorded iterations and save as GIF."""
        if not snapshots:
            raise ValueError("No snapshots to animate")

        fig = plt.figure(figsize=(6, 5))
        ax = fig.add_subplot(111, projection='3d')
        self._setup_gain_axes(ax, bounds)

        first = snapshots[0]
        particles_line, = ax.plot(first.positions[:, 0], first.positions[:, 1],
                                  first.positions[:, 2], '.',
                                  color=self.colors['particle'], markersize=8)
        best_line, = ax.plot([], [], [], '.', color=self.colors['best'], markersize=15)
        title = ax.set_title('')

        def update(frame: int):
            snap = snapshots[frame]
            particles_line.set_data_3d(snap.positions[:, 0], snap.positions[:, 1],
                                       snap.positions[:, 2])
            if snap.global_best_position is not None:
                best = snap.global_best_position
                best_line.set_data_3d([best[0]], [best[1]], [best[2]])
            title.set_text(f"Iteration {snap.iteration} | Best cost {snap.global_best_value:.4g}")
            return particles_line, best_line, title

        anim = FuncAnimation(fig, update, frames=len(snapshots),
                             interval=1000 / fps, blit=False)
        anim.save(str(self.output_dir / save_name), writer=PillowWriter(fps=fps), dpi=dpi)

        return anim

    def plot_convergence(
        self,
        history: dict,
        save_name: str = "convergence.png"
    ) -> plt.Figure:
        """Plot global best cost and the coefficient schedule."""
        fig, axes = plt.subplots(1, 2, figsize=(12, 5))

        iterations = history['iterations']

        # Cost
        ax = axes[0]
        ax.plot(iterations, history['global_best_value'],
                color=self.colors['best'], linewidth=2, label='Global best')
        ax.plot(iterations, history['mean_value'],
                color=self.colors['mean'], linewidth=1, alpha=0.7,
                label='Mean (feasible)')
        ax.set_yscale('log')
        ax.set_xlabel('Iteration')
        ax.set_ylabel('Cost')
        ax.set_title('Cost Convergence')
        ax.legend()

        # Coefficients
        ax = axes[1]
        ax.plot(iterations, history['inertia_weight'],
                color=self.colors['inertia'], linewidth=2, label='Inertia')
        ax.plot(iterations, history['cognitive_weight'],
                color=self.colors['cognitive'], linewidth=2, label='Cognitive')
        ax.plot(iterations, history['social_weight'],
                color=self.colors['social'], linewidth=2, label='Social')
        ax.set_yscale('log')
        ax.set_xlabel('Iteration')
        ax.set_ylabel('Weight')
        ax.set_title('Coefficient Schedule')
        ax.legend()

        plt.tight_layout()
        fig.savefig(self.output_dir / save_name, dpi=300, bbox_inches='tight')

        return fig

    def plot_gain_trajectories(
        self,
        history: dict,
        bounds: OptimizationBounds,
        save_name: str = "gain_trajectories.png"
    ) -> plt.Figure:
        """Global best Kp, Ki, Kd against iteration."""
        fig, axes = plt.subplots(1, 3, figsize=(15, 4))

        iterations = history['iterations']
        gains = np.array(history['global_best_position'])
        labels = [r'$K_p$', r'$K_i$', r'$K_d$']

        for i, (ax, label) in enumerate(zip(axes, labels)):
            ax.plot(iterations, gains[:, i], color=self.colors['best'], linewidth=2)
            ax.set_ylim(bounds.lower[i], bounds.upper[i])
            ax.set_xlabel('Iteration')
            ax.set_ylabel(label)
            ax.set_title(f'Global best {label}')

        plt.tight_layout()
        fig.savefig(self.output_dir / save_name, dpi=300, bbox_inches='tight')

        return fig

    def plot_step_comparison(
        self,
        uncompensated: dict,
        compensated: dict,
        setpoint: float = 1.0,
        save_name: str = "step_comparison.png"
    ) -> plt.Figure:
        """
        Side-by-side closed-loop step responses.

        Args:
            uncompensated: simulate_step_response result for the bare plant
            compensated: simulate_step_response result with the tuned PID
        """
        fig, axes = plt.subplots(1, 2, figsize=(14, 5), sharey=True)

        for ax, result, title in ((axes[0], uncompensated, 'Without PID'),
                                  (axes[1], compensated, 'With PID')):
            ax.plot(result['time'], result['output'],
                    color=self.colors['mean'], linewidth=2, label='Output')
            ax.axhline(y=setpoint, color='black', linestyle='--',
                       linewidth=1.5, label='Setpoint')
            ax.set_xlabel('Time (s)')
            ax.set_title(title)
            ax.set_xlim(left=0)
            ax.legend(loc='lower right')

        axes[0].set_ylabel('Amplitude')

        plt.tight_layout()
        fig.savefig(self.output_dir / save_name, dpi=300, bbox_inches='tight')

        return fig
