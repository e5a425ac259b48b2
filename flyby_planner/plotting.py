"""
Matplotlib figures of search results.

Functions build and return a Figure without showing it; pass ``save_path`` to
write it to disk. Call ``matplotlib.use("Agg")`` first when no display is
available.
"""
from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np

from flyby_planner.astrodynamics import to_reference_frame
from flyby_planner.bodies import BodyCatalog, kerbol_system
from flyby_planner.constants import DAY
from flyby_planner.orbital_elements import OrbitalElements
from flyby_planner.trajectory.steps import TrajectoryStep

TWO_PI = 2.0 * math.pi


def conic_positions(elements: OrbitalElements, nu: np.ndarray) -> np.ndarray:
    """
    Positions (n, 3) on a conic at true anomalies ``nu``, in the z-up frame.
    """
    nu = np.asarray(nu, dtype=float)
    p = elements.semi_latus_rectum
    r = p / (1.0 + elements.e * np.cos(nu))
    u = nu + elements.omega
    cos_O, sin_O = math.cos(elements.Omega), math.sin(elements.Omega)
    cos_i, sin_i = math.cos(elements.i), math.sin(elements.i)
    x = r * (np.cos(u) * cos_O - np.sin(u) * cos_i * sin_O)
    y = r * (np.cos(u) * sin_O + np.sin(u) * cos_i * cos_O)
    z = r * np.sin(u) * sin_i
    return np.column_stack([x, y, z])


def sample_step(step: TrajectoryStep, points: int = 100) -> np.ndarray:
    """Positions (points, 3) along a step, from its start to its end, z-up frame."""
    sweep = (step.end_angle - step.begin_angle) % TWO_PI
    nu = step.begin_angle + np.linspace(0.0, sweep, points)
    return conic_positions(step.elements, nu)


def plot_evolution(history: Sequence[float], save_path: str | Path | None = None, figsize: tuple = (8, 5)):
    """
    Best delta-V after each generation.

    Args:
        history: Best total delta-V (m/s) per generation
        save_path: Optional path to save the figure
        figsize: Figure size (width, height) in inches

    Returns:
        matplotlib figure and axis objects
    """
    import matplotlib.pyplot as plt

    values = np.asarray(history, dtype=float)
    generations = np.arange(1, len(values) + 1)

    fig, ax = plt.subplots(figsize=figsize)
    finite = np.isfinite(values)
    ax.plot(generations[finite], values[finite], 'b-', linewidth=2)
    ax.set_xlabel('Generation', fontsize=12)
    ax.set_ylabel('Best total delta-V (m/s)', fontsize=12)
    ax.set_title('Differential evolution convergence', fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if save_path is not None:
        fig.savefig(save_path, dpi=150)
    return fig, ax


def plot_trajectory(steps: Sequence[TrajectoryStep], catalog: BodyCatalog = kerbol_system,
                    body_ids: Optional[Iterable[int]] = None, save_path: str | Path | None = None,
                    figsize: tuple = (10, 8)):
    """
    3-D view of the trajectory arcs, burns and the orbits of the visited bodies.

    Args:
        steps: Decoded trajectory
        catalog: Catalog holding the attractor and the visited bodies
        body_ids: Bodies whose orbits are drawn; defaults to the attractor's
            orbiters met by the trajectory's burns
        save_path: Optional path to save the figure
        figsize: Figure size (width, height) in inches

    Returns:
        matplotlib figure and axis objects
    """
    import matplotlib.pyplot as plt

    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(111, projection='3d')

    if not steps:
        return fig, ax

    attractor = catalog.body(steps[0].attractor_id)
    ax.scatter(0.0, 0.0, 0.0, color='gold', s=80, label=attractor.name)

    if body_ids is None:
        body_ids = set()
        for step in steps:
            for maneuvre in (step.maneuvre, step.arrival_maneuvre):
                if maneuvre is not None and maneuvre.context.target_id is not None:
                    body_ids.update((maneuvre.context.origin_id, maneuvre.context.target_id))
    body_ids = sorted(set(body_ids))

    # Body orbits over one period
    for body_id in body_ids:
        body = catalog.body(body_id)
        epochs = np.linspace(0.0, catalog.period(body_id), 200)
        orbit = np.array([to_reference_frame(r) for r in catalog.states_at(body_id, epochs).r])
        ax.plot(orbit[:, 0], orbit[:, 1], orbit[:, 2], '--', alpha=0.5, linewidth=1, label=f'{body.name} orbit')

    # Trajectory arcs
    for i, step in enumerate(steps):
        arc = sample_step(step)
        ax.plot(arc[:, 0], arc[:, 1], arc[:, 2], 'b-', linewidth=2, alpha=0.8,
                label='Trajectory' if i == 0 else None)
        for maneuvre in (step.maneuvre, step.arrival_maneuvre):
            if maneuvre is None:
                continue
            position = to_reference_frame(maneuvre.position)
            ax.scatter(*position, color='red', marker='*', s=80)
            ax.text(*position, f'{maneuvre.context.kind}\n{maneuvre.magnitude:.0f} m/s', fontsize=8, alpha=0.7)

    departure = steps[0].date_of_start
    duration = steps[-1].date_of_end - departure
    ax.set_xlabel('x (m)')
    ax.set_ylabel('y (m)')
    ax.set_zlabel('z (m)')
    ax.set_title(f'Trajectory about {attractor.name}: {duration / DAY:.1f} days', fontsize=14, fontweight='bold')
    handles, labels = ax.get_legend_handles_labels()
    unique = dict(zip(labels, handles))
    ax.legend(unique.values(), unique.keys(), loc='best', fontsize=9)
    fig.tight_layout()

    if save_path is not None:
        fig.savefig(save_path, dpi=150)
    return fig, ax
