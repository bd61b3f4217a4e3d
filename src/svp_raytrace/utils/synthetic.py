"""
Synthetic sound-speed profiles, beam fans and a numerical reference ray.

Used to validate the closed-form tracer without real CTD casts or sonar
data: the reference ray integrates Snell's law on a fine depth grid and
shares no code with the analytic layer solvers.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from typing import Optional

from svp_raytrace.config import SoundSpeedProfile


@dataclass
class ReferenceRay:
    """Result of :func:`integrate_reference_ray`.

    Attributes
    ----------
    x : float
        Signed horizontal range reached.
    z : float
        Depth reached.
    t : float
        Travel time used.
    exited : bool
        True if the ray reached the deepest node before the budget ran
        out (``t`` is then the time to the bottom).
    """

    x: float
    z: float
    t: float
    exited: bool


def munk_profile(
    depths: Optional[np.ndarray] = None,
    axis_depth: float = 1300.0,
    axis_velocity: float = 1500.0,
    epsilon: float = 0.00737,
    scale_depth: float = 1300.0,
) -> SoundSpeedProfile:
    """Canonical Munk deep-water profile.

    c(z) = c_axis * (1 + eps * (eta - 1 + exp(-eta))),
    eta = 2 (z - z_axis) / B

    Parameters
    ----------
    depths : np.ndarray, optional
        Node depths. Default: 0 to 5000 m every 100 m.
    axis_depth : float
        Depth of the sound-channel axis (m).
    axis_velocity : float
        Sound speed on the axis (m/s).
    epsilon : float
        Perturbation coefficient.
    scale_depth : float
        Thermocline scale depth B (m).

    Returns
    -------
    SoundSpeedProfile
    """
    if depths is None:
        depths = np.arange(0.0, 5001.0, 100.0)
    depths = np.asarray(depths, dtype=np.float64)
    eta = 2.0 * (depths - axis_depth) / scale_depth
    velocities = axis_velocity * (1.0 + epsilon * (eta - 1.0 + np.exp(-eta)))
    return SoundSpeedProfile(
        name="Munk",
        depths=depths,
        velocities=velocities,
        description=f"Munk profile, axis at {axis_depth:.0f} m",
    )


def linear_profile(
    surface_velocity: float = 1500.0,
    gradient: float = 0.017,
    max_depth: float = 1000.0,
    n_nodes: int = 2,
) -> SoundSpeedProfile:
    """Constant-gradient profile sampled at n_nodes equally spaced depths."""
    depths = np.linspace(0.0, max_depth, n_nodes)
    return SoundSpeedProfile(
        name=f"Linear (g={gradient:g} 1/s)",
        depths=depths,
        velocities=surface_velocity + gradient * depths,
    )


def thermocline_profile(
    surface_velocity: float = 1520.0,
    mixed_layer_depth: float = 20.0,
    thermocline_depth: float = 80.0,
    velocity_drop: float = 30.0,
    deep_gradient: float = 0.017,
    max_depth: float = 500.0,
) -> SoundSpeedProfile:
    """Mixed layer, linear thermocline and a pressure-driven deep gradient.

    Parameters
    ----------
    surface_velocity : float
        Sound speed at the surface and throughout the mixed layer (m/s).
    mixed_layer_depth : float
        Bottom of the isovelocity mixed layer (m).
    thermocline_depth : float
        Bottom of the thermocline (m).
    velocity_drop : float
        Speed decrease across the thermocline (m/s).
    deep_gradient : float
        Gradient below the thermocline (1/s).
    max_depth : float
        Deepest node (m).

    Returns
    -------
    SoundSpeedProfile
    """
    if not 0.0 < mixed_layer_depth < thermocline_depth < max_depth:
        raise ValueError("expected 0 < mixed_layer_depth < thermocline_depth < max_depth")
    v_deep = surface_velocity - velocity_drop
    depths = np.array([0.0, mixed_layer_depth, thermocline_depth, max_depth])
    velocities = np.array([
        surface_velocity,
        surface_velocity,
        v_deep,
        v_deep + deep_gradient * (max_depth - thermocline_depth),
    ])
    return SoundSpeedProfile(
        name="Thermocline",
        depths=depths,
        velocities=velocities,
        description=f"Mixed layer to {mixed_layer_depth:.0f} m, "
                    f"thermocline to {thermocline_depth:.0f} m",
    )


def beam_fan(n_beams: int = 101, swath_width: float = 120.0) -> np.ndarray:
    """Symmetric signed beam angles in degrees, port negative.

    Parameters
    ----------
    n_beams : int
        Number of beams.
    swath_width : float
        Full angular swath in degrees (< 180).

    Returns
    -------
    np.ndarray, shape (n_beams,)
    """
    if not 0.0 < swath_width < 180.0:
        raise ValueError("swath_width must lie in (0, 180) degrees")
    half = 0.5 * swath_width
    return np.linspace(-half, half, n_beams)


def integrate_reference_ray(
    depths: np.ndarray,
    velocities: np.ndarray,
    source_depth: float,
    angle: float,
    time_budget: float,
    n_steps: int = 20000,
) -> ReferenceRay:
    """Integrate a descending, non-turning ray numerically.

    Marches in depth with the midpoint rule,

        dx/dz = tan(theta),   dt/dz = 1 / (v cos(theta)),
        sin(theta) = p v,     p = sin(theta0) / v(source),

    on a grid of about n_steps intervals that also contains every profile
    node, and interpolates linearly inside the step where the budget runs
    out.

    Parameters
    ----------
    depths, velocities : np.ndarray
        Profile nodes (velocities linear between nodes).
    source_depth : float
        Source depth in meters.
    angle : float
        Signed launch angle from vertical in degrees, |angle| < 90.
    time_budget : float
        Travel time in seconds.
    n_steps : int
        Approximate number of depth steps between source and bottom.

    Returns
    -------
    ReferenceRay

    Raises
    ------
    ValueError
        If the ray is not descending or would turn inside the profile.
    """
    depths = np.asarray(depths, dtype=np.float64)
    velocities = np.asarray(velocities, dtype=np.float64)
    if not abs(angle) < 90.0:
        raise ValueError("reference integration only handles descending rays")

    v_source = np.interp(source_depth, depths, velocities)
    p = np.sin(np.radians(abs(angle))) / v_source
    below = depths > source_depth
    if p * np.max(np.append(velocities[below], v_source)) >= 1.0:
        raise ValueError("ray turns inside the profile")

    grid = np.linspace(source_depth, depths[-1], n_steps + 1)
    grid = np.unique(np.concatenate([grid, depths[below]]))
    dz = np.diff(grid)
    v_mid = np.interp(0.5 * (grid[:-1] + grid[1:]), depths, velocities)
    sin_t = p * v_mid
    cos_t = np.sqrt(1.0 - sin_t ** 2)
    dx = dz * sin_t / cos_t
    dt = dz / (v_mid * cos_t)

    t_cum = np.concatenate([[0.0], np.cumsum(dt)])
    x_cum = np.concatenate([[0.0], np.cumsum(dx)])
    sign = -1.0 if angle < 0.0 else 1.0

    if t_cum[-1] <= time_budget:
        return ReferenceRay(x=sign * x_cum[-1], z=grid[-1], t=t_cum[-1], exited=True)

    k = int(np.searchsorted(t_cum, time_budget, side="right")) - 1
    frac = (time_budget - t_cum[k]) / dt[k]
    return ReferenceRay(
        x=sign * (x_cum[k] + frac * dx[k]),
        z=grid[k] + frac * dz[k],
        t=float(time_budget),
        exited=False,
    )
