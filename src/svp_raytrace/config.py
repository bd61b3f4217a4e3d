"""
Configuration module for layered sound-speed ray tracing.

Defines dataclasses for numerical tolerances and for sound-speed
profiles used throughout the ray-tracing pipeline, plus a few predefined
reference profiles.

All units are SI (meters, seconds, m/s) and angles are in degrees
unless noted otherwise.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class TraceConfig:
    """Numerical settings shared by the model builder and the tracer.

    Parameters
    ----------
    gradient_tolerance : float
        Layers with ``|gradient|`` at or below this value (1/s) are treated
        as homogeneous and traced as straight lines.
    arc_segments : int
        Number of equal arc-angle increments sampled per circular segment
        when a ray path is requested.
    iteration_factor, iteration_offset : int
        The trace loop is capped at
        ``iteration_factor * number_layer + iteration_offset`` segments.
        The default allows a ray to cross the model down and back up
        about twice, which covers swath-sonar travel times. A ray trapped
        in a sound channel keeps turning for as long as its budget lasts
        and stops with ``ITERATION_LIMIT_EXCEEDED``; raise
        ``iteration_factor`` for long-range budgets.
    vertical_cos_tolerance : float
        A straight segment whose ``|cos(theta)|`` is below this value is
        considered horizontal and never reaches a layer boundary.
    """

    gradient_tolerance: float = 1e-5
    arc_segments: int = 5
    iteration_factor: int = 4
    iteration_offset: int = 4
    vertical_cos_tolerance: float = 1e-12

    def __post_init__(self) -> None:
        if self.gradient_tolerance < 0.0:
            raise ValueError("gradient_tolerance must be non-negative")
        if self.arc_segments < 1:
            raise ValueError("arc_segments must be at least 1")
        if self.iteration_factor < 1 or self.iteration_offset < 0:
            raise ValueError("iteration cap must be positive")

    def max_iterations(self, number_layer: int) -> int:
        """Defensive cap on the number of layer segments per trace."""
        return self.iteration_factor * number_layer + self.iteration_offset


DEFAULT_CONFIG = TraceConfig()


@dataclass
class SoundSpeedProfile:
    """Sound-speed profile given as depth/velocity nodes.

    Parameters
    ----------
    name : str
        Human-readable profile name.
    depths : np.ndarray
        Node depths in meters, positive down, strictly increasing.
    velocities : np.ndarray
        Sound speed at each node in m/s.
    description : str, optional
        Free-form note about where the profile comes from.
    """

    name: str
    depths: np.ndarray
    velocities: np.ndarray
    description: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        self.depths = np.asarray(self.depths, dtype=np.float64)
        self.velocities = np.asarray(self.velocities, dtype=np.float64)

    @property
    def n_nodes(self) -> int:
        return int(self.depths.size)

    @property
    def surface_velocity(self) -> float:
        """Sound speed at the shallowest node."""
        return float(self.velocities[0])

    @property
    def max_depth(self) -> float:
        return float(self.depths[-1])

    def build(self, config: Optional[TraceConfig] = None):
        """Build a :class:`~svp_raytrace.model.VelocityModel` from this profile."""
        from svp_raytrace.model.velocity_model import VelocityModel

        return VelocityModel(self.depths, self.velocities, config=config)


# — Pre-defined profiles ————————————————————————————————————————————————————
ISOVELOCITY = SoundSpeedProfile(
    name="Isovelocity (1500 m/s)",
    depths=[0.0, 5000.0],
    velocities=[1500.0, 1500.0],
    description="Single homogeneous layer; rays are straight lines.",
)

SUMMER_THERMOCLINE = SoundSpeedProfile(
    name="Summer thermocline (shelf)",
    depths=[0.0, 10.0, 25.0, 50.0, 100.0, 200.0],
    velocities=[1520.0, 1519.5, 1500.0, 1490.0, 1488.0, 1489.5],
    description="Warm mixed layer over a sharp thermocline, typical of a "
                "continental shelf in late summer.",
)

DEEP_OCEAN = SoundSpeedProfile(
    name="Deep ocean (SOFAR channel)",
    depths=[0.0, 200.0, 500.0, 1000.0, 1300.0, 2000.0, 3000.0, 5000.0],
    velocities=[1515.0, 1507.0, 1492.0, 1483.0, 1482.0, 1486.0, 1501.0, 1535.0],
    description="Coarse mid-latitude profile with the sound-channel axis "
                "near 1300 m.",
)
