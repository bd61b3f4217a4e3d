"""
Polyline sampling of a traced ray.

The sampler records the source point, then a handful of points per
segment: ``arc_segments`` points at equal increments of the arc angle
swept about the circle's center for circular segments, and only the end
point for straight and vertical segments. Once ``max_points`` samples are
stored further samples are dropped without notice.
"""

from __future__ import annotations

import numpy as np
from typing import Optional

from svp_raytrace.raytracing.state import RayPath, SegmentStep


class PathSampler:
    """Bounded accumulator of (x, z, t) samples along one ray.

    Parameters
    ----------
    max_points : int
        Capacity. 0 disables sampling.
    arc_segments : int
        Samples per circular segment.
    sign_x : int
        Horizontal sign applied to recorded x values (+1 or -1).
    """

    def __init__(self, max_points: int, arc_segments: int = 5, sign_x: int = 1) -> None:
        if max_points < 0:
            raise ValueError(f"max_points must be non-negative, got {max_points}")
        self.max_points = int(max_points)
        self.arc_segments = int(arc_segments)
        self.sign_x = sign_x
        self._x = np.zeros(self.max_points)
        self._z = np.zeros(self.max_points)
        self._t = np.zeros(self.max_points)
        self._n = 0

    @property
    def enabled(self) -> bool:
        return self.max_points > 0

    @property
    def full(self) -> bool:
        return self._n >= self.max_points

    def __len__(self) -> int:
        return self._n

    def start(self, x: float, z: float, t: float = 0.0) -> None:
        """Record the source point."""
        self._append(x, z, t)

    def add(self, step: SegmentStep, t_start: float) -> None:
        """Record samples for a solved segment that began at time t_start."""
        if self.full:
            return
        if step.arc is None:
            self._append(step.x, step.z, t_start + step.dt)
            return

        arc = step.arc
        s_lo, s_hi = sorted((arc.s_start, arc.s_end))
        phi_start = arc.arc_angle(arc.s_start)
        phi_end = arc.arc_angle(arc.s_end)
        for k in range(1, self.arc_segments):
            phi = phi_start + (phi_end - phi_start) * k / self.arc_segments
            s = min(max(arc.coordinate_of_angle(phi), s_lo), s_hi)
            x, z, dt = arc.point_at(s)
            self._append(x, z, t_start + dt)
        # last sample is the solver's own end point
        self._append(step.x, step.z, t_start + step.dt)

    def to_path(self) -> Optional[RayPath]:
        """Copy of the stored samples, or None when sampling is disabled."""
        if not self.enabled:
            return None
        n = self._n
        return RayPath(x=self._x[:n].copy(), z=self._z[:n].copy(), t=self._t[:n].copy())

    def _append(self, x: float, z: float, t: float) -> None:
        if self._n >= self.max_points:
            return
        self._x[self._n] = self.sign_x * x
        self._z[self._n] = z
        self._t[self._n] = t
        self._n += 1
