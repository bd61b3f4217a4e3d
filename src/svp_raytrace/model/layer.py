"""
Single layer of a depth-layered sound-speed model.

Within a layer the sound speed varies linearly with depth,

    v(z) = v_top + g * (z - z_top)

so a ray with ray parameter p > 0 follows a circular arc of radius
|1 / (p g)| whose center lies at the depth where the linear extrapolation
of v(z) reaches zero (``center_depth``). Layers whose gradient is below
the tolerance are treated as homogeneous and traced as straight lines.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LayerKind(Enum):
    """Propagation regime of a layer."""

    HOMOGENEOUS = 0
    GRADIENT = 1


@dataclass(frozen=True)
class Layer:
    """Constant-gradient layer between two profile nodes.

    Parameters
    ----------
    index : int
        Position of the layer in its model (0 = shallowest).
    top_depth, bottom_depth : float
        Layer limits in meters, positive down.
    top_velocity, bottom_velocity : float
        Sound speed at the limits in m/s.
    gradient : float
        dv/dz in 1/s.
    kind : LayerKind
        HOMOGENEOUS or GRADIENT.
    center_depth : float
        Depth at which v(z) extrapolates to zero. Only meaningful for
        GRADIENT layers (0.0 otherwise).
    """

    index: int
    top_depth: float
    bottom_depth: float
    top_velocity: float
    bottom_velocity: float
    gradient: float
    kind: LayerKind
    center_depth: float

    @classmethod
    def from_nodes(
        cls,
        index: int,
        top_depth: float,
        bottom_depth: float,
        top_velocity: float,
        bottom_velocity: float,
        gradient_tolerance: float,
    ) -> "Layer":
        """Classify the layer and precompute its geometric constants."""
        gradient = (bottom_velocity - top_velocity) / (bottom_depth - top_depth)
        if abs(gradient) > gradient_tolerance:
            kind = LayerKind.GRADIENT
            center_depth = top_depth - top_velocity / gradient
        else:
            kind = LayerKind.HOMOGENEOUS
            center_depth = 0.0
        return cls(
            index=index,
            top_depth=float(top_depth),
            bottom_depth=float(bottom_depth),
            top_velocity=float(top_velocity),
            bottom_velocity=float(bottom_velocity),
            gradient=float(gradient),
            kind=kind,
            center_depth=float(center_depth),
        )

    @property
    def thickness(self) -> float:
        return self.bottom_depth - self.top_depth

    @property
    def is_gradient(self) -> bool:
        return self.kind is LayerKind.GRADIENT

    def contains(self, depth: float) -> bool:
        """Whether depth lies in the closed interval [top, bottom]."""
        return self.top_depth <= depth <= self.bottom_depth

    def velocity_at(self, depth: float) -> float:
        """Sound speed at depth, following the layer gradient."""
        return self.top_velocity + self.gradient * (depth - self.top_depth)

    def depth_of_velocity(self, velocity: float) -> float:
        """Inverse of :meth:`velocity_at` (GRADIENT layers only)."""
        return self.top_depth + (velocity - self.top_velocity) / self.gradient

    def radius(self, p: float) -> float:
        """Radius of the circular ray path for ray parameter p."""
        return abs(1.0 / (p * self.gradient))

    def turning_depth(self, p: float) -> Optional[float]:
        """Depth at which a ray with parameter p turns horizontal.

        The ray is horizontal where v(z) = 1/p, i.e. at the lowest point
        of its arc for a positive gradient and at the highest point for a
        negative one.

        Returns
        -------
        float or None
            Turning depth if it lies inside this layer, else None.
        """
        if not self.is_gradient or p <= 0.0:
            return None
        z_turn = self.center_depth + np.sign(self.gradient) * self.radius(p)
        if self.contains(z_turn):
            return float(z_turn)
        return None

    def __repr__(self) -> str:
        return (
            f"Layer({self.index}: {self.top_depth:.2f}-{self.bottom_depth:.2f} m, "
            f"{self.top_velocity:.2f}-{self.bottom_velocity:.2f} m/s, "
            f"{self.kind.name.lower()}, g={self.gradient:.6f})"
        )
