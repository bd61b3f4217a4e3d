"""
Closed-form propagation of a ray through a single layer.

Three solvers cover every layer/ray combination:

- ``LinearSegmentSolver``   homogeneous layer, straight line.
- ``VerticalSegmentSolver`` gradient layer, vertical ray (p == 0).
- ``GradientSegmentSolver`` gradient layer, oblique ray: circular arc.

Circular arcs
-------------
In a layer with v(z) = v_top + g (z - z_top) a ray with ray parameter
p > 0 follows a circle of radius R = |1/(p g)| centred at the depth
``center_depth`` where v extrapolates to zero. Along the arc the
quantity

    beta = arccosh(1 / (p v)) = ln(1/(p v) + sqrt(1/(p v)^2 - 1))

is zero at the turning point (v = 1/p, ray horizontal) and grows
linearly with travel time away from it, d(beta)/dt = |g|. Writing the
signed arc coordinate s = -beta on the descending side and s = +beta on
the ascending side, the ray obeys

    s(t) = s0 + g t
    v(s) = 1 / (p cosh s)
    x(s) = x_center + tanh(s) / (p g)
    z(s) = center_depth + 1 / (p g cosh s)

so every event time (turning point, layer boundary) and the position
after a partial segment follow without iteration. Horizontal steps are
evaluated as ``p v0 v1 sinh(s1 - s0) / g``, which equals the difference
of the two ``x_center + ...`` positions but does not lose precision when
R is huge (near-vertical rays).

Which events are possible depends on the vertical direction crossed with
the sign of the gradient, giving the four ``Quadrant`` cases.
"""

from __future__ import annotations

import logging

import numpy as np
from dataclasses import dataclass
from enum import Enum

from svp_raytrace.config import DEFAULT_CONFIG, TraceConfig
from svp_raytrace.model.layer import Layer
from svp_raytrace.raytracing.state import Direction, SegmentStep, TraceState

logger = logging.getLogger(__name__)


class Quadrant(Enum):
    """Geometric case of a circular segment.

    QUAD1
        Descending, gradient > 0. Speed increases ahead of the ray, so it
        may reach its lowest point inside the layer and turn upward.
    QUAD2
        Ascending, gradient > 0. Moving away from the turning point; the
        ray leaves through the top or exhausts its budget.
    QUAD3
        Descending, gradient < 0. Mirror of QUAD2; leaves through the
        bottom or exhausts its budget.
    QUAD4
        Ascending, gradient < 0. Mirror of QUAD1; may reach its highest
        point inside the layer and turn downward.
    """

    QUAD1 = 1
    QUAD2 = 2
    QUAD3 = 3
    QUAD4 = 4

    @classmethod
    def select(cls, direction: Direction, gradient: float) -> "Quadrant":
        if direction is Direction.DOWN:
            return cls.QUAD1 if gradient > 0.0 else cls.QUAD3
        return cls.QUAD2 if gradient > 0.0 else cls.QUAD4

    @property
    def approaches_turning_point(self) -> bool:
        return self in (Quadrant.QUAD1, Quadrant.QUAD4)


@dataclass(frozen=True)
class Arc:
    """Circular ray segment inside one gradient layer.

    Attributes
    ----------
    layer : Layer
        Layer the arc belongs to.
    p : float
        Ray parameter in s/m.
    x_start, s_start, v_start : float
        Unsigned horizontal position, signed arc coordinate and sound
        speed at the start of the segment.
    s_end : float
        Signed arc coordinate at the end of the segment.
    """

    layer: Layer
    p: float
    x_start: float
    s_start: float
    v_start: float
    s_end: float

    @property
    def radius(self) -> float:
        return self.layer.radius(self.p)

    @property
    def center_depth(self) -> float:
        return self.layer.center_depth

    @property
    def center_x(self) -> float:
        """Horizontal coordinate of the circle's center (unsigned frame)."""
        return self.x_start - np.tanh(self.s_start) / (self.p * self.layer.gradient)

    def velocity_at(self, s: float) -> float:
        return 1.0 / (self.p * np.cosh(s))

    def point_at(self, s: float) -> tuple[float, float, float]:
        """Position and elapsed time at arc coordinate s.

        Returns
        -------
        x, z, dt : float
            Unsigned horizontal position, depth, and time since the start
            of the segment.
        """
        g = self.layer.gradient
        v = self.velocity_at(s)
        x = self.x_start + self.p * self.v_start * v * np.sinh(s - self.s_start) / g
        z = self.layer.depth_of_velocity(v)
        return float(x), float(z), float((s - self.s_start) / g)

    def arc_angle(self, s: float) -> float:
        """Angle of the point at s about the circle's center, from vertical."""
        return float(np.arctan(np.sinh(s)))

    def coordinate_of_angle(self, angle: float) -> float:
        """Inverse of :meth:`arc_angle`."""
        return float(np.arcsinh(np.tan(angle)))


def get_beta(p: float, velocity: float) -> float:
    """Arc coordinate magnitude beta = arccosh(1/(p v)).

    The argument is clamped at 1 so that rounding at a turning point
    cannot push it outside the domain.
    """
    return float(np.arccosh(max(1.0, 1.0 / (p * velocity))))


def get_depth(layer: Layer, p: float, beta: float) -> float:
    """Depth on the arc at arc coordinate magnitude beta."""
    return layer.depth_of_velocity(1.0 / (p * np.cosh(beta)))


def time_to_turning_point(layer: Layer, p: float, depth: float) -> float:
    """Travel time from depth to the arc's turning point, ignoring boundaries."""
    return get_beta(p, layer.velocity_at(depth)) / abs(layer.gradient)


def _incidence_angle(beta: float) -> float:
    """Incidence angle from the vertical at arc coordinate magnitude beta."""
    return float(np.arctan2(1.0, np.sinh(beta)))


class LinearSegmentSolver:
    """Straight-line propagation in a homogeneous layer.

    The layer's top velocity is used throughout. A ray whose vertical
    velocity component is (nearly) zero never reaches a boundary and
    only its time budget ends the segment. A ray arriving at the layer
    with ``p * v > 1`` cannot enter it and turns on the boundary.
    """

    def __init__(self, config: TraceConfig = DEFAULT_CONFIG) -> None:
        self.config = config

    def advance(self, layer: Layer, state: TraceState) -> SegmentStep:
        v = layer.top_velocity
        if state.direction is Direction.DOWN:
            entry = layer.top_depth
        else:
            entry = layer.bottom_depth
        if state.p * v > 1.0 and state.z == entry:
            return SegmentStep(
                x=state.x,
                z=entry,
                dt=0.0,
                tt_left=state.tt_left,
                layer_delta=int(state.direction.flipped),
                turned=True,
                direction=state.direction.flipped,
                angle=float(np.pi / 2),
            )

        sin_theta = min(state.p * v, 1.0)
        cos_theta = np.sqrt(1.0 - sin_theta * sin_theta)
        x_vel = v * sin_theta
        z_vel = state.direction * v * cos_theta

        if state.direction is Direction.DOWN:
            boundary = layer.bottom_depth
        else:
            boundary = layer.top_depth

        if cos_theta < self.config.vertical_cos_tolerance:
            dt = np.inf
        else:
            dt = max(0.0, (boundary - state.z) / z_vel)

        angle = float(np.arctan2(sin_theta, cos_theta))
        if dt <= state.tt_left:
            return SegmentStep(
                x=float(state.x + x_vel * dt),
                z=boundary,
                dt=float(dt),
                tt_left=state.tt_left - dt,
                layer_delta=int(state.direction),
                turned=False,
                direction=state.direction,
                angle=angle,
            )
        return SegmentStep(
            x=float(state.x + x_vel * state.tt_left),
            z=float(state.z + z_vel * state.tt_left),
            dt=state.tt_left,
            tt_left=0.0,
            layer_delta=0,
            turned=False,
            direction=state.direction,
            angle=angle,
        )


class VerticalSegmentSolver:
    """Vertical propagation (p == 0) in a gradient layer.

    With dz/dt = +-v and dv/dz = g, the speed evolves as
    v(t) = v0 exp(+-g t), which inverts directly for the depth reached
    after a partial segment.
    """

    def advance(self, layer: Layer, state: TraceState) -> SegmentStep:
        g = layer.gradient
        v_i = layer.velocity_at(state.z)
        if state.direction is Direction.DOWN:
            boundary, v_b = layer.bottom_depth, layer.bottom_velocity
        else:
            boundary, v_b = layer.top_depth, layer.top_velocity

        dt = abs(np.log(v_b / v_i) / g)
        if dt <= state.tt_left:
            return SegmentStep(
                x=state.x,
                z=boundary,
                dt=float(dt),
                tt_left=state.tt_left - dt,
                layer_delta=int(state.direction),
                turned=False,
                direction=state.direction,
                angle=0.0,
            )

        v_f = v_i * np.exp(state.direction * g * state.tt_left)
        return SegmentStep(
            x=state.x,
            z=float(layer.depth_of_velocity(v_f)),
            dt=state.tt_left,
            tt_left=0.0,
            layer_delta=0,
            turned=False,
            direction=state.direction,
            angle=0.0,
        )


class GradientSegmentSolver:
    """Circular-arc propagation in a gradient layer (p > 0).

    Dispatches on :class:`Quadrant`. Each case picks the earliest of
    the possible events (turning point, boundary exit, budget exhausted)
    from closed-form travel times.
    """

    def advance(self, layer: Layer, state: TraceState) -> SegmentStep:
        quadrant = Quadrant.select(state.direction, layer.gradient)
        handler = {
            Quadrant.QUAD1: self._quad1,
            Quadrant.QUAD2: self._quad2,
            Quadrant.QUAD3: self._quad3,
            Quadrant.QUAD4: self._quad4,
        }[quadrant]
        return handler(layer, state)

    # — Quadrant cases ————————————————————————————————————————————————————————

    def _quad1(self, layer: Layer, state: TraceState) -> SegmentStep:
        # descending toward the arc's lowest point; far side is the bottom
        return self._approach(
            layer, state,
            far_depth=layer.bottom_depth, far_velocity=layer.bottom_velocity,
            back_depth=layer.top_depth, back_velocity=layer.top_velocity,
        )

    def _quad2(self, layer: Layer, state: TraceState) -> SegmentStep:
        # ascending away from the lowest point; leaves through the top
        return self._recede(
            layer, state,
            exit_depth=layer.top_depth, exit_velocity=layer.top_velocity,
        )

    def _quad3(self, layer: Layer, state: TraceState) -> SegmentStep:
        # descending away from the highest point; leaves through the bottom
        return self._recede(
            layer, state,
            exit_depth=layer.bottom_depth, exit_velocity=layer.bottom_velocity,
        )

    def _quad4(self, layer: Layer, state: TraceState) -> SegmentStep:
        # ascending toward the arc's highest point; far side is the top
        return self._approach(
            layer, state,
            far_depth=layer.top_depth, far_velocity=layer.top_velocity,
            back_depth=layer.bottom_depth, back_velocity=layer.bottom_velocity,
        )

    # — Shared geometry ———————————————————————————————————————————————————————

    def _approach(
        self,
        layer: Layer,
        state: TraceState,
        far_depth: float,
        far_velocity: float,
        back_depth: float,
        back_velocity: float,
    ) -> SegmentStep:
        """Ray moving toward its turning point (QUAD1, QUAD4)."""
        p = state.p
        rate = abs(layer.gradient)
        v_i = layer.velocity_at(state.z)
        beta_i = get_beta(p, v_i)
        tt_left = state.tt_left

        if p * far_velocity >= 1.0:
            # turning point lies inside the layer
            dt_turn = beta_i / rate
            if dt_turn > tt_left:
                return self._exhaust(layer, state, v_i, beta_i, beta_i - rate * tt_left, False)

            beta_back = get_beta(p, back_velocity)
            dt = dt_turn + beta_back / rate
            if dt <= tt_left:
                return self._exit(
                    layer, state, v_i, beta_i, beta_back,
                    back_depth, back_velocity, dt, True,
                )
            beta_f = max(0.0, rate * tt_left - beta_i)
            return self._exhaust(layer, state, v_i, beta_i, beta_f, True)

        beta_far = get_beta(p, far_velocity)
        dt = max(0.0, (beta_i - beta_far) / rate)
        if dt <= tt_left:
            return self._exit(
                layer, state, v_i, beta_i, beta_far,
                far_depth, far_velocity, dt, False,
            )
        return self._exhaust(layer, state, v_i, beta_i, beta_i - rate * tt_left, False)

    def _recede(
        self,
        layer: Layer,
        state: TraceState,
        exit_depth: float,
        exit_velocity: float,
    ) -> SegmentStep:
        """Ray moving away from its turning point (QUAD2, QUAD3)."""
        p = state.p
        rate = abs(layer.gradient)
        v_i = layer.velocity_at(state.z)
        beta_i = get_beta(p, v_i)

        beta_exit = get_beta(p, exit_velocity)
        dt = max(0.0, (beta_exit - beta_i) / rate)
        if dt <= state.tt_left:
            return self._exit(
                layer, state, v_i, beta_i, beta_exit,
                exit_depth, exit_velocity, dt, False,
            )
        return self._exhaust(
            layer, state, v_i, beta_i, beta_i + rate * state.tt_left, False
        )

    def _exit(
        self,
        layer: Layer,
        state: TraceState,
        v_i: float,
        beta_i: float,
        beta_f: float,
        depth: float,
        velocity: float,
        dt: float,
        turned: bool,
    ) -> SegmentStep:
        direction = state.direction.flipped if turned else state.direction
        arc = self._arc(layer, state, v_i, beta_i, beta_f, direction)
        return SegmentStep(
            x=self._x_end(arc, velocity),
            z=depth,
            dt=float(dt),
            tt_left=state.tt_left - dt,
            layer_delta=int(direction),
            turned=turned,
            direction=direction,
            angle=_incidence_angle(beta_f),
            arc=arc,
        )

    def _exhaust(
        self,
        layer: Layer,
        state: TraceState,
        v_i: float,
        beta_i: float,
        beta_f: float,
        turned: bool,
    ) -> SegmentStep:
        direction = state.direction.flipped if turned else state.direction
        arc = self._arc(layer, state, v_i, beta_i, beta_f, direction)
        v_f = arc.velocity_at(beta_f)
        return SegmentStep(
            x=self._x_end(arc, v_f),
            z=float(get_depth(layer, state.p, beta_f)),
            dt=state.tt_left,
            tt_left=0.0,
            layer_delta=0,
            turned=turned,
            direction=direction,
            angle=_incidence_angle(beta_f),
            arc=arc,
        )

    @staticmethod
    def _arc(
        layer: Layer,
        state: TraceState,
        v_i: float,
        beta_i: float,
        beta_f: float,
        direction: Direction,
    ) -> Arc:
        # descending side of the arc carries negative s
        s_start = -beta_i if state.direction is Direction.DOWN else beta_i
        s_end = -beta_f if direction is Direction.DOWN else beta_f
        return Arc(
            layer=layer,
            p=state.p,
            x_start=state.x,
            s_start=s_start,
            v_start=v_i,
            s_end=s_end,
        )

    @staticmethod
    def _x_end(arc: Arc, v_f: float) -> float:
        g = arc.layer.gradient
        dx = arc.p * arc.v_start * v_f * np.sinh(arc.s_end - arc.s_start) / g
        return float(arc.x_start + dx)
