"""
Single-ray tracing through a layered sound-speed model.

The tracer walks the ray layer by layer. Each iteration hands the current
layer and :class:`TraceState` to one of three closed-form segment solvers
and applies the returned step, until the ray leaves the model through the
top or bottom or its travel-time budget runs out.

Angles at the public surface are in degrees from the vertical, signed:
the sign gives the horizontal direction of travel and a magnitude of 90
or more launches the ray upward.
"""

from __future__ import annotations

import logging

import numpy as np
from dataclasses import dataclass
from typing import Optional, Union

from svp_raytrace.config import TraceConfig
from svp_raytrace.errors import (
    Failure,
    InvalidAngleError,
    InvalidModelError,
    IterationLimitError,
    OutOfModelError,
    RayTraceError,
)
from svp_raytrace.model.velocity_model import VelocityModel
from svp_raytrace.raytracing.sampler import PathSampler
from svp_raytrace.raytracing.solvers import (
    GradientSegmentSolver,
    LinearSegmentSolver,
    VerticalSegmentSolver,
)
from svp_raytrace.raytracing.state import (
    Direction,
    RayStatus,
    SSVMode,
    TraceResult,
    TraceState,
)

logger = logging.getLogger(__name__)


def resolve_ssv_mode(surface_velocity: float, ssv_mode: Optional[SSVMode] = None) -> SSVMode:
    """Pick the launch-angle correction mode.

    Without an explicit mode a positive surface velocity selects
    ``SSVMode.INCORRECT`` and anything else ``SSVMode.NONE``.

    Raises
    ------
    ValueError
        If a correcting mode is requested without a positive surface
        velocity.
    """
    if ssv_mode is None:
        return SSVMode.INCORRECT if surface_velocity > 0.0 else SSVMode.NONE
    if ssv_mode is not SSVMode.NONE and not surface_velocity > 0.0:
        raise ValueError(f"{ssv_mode.name} requires a positive surface_velocity")
    return ssv_mode


def correct_launch_angle(
    source_angle: float,
    source_velocity: float,
    surface_velocity: float = 0.0,
    null_angle: float = 0.0,
    ssv_mode: SSVMode = SSVMode.NONE,
) -> float:
    """Refract a nominal launch angle to the profile speed at the source.

    Parameters
    ----------
    source_angle : float
        Nominal launch angle in degrees.
    source_velocity : float
        Profile sound speed at the source depth in m/s.
    surface_velocity : float
        Sound speed the sonar used to steer the beam, m/s.
    null_angle : float
        Reference angle of the receive array in degrees (INCORRECT mode).
    ssv_mode : SSVMode

    Returns
    -------
    float
        Corrected launch angle in degrees.

    Raises
    ------
    InvalidAngleError
        If Snell's law has no solution (|sin| would exceed 1).
    """
    if ssv_mode is SSVMode.NONE:
        return source_angle

    if ssv_mode is SSVMode.CORRECT:
        p0 = np.sin(np.radians(source_angle)) / surface_velocity
        arg = p0 * source_velocity
        _check_asin_domain(arg, source_angle)
        corrected = np.degrees(np.arcsin(arg))
        if abs(source_angle) > 90.0:
            # keep upward-launched beams pointing up
            corrected = np.copysign(180.0, source_angle) - corrected
        return float(corrected)

    diff = source_angle - null_angle
    p0 = np.sin(np.radians(diff)) / surface_velocity
    arg = p0 * source_velocity
    _check_asin_domain(arg, source_angle)
    return float(null_angle + np.degrees(np.arcsin(arg)))


def _check_asin_domain(arg: float, source_angle: float) -> None:
    if not abs(arg) <= 1.0:
        raise InvalidAngleError(
            f"launch angle {source_angle} deg cannot be refracted to the source "
            f"velocity (sin = {arg:.6f})"
        )


@dataclass(frozen=True)
class Launch:
    """Initial conditions of a ray, shared by the CPU and GPU tracers.

    Attributes
    ----------
    layer : int
        Index of the layer holding the source.
    velocity : float
        Sound speed at the source in m/s.
    angle : float
        Launch angle after surface-velocity correction, degrees.
    p : float
        Ray parameter in s/m (0 for vertical rays).
    direction : Direction
        Initial vertical direction.
    sign_x : int
        Horizontal sign (+1 or -1) applied to reported x values.
    """

    layer: int
    velocity: float
    angle: float
    p: float
    direction: Direction
    sign_x: int


def prepare_launch(
    model: VelocityModel,
    source_depth: float,
    source_angle: float,
    surface_velocity: float = 0.0,
    null_angle: float = 0.0,
    ssv_mode: SSVMode = SSVMode.NONE,
) -> Launch:
    """Locate the source and derive the ray parameter.

    Raises
    ------
    InvalidModelError
        If the model has been destroyed.
    OutOfModelError
        If the source depth lies outside the model.
    InvalidAngleError
        If the angle is not finite, exceeds 180 deg in magnitude, or has
        no refracted solution.
    """
    layer_index = model.find_layer_containing(source_depth)
    if layer_index is None:
        raise OutOfModelError(
            f"source depth {source_depth} outside model [{model.top}, {model.bottom}]"
        )
    v_source = model.layer(layer_index).velocity_at(source_depth)

    if not (np.isfinite(source_angle) and abs(source_angle) <= 180.0):
        raise InvalidAngleError(f"launch angle {source_angle} deg outside [-180, 180]")
    angle = correct_launch_angle(
        source_angle, v_source, surface_velocity, null_angle, ssv_mode
    )

    abs_angle = abs(angle)
    if abs_angle in (0.0, 180.0):
        p = 0.0
    else:
        p = float(np.sin(np.radians(abs_angle)) / v_source)
    return Launch(
        layer=layer_index,
        velocity=float(v_source),
        angle=float(angle),
        p=p,
        direction=Direction.DOWN if abs_angle < 90.0 else Direction.UP,
        sign_x=-1 if angle < 0.0 else 1,
    )


class RayTracer:
    """Traces rays through one shared, read-only velocity model.

    A tracer holds no per-ray state, so one instance may serve any
    number of concurrent :meth:`trace` calls.

    Parameters
    ----------
    model : VelocityModel
    config : TraceConfig, optional
        Defaults to the model's configuration.
    """

    def __init__(self, model: VelocityModel, config: Optional[TraceConfig] = None) -> None:
        self.model = model
        self.config = config if config is not None else model.config
        self.linear = LinearSegmentSolver(self.config)
        self.vertical = VerticalSegmentSolver()
        self.gradient = GradientSegmentSolver()

    def trace(
        self,
        source_depth: float,
        source_angle: float,
        time_budget: float,
        surface_velocity: float = 0.0,
        null_angle: float = 0.0,
        max_path_points: int = 0,
        ssv_mode: Optional[SSVMode] = None,
    ) -> TraceResult:
        """Trace one ray.

        Parameters
        ----------
        source_depth : float
            Depth of the source in meters.
        source_angle : float
            Signed launch angle in degrees from vertical.
        time_budget : float
            Travel time to spend, in seconds.
        surface_velocity : float
            Sonar surface sound speed for launch-angle correction; 0
            disables it unless ``ssv_mode`` says otherwise.
        null_angle : float
            Receive-array reference angle in degrees.
        max_path_points : int
            Path sample capacity; 0 disables path sampling.
        ssv_mode : SSVMode, optional
            See :func:`resolve_ssv_mode`.

        Returns
        -------
        TraceResult
            Terminal status EXITED_TOP, EXITED_BOTTOM or TIME_EXHAUSTED, or
            ERROR with ``error`` set. Model and domain failures never raise.

        Raises
        ------
        ValueError
            For malformed arguments (non-finite budget, negative
            ``max_path_points``, correction mode without a surface velocity).
        """
        if not np.isfinite(time_budget):
            raise ValueError(f"time_budget must be finite, got {time_budget}")
        if max_path_points < 0:
            raise ValueError(f"max_path_points must be non-negative, got {max_path_points}")
        mode = resolve_ssv_mode(surface_velocity, ssv_mode)

        state = None
        sampler = None
        try:
            state, sampler = self._launch(
                source_depth, source_angle, time_budget,
                surface_velocity, null_angle, max_path_points, mode,
            )
            status = self._run(state, sampler)
        except RayTraceError as exc:
            logger.info(
                "Trace failed (%s) at depth %s, angle %s: %s",
                exc.kind.name, source_depth, source_angle, exc,
            )
            return _error_result(exc, source_depth, source_angle, state, sampler)

        return TraceResult(
            x=float(state.sign_x * state.x),
            z=float(state.z),
            travel_time=float(state.t),
            status=status,
            path=sampler.to_path(),
            ray_parameter=state.p,
            direction=state.direction,
            turned=state.turned,
            final_angle=float(np.degrees(state.angle)),
            layer=state.layer,
            n_iterations=state.iterations,
            source_angle=source_angle,
        )

    # — Internals ——————————————————————————————————————————————————————————————

    def _launch(
        self,
        source_depth: float,
        source_angle: float,
        time_budget: float,
        surface_velocity: float,
        null_angle: float,
        max_path_points: int,
        mode: SSVMode,
    ) -> tuple[TraceState, PathSampler]:
        launch = prepare_launch(
            self.model, source_depth, source_angle, surface_velocity, null_angle, mode
        )
        state = TraceState(
            p=launch.p,
            x=0.0,
            z=float(source_depth),
            tt_left=float(time_budget),
            layer=launch.layer,
            direction=launch.direction,
            sign_x=launch.sign_x,
            angle=float(np.arcsin(min(launch.p * launch.velocity, 1.0))),
        )
        sampler = PathSampler(max_path_points, self.config.arc_segments, launch.sign_x)
        sampler.start(0.0, state.z, 0.0)

        logger.debug(
            "Launch: depth=%.3f angle=%.4f (nominal %.4f, %s) v=%.3f p=%.9e %s layer=%d",
            source_depth, launch.angle, source_angle, mode.name, launch.velocity,
            launch.p, launch.direction.name, launch.layer,
        )
        return state, sampler

    def _run(self, state: TraceState, sampler: PathSampler) -> RayStatus:
        if state.tt_left <= 0.0:
            return RayStatus.TIME_EXHAUSTED

        n_layer = self.model.number_layer
        max_iterations = self.config.max_iterations(n_layer)
        while True:
            if state.layer < 0:
                return RayStatus.EXITED_TOP
            if state.layer >= n_layer:
                return RayStatus.EXITED_BOTTOM
            if state.iterations >= max_iterations:
                raise IterationLimitError(
                    f"no terminal state after {state.iterations} segments"
                )

            layer = self.model.layer(state.layer)
            if not layer.is_gradient:
                step = self.linear.advance(layer, state)
            elif state.p > 0.0:
                step = self.gradient.advance(layer, state)
            else:
                step = self.vertical.advance(layer, state)

            t_start = state.t
            state.apply(step)
            sampler.add(step, t_start)
            logger.debug(
                "  layer %d: x=%.4f z=%.4f dt=%.6f tt_left=%.6f %s%s",
                layer.index, state.x, state.z, step.dt, state.tt_left,
                state.direction.name, " turned" if step.turned else "",
            )

            if state.tt_left <= 0.0:
                return RayStatus.TIME_EXHAUSTED
            state.layer += step.layer_delta


def _error_result(
    exc: RayTraceError,
    source_depth: float,
    source_angle: float,
    state: Optional[TraceState],
    sampler: Optional[PathSampler],
) -> TraceResult:
    if state is None:
        return TraceResult(
            x=0.0,
            z=float(source_depth),
            travel_time=0.0,
            status=RayStatus.ERROR,
            error=exc.kind,
            message=str(exc),
            source_angle=source_angle,
        )
    return TraceResult(
        x=float(state.sign_x * state.x),
        z=float(state.z),
        travel_time=float(state.t),
        status=RayStatus.ERROR,
        path=sampler.to_path() if sampler is not None else None,
        error=exc.kind,
        message=str(exc),
        ray_parameter=state.p,
        direction=state.direction,
        turned=state.turned,
        final_angle=float(np.degrees(state.angle)),
        layer=state.layer,
        n_iterations=state.iterations,
        source_angle=source_angle,
    )


def trace(
    model: Union[VelocityModel, Failure],
    source_depth: float,
    source_angle: float,
    time_budget: float,
    surface_velocity: float = 0.0,
    null_angle: float = 0.0,
    max_path_points: int = 0,
    ssv_mode: Optional[SSVMode] = None,
    config: Optional[TraceConfig] = None,
) -> TraceResult:
    """Trace one ray through ``model``; see :meth:`RayTracer.trace`.

    Passing the :class:`Failure` returned by a rejected
    :func:`~svp_raytrace.model.build_model` yields an INVALID_MODEL error
    result.
    """
    if isinstance(model, Failure):
        return _error_result(
            InvalidModelError(model.message or "no velocity model"),
            source_depth, source_angle, None, None,
        )
    return RayTracer(model, config=config).trace(
        source_depth,
        source_angle,
        time_budget,
        surface_velocity=surface_velocity,
        null_angle=null_angle,
        max_path_points=max_path_points,
        ssv_mode=ssv_mode,
    )
