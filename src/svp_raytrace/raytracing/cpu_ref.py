"""
CPU reference implementation of fan tracing.

A swath sonar ping produces one travel time per beam, tens to hundreds of
beams, all launched from the same transducer depth into the same sound
speed profile. This module traces every beam with the pure-Python
:class:`~svp_raytrace.raytracing.tracer.RayTracer` and packs the results
into flat arrays. It serves as ground truth for validating the GPU
(Taichi) kernel.
"""

import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Union

from svp_raytrace.config import TraceConfig
from svp_raytrace.errors import ErrorKind
from svp_raytrace.model.velocity_model import VelocityModel
from svp_raytrace.raytracing.state import ERROR_CODES, ERROR_KINDS, RayStatus, SSVMode
from svp_raytrace.raytracing.tracer import RayTracer


@dataclass
class FanResult:
    """Per-beam results of a fan trace.

    Attributes
    ----------
    angles : np.ndarray, shape (n_beams,)
        Nominal launch angles in degrees.
    x : np.ndarray, shape (n_beams,)
        Signed horizontal range reached by each beam.
    z : np.ndarray, shape (n_beams,)
        Depth reached by each beam.
    travel_time : np.ndarray, shape (n_beams,)
        Time actually travelled.
    status : np.ndarray of int32, shape (n_beams,)
        ``RayStatus`` integer codes.
    error : np.ndarray of int32, shape (n_beams,)
        ``ERROR_CODES`` integer codes, 0 when the beam succeeded.
    """

    angles:      np.ndarray
    x:           np.ndarray
    z:           np.ndarray
    travel_time: np.ndarray
    status:      np.ndarray
    error:       np.ndarray

    @property
    def n_beams(self) -> int:
        return int(self.angles.size)

    @property
    def ok(self) -> np.ndarray:
        """Boolean mask of beams that reached a normal terminal state."""
        return self.status != int(RayStatus.ERROR)

    def statuses(self) -> List[RayStatus]:
        return [RayStatus(int(code)) for code in self.status]

    def errors(self) -> List[Optional[ErrorKind]]:
        return [ERROR_KINDS[int(code)] for code in self.error]


def broadcast_travel_times(angles: np.ndarray, travel_times) -> np.ndarray:
    """Expand a scalar or per-beam travel time to one value per beam.

    Raises
    ------
    ValueError
        If the shapes do not broadcast or a value is not finite.
    """
    times = np.broadcast_to(np.asarray(travel_times, dtype=np.float64), angles.shape)
    if not np.all(np.isfinite(times)):
        raise ValueError("travel times must be finite")
    return np.ascontiguousarray(times)


def trace_fan_cpu(
    model:            VelocityModel,
    source_depth:     float,
    angles:           np.ndarray,
    travel_times:     Union[float, np.ndarray],
    surface_velocity: float                 = 0.0,
    null_angle:       float                 = 0.0,
    ssv_mode:         Optional[SSVMode]     = None,
    config:           Optional[TraceConfig] = None,
) -> FanResult:
    """Trace a fan of beams sequentially on the CPU.

    Parameters
    ----------
    model : VelocityModel
        Shared sound-speed model.
    source_depth : float
        Transducer depth in meters.
    angles : np.ndarray, shape (n_beams,)
        Signed launch angles in degrees.
    travel_times : float or np.ndarray, shape (n_beams,)
        One-way travel time per beam, or one value for all beams.
    surface_velocity, null_angle, ssv_mode :
        Launch-angle correction, as for :func:`~svp_raytrace.raytracing.trace`.
    config : TraceConfig, optional

    Returns
    -------
    FanResult
    """
    angles = np.ascontiguousarray(angles, dtype=np.float64).ravel()
    times = broadcast_travel_times(angles, travel_times)

    n = angles.size
    x      = np.zeros(n, dtype=np.float64)
    z      = np.zeros(n, dtype=np.float64)
    t      = np.zeros(n, dtype=np.float64)
    status = np.zeros(n, dtype=np.int32)
    error  = np.zeros(n, dtype=np.int32)

    tracer = RayTracer(model, config=config)
    for i in range(n):
        result = tracer.trace(
            source_depth,
            float(angles[i]),
            float(times[i]),
            surface_velocity=surface_velocity,
            null_angle=null_angle,
            ssv_mode=ssv_mode,
        )
        x[i]      = result.x
        z[i]      = result.z
        t[i]      = result.travel_time
        status[i] = int(result.status)
        error[i]  = ERROR_CODES[result.error]

    return FanResult(angles=angles, x=x, z=z, travel_time=t, status=status, error=error)
