"""
Ray tracing through layered sound-speed models.

Provides the single-ray tracer with its closed-form segment solvers, a
CPU fan reference, and a GPU-accelerated (Taichi) fan kernel.
"""

from svp_raytrace.raytracing.state import (
    Direction,
    RayPath,
    RayStatus,
    SSVMode,
    TraceResult,
)
from svp_raytrace.raytracing.solvers import (
    GradientSegmentSolver,
    LinearSegmentSolver,
    Quadrant,
    VerticalSegmentSolver,
    time_to_turning_point,
)
from svp_raytrace.raytracing.sampler import PathSampler
from svp_raytrace.raytracing.tracer import RayTracer, correct_launch_angle, trace
from svp_raytrace.raytracing.cpu_ref import FanResult, trace_fan_cpu
from svp_raytrace.raytracing.kernels import trace_fan_gpu

__all__ = [
    "Direction",
    "RayPath",
    "RayStatus",
    "SSVMode",
    "TraceResult",
    "GradientSegmentSolver",
    "LinearSegmentSolver",
    "Quadrant",
    "VerticalSegmentSolver",
    "time_to_turning_point",
    "PathSampler",
    "RayTracer",
    "correct_launch_angle",
    "trace",
    "FanResult",
    "trace_fan_cpu",
    "trace_fan_gpu",
]
