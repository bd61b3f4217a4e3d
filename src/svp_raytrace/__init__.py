"""
svp_raytrace — refraction-corrected acoustic ray tracing through layered
sound-speed profiles.

Typical use::

    from svp_raytrace import build_model, trace

    model = build_model([0.0, 100.0, 1000.0], [1500.0, 1550.0, 1600.0])
    result = trace(model, source_depth=0.0, source_angle=20.0, time_budget=0.3)
"""

from svp_raytrace.config import DEFAULT_CONFIG, SoundSpeedProfile, TraceConfig
from svp_raytrace.errors import ErrorKind, Failure, RayTraceError
from svp_raytrace.model import Layer, LayerKind, VelocityModel, build_model, destroy_model
from svp_raytrace.raytracing import (
    Direction,
    FanResult,
    RayPath,
    RayStatus,
    RayTracer,
    SSVMode,
    TraceResult,
    trace,
    trace_fan_cpu,
    trace_fan_gpu,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "SoundSpeedProfile",
    "TraceConfig",
    "ErrorKind",
    "Failure",
    "RayTraceError",
    "Layer",
    "LayerKind",
    "VelocityModel",
    "build_model",
    "destroy_model",
    "Direction",
    "FanResult",
    "RayPath",
    "RayStatus",
    "RayTracer",
    "SSVMode",
    "TraceResult",
    "trace",
    "trace_fan_cpu",
    "trace_fan_gpu",
]
