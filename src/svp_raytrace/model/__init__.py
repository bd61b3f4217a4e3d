"""
Layered sound-speed model: node validation, layer classification and
per-layer geometric constants.
"""

from svp_raytrace.model.layer import Layer, LayerKind
from svp_raytrace.model.velocity_model import VelocityModel, build_model, destroy_model

__all__ = [
    "Layer",
    "LayerKind",
    "VelocityModel",
    "build_model",
    "destroy_model",
]
