"""
utils — Utility helpers for the svp_raytrace package.

Submodules
----------
synthetic       Synthetic profiles, beam fans and a numerical reference ray.
"""

from . import synthetic

__all__ = ["synthetic"]
