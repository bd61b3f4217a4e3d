"""
Error taxonomy for velocity-model building and ray tracing.

Exceptions are used inside the package; the functional entry points
(:func:`~svp_raytrace.model.build_model` and
:func:`~svp_raytrace.raytracing.trace`) turn them into values so that a
caller processing hundreds of beams per ping never has to wrap each call.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(Enum):
    """Named failure kinds reported to callers."""

    INVALID_MODEL = "invalid_model"
    OUT_OF_MODEL = "out_of_model"
    INVALID_ANGLE = "invalid_angle"
    ITERATION_LIMIT_EXCEEDED = "iteration_limit_exceeded"


class RayTraceError(ValueError):
    """Base class for model and ray-tracing failures."""

    kind: ErrorKind

    def to_failure(self) -> "Failure":
        return Failure(kind=self.kind, message=str(self))


class InvalidModelError(RayTraceError):
    """Malformed profile: too few nodes, unsorted depths, bad speeds."""

    kind = ErrorKind.INVALID_MODEL


class OutOfModelError(RayTraceError):
    """Source depth does not fall inside any layer."""

    kind = ErrorKind.OUT_OF_MODEL


class InvalidAngleError(RayTraceError):
    """Launch-angle correction left the domain of asin (total reflection)."""

    kind = ErrorKind.INVALID_ANGLE


class IterationLimitError(RayTraceError):
    """The trace loop hit its defensive iteration cap."""

    kind = ErrorKind.ITERATION_LIMIT_EXCEEDED


@dataclass(frozen=True)
class Failure:
    """Failure value returned in place of a model or result.

    Attributes
    ----------
    kind : ErrorKind
        What went wrong.
    message : str
        Human-readable detail.
    """

    kind: ErrorKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False

    def __bool__(self) -> bool:
        return False
