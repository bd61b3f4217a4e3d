"""
Per-trace state, per-segment solver output and trace results.

Every trace builds its own :class:`TraceState`; nothing here is shared
between calls, so independent rays may be traced concurrently over one
read-only velocity model.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, TYPE_CHECKING

from svp_raytrace.errors import ErrorKind

if TYPE_CHECKING:
    from svp_raytrace.raytracing.solvers import Arc


class Direction(IntEnum):
    """Vertical sense of travel; the value is the sign of dz/dt."""

    DOWN = 1
    UP = -1

    @property
    def flipped(self) -> "Direction":
        return Direction.UP if self is Direction.DOWN else Direction.DOWN


class RayStatus(IntEnum):
    """Ray states. The integer codes double as GPU kernel status codes.

    DESCENDING and ASCENDING are the in-flight states; a finished trace
    reports one of the others, with the final vertical sense in
    ``TraceResult.direction``.
    """

    ERROR = 0
    DESCENDING = 1
    ASCENDING = 2
    EXITED_BOTTOM = 5
    EXITED_TOP = 6
    TIME_EXHAUSTED = 7


class SSVMode(Enum):
    """How a surface sound velocity corrects the launch angle.

    NONE
        Use the launch angle as given.
    CORRECT
        The surface sound velocity used by the sonar was right; refract the
        angle from it to the profile velocity at the source with Snell's
        law in a horizontal frame. The null angle is ignored.
    INCORRECT
        The surface sound velocity was wrong; refract in a frame rotated
        by the null angle so the receive-array geometry is respected.
    """

    NONE = 0
    CORRECT = 1
    INCORRECT = 2


# Integer codes for ErrorKind in array outputs; 0 means no error.
ERROR_CODES = {
    None: 0,
    ErrorKind.INVALID_MODEL: 1,
    ErrorKind.OUT_OF_MODEL: 2,
    ErrorKind.INVALID_ANGLE: 3,
    ErrorKind.ITERATION_LIMIT_EXCEEDED: 4,
}
ERROR_KINDS = {code: kind for kind, code in ERROR_CODES.items()}


@dataclass
class TraceState:
    """Mutable state of one ray, owned by a single trace call.

    ``x`` is the unsigned horizontal distance travelled; the horizontal
    sign from the launch angle is applied when results are reported.
    """

    p: float
    x: float
    z: float
    tt_left: float
    layer: int
    direction: Direction
    sign_x: int
    t: float = 0.0
    turned: bool = False
    angle: float = 0.0
    iterations: int = 0

    def apply(self, step: "SegmentStep") -> None:
        """Advance the ray to the end of a solved segment."""
        self.x = step.x
        self.z = step.z
        self.t += step.dt
        self.tt_left = step.tt_left
        self.direction = step.direction
        self.angle = step.angle
        if step.turned:
            self.turned = not self.turned
        self.iterations += 1


@dataclass(frozen=True)
class SegmentStep:
    """Output of one segment solver invocation.

    Attributes
    ----------
    x, z : float
        Position at the end of the segment (unsigned x).
    dt : float
        Time spent in the segment.
    tt_left : float
        Remaining budget after the segment (0.0 when exhausted).
    layer_delta : int
        +1 (exited bottom), -1 (exited top) or 0 (budget exhausted).
    turned : bool
        Whether a turning point was crossed.
    direction : Direction
        Vertical direction at the end of the segment.
    angle : float
        Local incidence angle from the vertical at the end, radians.
    arc : Arc, optional
        Arc geometry for circular segments (used for path sampling).
    """

    x: float
    z: float
    dt: float
    tt_left: float
    layer_delta: int
    turned: bool
    direction: Direction
    angle: float
    arc: Optional["Arc"] = None

    @property
    def exhausted(self) -> bool:
        return self.tt_left <= 0.0


@dataclass
class RayPath:
    """Polyline approximation of a ray path.

    Attributes
    ----------
    x, z, t : np.ndarray, shape (n,)
        Signed horizontal position, depth and travel time of each sample.
    """

    x: np.ndarray
    z: np.ndarray
    t: np.ndarray

    def __len__(self) -> int:
        return int(self.x.size)

    @property
    def points(self) -> np.ndarray:
        """Samples as an (n, 2) array of (x, z)."""
        return np.column_stack([self.x, self.z])


@dataclass
class TraceResult:
    """Outcome of a single trace.

    ``status`` is one of EXITED_TOP, EXITED_BOTTOM, TIME_EXHAUSTED (normal
    terminals) or ERROR, in which case ``error`` names the failure and
    the position is where the ray was when it failed.
    """

    x: float
    z: float
    travel_time: float
    status: RayStatus
    path: Optional[RayPath] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    ray_parameter: float = float("nan")
    direction: Optional[Direction] = None
    turned: bool = False
    final_angle: float = float("nan")
    layer: int = -1
    n_iterations: int = 0
    source_angle: float = float("nan")

    @property
    def ok(self) -> bool:
        return self.status is not RayStatus.ERROR

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.z)

    @property
    def error_code(self) -> int:
        return ERROR_CODES[self.error]
