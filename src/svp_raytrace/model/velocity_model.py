"""
Immutable layered sound-speed model.

A model is built once from depth/velocity node pairs and can then be
shared, read-only, by any number of concurrent traces.
"""

from __future__ import annotations

import logging

import numpy as np
from typing import Optional, Sequence, Union

from svp_raytrace.config import DEFAULT_CONFIG, TraceConfig
from svp_raytrace.errors import Failure, InvalidModelError
from svp_raytrace.model.layer import Layer, LayerKind

logger = logging.getLogger(__name__)


class VelocityModel:
    """Depth-layered (range-independent) sound-speed structure.

    Parameters
    ----------
    depths : array-like, shape (N,)
        Node depths in meters, positive down, strictly increasing.
    velocities : array-like, shape (N,)
        Sound speed at each node in m/s, strictly positive.
    config : TraceConfig, optional
        Supplies the homogeneous/gradient classification tolerance.

    Raises
    ------
    InvalidModelError
        If fewer than two nodes are given, the arrays differ in length,
        depths are not strictly increasing, or a value is not finite or a
        speed is not positive.
    """

    def __init__(
        self,
        depths: Sequence[float],
        velocities: Sequence[float],
        config: Optional[TraceConfig] = None,
    ) -> None:
        self.config = config if config is not None else DEFAULT_CONFIG

        try:
            depths = np.array(depths, dtype=np.float64, ndmin=1)
            velocities = np.array(velocities, dtype=np.float64, ndmin=1)
        except (TypeError, ValueError) as exc:
            raise InvalidModelError(f"profile nodes are not numeric: {exc}") from exc
        _validate_nodes(depths, velocities)

        depths.flags.writeable = False
        velocities.flags.writeable = False
        self._depths = depths
        self._velocities = velocities

        tol = self.config.gradient_tolerance
        self._layers = tuple(
            Layer.from_nodes(
                i, depths[i], depths[i + 1], velocities[i], velocities[i + 1], tol
            )
            for i in range(depths.size - 1)
        )
        self._released = False

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Built velocity model with %d layers", len(self._layers))
            for layer in self._layers:
                logger.debug(
                    "  %s center_depth=%.3f", layer, layer.center_depth
                )

    # — Read-only views ———————————————————————————————————————————————————————

    @property
    def depths(self) -> np.ndarray:
        self._check_alive()
        return self._depths

    @property
    def velocities(self) -> np.ndarray:
        self._check_alive()
        return self._velocities

    @property
    def layers(self) -> tuple[Layer, ...]:
        self._check_alive()
        return self._layers

    @property
    def number_node(self) -> int:
        return len(self._layers) + 1

    @property
    def number_layer(self) -> int:
        return len(self._layers)

    @property
    def top(self) -> float:
        """Shallowest node depth."""
        return self._layers[0].top_depth

    @property
    def bottom(self) -> float:
        """Deepest node depth."""
        return self._layers[-1].bottom_depth

    @property
    def released(self) -> bool:
        return self._released

    def layer(self, index: int) -> Layer:
        """Layer by index, 0 being the shallowest."""
        self._check_alive()
        if not 0 <= index < len(self._layers):
            raise IndexError(f"layer index {index} outside [0, {len(self._layers) - 1}]")
        return self._layers[index]

    def find_layer_containing(self, depth: float) -> Optional[int]:
        """Index of the layer holding depth, or None outside the model.

        A node depth shared by two layers belongs to the deeper one.
        """
        self._check_alive()
        if not np.isfinite(depth) or depth < self.top or depth > self.bottom:
            return None
        index = int(np.searchsorted(self._depths, depth, side="right")) - 1
        return min(index, len(self._layers) - 1)

    def velocity_at(self, depth: float) -> float:
        """Sound speed at a depth inside the model.

        Raises
        ------
        ValueError
            If depth lies outside the model.
        """
        index = self.find_layer_containing(depth)
        if index is None:
            raise ValueError(f"depth {depth} outside model [{self.top}, {self.bottom}]")
        return self._layers[index].velocity_at(depth)

    def layer_kinds(self) -> list[LayerKind]:
        return [layer.kind for layer in self.layers]

    # — Lifecycle ——————————————————————————————————————————————————————————————

    def release(self) -> None:
        """Drop the node arrays. The model cannot be traced afterwards."""
        if self._released:
            return
        self._released = True
        self._depths = np.empty(0)
        self._velocities = np.empty(0)
        logger.debug("Released velocity model with %d layers", len(self._layers))

    def _check_alive(self) -> None:
        if self._released:
            raise InvalidModelError("velocity model has been destroyed")

    def __repr__(self) -> str:
        state = "released" if self._released else f"{self.top:.1f}-{self.bottom:.1f} m"
        return f"VelocityModel(n_layers={self.number_layer}, {state})"


def _validate_nodes(depths: np.ndarray, velocities: np.ndarray) -> None:
    if depths.ndim != 1 or velocities.ndim != 1:
        raise InvalidModelError("depths and velocities must be 1-D")
    if depths.size != velocities.size:
        raise InvalidModelError(
            f"depths ({depths.size}) and velocities ({velocities.size}) differ in length"
        )
    if depths.size < 2:
        raise InvalidModelError(f"at least 2 nodes are required, got {depths.size}")
    if not (np.all(np.isfinite(depths)) and np.all(np.isfinite(velocities))):
        raise InvalidModelError("depths and velocities must be finite")
    if np.any(np.diff(depths) <= 0.0):
        raise InvalidModelError("depths must be strictly increasing")
    if np.any(velocities <= 0.0):
        raise InvalidModelError("velocities must be positive")


def build_model(
    depths: Sequence[float],
    velocities: Sequence[float],
    n: Optional[int] = None,
    config: Optional[TraceConfig] = None,
) -> Union[VelocityModel, Failure]:
    """Build a velocity model, returning a Failure instead of raising.

    Parameters
    ----------
    depths, velocities : array-like
        Profile nodes.
    n : int, optional
        Number of nodes to use from the front of the arrays. Defaults to
        all of them.
    config : TraceConfig, optional

    Returns
    -------
    VelocityModel or Failure
        The model, or ``Failure(ErrorKind.INVALID_MODEL, ...)``.
    """
    try:
        if n is not None:
            if n < 2:
                raise InvalidModelError(f"at least 2 nodes are required, got {n}")
            if n > len(depths) or n > len(velocities):
                raise InvalidModelError(f"n={n} exceeds the number of nodes given")
            depths = depths[:n]
            velocities = velocities[:n]
        return VelocityModel(depths, velocities, config=config)
    except InvalidModelError as exc:
        logger.info("Velocity model rejected: %s", exc)
        return exc.to_failure()


def destroy_model(model: VelocityModel) -> None:
    """Release a model built by :func:`build_model`."""
    model.release()
