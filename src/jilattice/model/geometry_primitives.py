"""
Geometric Primitives for lattice embedding.

Positions are plain numpy float64 arrays of shape (3,). These helpers keep the
small amount of vector algebra the generator needs in one place.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt

UP = np.array([0.0, 1.0, 0.0])
RIGHT = np.array([1.0, 0.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> npt.NDArray[np.float64]:
    return np.array([x, y, z], dtype=np.float64)


def origin() -> npt.NDArray[np.float64]:
    return np.zeros(3, dtype=np.float64)


def magnitude(v: npt.NDArray[np.float64]) -> float:
    return float(np.linalg.norm(v))


def normalize(v: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    mag = magnitude(v)
    if mag == 0.0:
        return origin()
    return v / mag


def bend_frame(
    axis: npt.NDArray[np.float64],
    threshold: float = 0.9
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Build an (up, bend) pair for an axis direction.

    `up` is the world Y axis unless the axis is nearly parallel to it (|dot| above
    `threshold`), in which case world X is used. `bend` is the unit vector
    axis x up, which is orthogonal to the axis.

    Args:
        axis: Normalized axis direction.
        threshold: Parallelism cut-off for swapping the up vector.

    Returns:
        (up, bend) unit vectors.
    """
    up = UP if abs(float(np.dot(axis, UP))) <= threshold else RIGHT
    bend = normalize(np.cross(axis, up))
    return up.copy(), bend


def is_finite_point(v: npt.NDArray[np.float64]) -> bool:
    return bool(np.all(np.isfinite(v)))


def pack_positions(points: Iterable[npt.NDArray[np.float64]]) -> npt.NDArray[np.float64]:
    """Flatten a sequence of 3D points into one contiguous [x0, y0, z0, x1, ...] buffer."""
    pts = [np.asarray(p, dtype=np.float64) for p in points]
    if not pts:
        return np.empty(0, dtype=np.float64)
    return np.ascontiguousarray(np.vstack(pts).reshape(-1))
