"""
Prime-Axis Embedding
====================
Maps prime vectors to 3D positions.

Why is this file needed?
------------------------
1. Straight axes: each prime has a fixed (raw, unnormalized) direction and one
   exponent step moves `UNIT_DISTANCE * global_scale * spacing(p)` along it.
2. Looping axes: an axis with loop length L bends exponent v onto a circular
   arc so that v = L lands back near the start; optional spiral/helix factors
   turn the circle into a spiral or a helix.
3. Curved projection: `sum_trig_series` is the closed form used by the curved
   projector to sum a chain of equally bent steps.
"""
from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Tuple, TYPE_CHECKING

import numpy as np

from jilattice.config import UNIT_DISTANCE, get_prime_axis
from jilattice.model.geometry_primitives import bend_frame, is_finite_point, normalize, origin

if TYPE_CHECKING:
    import numpy.typing as npt
    from jilattice.model.settings import VisualSettings

logger = logging.getLogger(__name__)

# Looping axes swap their up vector when the axis is within this of world Y
LOOP_FRAME_THRESHOLD = 0.9
HELIX_RISE_FACTOR = 3.0
_TINY_ANGLE = 1e-6


def step_distance(prime: int, visuals: VisualSettings, extra_spacing: float = 1.0) -> float:
    """Length of one exponent step along `prime`."""
    return UNIT_DISTANCE * visuals.global_scale * visuals.spacing(prime) * extra_spacing


def sum_trig_series(steps: int, angle: float) -> Tuple[float, float]:
    """
    Closed form of (sum cos(k*angle), sum sin(k*angle)) for k = 1..steps.

    Uses sin(n*a/2)/sin(a/2) * (cos, sin)((n+1)*a/2). For vanishing angles the
    limit (steps, 0) is returned.
    """
    if steps <= 0:
        return 0.0, 0.0
    if abs(angle) < _TINY_ANGLE:
        return float(steps), 0.0
    half = angle / 2.0
    denom = math.sin(half)
    if abs(denom) < _TINY_ANGLE:
        return float(steps), 0.0
    factor = math.sin(steps * half) / denom
    return factor * math.cos((steps + 1) * half), factor * math.sin((steps + 1) * half)


def looping_offset(
    prime: int,
    exponent: int,
    loop_length: float,
    visuals: VisualSettings,
) -> npt.NDArray[np.float64]:
    """Offset contributed by `exponent` steps along a looping axis."""
    distance = step_distance(prime, visuals)
    theta = exponent / loop_length * math.pi
    spiral_scale = 1.0 + abs(exponent) * (visuals.spiral_factor or 0.0)
    radius = loop_length * distance / math.pi * spiral_scale

    axis = normalize(get_prime_axis(prime))
    up, bend = bend_frame(axis, LOOP_FRAME_THRESHOLD)
    rise = up * (exponent * (visuals.helix_factor or 0.0) * visuals.global_scale * HELIX_RISE_FACTOR)
    return axis * (radius * math.sin(theta)) + bend * (radius * (1.0 - math.cos(theta))) + rise


def axis_offset(
    prime: int,
    exponent: int,
    visuals: VisualSettings,
    loop_length: Optional[float] = None,
) -> npt.NDArray[np.float64]:
    if loop_length and loop_length > 0:
        return looping_offset(prime, exponent, loop_length, visuals)
    return get_prime_axis(prime) * (exponent * step_distance(prime, visuals))


def position_from_vector(
    vector: Mapping[int, int],
    visuals: VisualSettings,
    axis_looping: Optional[Mapping[int, Optional[int]]] = None,
) -> npt.NDArray[np.float64]:
    """
    Embed a prime vector in 3D.

    Each nonzero exponent contributes its axis offset independently. Positions
    that come out non-finite snap to the origin.
    """
    pos = origin()
    for p, e in vector.items():
        if not e:
            continue
        loop = axis_looping.get(p) if axis_looping else None
        pos = pos + axis_offset(p, e, visuals, loop)
    if not is_finite_point(pos):
        logger.debug(f"Non-finite position for {dict(vector)}, snapping to origin.")
        return origin()
    return pos


def grid_position(
    vector: Mapping[int, int],
    visuals: VisualSettings,
    spacing: float,
) -> npt.NDArray[np.float64]:
    """Straight embedding widened by the grid/sphere spacing factor."""
    pos = origin()
    for p, e in vector.items():
        if e:
            pos = pos + get_prime_axis(p) * (e * step_distance(p, visuals, spacing))
    if not is_finite_point(pos):
        logger.debug(f"Non-finite grid position for {dict(vector)}, snapping to origin.")
        return origin()
    return pos
