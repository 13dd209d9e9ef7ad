"""
Curved Geometry Projection
==========================
Re-positions every node so that its distance from the origin encodes a pitch
metric, while its direction follows a gently bent version of the prime-axis
embedding.

Why is this file needed?
------------------------
1. Direction: each prime axis is replaced by a chain of steps that turns by
   `curve_radians_per_step` per step, summed in closed form with
   `sum_trig_series`.
2. Distance: the point is then rescaled to `distance(metric(vector))`, where
   the metric is one of log2/cents/prime norms and the distance map is
   linear, power or log.
3. Spacing: with auto spacing on, all positions are scaled up by 8% at a time
   (at most 10 times) while any two node spheres overlap.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, Mapping, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from jilattice.config import DEFAULT_GEN_SIZE, GEN_SIZES, get_prime_axis
from jilattice.controller.embedding import step_distance, sum_trig_series
from jilattice.model.geometry_primitives import bend_frame, normalize
from jilattice.model.graph import NodeData
from jilattice.model.pitch import log2_of_vector
from jilattice.model.settings import (
    CurvedGeometryConfig, DistanceMode, LatticeSettings, PitchMetric
)
from jilattice.utils import CENTS_PER_OCTAVE, finite_or

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

CURVED_FRAME_THRESHOLD = 0.85
NODE_RADIUS_FACTOR = 0.6
SPACING_GROWTH = 1.08
MAX_SPACING_ITERATIONS = 10


def pitch_metric(vector: Mapping[int, int], metric: PitchMetric) -> float:
    exponents = [(p, e) for p, e in vector.items() if e]
    match metric:
        case PitchMetric.CENTS:
            return abs(log2_of_vector(vector) * CENTS_PER_OCTAVE)
        case PitchMetric.PRIME_L1:
            return float(sum(abs(e) for _, e in exponents))
        case PitchMetric.PRIME_L2:
            return math.sqrt(sum(e * e for _, e in exponents))
        case PitchMetric.PRIME_LINF:
            return float(max((abs(e) for _, e in exponents), default=0))
        case PitchMetric.WEIGHTED:
            return sum(abs(e) * math.log2(p) for p, e in exponents)
        case _:
            return abs(log2_of_vector(vector))


def target_distance(value: float, config: CurvedGeometryConfig, global_scale: float) -> float:
    scale = finite_or(config.distance_scale, 1.0)
    exponent = finite_or(config.distance_exponent, 1.0)
    base = max(0.0, value + finite_or(config.distance_offset, 0.0))
    match config.distance_mode:
        case DistanceMode.LOG:
            return scale * math.log1p(base) * exponent * global_scale
        case DistanceMode.POWER:
            return scale * math.pow(base, exponent) * global_scale
        case _:
            return scale * base * global_scale


class CurvedProjector:
    def __init__(self, settings: LatticeSettings):
        self.settings = settings
        self.config = settings.curved
        self.curve_step = finite_or(self.config.curve_radians_per_step, 0.0)
        self._axes: Dict[int, Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], float]] = {}

    def _axis_data(self, prime: int) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64], float]:
        cached = self._axes.get(prime)
        if cached is None:
            axis = normalize(get_prime_axis(prime))
            _, bend = bend_frame(axis, CURVED_FRAME_THRESHOLD)
            cached = (axis, bend, step_distance(prime, self.settings.visuals))
            self._axes[prime] = cached
        return cached

    def project(self, vector: Mapping[int, int]) -> npt.NDArray[np.float64]:
        pos = np.zeros(3, dtype=np.float64)
        for p, e in vector.items():
            if not e:
                continue
            axis, bend, distance = self._axis_data(p)
            sum_cos, sum_sin = sum_trig_series(abs(e), self.curve_step * (1 if e > 0 else -1))
            pos += axis * (sum_cos * distance) + bend * (sum_sin * distance)

        target = target_distance(
            pitch_metric(vector, self.config.pitch_metric), self.config, self.settings.visuals.global_scale
        )
        length = float(np.linalg.norm(pos))
        if length > 0 and math.isfinite(target):
            pos = np.zeros(3) if target <= 0 else pos * (target / length)
        if not np.all(np.isfinite(pos)):
            logger.debug(f"Non-finite curved position for {dict(vector)}, snapping to origin.")
            pos = np.zeros(3)
        return pos

    def node_radii(self, nodes: Sequence[NodeData]) -> npt.NDArray[np.float64]:
        node_scale = self.settings.visuals.node_scale or 1.0
        return np.array(
            [GEN_SIZES.get(n.generation, DEFAULT_GEN_SIZE) * node_scale * NODE_RADIUS_FACTOR for n in nodes],
            dtype=np.float64,
        )

    def apply(self, nodes: Sequence[NodeData]) -> List[NodeData]:
        if not nodes:
            return list(nodes)
        positions = np.vstack([self.project(n.prime_vector) for n in nodes])

        if self.config.auto_spacing:
            padding = finite_or(self.config.collision_padding, 0.0)
            radii = self.node_radii(nodes)
            scale = 1.0
            for _ in range(MAX_SPACING_ITERATIONS):
                if not has_collision(positions * scale, radii, padding):
                    break
                scale *= SPACING_GROWTH
            if scale != 1.0:
                logger.debug(f"Curved auto spacing grew positions by x{scale:.3f}")
                positions = positions * scale

        return [replace(n, position=positions[i].copy()) for i, n in enumerate(nodes)]


def has_collision(
    positions: npt.NDArray[np.float64],
    radii: npt.NDArray[np.float64],
    padding: float,
) -> bool:
    """True when any two padded spheres overlap, found with a uniform spatial hash."""
    if len(positions) < 2:
        return False
    cell = max(0.0001, float(radii.max()) * 2.0 * (1.0 + padding))
    grid: Dict[Tuple[int, int, int], List[int]] = {}
    cells = np.floor(positions / cell).astype(np.int64)
    for i in range(len(positions)):
        cx, cy, cz = (int(v) for v in cells[i])
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    for j in grid.get((cx + dx, cy + dy, cz + dz), ()):
                        min_dist = (radii[i] + radii[j]) * (1.0 + padding)
                        delta = positions[i] - positions[j]
                        if float(delta @ delta) < min_dist * min_dist:
                            return True
        grid.setdefault((cx, cy, cz), []).append(i)
    return False


def apply_curved_geometry(nodes: Sequence[NodeData], settings: LatticeSettings) -> List[NodeData]:
    return CurvedProjector(settings).apply(nodes)
