"""
Rectangular & Custom Grid Mode
==============================
A dense d1 x d2 x d3 block over three prime axes, optionally carved by a
user formula.

Why is this file needed?
------------------------
1. Grid: exponents run `i - floor(d/2)` for i in [0, d), so each axis is
   centred on 0; edges link every node to its predecessor on each axis.
2. Overrides: nodes listed in the override table grow `pos`/`neg` branches
   along all three grid axes.
3. Custom shapes: only nodes passing the membership test survive (implicit
   surface, voxel predicate, or distance to a sampled parametric curve or
   surface), together with the edges between survivors.
"""
from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, TYPE_CHECKING

import numpy as np
from scipy.spatial import cKDTree

from jilattice.config import MAX_BRANCH_LENGTH, MAX_GRID_DIMENSION
from jilattice.controller.embedding import grid_position
from jilattice.controller.expressions import (
    compile_expression, compile_vector_expression, evaluate_vector
)
from jilattice.controller.nodes import LatticeBuilder
from jilattice.model.graph import LatticeGraph, NodeData
from jilattice.model.pitch import PrimeVector, clean_vector, vector_key, with_step
from jilattice.model.settings import (
    CustomShapeConfig, CustomStyle, GridMode, InputSpace, LatticeSettings, ParametricConfig,
    ParametricMode, ThresholdMode
)
from jilattice.utils import clamp_count, finite_or

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

MIN_PARAMETRIC_THICKNESS = 0.0001
DEFAULT_EPSILON = 0.4


def dominant_axis(vector: PrimeVector, axes: Sequence[int]) -> int:
    """Axis with the largest |exponent|, ties to the smaller prime; 0 when all are zero."""
    best = max(sorted(axes), key=lambda p: abs(vector.get(p, 0)), default=0)
    return best if vector.get(best, 0) else 0


def exponent_sum(vector: PrimeVector, axes: Sequence[int]) -> int:
    return sum(abs(vector.get(p, 0)) for p in axes)


class GridBuilder:
    """Adds straight-embedded grid nodes whose generation is their exponent distance."""

    def __init__(self, settings: LatticeSettings, axes: Sequence[int]):
        self.settings = settings
        self.axes = list(axes)
        self.builder = LatticeBuilder(settings)
        self.builder.factory.use_tables(None, None)
        self.spacing = settings.geometry.spacing

    def add(self, vector: PrimeVector, parent_gen: int = 0) -> NodeData:
        vector = clean_vector(vector)
        existing = self.builder.store.get(vector_key(vector))
        if existing is not None:
            return existing
        return self.builder.add(
            vector,
            generation=max(parent_gen, exponent_sum(vector, self.axes)),
            origin_limit=dominant_axis(vector, self.axes),
            position=grid_position(vector, self.settings.visuals, self.spacing),
        )


def generate_grid(settings: LatticeSettings) -> LatticeGraph:
    geometry = settings.geometry
    axes = (list(geometry.limits) + [3, 5, 7])[:3]
    dims = [clamp_count(d, MAX_GRID_DIMENSION) for d in (list(geometry.dimensions) + [1, 1, 1])[:3]]
    p1, p2, p3 = axes
    d1, d2, d3 = dims

    grid = GridBuilder(settings, axes)
    for x in range(d1):
        for y in range(d2):
            for z in range(d3):
                vec = {p1: x - d1 // 2, p2: y - d2 // 2, p3: z - d3 // 2}
                node = grid.add(vec)
                for index, prime in ((x, p1), (y, p2), (z, p3)):
                    if index > 0:
                        prev = grid.add(with_step(vec, prime, -1))
                        grid.builder.link(prev.id, node.id, prime, 0)

    if not settings.ignore_overrides:
        _grow_override_branches(grid, settings)

    graph = grid.builder.store.to_graph()
    if geometry.mode == GridMode.CUSTOM:
        graph = _carve(graph, geometry.custom, axes)
    return graph


def _grow_override_branches(grid: GridBuilder, settings: LatticeSettings) -> None:
    for node_id, override in settings.node_branch_overrides.items():
        parent = grid.builder.store.get(node_id)
        if parent is None:
            continue
        branch_gen = parent.generation + 1
        pos_len = clamp_count(override.pos, MAX_BRANCH_LENGTH)
        neg_len = clamp_count(override.neg, MAX_BRANCH_LENGTH)
        for limit in grid.axes:
            base = parent.prime_vector
            for sign, length in ((1, pos_len), (-1, neg_len)):
                prev = parent
                for i in range(1, length + 1):
                    node = grid.add(with_step(base, limit, sign * i), branch_gen)
                    grid.builder.link(prev.id, node.id, limit, branch_gen)
                    prev = node


# ------------------------------------------------------------------------------
# Custom shapes
# ------------------------------------------------------------------------------
def membership_context(node: NodeData, axes: Sequence[int], input_space: InputSpace) -> Dict[str, float]:
    """Variables visible to a custom formula for one node."""
    p1, p2, p3 = axes
    e1 = node.prime_vector.get(p1, 0)
    e2 = node.prime_vector.get(p2, 0)
    e3 = node.prime_vector.get(p3, 0)
    ctx: Dict[str, float] = {
        "l1": float(p1),
        "l2": float(p2),
        "l3": float(p3),
        "gen": float(abs(e1) + abs(e2) + abs(e3)),
    }
    if input_space != InputSpace.WORLD:
        ctx.update(a=e1, b=e2, c=e3, p1=e1, p2=e2, p3=e3, r=math.sqrt(e1 * e1 + e2 * e2 + e3 * e3))
    if input_space != InputSpace.LATTICE:
        x, y, z = (float(v) for v in node.position)
        ctx.update(x=x, y=y, z=z, rw=float(np.linalg.norm(node.position)))
    return ctx


def sample_parametric(config: ParametricConfig) -> npt.NDArray[np.float64]:
    """Sample a parametric curve (t) or surface (u, v); invalid samples are skipped."""
    components = compile_vector_expression(config.expression)
    if components is None:
        return np.empty((0, 3), dtype=np.float64)

    u_steps = max(2, math.floor(finite_or(config.u_steps, 60)))
    v_steps = max(2, math.floor(finite_or(config.v_steps, 30)))
    us = np.linspace(config.u_min, config.u_max, u_steps)

    points: List[tuple] = []
    if config.mode == ParametricMode.CURVE:
        for t in us:
            pt = evaluate_vector(components, {"t": float(t)})
            if pt is not None:
                points.append(pt)
    else:
        vs = np.linspace(config.v_min, config.v_max, v_steps)
        for u in us:
            for v in vs:
                pt = evaluate_vector(components, {"u": float(u), "v": float(v)})
                if pt is not None:
                    points.append(pt)
    return np.array(points, dtype=np.float64).reshape(-1, 3)


class ShapeMembership:
    """Membership predicate for one custom shape configuration."""

    def __init__(self, config: CustomShapeConfig, axes: Sequence[int]):
        self.config = config
        self.axes = list(axes)
        self.tree: Optional[cKDTree] = None
        self.expression = None
        if config.style == CustomStyle.PARAMETRIC:
            samples = sample_parametric(config.parametric)
            if len(samples):
                self.tree = cKDTree(samples)
            self.thickness = max(MIN_PARAMETRIC_THICKNESS, config.parametric.thickness or 1.0)
            logger.debug(f"Parametric shape sampled at {len(samples)} points")
        elif config.style == CustomStyle.VOXEL:
            self.expression = compile_expression(config.voxel_expression or config.implicit_expression)
        else:
            self.expression = compile_expression(config.implicit_expression)

    def __call__(self, node: NodeData) -> bool:
        if self.config.style == CustomStyle.PARAMETRIC:
            if self.tree is None:
                return False
            distance, _ = self.tree.query(node.position)
            return bool(distance <= self.thickness)

        value = self.expression.evaluate(membership_context(node, self.axes, self.config.input_space))
        if value is None:
            return False
        if self.config.style == CustomStyle.VOXEL:
            return value > 0
        if self.config.threshold_mode == ThresholdMode.ABS:
            return abs(value) <= finite_or(self.config.epsilon, DEFAULT_EPSILON)
        return value <= 0


def _carve(graph: LatticeGraph, config: CustomShapeConfig, axes: Sequence[int]) -> LatticeGraph:
    matches = ShapeMembership(config, axes)
    kept = {n.id for n in graph.nodes if matches(n)}
    logger.info(f"Custom shape kept {len(kept)} of {len(graph.nodes)} grid nodes")
    return graph.restricted_to(kept)
