"""
Sphere Mode
===========
A ball of lattice points built from 2D disks stacked along a structuring axis.
"""
from __future__ import annotations

import logging
import math

from jilattice.config import MAX_SPHERE_RADIUS
from jilattice.controller.modes.grid import GridBuilder
from jilattice.model.graph import LatticeGraph
from jilattice.model.pitch import vector_key, with_step
from jilattice.model.settings import LatticeSettings
from jilattice.utils import clamp_count

logger = logging.getLogger(__name__)


def generate_sphere(settings: LatticeSettings) -> LatticeGraph:
    config = settings.geometry.sphere
    axes = (list(config.limits) + [3, 5, 7])[:3]
    structuring = config.structuring_axis
    if structuring == axes[0]:
        plane = (axes[1], axes[2])
    elif structuring == axes[1]:
        plane = (axes[0], axes[2])
    else:
        plane = (axes[0], axes[1])
    radius = clamp_count(config.radius, MAX_SPHERE_RADIUS)
    logger.info(f"Sphere on axes {axes}, structuring axis {structuring}, radius {radius}")

    grid = GridBuilder(settings, axes)
    store = grid.builder.store
    for s in range(-radius, radius + 1):
        layer = math.floor(math.sqrt(radius * radius - s * s))
        for a in range(-layer, layer + 1):
            for b in range(-layer, layer + 1):
                if math.sqrt(a * a + b * b + s * s) > radius:
                    continue
                vec = {structuring: s, plane[0]: a, plane[1]: b}
                node = grid.add(vec)
                # Link to already placed neighbours one step back on each axis
                for prime in (structuring, plane[0], plane[1]):
                    neighbour = store.get(vector_key(with_step(vec, prime, -1)))
                    if neighbour is not None:
                        grid.builder.link(neighbour.id, node.id, prime, 0)
    return store.to_graph()
