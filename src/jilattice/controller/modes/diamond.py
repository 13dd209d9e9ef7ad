"""
Tonality Diamond Mode
=====================
Every ratio u_i / u_j of the odd identities 1, 3, ..., limit, drawn as a
rotated square grid in the XY plane.
"""
from __future__ import annotations

import logging

from jilattice.controller.nodes import LatticeBuilder
from jilattice.model.geometry_primitives import vec3
from jilattice.model.graph import LatticeGraph
from jilattice.model.pitch import prime_vector_from_ratio
from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)

DIAMOND_SPACING = 4.0


def diamond_id(i: int, j: int) -> str:
    return f"diamond-{i}-{j}"


def generate_diamond(settings: LatticeSettings) -> LatticeGraph:
    limit = settings.visuals.diamond_limit or 7
    identities = list(range(1, limit + 1, 2))
    spacing = DIAMOND_SPACING * settings.visuals.global_scale

    builder = LatticeBuilder(settings)
    builder.factory.use_tables(settings.root.axis_looping, settings.root.comma_spreading)
    for i, u in enumerate(identities):
        for j, v in enumerate(identities):
            node = builder.add(
                prime_vector_from_ratio(u, v),
                generation=0,
                origin_limit=0,
                position=vec3((i + j) * spacing, (i - j) * spacing, 0.0),
                node_id=diamond_id(i, j),
            )
            if i > 0:
                builder.link(diamond_id(i - 1, j), node.id, 3, 0)
            if j > 0:
                builder.link(diamond_id(i, j - 1), node.id, 3, 0)

    logger.debug(f"Diamond over {len(identities)} odd identities")
    return builder.store.to_graph()
