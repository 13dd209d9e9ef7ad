"""
Spiral Mode
===========
Wraps one prime axis into up to three nested spirals and hangs short
generation-1/2 branches off it in the local frame of each chain node.

Why is this file needed?
------------------------
1. Nesting: the tertiary spiral turns about Z; the secondary turns about Y
   when a tertiary is active (else Z); the primary turns about Y when either
   outer spiral is active (else Z). Rotations compose by post-multiplication,
   and each level adds its radius vector in the rotated frame.
2. Drift: every active level adds `i * rise / steps` along Z.
3. Frames: branch nodes are placed in the frame of the chain node they grow
   from, so the branches follow the spiral instead of the world axes. The
   frame travels with each frontier entry.
4. Origins: secondary origins grow the same spiral from their own lattice
   point, sharing nodes with the root where their vectors meet.
"""
from __future__ import annotations

import logging
import math
from typing import List, NamedTuple, Tuple, TYPE_CHECKING

import numpy as np
from scipy.spatial.transform import Rotation

from jilattice.config import MAX_BRANCH_LENGTH, MAX_CHAIN_LENGTH, get_prime_axis
from jilattice.controller.branches import axis_universe, primes_up_to, resolve_generation_limit, resolve_origin
from jilattice.controller.embedding import step_distance
from jilattice.controller.nodes import LatticeBuilder
from jilattice.model.geometry_primitives import Z_AXIS, UP, origin, vec3
from jilattice.model.graph import LatticeGraph
from jilattice.model.pitch import PrimeVector, clean_vector, vector_key, with_step
from jilattice.model.settings import LatticeSettings, OriginConfig, SpiralConfig
from jilattice.utils import clamp_count

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class SpiralFrontier(NamedTuple):
    id: str
    vector: PrimeVector
    origin_limit: int
    frame: Rotation


def chain_frame(i: int, config: SpiralConfig, global_scale: float) -> Tuple[Rotation, npt.NDArray[np.float64]]:
    """Orientation and position of chain step `i`."""
    primary = config.primary_step or 12
    secondary = config.secondary_step or 0
    tertiary = config.tertiary_step or 0

    r1 = (config.radius1 or 40.0) * global_scale
    r2 = (config.radius2 or 20.0) * global_scale
    r3 = (config.radius3 or 200.0) * global_scale

    primary_rise = config.rise / (primary if primary > 0 else 1) * global_scale
    secondary_rise = config.rise2 / (secondary if secondary > 0 else 1) * global_scale
    tertiary_rise = config.rise3 / (tertiary if tertiary > 0 else 1) * global_scale

    frame = Rotation.identity()
    pos = origin()
    drift = 0.0

    if tertiary > 0:
        frame = frame * Rotation.from_rotvec(Z_AXIS * (i / tertiary * 2.0 * math.pi))
        pos = pos + frame.apply(vec3(r3))
        drift += i * tertiary_rise
    if secondary > 0:
        axis = UP if tertiary > 0 else Z_AXIS
        frame = frame * Rotation.from_rotvec(axis * (i / secondary * 2.0 * math.pi))
        pos = pos + frame.apply(vec3(r2))
        drift += i * secondary_rise

    theta = i / primary * 2.0 * math.pi if primary > 0 else 0.0
    axis = UP if (tertiary > 0 or secondary > 0) else Z_AXIS
    frame = frame * Rotation.from_rotvec(axis * theta)
    pos = pos + frame.apply(vec3(r1))
    drift += i * primary_rise

    return frame, pos + vec3(0.0, 0.0, drift)


class SpiralExpander:
    def __init__(self, settings: LatticeSettings):
        self.settings = settings
        self.config = settings.spiral
        self.builder = LatticeBuilder(settings)
        self.universe = axis_universe(settings)

    def expand(self) -> LatticeGraph:
        root = self.settings.root
        for config in [root, *self.settings.secondary_origins]:
            self.expand_origin(resolve_origin(config, root), root)
        return self.builder.store.to_graph()

    def expand_origin(self, config: OriginConfig, root: OriginConfig) -> None:
        """Grow one origin's spiral chain and its generation 1/2 branches into the shared store."""
        self.builder.factory.use_tables(config.axis_looping, config.comma_spreading)
        axis = self.config.axis or 3
        chain = self._chain(config, axis, secondary=config is not root)

        gen1_primes = primes_up_to(self.universe, resolve_generation_limit(1, config, root), config.gen1_prime_set)
        gen2_primes = primes_up_to(self.universe, resolve_generation_limit(2, config, root), config.gen2_prime_set)
        gen1_len = clamp_count(self.config.expansion_b, MAX_BRANCH_LENGTH)
        gen2_len = clamp_count(self.config.expansion_c, MAX_BRANCH_LENGTH)

        gen1: List[SpiralFrontier] = []
        for src in chain:
            for limit in gen1_primes:
                if limit == axis:
                    continue
                gen1.extend(self._branch(src, limit, gen1_len, 1))

        if gen2_len > 0:
            for src in gen1:
                for limit in gen2_primes:
                    if limit == src.origin_limit:
                        continue
                    self._branch(src, limit, gen2_len, 2)

    def _chain(self, config: OriginConfig, axis: int, secondary: bool = False) -> List[SpiralFrontier]:
        length = clamp_count(self.config.length or 60, MAX_CHAIN_LENGTH)
        start, end = -(length // 2), -(-length // 2)
        scale = self.settings.visuals.global_scale
        logger.info(f"Spiral chain for origin '{config.id}' on axis {axis}: steps {start}..{end}")

        # Secondary origins run the same spiral, shifted so that step 0 sits on the origin's lattice point
        base = clean_vector(config.prime_vector) if secondary else {}
        offset = origin()
        if base:
            offset = self.builder.factory.create(base, 0, axis).position - chain_frame(0, self.config, scale)[1]

        chain: List[SpiralFrontier] = []
        for i in range(start, end + 1):
            vec = with_step(base, axis, i)
            frame, pos = chain_frame(i, self.config, scale)
            node = self.builder.add(vec, 0, axis, None, position=pos + offset)
            chain.append(SpiralFrontier(node.id, node.prime_vector, axis, frame))
            prev_id = vector_key(with_step(vec, axis, -1))
            if prev_id in self.builder.store:
                self.builder.link(prev_id, node.id, axis, 0)
        return chain

    def _branch(self, src: SpiralFrontier, limit: int, length: int, gen: int) -> List[SpiralFrontier]:
        out: List[SpiralFrontier] = []
        step = get_prime_axis(limit) * step_distance(limit, self.settings.visuals)
        for sign in (1, -1):
            prev = self.builder.store.get(src.id)
            for i in range(1, length + 1):
                vec = with_step(src.vector, limit, sign * i)
                position = prev.position + src.frame.apply(step * sign)
                node = self.builder.add(vec, gen, limit, prev.id, position=position)
                self.builder.link(prev.id, node.id, limit, gen)
                out.append(SpiralFrontier(node.id, vec, limit, src.frame))
                prev = node
        return out


def generate_spiral(settings: LatticeSettings) -> LatticeGraph:
    return SpiralExpander(settings).expand()
