"""
Equal-Step Mode
===============
A single chain of equal divisions of `base` laid out on a helix or on
stacked "graphite" rings.
"""
from __future__ import annotations

import logging
import math
from fractions import Fraction

from jilattice.config import MAX_CHAIN_LENGTH, MAX_RATIO_PERIODS, RATIO_APPROXIMATION_RESOLUTION
from jilattice.model.geometry_primitives import vec3
from jilattice.model.graph import LatticeGraph, LatticeStore, NodeData
from jilattice.model.settings import EqualStepVisualization, LatticeSettings
from jilattice.utils import CENTS_PER_OCTAVE, clamp_count

logger = logging.getLogger(__name__)


def step_ratio(cents: float) -> Fraction:
    """
    Unfolded ratio for a step, built as (approximated in-period ratio) * 2**periods.

    Only the part inside one period goes through a float, so large steps stay
    finite. The period count saturates at MAX_RATIO_PERIODS.
    """
    if math.isnan(cents):
        return Fraction(1)
    if math.isinf(cents):
        return Fraction(2) ** (MAX_RATIO_PERIODS if cents > 0 else -MAX_RATIO_PERIODS)
    periods = math.floor(cents / CENTS_PER_OCTAVE)
    value = 2.0 ** (cents / CENTS_PER_OCTAVE - periods)
    periods = max(-MAX_RATIO_PERIODS, min(MAX_RATIO_PERIODS, periods))
    ratio = Fraction(round(value * RATIO_APPROXIMATION_RESOLUTION), RATIO_APPROXIMATION_RESOLUTION)
    return ratio * Fraction(2) ** periods


def generate_equal_step(settings: LatticeSettings) -> LatticeGraph:
    config = settings.equal_step
    scale = settings.visuals.global_scale
    radius = config.radius * scale
    rise = config.z_rise * scale
    layer_gap = config.layer_gap * scale

    base = config.base
    if not (math.isfinite(base) and base > 0):
        logger.warning(f"Equal-step base {base} is not a positive number, using 2.")
        base = 2.0
    steps = clamp_count(config.range, MAX_CHAIN_LENGTH)
    divisions = config.divisions or 1
    delta_n = config.delta_n
    helix = config.visualization_mode == EqualStepVisualization.HELIX
    cycle = config.steps_per_circle if helix else divisions / (delta_n or 1)
    cycle = cycle or 1

    store = LatticeStore()
    prev_id = None
    for a in range(-steps, steps + 1):
        n = a * delta_n
        exponent = n / divisions
        # 1200 * log2(base ** exponent), kept unfolded
        cents = CENTS_PER_OCTAVE * exponent * math.log2(base)
        # Left unfolded so one period reads 2/1
        ratio = step_ratio(cents)

        theta = 2.0 * math.pi * a / cycle
        z = math.floor(a / cycle) * layer_gap if not helix else a * rise

        node_id = f"equal-step-{a}"
        store.add_node(NodeData(
            id=node_id,
            position=vec3(radius * math.cos(theta), radius * math.sin(theta), z),
            prime_vector={3: a} if a else {},
            ratio=ratio,
            octave=0,
            cents=cents,
            generation=0,
            origin_limit=0,
            parent_id=prev_id,
            name=f"Step {a}",
            step_index=a,
        ))
        if prev_id is not None:
            store.add_edge(prev_id, node_id, 3, 0)
        prev_id = node_id

    logger.debug(f"Equal-step chain: {2 * steps + 1} nodes, cycle {cycle}")
    return store.to_graph()
