"""
Branch Expansion (Tree Mode)
============================
Grows the default lattice: from each origin, axis chains (generation 0), then
branches off those chains (generation 1), branches off the branches
(generation 2), and so on up to `MAX_GENERATION`.

Why is this file needed?
------------------------
1. Length resolution: every branch length comes from a layered lookup
   (expansion defaults, per-axis tables, asymmetric ranges, loop lengths,
   per-node overrides), all resolved here.
2. Prime selection: which axes a generation may branch along depends on the
   per-generation prime ceilings and allow-lists.
3. Sharing: branches that reach an existing prime vector reuse its node, so
   the result is a graph, not a literal tree.

Classes:
    BranchOverrides: Read-only view of the per-node override table.
    Frontier: A node that can be branched from, with the axis it was reached on.
    TreeExpander: Runs the expansion for every origin.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from jilattice.config import (
    MAX_BRANCH_LENGTH, MAX_CHAIN_LENGTH, MAX_GENERATION, STANDARD_PRIMES, get_prime_axis
)
from jilattice.controller.embedding import LOOP_FRAME_THRESHOLD, step_distance
from jilattice.model.geometry_primitives import bend_frame, normalize
from jilattice.model.pitch import PrimeVector, clean_vector, is_prime, with_step
from jilattice.model.settings import BranchRange, NodeBranchOverride, OriginConfig
from jilattice.utils import clamp_count

if TYPE_CHECKING:
    import numpy.typing as npt
    from jilattice.controller.nodes import LatticeBuilder
    from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)

# Custom curve deviation is measured in units of this many axis steps
CURVE_DEVIATION_STEPS = 5.0


class Frontier(NamedTuple):
    id: str
    vector: PrimeVector
    origin_limit: int


@dataclass(frozen=True)
class BranchOverrides:
    """
    Per-node branch overrides, passed explicitly down the expansion.

    When `ignore` is set the table is treated as empty.
    """
    table: Dict[str, NodeBranchOverride]
    ignore: bool = False

    def get(self, node_id: str) -> Optional[NodeBranchOverride]:
        if self.ignore:
            return None
        return self.table.get(node_id)

    def extra_axes(self, node_id: str) -> List[int]:
        override = self.get(node_id)
        return sorted(override.axis_overrides) if override else []

    def effective_lengths(
        self,
        node_id: str,
        limit: int,
        default_pos: int,
        default_neg: int,
    ) -> Tuple[int, int, bool]:
        """
        Lengths for one branch after applying overrides.

        Returns:
            (pos, neg, has_axis_override). Override values are clamped to
            [0, MAX_BRANCH_LENGTH]; missing sides keep the default.
        """
        override = self.get(node_id)
        if override is None:
            return default_pos, default_neg, False

        axis_override = override.axis_overrides.get(limit)
        if axis_override is not None:
            pos = clamp_count(axis_override.pos, MAX_BRANCH_LENGTH) if axis_override.pos is not None else default_pos
            neg = clamp_count(axis_override.neg, MAX_BRANCH_LENGTH) if axis_override.neg is not None else default_neg
            return pos, neg, True

        pos = clamp_count(override.pos, MAX_BRANCH_LENGTH) if override.pos is not None else default_pos
        neg = clamp_count(override.neg, MAX_BRANCH_LENGTH) if override.neg is not None else default_neg
        return pos, neg, False

    def custom_curve(self, node_id: str, limit: int) -> Sequence[Tuple[float, float]]:
        override = self.get(node_id)
        if override is None:
            return ()
        axis_override = override.axis_overrides.get(limit)
        return axis_override.custom_curve if axis_override else ()

    @staticmethod
    def from_settings(settings: LatticeSettings) -> BranchOverrides:
        return BranchOverrides(table=settings.node_branch_overrides, ignore=settings.ignore_overrides)


def axis_universe(settings: LatticeSettings) -> List[int]:
    """Every axis the lattice may use: standard primes, custom primes, root limits, override axes."""
    axes = set(STANDARD_PRIMES)
    axes.update(cp.prime for cp in settings.custom_primes)
    for origin_config in settings.origins():
        axes.update(origin_config.root_limits)
    for override in settings.node_branch_overrides.values():
        axes.update(override.axis_overrides)
    return sorted(axes)


def primes_up_to(universe: Iterable[int], limit: int, allow_list: Optional[Sequence[int]] = None) -> List[int]:
    primes = [p for p in universe if p <= limit and is_prime(p)]
    if allow_list is not None:
        allowed = set(allow_list)
        primes = [p for p in primes if p in allowed]
    return primes


def resolve_generation_limit(gen: int, config: OriginConfig, root: OriginConfig) -> int:
    """Prime ceiling for a generation: origin override, else root override, never above the origin's max."""
    override = config.max_prime_for_generation(gen)
    if override is None:
        override = root.max_prime_for_generation(gen)
    effective = override if override is not None else config.max_prime_limit
    return min(effective, config.max_prime_limit)


def resolve_origin(config: OriginConfig, root: OriginConfig) -> OriginConfig:
    """Fill a secondary origin's unset optional fields from the global root."""
    if config is root:
        return config
    updates = {}
    for gen in range(1, 5):
        if config.prime_set_for_generation(gen) is None:
            updates[f"gen{gen}_prime_set"] = root.prime_set_for_generation(gen)
    if config.axis_looping is None:
        updates["axis_looping"] = root.axis_looping
    if config.comma_spreading is None:
        updates["comma_spreading"] = root.comma_spreading
    if config.gen0_customize_enabled is None:
        updates["gen0_customize_enabled"] = root.gen0_customize_enabled
    return replace(config, **updates) if updates else config


def _merge_axes(base: Sequence[int], extras: Sequence[int]) -> List[int]:
    if not extras:
        return list(base)
    return sorted(set(base) | set(extras))


def _range_lengths(ranges: Dict[int, BranchRange], limit: int, neg: int, pos: int) -> Tuple[int, int]:
    rng = ranges.get(limit)
    if rng is not None:
        return rng.neg, rng.pos
    return neg, pos


class TreeExpander:
    """Default-mode lattice growth for all origins of one settings snapshot."""

    def __init__(
        self,
        settings: LatticeSettings,
        builder: LatticeBuilder,
        overrides: Optional[BranchOverrides] = None,
        curved_enabled: bool = False,
    ):
        self.settings = settings
        self.builder = builder
        self.overrides = overrides if overrides is not None else BranchOverrides.from_settings(settings)
        self.curved_enabled = curved_enabled
        self.universe = axis_universe(settings)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def expand(self) -> None:
        root = self.settings.root
        if self.settings.simple_mode:
            root = replace(root, expansion_c=0, expansion_d=0, expansion_e=0)
        for config in [root, *self.settings.secondary_origins]:
            self.expand_origin(resolve_origin(config, root), root)

    def expand_origin(self, config: OriginConfig, root: OriginConfig) -> None:
        logger.debug(f"Expanding origin '{config.id}' at {config.prime_vector}")
        self.builder.factory.use_tables(config.axis_looping, config.comma_spreading)

        primes = {
            gen: primes_up_to(
                self.universe,
                resolve_generation_limit(gen, config, root),
                config.prime_set_for_generation(gen),
            )
            for gen in range(1, 5)
        }
        limits = self._root_limits(config)

        axis_nodes = self._expand_axes(config, limits)
        gen1_nodes = self._expand_gen1(config, axis_nodes, limits, primes[1])
        gen2_nodes = self._expand_gen2(config, gen1_nodes, primes[1], primes[2])

        current = gen2_nodes
        for gen in range(3, MAX_GENERATION + 1):
            if not current:
                break
            if gen == 3:
                default, lengths, ranges = config.expansion_d, config.gen3_lengths, config.gen3_ranges
            elif gen == 4:
                default, lengths, ranges = config.expansion_e, config.gen4_lengths, config.gen4_ranges
            else:
                default, lengths, ranges = 0, {}, {}
            gen_primes = primes[3] if gen <= 3 else primes[4]
            prev_primes = primes[2] if gen == 3 else primes[3] if gen == 4 else primes[4]
            current = self._expand_generation(current, gen, default, lengths, ranges, gen_primes, prev_primes)

    # ------------------------------------------------------------------
    # Generations
    # ------------------------------------------------------------------
    def _root_limits(self, config: OriginConfig) -> List[int]:
        limits = list(config.root_limits) or [3]
        if self.curved_enabled:
            limits = [p for p in limits if abs(p) % 2 == 1] or [3]
        return limits

    def _gen0_lengths(self, config: OriginConfig, limit: int) -> Tuple[int, int]:
        neg = pos = config.expansion_a
        explicit = config.gen0_lengths.get(limit)
        rng = config.gen0_ranges.get(limit)
        explicit_zero = explicit == 0 or (rng is not None and rng.neg == 0 and rng.pos == 0)

        if config.gen0_customize_enabled is not False:
            if explicit is not None:
                neg = pos = explicit
            loop = config.axis_looping.get(limit) if config.axis_looping else None
            if not explicit_zero and loop and loop > 0:
                neg, pos = math.floor(loop), math.ceil(loop)
            elif rng is not None:
                neg, pos = rng.neg, rng.pos
        return clamp_count(neg, MAX_CHAIN_LENGTH), clamp_count(pos, MAX_CHAIN_LENGTH)

    def _expand_axes(self, config: OriginConfig, limits: List[int]) -> List[Frontier]:
        origin_vec = clean_vector(config.prime_vector)
        root_node = self.builder.add(origin_vec, 0, 0, None)
        axis_nodes = [Frontier(root_node.id, origin_vec, 0)]
        source = axis_nodes[0]
        for limit in limits:
            neg, pos = self._gen0_lengths(config, limit)
            if neg <= 0 and pos <= 0:
                continue
            axis_nodes.extend(self._walk(source, limit, pos, 1, 0, curve=()))
            axis_nodes.extend(self._walk(source, limit, neg, -1, 0, curve=()))
        return axis_nodes

    def _expand_gen1(
        self,
        config: OriginConfig,
        axis_nodes: List[Frontier],
        limits: List[int],
        gen1_primes: List[int],
    ) -> List[Frontier]:
        out: List[Frontier] = []
        for src in axis_nodes:
            for limit in _merge_axes(gen1_primes, self.overrides.extra_axes(src.id)):
                neg = pos = config.gen1_lengths.get(limit, config.expansion_b)
                neg, pos = _range_lengths(config.gen1_ranges, limit, neg, pos)
                pos, neg, has_axis = self.overrides.effective_lengths(src.id, limit, pos, neg)

                if src.origin_limit == 0:
                    if limit in limits and not has_axis:
                        continue
                elif limit == src.origin_limit and not has_axis:
                    continue
                out.extend(self._branch(src, limit, pos, neg, 1))
        return out

    def _expand_gen2(
        self,
        config: OriginConfig,
        gen1_nodes: List[Frontier],
        gen1_primes: List[int],
        gen2_primes: List[int],
    ) -> List[Frontier]:
        out: List[Frontier] = []
        for src in gen1_nodes:
            standard = src.origin_limit in gen1_primes
            by_child = config.gen2_lengths.get(src.origin_limit, {})
            ranges = config.gen2_ranges.get(src.origin_limit, {})
            for limit in _merge_axes(gen2_primes, self.overrides.extra_axes(src.id)):
                neg = pos = config.expansion_c if standard else 0
                specific = by_child.get(limit)
                if specific is not None:
                    neg = pos = specific
                    neg, pos = _range_lengths(ranges, limit, neg, pos)
                pos, neg, has_axis = self.overrides.effective_lengths(src.id, limit, pos, neg)
                if limit == src.origin_limit and not has_axis:
                    continue
                out.extend(self._branch(src, limit, pos, neg, 2))
        return out

    def _expand_generation(
        self,
        sources: List[Frontier],
        gen: int,
        default_length: int,
        lengths: Dict[int, int],
        ranges: Dict[int, BranchRange],
        gen_primes: List[int],
        prev_primes: List[int],
    ) -> List[Frontier]:
        out: List[Frontier] = []
        for src in sources:
            standard = src.origin_limit in prev_primes
            for limit in _merge_axes(gen_primes, self.overrides.extra_axes(src.id)):
                neg = pos = default_length if standard else 0
                if limit in lengths:
                    neg = pos = lengths[limit]
                neg, pos = _range_lengths(ranges, limit, neg, pos)
                pos, neg, has_axis = self.overrides.effective_lengths(src.id, limit, pos, neg)
                if limit == src.origin_limit and not has_axis:
                    continue
                out.extend(self._branch(src, limit, pos, neg, gen))
        return out

    # ------------------------------------------------------------------
    # Walking
    # ------------------------------------------------------------------
    def _branch(self, src: Frontier, limit: int, pos: int, neg: int, gen: int) -> List[Frontier]:
        pos = clamp_count(pos, MAX_BRANCH_LENGTH)
        neg = clamp_count(neg, MAX_BRANCH_LENGTH)
        if pos <= 0 and neg <= 0:
            return []
        curve = self.overrides.custom_curve(src.id, limit)
        return self._walk(src, limit, pos, 1, gen, curve) + self._walk(src, limit, neg, -1, gen, curve)

    def _walk(
        self,
        src: Frontier,
        limit: int,
        length: int,
        sign: int,
        gen: int,
        curve: Sequence[Tuple[float, float]],
    ) -> List[Frontier]:
        """Step `length` times along `limit` in direction `sign`, linking each node to its predecessor."""
        out: List[Frontier] = []
        prev_id = src.id
        for i in range(1, length + 1):
            vec = with_step(src.vector, limit, sign * i)
            position = self._curve_position(src.id, limit, i, length, sign, curve) if len(curve) >= 2 else None
            node = self.builder.add(vec, gen, limit, prev_id, position)
            self.builder.link(prev_id, node.id, limit, gen)
            out.append(Frontier(node.id, vec, limit))
            prev_id = node.id
        return out

    def _curve_position(
        self,
        source_id: str,
        limit: int,
        i: int,
        length: int,
        sign: int,
        curve: Sequence[Tuple[float, float]],
    ) -> npt.NDArray[np.float64]:
        """Position on a user-drawn branch curve; deviation is interpolated and clamped at the ends."""
        points = sorted(curve, key=lambda pt: pt[0])
        xs = np.array([pt[0] for pt in points], dtype=np.float64)
        ys = np.array([pt[1] for pt in points], dtype=np.float64)
        progress = i / max(1, length)
        deviation = float(np.interp(progress, xs, ys))

        distance = step_distance(limit, self.builder.factory.visuals)
        axis = normalize(get_prime_axis(limit))
        _, bend = bend_frame(axis, LOOP_FRAME_THRESHOLD)
        base = self.builder.store.get(source_id).position
        return base + axis * (sign * i * distance) + bend * (deviation * CURVE_DEVIATION_STEPS * distance)
