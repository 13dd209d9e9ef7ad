"""
Node-Count Estimation
=====================
Predicts how many nodes tree mode will produce before running it, so callers
can warn about or refuse very large configurations.

Two stages: a fast combinatorial upper bound per origin, and, when that bound
is small enough, an exact count of unique prime vectors by enumerating the
branch walk without building nodes. Per-node overrides and looping are not
taken into account.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Set, Tuple

from jilattice.config import MAX_CHAIN_LENGTH, STANDARD_PRIMES
from jilattice.controller.branches import resolve_origin
from jilattice.model.pitch import PrimeVector, clean_vector, vector_key, with_step
from jilattice.model.settings import BranchRange, LatticeSettings, OriginConfig
from jilattice.utils import clamp_count

logger = logging.getLogger(__name__)

MAX_PREDICTED_NODES = 100_000_000_000_000
EXACT_ENUMERATION_LIMIT = 250_000


def _clamp(value: int) -> int:
    return min(value, MAX_PREDICTED_NODES)


def _primes_up_to(limit: int, allow_list: Optional[List[int]]) -> List[int]:
    primes = [p for p in STANDARD_PRIMES if p <= limit]
    if allow_list is not None:
        allowed = set(allow_list)
        primes = [p for p in primes if p in allowed]
    return primes


def _generation_limit(gen: int, config: OriginConfig, root: OriginConfig) -> int:
    override = root.max_prime_for_generation(gen)
    effective = override if override is not None else root.max_prime_limit
    return min(effective, config.max_prime_limit)


def _span(lengths: Mapping[int, int], ranges: Mapping[int, BranchRange], limit: int, fallback: int) -> Tuple[int, int]:
    neg = pos = lengths.get(limit, fallback)
    rng = ranges.get(limit)
    if rng is not None:
        neg, pos = rng.neg, rng.pos
    return clamp_count(neg, MAX_CHAIN_LENGTH), clamp_count(pos, MAX_CHAIN_LENGTH)


def _gen2_span(config: OriginConfig, parent: int, child: int, fallback: int) -> Tuple[int, int]:
    neg = pos = fallback
    specific = config.gen2_lengths.get(parent, {}).get(child)
    if specific is not None:
        neg = pos = specific
        rng = config.gen2_ranges.get(parent, {}).get(child)
        if rng is not None:
            neg, pos = rng.neg, rng.pos
    return clamp_count(neg, MAX_CHAIN_LENGTH), clamp_count(pos, MAX_CHAIN_LENGTH)


def _generation_primes(config: OriginConfig, root: OriginConfig) -> Dict[int, List[int]]:
    return {
        gen: _primes_up_to(_generation_limit(gen, config, root), root.prime_set_for_generation(gen))
        for gen in range(1, 5)
    }


def upper_bound(config: OriginConfig, root: OriginConfig) -> int:
    """Combinatorial upper bound on the nodes one origin can add."""
    roots = list(config.root_limits) or [3]
    primes = _generation_primes(config, root)

    axis_total = 1
    axis_by_root: Dict[int, int] = {}
    for limit in roots:
        neg, pos = _span(config.gen0_lengths, config.gen0_ranges, limit, config.expansion_a)
        axis_by_root[limit] = neg + pos
        axis_total = _clamp(axis_total + neg + pos)

    gen1_by_prime: Dict[int, int] = {}
    for prime in primes[1]:
        neg, pos = _span(config.gen1_lengths, config.gen1_ranges, prime, config.expansion_b)
        if neg + pos == 0:
            gen1_by_prime[prime] = 0
            continue
        sources = 0 if prime in axis_by_root else 1
        sources += sum(count for r, count in axis_by_root.items() if r != prime)
        gen1_by_prime[prime] = _clamp(sources * (neg + pos))
    total_gen1 = _clamp(sum(gen1_by_prime.values()))

    gen2_by_prime: Dict[int, int] = {p: 0 for p in primes[2]}
    for parent, parent_count in gen1_by_prime.items():
        if parent_count == 0:
            continue
        for child in primes[2]:
            if child == parent:
                continue
            neg, pos = _gen2_span(config, parent, child, config.expansion_c)
            gen2_by_prime[child] = _clamp(gen2_by_prime[child] + parent_count * (neg + pos))
    total_gen2 = _clamp(sum(gen2_by_prime.values()))

    def next_generation(previous: Dict[int, int], total_prev: int, lengths, ranges, fallback, gen_primes) -> Dict[int, int]:
        result: Dict[int, int] = {}
        for prime in gen_primes:
            neg, pos = _span(lengths, ranges, prime, fallback)
            sources = max(0, total_prev - previous.get(prime, 0))
            result[prime] = _clamp(sources * (neg + pos))
        return result

    gen3_by_prime: Dict[int, int] = {}
    if total_gen2 > 0:
        gen3_by_prime = next_generation(
            gen2_by_prime, total_gen2, config.gen3_lengths, config.gen3_ranges, config.expansion_d, primes[3]
        )
    total_gen3 = _clamp(sum(gen3_by_prime.values()))

    total_gen4 = 0
    if total_gen3 > 0:
        gen4_by_prime = next_generation(
            gen3_by_prime, total_gen3, config.gen4_lengths, config.gen4_ranges, config.expansion_e, primes[4]
        )
        total_gen4 = _clamp(sum(gen4_by_prime.values()))

    return _clamp(axis_total + total_gen1 + total_gen2 + total_gen3 + total_gen4)


class _VectorCounter:
    def __init__(self) -> None:
        self.seen: Set[str] = set()

    def add(self, vector: PrimeVector) -> bool:
        key = vector_key(vector)
        if key in self.seen:
            return False
        self.seen.add(key)
        return True

    def walk(self, vector: PrimeVector, limit: int, neg: int, pos: int) -> List[PrimeVector]:
        """Add both arms of a branch; return the vectors that were new."""
        fresh: List[PrimeVector] = []
        for sign, length in ((1, pos), (-1, neg)):
            for i in range(1, length + 1):
                stepped = with_step(vector, limit, sign * i)
                if self.add(stepped):
                    fresh.append(stepped)
        return fresh


def exact_count(configs: List[OriginConfig], root: OriginConfig) -> int:
    """Count unique prime vectors the branch walk visits (no overrides, no looping)."""
    counter = _VectorCounter()
    for config in configs:
        primes = _generation_primes(config, root)
        limits = list(config.root_limits) or [3]
        origin_vec = clean_vector(config.prime_vector)

        axis_nodes: List[Tuple[PrimeVector, int]] = []
        if counter.add(origin_vec):
            axis_nodes.append((origin_vec, 0))
        for limit in limits:
            neg, pos = _span(config.gen0_lengths, config.gen0_ranges, limit, config.expansion_a)
            axis_nodes.extend((v, limit) for v in counter.walk(origin_vec, limit, neg, pos))

        gen1: List[Tuple[PrimeVector, int]] = []
        for vec, origin_limit in axis_nodes:
            for limit in primes[1]:
                if (origin_limit == 0 and limit in limits) or limit == origin_limit:
                    continue
                neg, pos = _span(config.gen1_lengths, config.gen1_ranges, limit, config.expansion_b)
                gen1.extend((v, limit) for v in counter.walk(vec, limit, neg, pos))

        gen2: List[Tuple[PrimeVector, int]] = []
        for vec, origin_limit in gen1:
            for limit in primes[2]:
                if limit == origin_limit:
                    continue
                neg, pos = _gen2_span(config, origin_limit, limit, config.expansion_c)
                gen2.extend((v, limit) for v in counter.walk(vec, limit, neg, pos))

        gen3: List[Tuple[PrimeVector, int]] = []
        for vec, origin_limit in gen2:
            for limit in primes[3]:
                if limit == origin_limit:
                    continue
                neg, pos = _span(config.gen3_lengths, config.gen3_ranges, limit, config.expansion_d)
                gen3.extend((v, limit) for v in counter.walk(vec, limit, neg, pos))

        for vec, origin_limit in gen3:
            for limit in primes[4]:
                if limit == origin_limit:
                    continue
                neg, pos = _span(config.gen4_lengths, config.gen4_ranges, limit, config.expansion_e)
                counter.walk(vec, limit, neg, pos)
    return len(counter.seen)


def estimate_node_count(settings: LatticeSettings) -> int:
    """
    Predicted node count for tree mode (or the exact count for equal-step).

    Returns the exact number of unique vectors when the upper bound is at
    most `EXACT_ENUMERATION_LIMIT`, otherwise the (clamped) upper bound.
    """
    if settings.equal_step.enabled:
        return 2 * clamp_count(settings.equal_step.range, MAX_CHAIN_LENGTH) + 1

    root = settings.root
    if settings.simple_mode:
        root = replace(root, expansion_c=0, expansion_d=0, expansion_e=0)
    configs = [root] + [resolve_origin(o, root) for o in settings.secondary_origins]

    bound = 0
    for config in configs:
        bound = _clamp(bound + upper_bound(config, root))
        if bound >= MAX_PREDICTED_NODES:
            break

    if bound > EXACT_ENUMERATION_LIMIT:
        logger.debug(f"Node estimate uses the upper bound {bound}")
        return bound
    return exact_count(configs, root)
