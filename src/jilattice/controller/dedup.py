"""
Perceptual Deduplication
========================
Merges nodes whose pitch classes lie closer than a tolerance (in cents).

Why is this file needed?
------------------------
Large lattices contain many pitches that are audibly identical modulo the
octave. This pass keeps one representative per cluster, chosen by a priority
order, and reroutes every edge onto the representatives.

Algorithm:
1. Stable-sort nodes by the priority criteria ('gen', 'limit', 'origin').
2. Sweep in that order. Each kept node is filed in a circular bucket
   `floor((cents mod 1200) / T)`. A later node is merged into the first kept
   node within the buckets covering [c - T, c + T] whose circular distance is
   strictly below T.
3. Remap edges, drop self-loops, and keep one edge per
   (sorted pair, limit, generation).
"""
from __future__ import annotations

import functools
import logging
import math
from typing import Callable, Dict, List, Sequence, Set, Tuple

from jilattice.model.graph import EdgeData, LatticeGraph, NodeData, make_edge_id
from jilattice.model.pitch import pitch_class_distance
from jilattice.model.settings import PriorityCriterion
from jilattice.utils import CENTS_PER_OCTAVE

logger = logging.getLogger(__name__)

# Distances from the origin closer than this compare as equal
ORIGIN_DEAD_BAND = 0.1


def _by_gen(a: NodeData, b: NodeData) -> int:
    return a.generation - b.generation


def _by_limit(a: NodeData, b: NodeData) -> int:
    return a.origin_limit - b.origin_limit


def _by_origin(a: NodeData, b: NodeData) -> int:
    dist_a = float(a.position @ a.position)
    dist_b = float(b.position @ b.position)
    if abs(dist_a - dist_b) > ORIGIN_DEAD_BAND:
        return -1 if dist_a < dist_b else 1
    return 0


_CRITERIA: Dict[PriorityCriterion, Callable[[NodeData, NodeData], int]] = {
    PriorityCriterion.GEN: _by_gen,
    PriorityCriterion.LIMIT: _by_limit,
    PriorityCriterion.ORIGIN: _by_origin,
}


def priority_comparator(priority_order: Sequence[str]) -> Callable[[NodeData, NodeData], int]:
    """Chain the named criteria; unknown names are skipped with a warning."""
    comparators = []
    for name in priority_order:
        try:
            comparators.append(_CRITERIA[PriorityCriterion(name)])
        except ValueError:
            logger.warning(f"Unknown dedup priority criterion '{name}' ignored.")

    def compare(a: NodeData, b: NodeData) -> int:
        for comparator in comparators:
            result = comparator(a, b)
            if result:
                return result
        return 0

    return compare


class PitchClassBuckets:
    """Circular bucket index over [0, 1200) cents with bucket width `tolerance`."""

    def __init__(self, tolerance: float):
        self.tolerance = tolerance
        self.count = max(1, math.ceil(CENTS_PER_OCTAVE / tolerance))
        self.buckets: Dict[int, List[NodeData]] = {}

    def bucket_of(self, cents: float) -> int:
        return int(math.floor((cents % CENTS_PER_OCTAVE) / self.tolerance)) % self.count

    def candidates(self, cents: float) -> List[int]:
        """Buckets covering [c - T, c + T], wrapping around the octave."""
        center = self.bucket_of(cents)
        reach = 1 if self.count > 2 else self.count
        ids = []
        for offset in range(-reach, reach + 1):
            bucket = (center + offset) % self.count
            if bucket not in ids:
                ids.append(bucket)
        # A narrow last bucket can leave c - T two buckets back across the wrap
        low = self.bucket_of(cents - self.tolerance)
        high = self.bucket_of(cents + self.tolerance)
        for bucket in (low, high):
            if bucket not in ids:
                ids.append(bucket)
        return ids

    def find(self, cents: float) -> NodeData | None:
        for bucket in self.candidates(cents):
            for existing in self.buckets.get(bucket, ()):
                if pitch_class_distance(cents, existing.cents) < self.tolerance:
                    return existing
        return None

    def add(self, node: NodeData) -> None:
        self.buckets.setdefault(self.bucket_of(node.cents), []).append(node)


def remap_edges(edges: Sequence[EdgeData], representative: Dict[str, str]) -> List[EdgeData]:
    unique: Dict[Tuple[str, str, int, int], EdgeData] = {}
    used_pairs: Set[Tuple[str, str]] = set()
    for edge in edges:
        src = representative.get(edge.source_id)
        tgt = representative.get(edge.target_id)
        if src is None or tgt is None or src == tgt:
            continue
        pair = (src, tgt) if src <= tgt else (tgt, src)
        key = (pair[0], pair[1], edge.limit, edge.generation)
        if key not in unique:
            edge_id = make_edge_id(src, tgt)
            # Later edges on an already linked pair carry limit and generation in their id
            if pair in used_pairs:
                edge_id = f"{edge_id}~{edge.limit}~{edge.generation}"
            used_pairs.add(pair)
            unique[key] = EdgeData(
                id=edge_id,
                source_id=src,
                target_id=tgt,
                limit=edge.limit,
                generation=edge.generation,
            )
    return list(unique.values())


def deduplicate(graph: LatticeGraph, tolerance: float, priority_order: Sequence[str]) -> LatticeGraph:
    """
    Merge pitch-class duplicates.

    Args:
        graph: Lattice to reduce.
        tolerance: Merge radius in cents. Values <= 0 (or non-finite) disable merging.
        priority_order: Criteria deciding which node of a cluster survives.

    Returns:
        A new graph of representatives and remapped edges.
    """
    if not (math.isfinite(tolerance) and tolerance > 0):
        return LatticeGraph(list(graph.nodes), list(graph.edges))

    ordered = sorted(graph.nodes, key=functools.cmp_to_key(priority_comparator(priority_order)))
    buckets = PitchClassBuckets(tolerance)
    representative: Dict[str, str] = {}
    kept: List[NodeData] = []
    for node in ordered:
        found = buckets.find(node.cents)
        if found is not None:
            representative[node.id] = found.id
            continue
        representative[node.id] = node.id
        kept.append(node)
        buckets.add(node)

    edges = remap_edges(graph.edges, representative)
    logger.info(f"Deduplication (T={tolerance}): {len(graph.nodes)} -> {len(kept)} nodes, {len(edges)} edges")
    return LatticeGraph(kept, edges)
