"""
Lattice Graph (Data Model)
==========================
Node and edge records plus the arena that owns them while a lattice is built.

Why is this file needed?
------------------------
1. Identity: Nodes are keyed by the canonical prime-vector id. The store hands
   back the existing node when the same id is added twice, which is what lets
   independently grown branches and origins share nodes.
2. Uniqueness: Edges are stored once per unordered endpoint pair.
3. Immutability: Records are frozen; post-passes build a new `LatticeGraph`
   instead of mutating the old one.

Classes:
    NodeData: One pitch node.
    EdgeData: One step between two nodes along a prime axis.
    LatticeStore: Index-stable arena used during generation.
    LatticeGraph: The finished {nodes, edges} result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Set, Tuple, TYPE_CHECKING

import numpy as np

from jilattice.model.geometry_primitives import pack_positions

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class NodeData:
    id: str
    position: npt.NDArray[np.float64]
    prime_vector: Dict[int, int]
    ratio: Fraction
    octave: int
    cents: float
    generation: int
    origin_limit: int
    parent_id: Optional[str] = None
    name: str = ""
    step_index: Optional[int] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id!r}, ratio={self.ratio}, cents={self.cents:.3f}, gen={self.generation})"


@dataclass(frozen=True)
class EdgeData:
    id: str
    source_id: str
    target_id: str
    limit: int
    generation: int


def make_edge_id(source_id: str, target_id: str) -> str:
    return f"{source_id}~{target_id}"


@dataclass
class LatticeGraph:
    nodes: List[NodeData] = field(default_factory=list)
    edges: List[EdgeData] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def node_ids(self) -> Set[str]:
        return {n.id for n in self.nodes}

    def get(self, node_id: str) -> Optional[NodeData]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def positions_array(self) -> npt.NDArray[np.float64]:
        """Flat float64 buffer [x0, y0, z0, x1, ...] in node order."""
        return pack_positions(n.position for n in self.nodes)

    def without_nodes(self, node_ids: Iterable[str]) -> LatticeGraph:
        """Copy of the graph without the given nodes and every edge touching them."""
        mask = set(node_ids)
        if not mask:
            return LatticeGraph(list(self.nodes), list(self.edges))
        nodes = [n for n in self.nodes if n.id not in mask]
        kept = {n.id for n in nodes}
        edges = [e for e in self.edges if e.source_id in kept and e.target_id in kept]
        return LatticeGraph(nodes, edges)

    def restricted_to(self, node_ids: Set[str]) -> LatticeGraph:
        nodes = [n for n in self.nodes if n.id in node_ids]
        edges = [e for e in self.edges if e.source_id in node_ids and e.target_id in node_ids]
        return LatticeGraph(nodes, edges)


class LatticeStore:
    """
    Arena for nodes and edges during one generation call.

    Nodes live in an index-stable list; `_index` maps canonical id to list
    position. Edges are de-duplicated on the unordered endpoint pair.
    """

    def __init__(self) -> None:
        self._nodes: List[NodeData] = []
        self._index: Dict[str, int] = {}
        self._edges: List[EdgeData] = []
        self._edge_pairs: Set[Tuple[str, str]] = set()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._index

    def get(self, node_id: str) -> Optional[NodeData]:
        idx = self._index.get(node_id)
        return self._nodes[idx] if idx is not None else None

    def nodes(self) -> List[NodeData]:
        return list(self._nodes)

    def edges(self) -> List[EdgeData]:
        return list(self._edges)

    def add_node(self, node: NodeData) -> NodeData:
        """Insert a node unless its id is already present; return the stored node."""
        idx = self._index.get(node.id)
        if idx is not None:
            return self._nodes[idx]
        self._index[node.id] = len(self._nodes)
        self._nodes.append(node)
        return node

    def add_edge(self, source_id: str, target_id: str, limit: int, generation: int) -> Optional[EdgeData]:
        """Add an edge unless the unordered pair already has one. Self-loops are ignored."""
        if source_id == target_id:
            return None
        pair = (source_id, target_id) if source_id <= target_id else (target_id, source_id)
        if pair in self._edge_pairs:
            return None
        self._edge_pairs.add(pair)
        edge = EdgeData(
            id=make_edge_id(source_id, target_id),
            source_id=source_id,
            target_id=target_id,
            limit=int(limit),
            generation=int(generation),
        )
        self._edges.append(edge)
        return edge

    def has_edge(self, a: str, b: str) -> bool:
        pair = (a, b) if a <= b else (b, a)
        return pair in self._edge_pairs

    def to_graph(self) -> LatticeGraph:
        logger.debug(f"Store holds {len(self._nodes)} nodes and {len(self._edges)} edges.")
        return LatticeGraph(list(self._nodes), list(self._edges))
