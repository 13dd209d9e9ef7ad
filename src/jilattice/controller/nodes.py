"""
Node Construction
=================
Builds `NodeData` records from prime vectors and registers them in a store.

Why is this file needed?
------------------------
Every generation mode creates nodes the same way: canonical id from the
vector, exact octave-normalized ratio, folded cents, optional comma
spreading, a note name, and a position (either given by the mode or derived
from the prime-axis embedding). `LatticeBuilder` does this once per id and
hands back the stored node on repeats, which is how separate branch paths
and origins share nodes.
"""
from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, TYPE_CHECKING

from jilattice.controller.comma import apply_comma_spreading, spreading_axes
from jilattice.controller.embedding import position_from_vector
from jilattice.model.geometry_primitives import is_finite_point, origin
from jilattice.model.graph import LatticeStore, NodeData
from jilattice.model.naming import NoteNamer
from jilattice.model.pitch import (
    PrimeVector, clean_vector, normalize_octave, octave_cents_from_prime_vector,
    ratio_from_prime_vector, vector_key
)

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt
    from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)


class PitchNodeFactory:
    """
    Creates nodes for one settings snapshot.

    The looping/spreading tables are switched per origin with `use_tables`;
    they decide both the embedding and the comma correction.
    """

    def __init__(self, settings: LatticeSettings, namer: Optional[NoteNamer] = None):
        self.visuals = settings.visuals
        self.namer = namer or NoteNamer(settings)
        self.axis_looping: Optional[Mapping[int, Optional[int]]] = None
        self.adjustments: Dict[int, float] = {}

    def use_tables(
        self,
        axis_looping: Optional[Mapping[int, Optional[int]]],
        comma_spreading: Optional[Mapping[int, bool]],
    ) -> None:
        self.axis_looping = axis_looping
        self.adjustments = spreading_axes(axis_looping, comma_spreading)

    def create(
        self,
        vector: PrimeVector,
        generation: int,
        origin_limit: int,
        parent_id: Optional[str] = None,
        position: Optional[npt.NDArray[np.float64]] = None,
        node_id: Optional[str] = None,
    ) -> NodeData:
        vector = clean_vector(vector)
        if position is None:
            position = position_from_vector(vector, self.visuals, self.axis_looping)
        elif not is_finite_point(position):
            logger.debug(f"Non-finite position for {node_id or vector_key(vector)}, snapping to origin.")
            position = origin()

        ratio, _ = normalize_octave(ratio_from_prime_vector(vector))
        cents = octave_cents_from_prime_vector(vector)
        cents, ratio = apply_comma_spreading(vector, cents, ratio, self.adjustments)

        return NodeData(
            id=node_id or vector_key(vector),
            position=position,
            prime_vector=vector,
            ratio=ratio,
            octave=0,
            cents=cents,
            generation=generation,
            origin_limit=origin_limit,
            parent_id=parent_id,
            name=self.namer(vector),
        )


class LatticeBuilder:
    """A `LatticeStore` paired with the factory that fills it."""

    def __init__(self, settings: LatticeSettings, store: Optional[LatticeStore] = None):
        self.store = store or LatticeStore()
        self.factory = PitchNodeFactory(settings)

    def add(
        self,
        vector: PrimeVector,
        generation: int,
        origin_limit: int,
        parent_id: Optional[str] = None,
        position: Optional[npt.NDArray[np.float64]] = None,
        node_id: Optional[str] = None,
    ) -> NodeData:
        """Return the stored node for this id, creating it on first sight."""
        key = node_id or vector_key(vector)
        existing = self.store.get(key)
        if existing is not None:
            return existing
        node = self.factory.create(vector, generation, origin_limit, parent_id, position, key)
        return self.store.add_node(node)

    def link(self, source_id: str, target_id: str, limit: int, generation: int) -> None:
        self.store.add_edge(source_id, target_id, limit, generation)
