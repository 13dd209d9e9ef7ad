"""
Note Naming
===========
Human-readable note names for prime vectors.

The letter comes from the exponent of 3 walked around the circle of fifths
starting at F; every 7 fifths adds a sharp (or a flat when negative). Every
other prime contributes an accidental from the notation symbol table, placed
left or right of the letter.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Mapping, Optional, TYPE_CHECKING

from jilattice.model.pitch import (
    add_vectors, clean_vector, expand_composite_vector, factorize, is_prime
)

if TYPE_CHECKING:
    from jilattice.model.graph import LatticeGraph
    from jilattice.model.settings import LatticeSettings, NotationSymbol

FIFTHS_LETTERS = ("F", "C", "G", "D", "A", "E", "B")

# Runs at least this long are written as a count instead of repeated glyphs
_COMPACT_RUN = 8


def _superscript(count: int) -> str:
    return f"({count})"


def _run(glyph: str, count: int) -> str:
    if count >= _COMPACT_RUN:
        return f"{glyph}{_superscript(count)}"
    return glyph * count


def _naming_vector(vector: Mapping[int, int], symbols: Mapping[int, NotationSymbol]) -> Dict[int, int]:
    """Keep composite axes that have their own glyph, split the rest into prime factors."""
    result: Dict[int, int] = {}
    for p, count in vector.items():
        if not count:
            continue
        if p == 2 or is_prime(p):
            result[p] = result.get(p, 0) + count
            continue
        symbol = symbols.get(p)
        glyph = (symbol.up if count > 0 else symbol.down) if symbol else ""
        if glyph:
            result[p] = result.get(p, 0) + count
            continue
        for factor, power in factorize(p).items():
            result[factor] = result.get(factor, 0) + count * power
    return result


def note_name(
    vector: Mapping[int, int],
    symbols: Mapping[int, NotationSymbol],
    placement: str = "split",
) -> str:
    """
    Name a prime vector.

    Args:
        vector: Prime (or custom axis) exponents.
        symbols: Up/down glyph per prime, optionally with a fixed placement.
        placement: Default placement for accidentals: "split" puts raising
            glyphs right and lowering glyphs left; "left"/"right" force a side.

    Returns:
        Name such as "E", "Bb" or "C~".
    """
    threes = expand_composite_vector(vector).get(3, 0)
    offset = threes + 1
    letter = FIFTHS_LETTERS[offset % 7]
    sharps = offset // 7

    glyph = "#" if sharps > 0 else "b"
    if abs(sharps) >= _COMPACT_RUN:
        core = f"{letter}{_superscript(abs(sharps))}{glyph}"
    else:
        core = letter + glyph * abs(sharps)

    left = ""
    right = ""
    naming = _naming_vector(vector, symbols)
    for p in sorted(naming):
        count = naming[p]
        if p == 3 or not count:
            continue
        symbol = symbols.get(p)
        glyph = (symbol.up if count > 0 else symbol.down) if symbol else ""
        side = (symbol.placement if symbol and symbol.placement else None) or placement
        # Syntonic-comma flats always use '+' on the right
        if p == 5 and count < 0:
            glyph = "+"
            side = "right"
        if not glyph:
            continue
        token = _run(glyph, abs(count))
        if side == "left":
            left = token + left
        elif side == "right":
            right = right + token
        elif count > 0:
            right = right + token
        else:
            left = token + left

    return left + core + right


def effective_symbols(settings: LatticeSettings) -> Dict[int, NotationSymbol]:
    """Notation symbols with custom-prime glyphs layered on top."""
    symbols = dict(settings.notation_symbols)
    for custom in settings.custom_primes:
        if custom.symbol is not None:
            symbols[custom.prime] = custom.symbol
    return symbols


class NoteNamer:
    """Names nodes for one settings snapshot (symbols and transposition resolved once)."""

    def __init__(self, settings: LatticeSettings, symbols: Optional[Dict[int, NotationSymbol]] = None):
        self.symbols = symbols if symbols is not None else effective_symbols(settings)
        self.placement = settings.accidental_placement
        self.transposition = expand_composite_vector(clean_vector(settings.transposition_vector))

    def __call__(self, vector: Mapping[int, int]) -> str:
        naming_vec = add_vectors(expand_composite_vector(vector), self.transposition)
        return note_name(naming_vec, self.symbols, self.placement)


def rename_lattice(graph: LatticeGraph, settings: LatticeSettings) -> LatticeGraph:
    """
    Re-label an existing lattice after a display-only change.

    Equal-step nodes keep their "Step n" labels.
    """
    from jilattice.model.graph import LatticeGraph

    namer = NoteNamer(settings)
    nodes = [
        n if n.step_index is not None else replace(n, name=namer(n.prime_vector))
        for n in graph.nodes
    ]
    return LatticeGraph(nodes, list(graph.edges))
