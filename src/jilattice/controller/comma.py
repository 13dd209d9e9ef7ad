"""
Comma Spreading
===============
Closes looping axes by distributing the loop's comma evenly over its steps.

Walking N steps along prime p lands N*log2(p) octaves away, which is close
to, but not exactly, a whole number of octaves. The difference (the comma)
is spread as an equal correction per step, so after N steps the tempered
pitch is exactly an octave multiple of the start.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, TYPE_CHECKING

from jilattice.config import STANDARD_PRIMES
from jilattice.model.pitch import cents_to_ratio, octave_cents_from_prime_vector
from jilattice.utils import CENTS_PER_OCTAVE

if TYPE_CHECKING:
    from jilattice.model.graph import NodeData
    from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)


def loop_comma(prime: int, loop_length: float) -> float:
    """Signed comma in cents left over after `loop_length` steps of `prime`."""
    raw = CENTS_PER_OCTAVE * loop_length * math.log2(prime)
    octaves = round(loop_length * math.log2(prime))
    return raw - octaves * CENTS_PER_OCTAVE


def per_step_adjustment(comma: float, loop_length: float) -> float:
    if loop_length <= 0:
        return 0.0
    return -comma / loop_length


def spreading_axes(
    axis_looping: Optional[Mapping[int, Optional[int]]],
    comma_spreading: Optional[Mapping[int, bool]],
) -> Dict[int, float]:
    """Per-step correction for every axis that both loops and spreads."""
    if not axis_looping or not comma_spreading:
        return {}
    result: Dict[int, float] = {}
    for p, loop in axis_looping.items():
        if loop and loop > 0 and comma_spreading.get(p):
            result[p] = per_step_adjustment(loop_comma(p, loop), loop)
    return result


def apply_comma_spreading(
    vector: Mapping[int, int],
    cents: float,
    ratio: Fraction,
    adjustments: Mapping[int, float],
) -> Tuple[float, Fraction]:
    """
    Temper a node's pitch.

    Returns (cents, ratio). When any axis applies, the ratio is rebuilt from
    the tempered cents with `cents_to_ratio`, which rounds to a fixed
    resolution, so the resulting ratio is an approximation.
    """
    if not adjustments:
        return cents, ratio
    for p, per_step in adjustments.items():
        cents += vector.get(p, 0) * per_step
    return cents, cents_to_ratio(cents)


# ------------------------------------------------------------------------------
# Introspection
# ------------------------------------------------------------------------------
@dataclass
class AxisSpreadingInfo:
    prime: int
    loop_length: float
    total_comma: float
    per_step_adjustment: float
    node_step_index: int
    cumulative_adjustment: float


@dataclass
class CommaSpreadingInfo:
    is_affected: bool = False
    axis_details: List[AxisSpreadingInfo] = field(default_factory=list)
    total_adjustment: float = 0.0
    ji_cents: float = 0.0
    tempered_cents: float = 0.0


def _primes_to_check(settings: LatticeSettings) -> Iterable[int]:
    primes = list(STANDARD_PRIMES)
    for custom in settings.custom_primes:
        if custom.prime not in primes:
            primes.append(custom.prime)
    return primes


def comma_spreading_info(node: NodeData, settings: LatticeSettings) -> CommaSpreadingInfo:
    """Explain how much comma spreading moved a node, axis by axis (global root's tables)."""
    ji_cents = octave_cents_from_prime_vector(node.prime_vector)
    looping = settings.root.axis_looping
    spreading = settings.root.comma_spreading
    if not looping or not spreading:
        return CommaSpreadingInfo(ji_cents=ji_cents, tempered_cents=node.cents)

    details: List[AxisSpreadingInfo] = []
    total = 0.0
    for p in _primes_to_check(settings):
        loop = looping.get(p)
        step = node.prime_vector.get(p, 0)
        if not (loop and loop > 0 and spreading.get(p) and step != 0):
            continue
        comma = loop_comma(p, loop)
        per_step = per_step_adjustment(comma, loop)
        details.append(AxisSpreadingInfo(
            prime=p,
            loop_length=loop,
            total_comma=comma,
            per_step_adjustment=per_step,
            node_step_index=step,
            cumulative_adjustment=step * per_step,
        ))
        total += step * per_step

    return CommaSpreadingInfo(
        is_affected=bool(details),
        axis_details=details,
        total_adjustment=total,
        ji_cents=ji_cents,
        tempered_cents=node.cents,
    )
