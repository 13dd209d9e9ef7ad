"""
Lattice Cache
=============
Keys that tell whether a settings change needs a regeneration, and a small
LRU cache of finished lattices.

* `topology_key` covers everything that changes which nodes and edges exist,
  where they sit, or how they are tuned.
* `display_key` covers labelling only (notation symbols, accidental
  placement, custom prime glyphs, transposition). A display-only change can
  be served from the cache by renaming the cached nodes.
"""
from __future__ import annotations

import json
import logging
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Dict, Generic, Optional, TypeVar

from jilattice.model.settings import LatticeSettings

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CAPACITY = 4

_DISPLAY_FIELDS = ("notation_symbols", "accidental_placement", "transposition_vector", "custom_primes")

V = TypeVar("V")


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))


def topology_key(settings: LatticeSettings) -> str:
    data = settings.to_dict()
    for name in _DISPLAY_FIELDS:
        data.pop(name, None)
    # Custom primes add axes, their glyphs do not
    data["custom_prime_axes"] = sorted(cp.prime for cp in settings.custom_primes)
    return _dumps(data)


def display_key(settings: LatticeSettings) -> str:
    return _dumps({
        "notation_symbols": {str(k): asdict(v) for k, v in settings.notation_symbols.items()},
        "accidental_placement": settings.accidental_placement,
        "custom_primes": [asdict(cp) for cp in settings.custom_primes],
        "transposition_vector": {str(k): v for k, v in settings.transposition_vector.items()},
    })


@dataclass
class CacheEntry(Generic[V]):
    display_key: str
    value: V


class LatticeCache(Generic[V]):
    """Least-recently-used map from topology key to the last result built for it."""

    def __init__(self, capacity: int = DEFAULT_CACHE_CAPACITY):
        self.capacity = max(1, capacity)
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry[V]]:
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
        return entry

    def put(self, key: str, display: str, value: V) -> None:
        self._entries[key] = CacheEntry(display, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted lattice cache entry ({len(evicted)} byte key)")

    def clear(self) -> None:
        self._entries.clear()
