import unittest

from jilattice.controller.cache import LatticeCache, display_key, topology_key
from jilattice.model.settings import LatticeSettings


class TestKeys(unittest.TestCase):
    def setUp(self):
        self.base = LatticeSettings.from_dict({"root": {"expansion_a": 3}})

    def test_display_change_keeps_topology(self):
        renamed = LatticeSettings.from_dict({
            "root": {"expansion_a": 3},
            "transposition_vector": {"3": 2},
            "accidental_placement": "left",
            "notation_symbols": {"7": {"up": "L", "down": "7"}},
        })
        self.assertEqual(topology_key(self.base), topology_key(renamed))
        self.assertNotEqual(display_key(self.base), display_key(renamed))

    def test_topology_change(self):
        other = LatticeSettings.from_dict({"root": {"expansion_a": 4}})
        self.assertNotEqual(topology_key(self.base), topology_key(other))
        self.assertEqual(display_key(self.base), display_key(other))

    def test_custom_prime_axis_is_topology(self):
        with_custom = LatticeSettings.from_dict({"root": {"expansion_a": 3}, "custom_primes": [{"prime": 37}]})
        self.assertNotEqual(topology_key(self.base), topology_key(with_custom))

    def test_keys_are_stable(self):
        self.assertEqual(topology_key(self.base), topology_key(LatticeSettings.from_dict(self.base.to_dict())))


def test_lru_eviction():
    cache = LatticeCache(capacity=2)
    cache.put("a", "d", 1)
    cache.put("b", "d", 2)
    assert cache.get("a").value == 1
    cache.put("c", "d", 3)
    assert "b" not in cache
    assert "a" in cache and "c" in cache
    assert len(cache) == 2


def test_put_replaces_display():
    cache = LatticeCache()
    cache.put("a", "d1", 1)
    cache.put("a", "d2", 2)
    entry = cache.get("a")
    assert (entry.display_key, entry.value) == ("d2", 2)
    cache.clear()
    assert cache.get("a") is None
