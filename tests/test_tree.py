import unittest

import numpy as np
import pytest

from jilattice.controller.generator import generate_lattice
from jilattice.model.geometry_primitives import normalize
from jilattice.config import get_prime_axis
from jilattice.model.pitch import vector_key


def test_small_tree_shape(make_settings):
    graph = generate_lattice(make_settings())
    # 5 axis nodes; root branches on 5, 7, 11; each axis node on 5, 7, 11
    assert len(graph.nodes) == 35
    assert graph.get("root").generation == 0
    assert graph.get("3:2").generation == 0
    assert graph.get("3:1,7:-1").generation == 1
    assert graph.get("5:1").origin_limit == 5


def test_node_identity_matches_vector(make_settings):
    graph = generate_lattice(make_settings({"root": {"expansion_c": 1, "max_prime_limit": 7}}))
    for node in graph.nodes:
        assert node.id == vector_key(node.prime_vector)


def test_edges_unique_and_resolved(make_settings):
    graph = generate_lattice(make_settings({"root": {"expansion_c": 1}}))
    ids = graph.node_ids()
    pairs = [frozenset((e.source_id, e.target_id)) for e in graph.edges]
    assert len(pairs) == len(set(pairs))
    assert all(e.source_id in ids and e.target_id in ids for e in graph.edges)
    assert all(e.source_id != e.target_id for e in graph.edges)


def test_deterministic(make_settings):
    first = generate_lattice(make_settings({"root": {"expansion_c": 1}}))
    second = generate_lattice(make_settings({"root": {"expansion_c": 1}}))
    assert [n.id for n in first.nodes] == [n.id for n in second.nodes]
    assert [e.id for e in first.edges] == [e.id for e in second.edges]
    assert np.array_equal(first.positions_array(), second.positions_array())


def test_straight_embedding(make_settings):
    graph = generate_lattice(make_settings({"visuals": {"global_scale": 2.0, "prime_spacings": {"5": 0.5}}}))
    assert np.allclose(graph.get("3:2").position, [40.0, 0.0, 0.0])
    assert np.allclose(graph.get("5:1").position, [1.0, 10.0, 3.0])


def test_ratios_are_octave_normalized(make_settings):
    graph = generate_lattice(make_settings())
    for node in graph.nodes:
        assert 1 <= node.ratio < 2
        assert 0.0 <= node.cents < 1200.0


class TestBranchLengths(unittest.TestCase):
    def _ids(self, extra):
        from jilattice.model.settings import LatticeSettings
        base = {"root": {"root_limits": [3], "expansion_a": 1, "expansion_b": 1, "expansion_c": 0,
                         "max_prime_limit": 5}}
        base["root"].update(extra.pop("root", {}))
        base.update(extra)
        return generate_lattice(LatticeSettings.from_dict(base)).node_ids()

    def test_gen0_table_and_range(self):
        ids = self._ids({"root": {"gen0_ranges": {"3": {"neg": 0, "pos": 3}}, "expansion_b": 0}})
        self.assertEqual(ids, {"root", "3:1", "3:2", "3:3"})

    def test_zero_length_axis_adds_nothing(self):
        ids = self._ids({"root": {"gen0_lengths": {"3": 0}, "expansion_b": 0}})
        self.assertEqual(ids, {"root"})

    def test_gen0_customize_disabled_ignores_tables(self):
        ids = self._ids({"root": {"gen0_lengths": {"3": 3}, "gen0_customize_enabled": False, "expansion_b": 0}})
        self.assertEqual(ids, {"root", "3:1", "3:-1"})

    def test_loop_length_sets_axis_span(self):
        ids = self._ids({"root": {"axis_looping": {"3": 4}, "expansion_b": 0}})
        self.assertEqual(ids, {"root", "3:1", "3:2", "3:3", "3:4", "3:-1", "3:-2", "3:-3", "3:-4"})

    def test_gen1_prime_set(self):
        ids = self._ids({"root": {"max_prime_limit": 7, "gen1_prime_set": [7]}})
        self.assertIn("7:1", ids)
        self.assertNotIn("5:1", ids)

    def test_node_override_lengths(self):
        ids = self._ids({"node_branch_overrides": {"root": {"pos": 2, "neg": 0}}})
        self.assertIn("5:2", ids)
        self.assertNotIn("5:-1", ids)
        self.assertIn("3:1,5:-1", ids)

    def test_ignore_overrides(self):
        ids = self._ids({"node_branch_overrides": {"root": {"pos": 2, "neg": 0}}, "ignore_overrides": True})
        self.assertIn("5:-1", ids)
        self.assertNotIn("5:2", ids)

    def test_axis_override_adds_axis(self):
        ids = self._ids({"node_branch_overrides": {"root": {"axis_overrides": {"7": {"pos": 1, "neg": 0}}}}})
        self.assertIn("7:1", ids)
        self.assertNotIn("7:-1", ids)

    def test_override_lengths_are_clamped(self):
        ids = self._ids({"node_branch_overrides": {"root": {"pos": 500, "neg": 0}}})
        self.assertIn("5:50", ids)
        self.assertNotIn("5:51", ids)


def test_custom_curve_positions(make_settings):
    settings = make_settings({"node_branch_overrides": {"3:1": {"axis_overrides": {"5": {
        "pos": 2, "neg": 0, "custom_curve": [{"x": 0, "y": 0}, {"x": 1, "y": 0}],
    }}}}})
    graph = generate_lattice(settings)
    expected = np.array([10.0, 0.0, 0.0]) + normalize(get_prime_axis(5)) * 20.0
    assert np.allclose(graph.get("3:1,5:2").position, expected)


def test_secondary_origin_shares_nodes(make_settings):
    settings = make_settings({
        "root": {"expansion_a": 1, "expansion_b": 0},
        "secondary_origins": [{"id": "o2", "prime_vector": {"3": 1}, "expansion_a": 1, "expansion_b": 0,
                               "expansion_c": 0}],
    })
    graph = generate_lattice(settings)
    assert graph.node_ids() == {"root", "3:1", "3:-1", "3:2"}
    assert len(graph.edges) == 3


def test_secondary_origin_inherits_looping(make_settings):
    settings = make_settings({
        "root": {"expansion_a": 1, "expansion_b": 0, "axis_looping": {"3": 2}},
        "secondary_origins": [{"id": "o2", "prime_vector": {"5": 1}, "expansion_b": 0, "expansion_c": 0}],
    })
    ids = generate_lattice(settings).node_ids()
    assert {"3:2,5:1", "3:-2,5:1"} <= ids


def test_simple_mode_stops_at_generation_one(make_settings):
    graph = generate_lattice(make_settings({"simple_mode": True, "root": {"expansion_c": 2}}))
    assert max(n.generation for n in graph.nodes) == 1


@pytest.mark.parametrize("limits", [[3, 5], [5, 3]])
def test_multiple_root_limits(make_settings, limits):
    graph = generate_lattice(make_settings({"root": {"root_limits": limits, "expansion_b": 0}}))
    assert graph.node_ids() == {"root", "3:1", "3:2", "3:-1", "3:-2", "5:1", "5:2", "5:-1", "5:-2"}
