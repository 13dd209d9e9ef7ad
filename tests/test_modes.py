import math
from fractions import Fraction

import numpy as np
import pytest

from jilattice.controller.generator import GeometryMode, generate_lattice, resolve_mode
from jilattice.model.settings import LatticeSettings


def _edge_pairs(graph):
    return {frozenset((e.source_id, e.target_id)) for e in graph.edges}


class TestModeSelection:
    @pytest.mark.parametrize("data, expected", [
        ({}, GeometryMode.TREE),
        ({"equal_step": {"enabled": True}, "geometry": {"enabled": True}}, GeometryMode.EQUAL_STEP),
        ({"geometry": {"enabled": True, "mode": "custom"}}, GeometryMode.RECTANGULAR),
        ({"geometry": {"enabled": True, "mode": "sphere"}, "spiral": {"enabled": True}}, GeometryMode.SPHERE),
        ({"visuals": {"layout_mode": "diamond"}, "spiral": {"enabled": True}}, GeometryMode.DIAMOND),
        ({"spiral": {"enabled": True}}, GeometryMode.SPIRAL),
    ])
    def test_priority(self, data, expected):
        assert resolve_mode(LatticeSettings.from_dict(data)) == expected


class TestEqualStep:
    def test_chain(self):
        graph = generate_lattice({"equal_step": {"enabled": True, "range": 12, "divisions": 12}})
        assert len(graph.nodes) == 25
        assert len(graph.edges) == 24

        by_step = {n.step_index: n for n in graph.nodes}
        assert by_step[0].ratio == Fraction(1)
        assert by_step[0].cents == pytest.approx(0.0)
        assert by_step[12].ratio == Fraction(2)
        assert by_step[12].cents == pytest.approx(1200.0)
        assert by_step[-12].cents == pytest.approx(-1200.0)
        assert by_step[5].name == "Step 5"

    def test_long_chain_keeps_finite_ratios(self):
        graph = generate_lattice({"equal_step": {"enabled": True, "range": 1100, "divisions": 1}})
        assert len(graph.nodes) == 2201
        by_step = {n.step_index: n for n in graph.nodes}
        assert by_step[1100].ratio == Fraction(2) ** 1024
        assert by_step[-1100].ratio == Fraction(1, 2 ** 1024)
        assert by_step[1100].cents == pytest.approx(1100 * 1200.0)
        assert by_step[7].ratio == Fraction(128)

    def test_invalid_base_falls_back_to_octave(self):
        graph = generate_lattice({"equal_step": {"enabled": True, "range": 12, "base": -3}})
        by_step = {n.step_index: n for n in graph.nodes}
        assert by_step[12].ratio == Fraction(2)

    def test_graphite_layers(self):
        graph = generate_lattice({"equal_step": {"enabled": True, "range": 12, "layer_gap": 10}})
        by_step = {n.step_index: n for n in graph.nodes}
        assert by_step[0].position[2] == pytest.approx(0.0)
        assert by_step[12].position[2] == pytest.approx(10.0)
        assert by_step[11].position[2] == pytest.approx(0.0)

    def test_names_survive_display_change(self):
        graph = generate_lattice({"equal_step": {"enabled": True, "range": 2}, "transposition_vector": {"3": 1}})
        assert {n.name for n in graph.nodes} == {"Step -2", "Step -1", "Step 0", "Step 1", "Step 2"}


class TestRectangularGrid:
    def test_block(self):
        graph = generate_lattice({"geometry": {"enabled": True, "dimensions": [3, 3, 1]}})
        assert len(graph.nodes) == 9
        assert len(graph.edges) == 12
        centre = graph.get("root")
        assert centre is not None and centre.generation == 0
        corner = graph.get("3:-1,5:-1")
        assert corner.generation == 2

    def test_exponents_are_centred(self):
        graph = generate_lattice({"geometry": {"enabled": True, "dimensions": [2, 1, 1]}})
        assert graph.node_ids() == {"3:-1", "root"}

    def test_override_branches(self):
        data = {
            "geometry": {"enabled": True, "dimensions": [1, 1, 1]},
            "node_branch_overrides": {"root": {"pos": 2, "neg": 0}},
        }
        graph = generate_lattice(data)
        assert {"3:1", "3:2", "5:1", "5:2", "7:1", "7:2"} <= graph.node_ids()
        assert graph.get("3:2").generation == 2

        data["ignore_overrides"] = True
        assert generate_lattice(data).node_ids() == {"root"}


class TestCustomShapes:
    def test_implicit_lattice_space(self):
        graph = generate_lattice({"geometry": {
            "enabled": True, "mode": "custom", "dimensions": [3, 3, 3],
            "custom": {"style": "implicit", "input_space": "lattice", "implicit_expression": "a^2 + b^2 + c^2 - 1"},
        }})
        assert len(graph.nodes) == 7
        assert len(graph.edges) == 6
        ids = graph.node_ids()
        assert all(e.source_id in ids and e.target_id in ids for e in graph.edges)

    def test_voxel(self):
        graph = generate_lattice({"geometry": {
            "enabled": True, "mode": "custom", "dimensions": [3, 3, 3],
            "custom": {"style": "voxel", "voxel_expression": "r < 1.5"},
        }})
        assert len(graph.nodes) == 19

    def test_abs_threshold(self):
        graph = generate_lattice({"geometry": {
            "enabled": True, "mode": "custom", "dimensions": [3, 3, 3],
            "custom": {"style": "implicit", "threshold_mode": "abs", "epsilon": 0.1,
                       "implicit_expression": "gen - 3"},
        }})
        assert len(graph.nodes) == 8

    def test_parametric_point(self):
        graph = generate_lattice({"geometry": {
            "enabled": True, "mode": "custom", "dimensions": [3, 3, 3],
            "custom": {"style": "parametric", "parametric": {"expression": "x=0, y=0, z=0", "thickness": 1}},
        }})
        assert graph.node_ids() == {"root"}

    def test_broken_formula_keeps_nothing(self):
        graph = generate_lattice({"geometry": {
            "enabled": True, "mode": "custom",
            "custom": {"style": "implicit", "implicit_expression": "x +"},
        }})
        assert graph.nodes == []


class TestSphere:
    def test_unit_ball(self):
        graph = generate_lattice({"geometry": {"enabled": True, "mode": "sphere", "sphere": {"radius": 1}}})
        assert len(graph.nodes) == 7
        assert len(graph.edges) == 6

    def test_radius_two_is_symmetric(self):
        graph = generate_lattice({"geometry": {"enabled": True, "mode": "sphere", "sphere": {"radius": 2}}})
        vectors = [n.prime_vector for n in graph.nodes]
        assert all(sum(e * e for e in v.values()) <= 4 for v in vectors)
        assert len(graph.nodes) == 33


class TestDiamond:
    def test_five_limit_diamond(self):
        graph = generate_lattice({"visuals": {"layout_mode": "diamond", "diamond_limit": 5}})
        assert len(graph.nodes) == 9
        assert len(graph.edges) == 12
        assert graph.get("diamond-0-0").ratio == Fraction(1)
        fifth = graph.get("diamond-1-0")
        assert fifth.ratio == Fraction(3, 2)
        assert fifth.name == "G"
        assert graph.get("diamond-0-1").ratio == Fraction(4, 3)
        assert np.allclose(graph.get("diamond-2-2").position, [16.0, 0.0, 0.0])


class TestSpiral:
    def test_chain_only(self):
        graph = generate_lattice({"spiral": {
            "enabled": True, "length": 4, "primary_step": 4, "radius1": 40, "expansion_b": 0,
        }})
        assert len(graph.nodes) == 5
        assert len(graph.edges) == 4
        for node in graph.nodes:
            x, y, _ = node.position
            assert math.hypot(x, y) == pytest.approx(40.0)

    def test_secondary_origin_grows_its_own_spiral(self):
        graph = generate_lattice({
            "spiral": {"enabled": True, "length": 2, "primary_step": 4, "expansion_b": 0},
            "secondary_origins": [{"id": "seven", "prime_vector": {"7": 1}}],
        })
        assert graph.node_ids() == {"3:-1", "root", "3:1", "3:-1,7:1", "7:1", "3:1,7:1"}
        assert len(graph.edges) == 4
        assert frozenset(("7:1", "3:1,7:1")) in _edge_pairs(graph)
        root_step = graph.get("3:1").position - graph.get("root").position
        seven_step = graph.get("3:1,7:1").position - graph.get("7:1").position
        assert np.allclose(root_step, seven_step)

    def test_branches_follow_frame(self):
        graph = generate_lattice({
            "root": {"max_prime_limit": 5},
            "spiral": {"enabled": True, "length": 2, "primary_step": 4, "expansion_b": 1},
        })
        # 3 chain nodes, each with +-1 along 5
        assert len(graph.nodes) == 9
        assert graph.get("3:1,5:1").generation == 1
        assert _edge_pairs(graph) >= {frozenset(("3:1", "3:1,5:1"))}
