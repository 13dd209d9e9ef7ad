import numpy as np
import pytest

from jilattice.controller.curved import has_collision, pitch_metric, target_distance
from jilattice.controller.generator import generate_lattice
from jilattice.model.settings import CurvedGeometryConfig, DistanceMode, PitchMetric


class TestMasking:
    def test_masked_nodes_and_edges_removed(self, make_settings):
        graph = generate_lattice(make_settings({"masked_node_ids": ["3:1", "missing"]}))
        assert "3:1" not in graph.node_ids()
        assert all("3:1" not in (e.source_id, e.target_id) for e in graph.edges)
        assert "3:2" in graph.node_ids()

    def test_masking_runs_after_dedup(self, make_settings):
        settings = make_settings({
            "root": {"expansion_a": 12, "expansion_b": 0},
            "deduplicate": True, "dedup_tolerance": 30.0,
            "masked_node_ids": ["3:-12"],
        })
        # 3:-12 was already merged into the root, so masking it changes nothing
        assert len(generate_lattice(settings).nodes) == 12


@pytest.mark.parametrize("metric, expected", [
    (PitchMetric.LOG2, 2.0 * np.log2(3)),
    (PitchMetric.CENTS, 2400.0 * np.log2(3)),
    (PitchMetric.PRIME_L1, 2.0),
    (PitchMetric.PRIME_LINF, 2.0),
])
def test_pitch_metrics_for_nine(metric, expected):
    assert pitch_metric({3: 2}, metric) == pytest.approx(expected)


def test_prime_norms():
    assert pitch_metric({3: 3, 5: -4}, PitchMetric.PRIME_L2) == pytest.approx(5.0)
    assert pitch_metric({3: 1, 5: -1}, PitchMetric.WEIGHTED) == pytest.approx(np.log2(3) + np.log2(5))


def test_distance_maps():
    config = CurvedGeometryConfig(distance_scale=2.0, distance_exponent=2.0, distance_offset=1.0)
    assert target_distance(3.0, config, 1.0) == pytest.approx(8.0)
    config.distance_mode = DistanceMode.POWER
    assert target_distance(3.0, config, 1.0) == pytest.approx(32.0)
    config.distance_mode = DistanceMode.LOG
    assert target_distance(3.0, config, 0.5) == pytest.approx(2.0 * np.log1p(4.0) * 2.0 * 0.5)


class TestCurvedProjection:
    def _settings(self, make_settings, **curved):
        data = {"pitch_metric": "primeL1", "distance_scale": 12, "auto_spacing": False, "enabled": True}
        data.update(curved)
        return make_settings({"curved": data})

    def test_distance_encodes_metric(self, make_settings):
        graph = generate_lattice(self._settings(make_settings))
        assert np.allclose(graph.get("root").position, 0.0)
        assert np.linalg.norm(graph.get("3:1").position) == pytest.approx(12.0)
        assert np.linalg.norm(graph.get("3:2").position) == pytest.approx(24.0)
        assert np.linalg.norm(graph.get("3:1,5:1").position) == pytest.approx(24.0)

    def test_axis_bends_away_from_straight_line(self, make_settings):
        graph = generate_lattice(self._settings(make_settings, curve_radians_per_step=0.5))
        one = graph.get("3:1").position / 12.0
        two = graph.get("3:2").position / 24.0
        assert not np.allclose(one, two)

    def test_auto_spacing_spreads_crowded_nodes(self, make_settings):
        crowded = generate_lattice(self._settings(make_settings, distance_scale=0.01))
        spaced = generate_lattice(self._settings(make_settings, distance_scale=0.01, auto_spacing=True))
        assert np.linalg.norm(spaced.get("3:1").position) > np.linalg.norm(crowded.get("3:1").position)

    def test_curved_mode_ignores_even_root_limits(self, make_settings):
        graph = generate_lattice(make_settings({"root": {"root_limits": [4]}, "curved": {"enabled": True}}))
        assert "3:1" in graph.node_ids()
        assert "4:1" not in graph.node_ids()


def test_collision_detection():
    positions = np.array([[0.0, 0.0, 0.0], [0.5, 0.0, 0.0]])
    radii = np.array([1.0, 1.0])
    assert has_collision(positions, radii, 0.0)
    assert not has_collision(positions * 10.0, radii, 0.0)
    assert not has_collision(positions[:1], radii[:1], 0.0)
