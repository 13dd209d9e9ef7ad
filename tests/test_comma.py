import math

import pytest

from jilattice.controller.comma import (
    comma_spreading_info, loop_comma, per_step_adjustment, spreading_axes
)
from jilattice.controller.generator import generate_lattice

PYTHAGOREAN_COMMA = 1200 * (12 * math.log2(3) - 19)


def _fold(cents):
    return (cents + 600.0) % 1200.0 - 600.0


def test_loop_comma_values():
    assert loop_comma(3, 12) == pytest.approx(PYTHAGOREAN_COMMA)
    assert per_step_adjustment(loop_comma(3, 12), 12) == pytest.approx(-PYTHAGOREAN_COMMA / 12)
    assert per_step_adjustment(10.0, 0) == 0.0


def test_spreading_axes_requires_both_tables():
    assert spreading_axes({3: 12}, None) == {}
    assert spreading_axes({3: 12}, {3: False}) == {}
    assert spreading_axes({3: 12, 5: None}, {3: True, 5: True}).keys() == {3}


def test_loop_closes_exactly(make_settings):
    settings = make_settings({"root": {
        "expansion_a": 12, "expansion_b": 0,
        "axis_looping": {"3": 12}, "comma_spreading": {"3": True},
    }})
    graph = generate_lattice(settings)
    start = graph.get("root")
    end = graph.get("3:12")
    assert abs(_fold(end.cents - start.cents)) < 1e-6


def test_tempered_fifth(make_settings):
    settings = make_settings({"root": {
        "expansion_b": 0, "axis_looping": {"3": 12}, "comma_spreading": {"3": True},
    }})
    fifth = generate_lattice(settings).get("3:1")
    assert fifth.cents == pytest.approx(700.0, abs=1e-9)
    # Ratio is rebuilt from the tempered cents at a fixed resolution
    assert float(fifth.ratio) == pytest.approx(2 ** (700 / 1200), abs=1e-4)


def test_no_spreading_keeps_ji(make_settings):
    fifth = generate_lattice(make_settings({"root": {"axis_looping": {"3": 12}}})).get("3:1")
    assert fifth.cents == pytest.approx(701.955, abs=1e-3)
    assert fifth.ratio.numerator == 3 and fifth.ratio.denominator == 2


def test_spreading_info(make_settings):
    settings = make_settings({"root": {
        "expansion_b": 0, "axis_looping": {"3": 12}, "comma_spreading": {"3": True},
    }})
    node = generate_lattice(settings).get("3:2")
    info = comma_spreading_info(node, settings)
    assert info.is_affected
    assert len(info.axis_details) == 1
    detail = info.axis_details[0]
    assert detail.prime == 3 and detail.node_step_index == 2
    assert detail.cumulative_adjustment == pytest.approx(-2 * PYTHAGOREAN_COMMA / 12)
    assert info.tempered_cents == pytest.approx(info.ji_cents + info.total_adjustment)


def test_spreading_info_unaffected(make_settings):
    settings = make_settings()
    info = comma_spreading_info(generate_lattice(settings).get("3:1"), settings)
    assert not info.is_affected
    assert info.tempered_cents == pytest.approx(info.ji_cents)
