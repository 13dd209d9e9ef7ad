import pytest

from jilattice.controller.generator import generate_lattice
from jilattice.model.naming import NoteNamer, note_name, rename_lattice
from jilattice.model.settings import LatticeSettings, NotationSymbol, default_notation_symbols

SYMBOLS = default_notation_symbols()


@pytest.mark.parametrize("vector, expected", [
    ({}, "C"),
    ({3: 1}, "G"),
    ({3: -1}, "F"),
    ({3: 2}, "D"),
    ({3: 6}, "F#"),
    ({3: -2}, "Bb"),
    ({3: 13}, "F##"),
])
def test_circle_of_fifths(vector, expected):
    assert note_name(vector, SYMBOLS) == expected


def test_accidentals():
    assert note_name({5: 1}, SYMBOLS) == "C~"
    assert note_name({5: -1}, SYMBOLS) == "C+"
    assert note_name({7: 1}, SYMBOLS) == "Cγ"
    assert note_name({7: -1}, SYMBOLS) == "γC"
    assert note_name({7: -1}, SYMBOLS, placement="right") == "Cγ"


def test_long_runs_are_compacted():
    assert note_name({3: 7 * 8 - 1}, SYMBOLS) == "F(8)#"
    assert note_name({7: 9}, SYMBOLS) == "Cγ(9)"


def test_composite_axis_with_own_symbol():
    symbols = dict(SYMBOLS)
    symbols[9] = NotationSymbol(up="n", down="u")
    # The letter always counts the factored threes (9 = 3^2 -> D)
    assert note_name({9: 1}, symbols) == "Dn"
    assert note_name({9: 1}, SYMBOLS) == "D"


def test_namer_applies_transposition():
    namer = NoteNamer(LatticeSettings.from_dict({"transposition_vector": {"3": 1}}))
    assert namer({}) == "G"
    assert namer({3: -1}) == "C"


def test_rename_lattice_changes_labels_only(make_settings):
    settings = make_settings()
    graph = generate_lattice(settings)
    renamed = rename_lattice(graph, make_settings({"transposition_vector": {"3": 1}}))
    assert [n.id for n in renamed.nodes] == [n.id for n in graph.nodes]
    assert renamed.get("root").name == "G"
    assert graph.get("root").name == "C"
    assert renamed.edges == graph.edges
