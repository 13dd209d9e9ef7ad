import numpy as np
import pytest

from jilattice.controller.generator import generate_lattice
from jilattice.model.serialization import (
    deserialize_lattice, load_payload, save_payload, serialize_lattice
)


@pytest.fixture
def graph(make_settings):
    return generate_lattice(make_settings({"root": {"expansion_c": 1, "max_prime_limit": 7}}))


def test_payload_shape(graph):
    payload = serialize_lattice(graph)
    assert len(payload["nodes"]) == len(graph.nodes)
    assert payload["positions"].dtype == np.float64
    assert payload["positions"].shape == (3 * len(graph.nodes),)
    first = payload["nodes"][0]
    assert first["id"] == "root" and first["ratio"] == "1/1"


def test_payload_restores_graph(graph):
    restored = deserialize_lattice(serialize_lattice(graph))
    assert [n.id for n in restored.nodes] == [n.id for n in graph.nodes]
    assert [n.ratio for n in restored.nodes] == [n.ratio for n in graph.nodes]
    assert restored.get("3:1,5:1").prime_vector == {3: 1, 5: 1}
    assert restored.edges == graph.edges
    assert np.array_equal(restored.positions_array(), graph.positions_array())


def test_position_size_mismatch_raises(graph):
    payload = serialize_lattice(graph)
    payload["positions"] = payload["positions"][:-1]
    with pytest.raises(ValueError):
        deserialize_lattice(payload)


def test_hdf5_file(graph, tmp_path):
    path = str(tmp_path / "lattice.h5")
    save_payload(serialize_lattice(graph), path)
    restored = deserialize_lattice(load_payload(path))
    assert [n.name for n in restored.nodes] == [n.name for n in graph.nodes]
    assert len(restored.edges) == len(graph.edges)
    assert np.allclose(restored.positions_array(), graph.positions_array())


def test_load_rejects_non_hdf5(tmp_path):
    path = tmp_path / "not_a_lattice.h5"
    path.write_text("hello")
    with pytest.raises(ValueError):
        load_payload(str(path))
