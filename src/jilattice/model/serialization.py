"""
Lattice Payload Codec
=====================
Converts a `LatticeGraph` to and from the plain payload that crosses the
worker boundary, and writes payloads to HDF5 files.

Why is this file needed?
------------------------
1. Transport: Qt signals carry Python objects, but the payload is kept to
   plain dicts/lists plus one flat numpy position buffer so the receiver does
   not depend on the generator's internal classes.
2. Zero copy: Positions are packed once into a contiguous float64 array
   [x0, y0, z0, x1, ...] that is handed over by reference.
3. Export: `save_payload` / `load_payload` store the same payload in an .h5 file.
"""
from __future__ import annotations

import json
import logging
from fractions import Fraction
from importlib.metadata import version, PackageNotFoundError
from typing import Any, Dict, List, TYPE_CHECKING

import h5py
import numpy as np

from jilattice.model.graph import EdgeData, LatticeGraph, NodeData

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

try:
    APP_VERSION = version("jilattice")
except PackageNotFoundError:
    APP_VERSION = "0.0.0-dev"


def node_to_dict(node: NodeData) -> Dict[str, Any]:
    return {
        "id": node.id,
        "prime_vector": {str(p): e for p, e in node.prime_vector.items()},
        "ratio": f"{node.ratio.numerator}/{node.ratio.denominator}",
        "octave": node.octave,
        "cents": node.cents,
        "generation": node.generation,
        "origin_limit": node.origin_limit,
        "parent_id": node.parent_id,
        "name": node.name,
        "step_index": node.step_index,
    }


def edge_to_dict(edge: EdgeData) -> Dict[str, Any]:
    return {
        "id": edge.id,
        "source_id": edge.source_id,
        "target_id": edge.target_id,
        "limit": edge.limit,
        "generation": edge.generation,
    }


def serialize_lattice(graph: LatticeGraph) -> Dict[str, Any]:
    """Payload: {"nodes": [...], "edges": [...], "positions": float64 ndarray}."""
    return {
        "nodes": [node_to_dict(n) for n in graph.nodes],
        "edges": [edge_to_dict(e) for e in graph.edges],
        "positions": graph.positions_array(),
    }


def deserialize_lattice(payload: Dict[str, Any]) -> LatticeGraph:
    """Rebuild a `LatticeGraph` from a payload produced by `serialize_lattice`."""
    node_dicts: List[Dict[str, Any]] = payload.get("nodes", [])
    positions = np.asarray(payload.get("positions", np.empty(0)), dtype=np.float64)
    if positions.size != 3 * len(node_dicts):
        raise ValueError(
            f"Position buffer holds {positions.size} values, expected {3 * len(node_dicts)}."
        )
    points = positions.reshape(-1, 3)

    nodes = []
    for idx, data in enumerate(node_dicts):
        nodes.append(NodeData(
            id=data["id"],
            position=points[idx].copy(),
            prime_vector={int(p): int(e) for p, e in data.get("prime_vector", {}).items()},
            ratio=Fraction(data.get("ratio", "1/1")),
            octave=int(data.get("octave", 0)),
            cents=float(data.get("cents", 0.0)),
            generation=int(data.get("generation", 0)),
            origin_limit=int(data.get("origin_limit", 0)),
            parent_id=data.get("parent_id"),
            name=data.get("name", ""),
            step_index=data.get("step_index"),
        ))

    edges = [
        EdgeData(
            id=data["id"],
            source_id=data["source_id"],
            target_id=data["target_id"],
            limit=int(data["limit"]),
            generation=int(data["generation"]),
        )
        for data in payload.get("edges", [])
    ]
    return LatticeGraph(nodes, edges)


def save_payload(payload: Dict[str, Any], filepath: str) -> None:
    """Write a lattice payload to an HDF5 file."""
    logger.info(f"Saving lattice to: {filepath}")
    positions: npt.NDArray[np.float64] = np.asarray(payload["positions"], dtype=np.float64)
    with h5py.File(filepath, "w") as f:
        f.attrs["version"] = APP_VERSION
        f.attrs["node_count"] = len(payload["nodes"])
        f.attrs["edge_count"] = len(payload["edges"])
        f.create_dataset("positions", data=positions.reshape(-1, 3), compression="gzip")
        # Node and edge records are JSON blobs; attributes are capped at 64KB
        f.create_dataset("nodes", data=np.void(json.dumps(payload["nodes"]).encode("utf-8")))
        f.create_dataset("edges", data=np.void(json.dumps(payload["edges"]).encode("utf-8")))
    logger.info(f"Lattice saved to: {filepath}")


def load_payload(filepath: str) -> Dict[str, Any]:
    logger.info(f"Loading lattice from: {filepath}")
    if not h5py.is_hdf5(filepath):
        msg = f"File '{filepath}' is not a valid HDF5 file."
        logger.error(msg)
        raise ValueError(msg)
    with h5py.File(filepath, "r") as f:
        positions = np.asarray(f["positions"][()], dtype=np.float64).reshape(-1)
        nodes = json.loads(bytes(f["nodes"][()]).decode("utf-8"))
        edges = json.loads(bytes(f["edges"][()]).decode("utf-8"))
    return {"nodes": nodes, "edges": edges, "positions": positions}
