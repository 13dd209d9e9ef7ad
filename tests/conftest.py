from fractions import Fraction
from typing import Any, Callable, Dict

import numpy as np
import pytest
from PySide6.QtCore import QCoreApplication

from jilattice.model.graph import NodeData
from jilattice.model.settings import LatticeSettings


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _merge(result[key], value)
        else:
            result[key] = value
    return result


SMALL_TREE = {
    "root": {
        "root_limits": [3],
        "expansion_a": 2,
        "expansion_b": 1,
        "expansion_c": 0,
        "max_prime_limit": 11,
    },
}


@pytest.fixture
def make_settings() -> Callable[..., LatticeSettings]:
    """Small tree-mode settings, deep-merged with the given dict."""
    def factory(extra: Dict[str, Any] | None = None) -> LatticeSettings:
        return LatticeSettings.from_dict(_merge(SMALL_TREE, extra or {}))
    return factory


@pytest.fixture
def make_node() -> Callable[..., NodeData]:
    def factory(node_id: str, cents: float, generation: int = 0, origin_limit: int = 3,
                position=(0.0, 0.0, 0.0)) -> NodeData:
        return NodeData(
            id=node_id,
            position=np.array(position, dtype=np.float64),
            prime_vector={},
            ratio=Fraction(1),
            octave=0,
            cents=cents,
            generation=generation,
            origin_limit=origin_limit,
        )
    return factory


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app
