"""
Global Constants Registry
=========================
This module serves as the central registry for the constants shared by the
lattice generator.

Why is this file needed?
------------------------
1. Abstraction: It prevents magic numbers (axis directions, unit distance,
   clamp ceilings) from being scattered throughout the generator.
2. Safety: Loop bounds coming from UI state are clamped against the ceilings
   defined here, so a single place decides the worst-case running time.

Exports:
    PRIME_AXES (dict): Unit-ish 3D direction per standard prime.
    STANDARD_PRIMES (tuple): The primes the lattice knows natively.
    UNIT_DISTANCE (float): Base length of one step along an axis.
    GEN_SIZES (dict): Display radius per generation (used for collisions).
"""
from __future__ import annotations

import math
from typing import Dict, Tuple

import numpy as np

# Axis directions are intentionally NOT normalized; straight axes use them raw.
PRIME_AXES: Dict[int, Tuple[float, float, float]] = {
    3: (1.0, 0.0, 0.0),
    5: (0.1, 1.0, 0.3),
    7: (0.0, -0.4, 1.0),
    11: (-0.7, 0.7, -0.6),
    13: (0.6, -0.8, -0.5),
    17: (-0.3, 0.9, -0.9),
    19: (0.8, 0.5, 0.3),
    23: (-0.5, -0.8, 0.3),
    29: (0.9, -0.1, 0.7),
    31: (-0.8, 0.2, 0.9),
}

STANDARD_PRIMES: Tuple[int, ...] = (3, 5, 7, 11, 13, 17, 19, 23, 29, 31)

UNIT_DISTANCE: float = 10.0

GEN_SIZES: Dict[int, float] = {
    0: 1.8,
    1: 1.0,
    2: 0.6,
    3: 0.35,
    4: 0.2,
}
DEFAULT_GEN_SIZE: float = 0.25

# Resolution used whenever a ratio has to be rebuilt from a floating point value
RATIO_APPROXIMATION_RESOLUTION: int = 10000

# Clamp ceilings for user-influenced loop bounds
MAX_BRANCH_LENGTH: int = 50
MAX_GRID_DIMENSION: int = 50
MAX_SPHERE_RADIUS: int = 50
MAX_CHAIN_LENGTH: int = 2000
MAX_GENERATION: int = 20
# Equal-step ratios saturate at 2**±MAX_RATIO_PERIODS
MAX_RATIO_PERIODS: int = 1024

DEFAULT_IMPLICIT_EXPRESSION: str = "x^2 + y^2 + z^2 - 400"
DEFAULT_VOXEL_EXPRESSION: str = "x^2 + y^2 + z^2 < 400"
DEFAULT_PARAMETRIC_EXPRESSION: str = "x=20*cos(t), y=20*sin(t), z=0.6*t"

_PHI: float = (1.0 + math.sqrt(5.0)) / 2.0


def get_prime_axis(prime: int) -> np.ndarray:
    """
    Direction vector for a prime axis.

    Standard primes use the fixed table; any other integer axis gets a
    deterministic golden-angle direction on the unit sphere.
    """
    if prime in PRIME_AXES:
        return np.array(PRIME_AXES[prime], dtype=np.float64)

    theta = ((prime * _PHI) % 1.0) * math.pi * 2.0
    phi_angle = math.acos(1.0 - 2.0 * ((prime * _PHI * _PHI) % 1.0))
    return np.array([
        math.sin(phi_angle) * math.cos(theta),
        math.sin(phi_angle) * math.sin(theta),
        math.cos(phi_angle),
    ], dtype=np.float64)
