"""
Rational Pitch Arithmetic
=========================
Exact ratio helpers built on `fractions.Fraction`, plus the prime-vector
(monzo) representation used as node identity throughout the lattice.

Why is this file needed?
------------------------
1. Exactness: Octave normalization of prime-power ratios is done with integer
   doubling/halving, never with floats.
2. Identity: `vector_key` is the canonical serialization of a prime vector and
   therefore the node id used by every generation mode.

The only approximate conversion is `cents_to_ratio`, which rounds to a fixed
denominator resolution. Callers must say so where they use it.
"""
from __future__ import annotations

import math
from fractions import Fraction
from typing import Dict, Mapping, Tuple

from jilattice.config import RATIO_APPROXIMATION_RESOLUTION, STANDARD_PRIMES
from jilattice.utils import CENTS_PER_OCTAVE

PrimeVector = Dict[int, int]

ROOT_KEY = "root"


def multiply(a: Fraction, b: Fraction) -> Fraction:
    return a * b


def normalize_octave(ratio: Fraction) -> Tuple[Fraction, int]:
    """
    Fold a positive ratio into [1, 2).

    Returns:
        (normalized_ratio, octaves) where ratio == normalized_ratio * 2**octaves.
        Non-positive ratios are returned untouched with 0 octaves.
    """
    n, d = ratio.numerator, ratio.denominator
    if n <= 0 or d <= 0:
        return ratio, 0

    octaves = 0
    while n < d:
        n *= 2
        octaves -= 1
    while n >= d * 2:
        d *= 2
        octaves += 1
    return Fraction(n, d), octaves


def clean_vector(vector: Mapping[int, int] | None) -> PrimeVector:
    """Drop zero exponents and sort by prime, giving the canonical sparse form."""
    if not vector:
        return {}
    return {int(p): int(e) for p, e in sorted(vector.items(), key=lambda item: int(item[0])) if int(e) != 0}


def vector_key(vector: Mapping[int, int] | None) -> str:
    """Canonical id of a prime vector: ascending `prime:exp` terms joined by commas."""
    cleaned = clean_vector(vector)
    if not cleaned:
        return ROOT_KEY
    return ",".join(f"{p}:{e}" for p, e in cleaned.items())


def add_vectors(a: Mapping[int, int] | None, b: Mapping[int, int] | None) -> PrimeVector:
    result: PrimeVector = dict(a or {})
    for p, e in (b or {}).items():
        result[p] = result.get(p, 0) + e
    return clean_vector(result)


def with_step(vector: Mapping[int, int], prime: int, delta: int) -> PrimeVector:
    """Copy of vector moved `delta` steps along `prime`."""
    result = dict(vector)
    result[prime] = result.get(prime, 0) + delta
    return clean_vector(result)


def ratio_from_prime_vector(vector: Mapping[int, int]) -> Fraction:
    ratio = Fraction(1)
    for p, e in vector.items():
        if e > 0:
            ratio = multiply(ratio, Fraction(p ** e))
        elif e < 0:
            ratio = multiply(ratio, Fraction(1, p ** -e))
    return ratio


def log2_of_vector(vector: Mapping[int, int]) -> float:
    return sum(e * math.log2(p) for p, e in vector.items() if e)


def cents_from_prime_vector(vector: Mapping[int, int]) -> float:
    """Unfolded cents: 1200 * sum(e_p * log2 p)."""
    return CENTS_PER_OCTAVE * log2_of_vector(vector)


def octave_cents_from_prime_vector(vector: Mapping[int, int]) -> float:
    """Cents folded into [0, 1200)."""
    log2_val = log2_of_vector(vector)
    frac = log2_val - math.floor(log2_val)
    return frac * CENTS_PER_OCTAVE


def ratio_to_cents(ratio: Fraction) -> float:
    if ratio <= 0:
        return 0.0
    return CENTS_PER_OCTAVE * math.log2(ratio.numerator / ratio.denominator)


def cents_to_ratio(cents: float, resolution: int = RATIO_APPROXIMATION_RESOLUTION) -> Fraction:
    """
    Approximate an irrational cents value with an octave-normalized fraction.

    The value 2**(cents/1200) is rounded to a multiple of 1/resolution, so the
    result is exact only to about 1/resolution.
    """
    value = 2.0 ** (cents / CENTS_PER_OCTAVE)
    approx = Fraction(round(value * resolution), resolution)
    return normalize_octave(approx)[0]


def pitch_class_distance(cents_a: float, cents_b: float) -> float:
    """Circular distance between two cents values modulo the octave."""
    diff = abs(cents_a - cents_b) % CENTS_PER_OCTAVE
    return min(diff, CENTS_PER_OCTAVE - diff)


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n in (2, 3):
        return True
    if n % 2 == 0:
        return False
    i = 3
    while i * i <= n:
        if n % i == 0:
            return False
        i += 2
    return True


def factorize(n: int) -> Dict[int, int]:
    """Trial-division factorization of a positive integer."""
    factors: Dict[int, int] = {}
    remaining = abs(int(n))
    p = 2
    while p * p <= remaining:
        while remaining % p == 0:
            factors[p] = factors.get(p, 0) + 1
            remaining //= p
        p += 1 if p == 2 else 2
    if remaining > 1:
        factors[remaining] = factors.get(remaining, 0) + 1
    return factors


def expand_composite_vector(vector: Mapping[int, int]) -> PrimeVector:
    """Rewrite composite custom axes (e.g. 9, 15) in terms of their prime factors."""
    result: PrimeVector = {}
    for p, e in vector.items():
        if not e:
            continue
        if p == 2 or is_prime(p):
            result[p] = result.get(p, 0) + e
            continue
        for prime, count in factorize(p).items():
            result[prime] = result.get(prime, 0) + e * count
    return clean_vector(result)


def prime_vector_from_ratio(numerator: int, denominator: int) -> PrimeVector:
    """Factor the odd parts of n/d over the standard primes; powers of two are discarded."""
    vector: PrimeVector = {}
    for value, sign in ((numerator, 1), (denominator, -1)):
        remaining = int(value)
        while remaining > 0 and remaining % 2 == 0:
            remaining //= 2
        for p in STANDARD_PRIMES:
            while remaining > 0 and remaining % p == 0:
                vector[p] = vector.get(p, 0) + sign
                remaining //= p
    return clean_vector(vector)
