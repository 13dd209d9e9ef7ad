"""
Lattice Generation Engine
=========================
Turns `LatticeSettings` into a `LatticeGraph`.

Why is this file needed?
------------------------
1. Expansion: It grows the prime-vector tree or one of the alternate geometries.
2. Post-passes: It merges near-duplicate pitches, masks nodes and applies the
   curved projection.
3. Concurrency: It runs the whole pipeline off the GUI thread.

Note: Everything except `workers` is pure Python/NumPy/SciPy and does not import PySide6.
"""
