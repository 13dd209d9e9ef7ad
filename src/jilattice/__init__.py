"""
jilattice
=========
Just-intonation lattice generator: exact prime-vector pitch arithmetic laid out
as a 3D graph of nodes and edges.
"""
