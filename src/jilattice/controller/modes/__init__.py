"""Alternate geometry modes. Each module exposes one `generate_*` function returning a `LatticeGraph`."""
