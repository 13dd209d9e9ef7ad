"""
The MODEL layer contains pure data structures and pitch arithmetic.
It has NO knowledge of Qt or of how lattices are generated.
It deals with Ratios, Prime Vectors, Settings, and Payload I/O.
"""
