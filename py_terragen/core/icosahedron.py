"""
Base icosahedron table.

Face ``i`` lists its points counter-clockwise seen from outside, and its
edge ``k`` connects points ``k`` and ``k + 1`` (mod 3). The dual tile walk
in ``MeshGraph.to_planet`` relies on this winding.
"""

import math

PHI = (math.sqrt(5.0) + 1.0) / 2.0
_DU = 1.0 / math.sqrt(PHI * PHI + 1.0)
_DV = PHI * _DU

NODES = [
    (0.0, _DV, _DU),
    (0.0, _DV, -_DU),
    (0.0, -_DV, _DU),
    (0.0, -_DV, -_DU),
    (_DU, 0.0, _DV),
    (-_DU, 0.0, _DV),
    (_DU, 0.0, -_DV),
    (-_DU, 0.0, -_DV),
    (_DV, _DU, 0.0),
    (_DV, -_DU, 0.0),
    (-_DV, _DU, 0.0),
    (-_DV, -_DU, 0.0),
]

EDGES = [
    (0, 1), (0, 4), (0, 5), (0, 8), (0, 10),
    (1, 6), (1, 7), (1, 8), (1, 10), (2, 3),
    (2, 4), (2, 5), (2, 9), (2, 11), (3, 6),
    (3, 7), (3, 9), (3, 11), (4, 5), (4, 8),
    (4, 9), (5, 10), (5, 11), (6, 7), (6, 8),
    (6, 9), (7, 10), (7, 11), (8, 9), (10, 11),
]

# (points, edges)
FACES = [
    ((0, 8, 1), (3, 7, 0)),
    ((0, 5, 4), (2, 18, 1)),
    ((0, 10, 5), (4, 21, 2)),
    ((0, 4, 8), (1, 19, 3)),
    ((0, 1, 10), (0, 8, 4)),
    ((1, 8, 6), (7, 24, 5)),
    ((1, 6, 7), (5, 23, 6)),
    ((1, 7, 10), (6, 26, 8)),
    ((2, 11, 3), (13, 17, 9)),
    ((2, 9, 4), (12, 20, 10)),
    ((2, 4, 5), (10, 18, 11)),
    ((2, 3, 9), (9, 16, 12)),
    ((2, 5, 11), (11, 22, 13)),
    ((3, 7, 6), (15, 23, 14)),
    ((3, 11, 7), (17, 27, 15)),
    ((3, 6, 9), (14, 25, 16)),
    ((4, 9, 8), (20, 28, 19)),
    ((5, 10, 11), (21, 29, 22)),
    ((6, 8, 9), (24, 28, 25)),
    ((7, 11, 10), (27, 29, 26)),
]
