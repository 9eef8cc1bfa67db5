"""
Flatten meshes into render buffers.

The emitters turn a ``MeshGraph`` or ``Planet`` snapshot into flat NumPy
arrays (positions, triangle indices, normals, texture coordinates and an
optional line index buffer for wireframes). Texture coordinates index a
colour ramp image: ``u`` is the normalized elevation, ``v`` picks the
shading band (tile interior or tile border). No randomness is drawn.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from .mesh_graph import MeshGraph
from .planet import Planet
from .vector import normalize, normalize_rows

INTERIOR_BAND = 0.25
BORDER_BAND = 0.75
ELEVATION_EXPONENT = 1.5
RELIEF = 0.02


@dataclass
class MeshBuffers:
    """Flat render buffers."""

    vertices: np.ndarray  # (N, 3) float32
    faces: np.ndarray  # (M, 3) uint32
    normals: Optional[np.ndarray] = None  # (N, 3) float32
    texcoords: Optional[np.ndarray] = None  # (N, 2) float32
    wireframe: Optional[np.ndarray] = None  # (K, 2) uint32

    def to_dict(self) -> Dict[str, Optional[List]]:
        """Nested lists, for JSON output."""
        def as_list(a):
            return None if a is None else a.tolist()

        return {
            "vertices": as_list(self.vertices),
            "faces": as_list(self.faces),
            "normals": as_list(self.normals),
            "texcoords": as_list(self.texcoords),
            "wireframe": as_list(self.wireframe),
        }


def _normalizer(min_value: float, value_range: float):
    if value_range <= 0.0:
        return lambda value: 0.0
    return lambda value: (value - min_value) / value_range


def _ramp_u(elevation: float) -> float:
    return 1.0 - elevation ** ELEVATION_EXPONENT


def _pack(vertices, faces, normals, texcoords, lines) -> MeshBuffers:
    return MeshBuffers(
        vertices=np.asarray(vertices, dtype=np.float32).reshape(-1, 3),
        faces=np.asarray(faces, dtype=np.uint32).reshape(-1, 3),
        normals=np.asarray(normals, dtype=np.float32).reshape(-1, 3),
        texcoords=np.asarray(texcoords, dtype=np.float32).reshape(-1, 2),
        wireframe=None if lines is None else np.asarray(lines, dtype=np.uint32).reshape(-1, 2),
    )


def generate_regular(mesh: MeshGraph, wireframe: bool = False) -> MeshBuffers:
    """Primal triangulation, three unshared vertices per face."""
    min_elev, max_elev = mesh.calculate_elevations()
    norm = _normalizer(min_elev, max_elev - min_elev)

    vertices = []
    normals = []
    texcoords = []
    faces = []

    for f in mesh.faces:
        normal = normalize(mesh.face_midpoint(f))
        base = len(vertices)
        for idx in f.points:
            node = mesh.nodes[idx]
            vertices.append(node.point)
            normals.append(normal)
            texcoords.append((_ramp_u(norm(node.elevation)), 0.0))
        faces.append((base, base + 1, base + 2))

    lines = [e.key for e in mesh.edges] if wireframe else None
    return _pack(vertices, faces, normals, texcoords, lines)


def generate_dual(mesh: MeshGraph, wireframe: bool = False) -> MeshBuffers:
    """
    One polygon fan per node over the centroids of its face ring.

    Vertices of a fan are the ring corners followed by the fan centre.
    """
    rings = [mesh.face_ring(i) for i in range(mesh.num_nodes())]
    centroids = [mesh.face_midpoint(f) for f in mesh.faces]
    min_elev, max_elev = mesh.calculate_elevations()
    norm = _normalizer(min_elev, max_elev - min_elev)

    vertices = []
    normals = []
    texcoords = []
    faces = []
    lines: Optional[List[Tuple[int, int]]] = [] if wireframe else None

    for node, ring in zip(mesh.nodes, rings):
        uv = (_ramp_u(norm(node.elevation)), 0.0)
        first = len(vertices)
        n = len(ring)
        for fi in ring:
            vertices.append(centroids[fi])
            normals.append(node.point)
            texcoords.append(uv)
        centre = len(vertices)
        vertices.append(sum(centroids[fi] for fi in ring) / n)
        normals.append(node.point)
        texcoords.append(uv)

        for j in range(n):
            faces.append((centre, first + j, first + (j + 1) % n))
            if lines is not None:
                lines.append((first + j, first + (j + 1) % n))

    return _pack(vertices, faces, normals, texcoords, lines)


def generate_tiles(planet: Planet, wireframe: bool = False) -> MeshBuffers:
    """
    Tile fans of a planet, raised by tile elevation.

    Ring vertices use the border band of the colour ramp and fan centres
    the interior band, so tile outlines show up in the shading.
    """
    min_elev, elev_range = planet.get_elevation_scale()
    norm = _normalizer(min_elev, elev_range)

    vertices = []
    normals = []
    texcoords = []
    faces = []
    lines: Optional[List[Tuple[int, int]]] = [] if wireframe else None

    for tile in planet.tiles:
        elevation = norm(planet.tile_elevation(tile))
        relief = 1.0 + (elevation ** 2 - 0.5) * RELIEF
        u = _ramp_u(elevation)
        normal = planet.tile_normal(tile)

        first = len(vertices)
        n = len(tile.vertices)
        for vi in tile.vertices:
            vertices.append(planet.vertices[vi] * relief)
            normals.append(normal)
            texcoords.append((u, BORDER_BAND))
        centre = len(vertices)
        vertices.append(planet.vertices[tile.midpoint] * relief)
        normals.append(normal)
        texcoords.append((u, INTERIOR_BAND))

        for j in range(n):
            faces.append((centre, first + j, first + (j + 1) % n))

    if lines is not None:
        lines.extend(border.vertices for border in planet.borders)
        corners = np.asarray(planet.vertices[: planet.num_corners])
        # Border lines index the unraised corner positions appended after the fans
        offset = len(vertices)
        vertices.extend(corners)
        normals.extend(normalize_rows(corners))
        texcoords.extend([(0.0, BORDER_BAND)] * len(corners))
        lines = [(a + offset, b + offset) for a, b in lines]

    return _pack(vertices, faces, normals, texcoords, lines)
