"""
Indexed icosphere mesh.

Nodes, edges and faces live in flat lists and refer to each other only by
integer index. Subdivision replaces the edge and face lists wholesale and
rebuilds every back-link from scratch; distortion flips single edges and
patches the affected links in place; relaxation moves node positions with
vectorized NumPy passes.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog

from . import icosahedron
from .alea_prng import AleaPRNG
from .errors import MeshInvariantError
from .planet import Planet
from .vector import distance, into_variance, normalize, normalize_rows, slerp, sorted_pair, vec3
from ..utils import random as default_random

logger = structlog.get_logger()

# Elevation perturbation: initial magnitude and per-level decay
INITIAL_RND_POW = 3.0
RND_POW_DECAY = 0.75
INITIAL_ELEVATION_MAX = 0.5

# Edge rotation predicate
MAX_FACES_FOR_NEW_NODE = 7  # rejected when a far node already has this many faces
MIN_FACES_FOR_OLD_NODE = 5  # rejected when an edge endpoint has this many or fewer
MIN_LENGTH_RATIO = 0.5
MAX_LENGTH_RATIO = 2.0
ROTATION_DOT_THRESHOLD = 0.2

# Relaxation under-relaxation factor for the ideal distance to a face centroid
RELAX_DISTANCE_FACTOR = 0.9


@dataclass
class Node:
    """A mesh vertex on the unit sphere."""

    point: np.ndarray
    elevation: float
    edges: List[int] = field(default_factory=list)
    faces: List[int] = field(default_factory=list)


@dataclass(eq=False)
class Edge:
    """
    An undirected edge between two nodes.

    The endpoints are stored sorted (``a < b``) so an edge is identified by
    its endpoint pair whatever order it was built from.
    """

    a: int
    b: int
    faces: List[int] = field(default_factory=list)

    def __post_init__(self):
        if self.a == self.b:
            raise MeshInvariantError(f"Illegal edge between {self.a} and {self.b}")
        if self.a > self.b:
            self.a, self.b = self.b, self.a

    @property
    def key(self) -> Tuple[int, int]:
        return (self.a, self.b)

    def __eq__(self, other):
        if not isinstance(other, Edge):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def other_node(self, node_index: int) -> int:
        if node_index == self.a:
            return self.b
        if node_index == self.b:
            return self.a
        raise MeshInvariantError(f"Edge {self.key} does not contain node {node_index}")


@dataclass
class Face:
    """
    A triangle.

    ``edges[i]`` connects ``points[i]`` and ``points[(i + 1) % 3]``.
    """

    points: List[int]
    edges: List[int]

    def opposite_node_index(self, a: int, b: int) -> int:
        """Position of the point that is neither ``a`` nor ``b``."""
        for i, p in enumerate(self.points):
            if p != a and p != b:
                return i
        raise MeshInvariantError(f"Face {self.points} has no point opposite to edge ({a}, {b})")


def rebuild_links(
    num_nodes: int, edges: List[Edge], faces: List[Face]
) -> Tuple[List[List[int]], List[List[int]], List[List[int]]]:
    """
    Recompute every back-link of a mesh from its edge and face lists.

    Args:
        num_nodes: Number of nodes in the mesh
        edges: Edge list (only endpoints are read)
        faces: Face list

    Returns:
        Tuple of (node -> edges, node -> faces, edge -> faces)
    """
    node_edges: List[List[int]] = [[] for _ in range(num_nodes)]
    node_faces: List[List[int]] = [[] for _ in range(num_nodes)]
    edge_faces: List[List[int]] = [[] for _ in range(len(edges))]

    for idx, e in enumerate(edges):
        node_edges[e.a].append(idx)
        node_edges[e.b].append(idx)

    for idx, f in enumerate(faces):
        for p in f.points:
            node_faces[p].append(idx)
        for e in f.edges:
            edge_faces[e].append(idx)

    return node_edges, node_faces, edge_faces


class MeshGraph:
    """
    Subdividable icosphere with elevation per node.

    Starts as a regular icosahedron (12 nodes, 30 edges, 20 faces). All
    randomness is drawn from the ``prng`` handle given at construction.
    """

    def __init__(self, prng: Optional[AleaPRNG] = None):
        self.prng = prng if prng is not None else default_random.get_prng()

        self.nodes: List[Node] = [
            Node(vec3(*p), self.prng.random() * INITIAL_ELEVATION_MAX)
            for p in icosahedron.NODES
        ]
        self.edges: List[Edge] = [Edge(a, b) for a, b in icosahedron.EDGES]
        self.faces: List[Face] = [Face(list(p), list(e)) for p, e in icosahedron.FACES]
        self.rnd_pow = INITIAL_RND_POW
        self.level = 0

        self._assign_links(self.edges, self.faces)

    def _assign_links(self, edges: List[Edge], faces: List[Face]) -> None:
        node_edges, node_faces, edge_faces = rebuild_links(len(self.nodes), edges, faces)
        for node, ne, nf in zip(self.nodes, node_edges, node_faces):
            node.edges = ne
            node.faces = nf
        for edge, ef in zip(edges, edge_faces):
            edge.faces = ef

    def current_level(self) -> int:
        return self.level

    def num_nodes(self) -> int:
        return len(self.nodes)

    def num_edges(self) -> int:
        return len(self.edges)

    def num_faces(self) -> int:
        return len(self.faces)

    def face_midpoint(self, face: Face) -> np.ndarray:
        """Plain average of the face corners (not projected to the sphere)."""
        p0, p1, p2 = (self.nodes[i].point for i in face.points)
        return (p0 + p1 + p2) / 3.0

    def calculate_elevations(self) -> Tuple[float, float]:
        """Return (min, max) node elevation."""
        elevations = [n.elevation for n in self.nodes]
        return min(elevations), max(elevations)

    def edge_length_variance(self) -> float:
        """Variance of edge lengths around the ideal length for this face count."""
        ideal_face_area = 4.0 * math.pi / len(self.faces)
        ideal_edge_length = math.sqrt(ideal_face_area * 4.0 / math.sqrt(3.0))
        return into_variance(
            distance(self.nodes[e.a].point, self.nodes[e.b].point) - ideal_edge_length
            for e in self.edges
        )

    def subdivide(self) -> None:
        """
        Split every face into four.

        Each edge gets a midpoint node on the great circle between its
        endpoints and is replaced by two half edges; each face adds three
        inner edges between its new midpoints.
        """
        self.level += 1
        self.rnd_pow *= RND_POW_DECAY
        first_new_node = len(self.nodes)

        logger.debug("Initiating subdivision", level=self.level, rnd_pow=self.rnd_pow)

        new_edges: List[Edge] = []
        edge_index: Dict[Tuple[int, int], int] = {}

        for e in self.edges:
            n0 = self.nodes[e.a]
            n1 = self.nodes[e.b]
            midpoint = slerp(n0.point, n1.point, 0.5)
            elevation = (n0.elevation + n1.elevation) / 2.0 + self.prng.signed(0.5) * self.rnd_pow

            vidx = len(self.nodes)
            self.nodes.append(Node(midpoint, elevation))

            edge_index[(e.a, vidx)] = len(new_edges)
            new_edges.append(Edge(e.a, vidx))
            edge_index[(e.b, vidx)] = len(new_edges)
            new_edges.append(Edge(e.b, vidx))

        def find_edge(a: int, b: int) -> int:
            key = sorted_pair(a, b)
            idx = edge_index.get(key)
            if idx is None:
                idx = len(new_edges)
                edge_index[key] = idx
                new_edges.append(Edge(a, b))
            return idx

        new_faces: List[Face] = []
        for f in self.faces:
            p0, p1, p2 = f.points
            n0, n1, n2 = (first_new_node + e for e in f.edges)

            e00 = find_edge(p0, n0)
            e01 = find_edge(n0, p1)
            e10 = find_edge(p1, n1)
            e11 = find_edge(n1, p2)
            e20 = find_edge(p2, n2)
            e21 = find_edge(n2, p0)

            ne0 = find_edge(n0, n1)
            ne1 = find_edge(n1, n2)
            ne2 = find_edge(n2, n0)

            new_faces.append(Face([p0, n0, n2], [e00, ne2, e21]))
            new_faces.append(Face([n0, p1, n1], [e01, e10, ne0]))
            new_faces.append(Face([p2, n2, n1], [e20, ne1, e11]))
            new_faces.append(Face([n0, n1, n2], [ne0, ne1, ne2]))

        self._assign_links(new_edges, new_faces)
        self.edges = new_edges
        self.faces = new_faces

        logger.info(
            "Subdivision complete",
            level=self.level,
            nodes=len(self.nodes),
            edges=len(self.edges),
            faces=len(self.faces),
        )

    @staticmethod
    def rotation_predicate(old_node_0: Node, old_node_1: Node, new_node_0: Node, new_node_1: Node) -> bool:
        """
        Decide whether an edge between ``old_node_*`` may be flipped to ``new_node_*``.

        Keeps node degrees near six, the edge length within a factor of two
        and the surrounding quadrilateral convex.
        """
        if (
            len(new_node_0.faces) >= MAX_FACES_FOR_NEW_NODE
            or len(new_node_1.faces) >= MAX_FACES_FOR_NEW_NODE
            or len(old_node_0.faces) <= MIN_FACES_FOR_OLD_NODE
            or len(old_node_1.faces) <= MIN_FACES_FOR_OLD_NODE
        ):
            return False

        old_edge_len = distance(old_node_0.point, old_node_1.point)
        new_edge_len = distance(new_node_0.point, new_node_1.point)
        ratio = old_edge_len / new_edge_len
        if ratio >= MAX_LENGTH_RATIO or ratio <= MIN_LENGTH_RATIO:
            return False

        v0 = (old_node_1.point - old_node_0.point) / old_edge_len
        v1 = normalize(new_node_0.point - old_node_0.point)
        v2 = normalize(new_node_1.point - old_node_0.point)
        if np.dot(v0, v1) < ROTATION_DOT_THRESHOLD or np.dot(v0, v2) < ROTATION_DOT_THRESHOLD:
            return False

        v3 = normalize(new_node_0.point - old_node_1.point)
        v4 = normalize(new_node_1.point - old_node_1.point)
        if np.dot(v0, v3) > -ROTATION_DOT_THRESHOLD or np.dot(v0, v4) > -ROTATION_DOT_THRESHOLD:
            return False

        return True

    def _connected(self, a: int, b: int) -> bool:
        return any(self.edges[e].other_node(a) == b for e in self.nodes[a].edges)

    def conditional_rotate_edge(self, edge_index: int) -> bool:
        """
        Flip an edge to connect the far corners of its two faces.

        Returns False, leaving the mesh untouched, when the flip is rejected
        by ``rotation_predicate`` or would duplicate an existing edge.
        """
        edge = self.edges[edge_index]
        if len(edge.faces) != 2:
            raise MeshInvariantError(f"Edge {edge_index} {edge.key} has faces {edge.faces}, expected 2")

        ef0, ef1 = edge.faces
        face0 = self.faces[ef0]
        face1 = self.faces[ef1]

        far0 = face0.opposite_node_index(edge.a, edge.b)
        far1 = face1.opposite_node_index(edge.a, edge.b)

        new_node_index_0 = face0.points[far0]
        old_node_index_0 = face0.points[(far0 + 1) % 3]
        new_node_index_1 = face1.points[far1]
        old_node_index_1 = face1.points[(far1 + 1) % 3]

        old_node_0 = self.nodes[old_node_index_0]
        old_node_1 = self.nodes[old_node_index_1]
        new_node_0 = self.nodes[new_node_index_0]
        new_node_1 = self.nodes[new_node_index_1]

        if not self.rotation_predicate(old_node_0, old_node_1, new_node_0, new_node_1):
            return False
        if self._connected(new_node_index_0, new_node_index_1):
            return False

        # old0 -> new1 moves from face1 to face0, old1 -> new0 from face0 to face1
        new_edge_index_0 = face1.edges[(far1 + 2) % 3]
        new_edge_index_1 = face0.edges[(far0 + 2) % 3]
        new_edge_0 = self.edges[new_edge_index_0]
        new_edge_1 = self.edges[new_edge_index_1]

        old_node_0.edges.remove(edge_index)
        old_node_1.edges.remove(edge_index)
        old_node_0.faces.remove(ef1)
        old_node_1.faces.remove(ef0)

        new_node_0.edges.append(edge_index)
        new_node_1.edges.append(edge_index)
        new_node_0.faces.append(ef1)
        new_node_1.faces.append(ef0)

        new_edge_0.faces.remove(ef1)
        new_edge_0.faces.append(ef0)
        new_edge_1.faces.remove(ef0)
        new_edge_1.faces.append(ef1)

        face0.points[(far0 + 2) % 3] = new_node_index_1
        face1.points[(far1 + 2) % 3] = new_node_index_0
        face0.edges[(far0 + 1) % 3] = new_edge_index_0
        face1.edges[(far1 + 1) % 3] = new_edge_index_1
        face0.edges[(far0 + 2) % 3] = edge_index
        face1.edges[(far1 + 2) % 3] = edge_index

        edge.a, edge.b = sorted_pair(new_node_index_0, new_node_index_1)
        return True

    def distort(self, degree: int) -> bool:
        """
        Perform ``degree`` accepted edge rotations.

        Each rotation starts at a random edge and probes forward until a flip
        is accepted. Returns False as soon as a full pass over the edges
        finds none; rotations done up to that point are kept.
        """
        if degree < 0:
            raise ValueError(f"Distortion degree must be non-negative, got {degree}")

        num_edges = len(self.edges)
        for done in range(degree):
            edge_index = self.prng.randrange(num_edges)
            attempts = 0
            while not self.conditional_rotate_edge(edge_index):
                attempts += 1
                if attempts >= num_edges:
                    logger.info("Distortion saturated", requested=degree, rotated=done)
                    return False
                edge_index = (edge_index + 1) % num_edges
        return True

    def relax(self, multiplier: float) -> float:
        """
        Run one pass of centroid relaxation.

        Every face pulls its corners toward the distance they would have
        from the centroid of an ideal equilateral face; shifts are projected
        onto the tangent plane and damped for nodes whose edges would swing
        around. Returns the summed movement of all nodes.
        """
        ideal_face_area = 4.0 * math.pi / len(self.faces)
        ideal_distance = 2.0 * math.sqrt(math.sqrt(3.0) * ideal_face_area) / 3.0 * RELAX_DISTANCE_FACTOR

        points = np.array([n.point for n in self.nodes], dtype=np.float64)
        face_points = np.array([f.points for f in self.faces], dtype=np.int64)
        edge_points = np.array([e.key for e in self.edges], dtype=np.int64)

        corners = points[face_points]  # (F, 3, 3)
        centroids = normalize_rows(corners.sum(axis=1))

        shifts = np.zeros_like(points)
        for k in range(3):
            v = centroids - corners[:, k, :]
            lengths = np.linalg.norm(v, axis=1)
            lengths[lengths == 0.0] = ideal_distance
            scale = multiplier * (1.0 - ideal_distance / lengths)
            np.add.at(shifts, face_points[:, k], v * scale[:, np.newaxis])

        projected = shifts - points * np.einsum("ij,ij->i", shifts, points)[:, np.newaxis]
        shifted = normalize_rows(points + projected)

        a = edge_points[:, 0]
        b = edge_points[:, 1]
        old_dirs = normalize_rows(points[b] - points[a])
        new_dirs = normalize_rows(shifted[b] - shifted[a])
        suppression = (1.0 - np.einsum("ij,ij->i", old_dirs, new_dirs)) * 0.5

        rot_supp = np.zeros(len(points))
        np.maximum.at(rot_supp, a, suppression)
        np.maximum.at(rot_supp, b, suppression)

        t = (1.0 - np.sqrt(np.clip(rot_supp, 0.0, 1.0)))[:, np.newaxis]
        new_points = normalize_rows(points * (1.0 - t) + shifted * t)

        total_shift = float(np.linalg.norm(new_points - points, axis=1).sum())
        for node, p in zip(self.nodes, new_points):
            node.point = p

        logger.debug("Relaxation pass", multiplier=multiplier, total_shift=total_shift)
        return total_shift

    def to_planet(self, **planet_kwargs) -> Planet:
        """
        Derive the dual tile graph.

        Face centroids become tile corners (indices ``0..num_faces``); each
        node becomes a tile whose corner ring is found by walking the faces
        around it through shared edges. Tile midpoints follow the corners.
        """
        vertices: List[np.ndarray] = [self.face_midpoint(f) for f in self.faces]
        rings: List[List[int]] = []

        for node_index in range(len(self.nodes)):
            ring = self.face_ring(node_index)
            midpoint = sum((vertices[fi] for fi in ring), vec3()) / len(ring)
            vertices.append(midpoint)
            rings.append(ring)

        logger.info("Dual tiles derived", tiles=len(rings), corners=len(self.faces))
        planet_kwargs.setdefault("prng", self.prng)
        return Planet(np.array(vertices), rings, **planet_kwargs)

    def face_ring(self, node_index: int) -> List[int]:
        """Ordered faces around a node, starting with its first face."""
        node = self.nodes[node_index]
        if not node.faces:
            raise MeshInvariantError(f"Node {node_index} has no faces")

        start = node.faces[0]
        face_index = start
        ring: List[int] = []

        while True:
            ring.append(face_index)
            if len(ring) > len(node.faces):
                raise MeshInvariantError(
                    f"Face ring around node {node_index} did not close after {len(ring)} faces"
                )

            face = self.faces[face_index]
            try:
                position = face.points.index(node_index)
            except ValueError:
                raise MeshInvariantError(
                    f"Face {face_index} {face.points} does not contain node {node_index}"
                ) from None
            edge_index = face.edges[(position + 2) % 3]

            edge_faces = self.edges[edge_index].faces
            if edge_faces[0] == face_index:
                face_index = edge_faces[1]
            elif edge_faces[1] == face_index:
                face_index = edge_faces[0]
            else:
                raise MeshInvariantError(
                    f"Edge {edge_index} {edge_faces} does not contain face {face_index}"
                )

            if face_index == start:
                return ring
