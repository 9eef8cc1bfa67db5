"""Tests for the indexed icosphere mesh."""

import numpy as np
import pytest

from py_terragen.core.alea_prng import AleaPRNG
from py_terragen.core.errors import MeshInvariantError
from py_terragen.core.mesh_graph import Edge, Face, MeshGraph, rebuild_links


def assert_mesh_consistent(mesh):
    """Every back-link agrees with the edge and face lists."""
    node_edges, node_faces, edge_faces = rebuild_links(mesh.num_nodes(), mesh.edges, mesh.faces)
    for node, ne, nf in zip(mesh.nodes, node_edges, node_faces):
        assert sorted(node.edges) == sorted(ne)
        assert sorted(node.faces) == sorted(nf)
    for edge, ef in zip(mesh.edges, edge_faces):
        assert sorted(edge.faces) == sorted(ef)
        assert len(edge.faces) == 2

    for face in mesh.faces:
        assert len(set(face.points)) == 3
        for k in range(3):
            edge = mesh.edges[face.edges[k]]
            assert edge.key == tuple(sorted((face.points[k], face.points[(k + 1) % 3])))

    keys = [e.key for e in mesh.edges]
    assert len(keys) == len(set(keys))


class TestEdge:
    """Test edge canonicalization."""

    def test_endpoints_sorted(self):
        edge = Edge(5, 2)
        assert edge.key == (2, 5)

    def test_equality_ignores_direction(self):
        assert Edge(1, 2) == Edge(2, 1)
        assert len({Edge(1, 2), Edge(2, 1)}) == 1

    def test_self_loop_rejected(self):
        with pytest.raises(MeshInvariantError):
            Edge(3, 3)

    def test_other_node(self):
        edge = Edge(4, 7)
        assert edge.other_node(4) == 7
        assert edge.other_node(7) == 4
        with pytest.raises(MeshInvariantError):
            edge.other_node(9)


class TestFace:
    def test_opposite_node_index(self):
        face = Face([10, 11, 12], [0, 1, 2])
        assert face.opposite_node_index(10, 11) == 2
        assert face.opposite_node_index(12, 10) == 1


class TestIcosahedron:
    """Test the level 0 mesh."""

    def test_counts(self, icosahedron):
        assert icosahedron.num_nodes() == 12
        assert icosahedron.num_edges() == 30
        assert icosahedron.num_faces() == 20
        assert icosahedron.current_level() == 0

    def test_node_degree(self, icosahedron):
        for node in icosahedron.nodes:
            assert len(node.edges) == 5
            assert len(node.faces) == 5

    def test_links(self, icosahedron):
        assert_mesh_consistent(icosahedron)

    def test_nodes_on_unit_sphere(self, icosahedron):
        for node in icosahedron.nodes:
            assert np.linalg.norm(node.point) == pytest.approx(1.0)

    def test_initial_elevation(self, icosahedron):
        for node in icosahedron.nodes:
            assert 0.0 <= node.elevation < 0.5

    def test_faces_wind_outward(self, icosahedron):
        for face in icosahedron.faces:
            p0, p1, p2 = (icosahedron.nodes[i].point for i in face.points)
            normal = np.cross(p1 - p0, p2 - p0)
            assert np.dot(normal, icosahedron.face_midpoint(face)) > 0.0

    def test_regular_edge_lengths(self, icosahedron):
        assert icosahedron.edge_length_variance() == pytest.approx(0.0, abs=1e-9)


class TestRebuildLinks:
    def test_icosahedron_links(self, icosahedron):
        node_edges, node_faces, edge_faces = rebuild_links(12, icosahedron.edges, icosahedron.faces)
        assert all(len(ne) == 5 for ne in node_edges)
        assert all(len(nf) == 5 for nf in node_faces)
        assert all(len(ef) == 2 for ef in edge_faces)


class TestSubdivide:
    """Test subdivision."""

    def test_counts(self, level1_mesh, level2_mesh):
        assert (level1_mesh.num_nodes(), level1_mesh.num_edges(), level1_mesh.num_faces()) == (42, 120, 80)
        assert (level2_mesh.num_nodes(), level2_mesh.num_edges(), level2_mesh.num_faces()) == (162, 480, 320)
        assert level2_mesh.current_level() == 2

    def test_euler_characteristic(self, level2_mesh):
        assert level2_mesh.num_nodes() - level2_mesh.num_edges() + level2_mesh.num_faces() == 2

    def test_degrees(self, level2_mesh):
        """Icosahedron corners keep degree 5, every new node has degree 6."""
        degrees = [len(n.faces) for n in level2_mesh.nodes]
        assert degrees[:12] == [5] * 12
        assert all(d == 6 for d in degrees[12:])

    def test_links(self, level2_mesh):
        assert_mesh_consistent(level2_mesh)

    def test_new_nodes_on_unit_sphere(self, level2_mesh):
        for node in level2_mesh.nodes:
            assert np.linalg.norm(node.point) == pytest.approx(1.0)

    def test_deterministic(self):
        """Same seed gives the same elevations."""
        meshes = []
        for _ in range(2):
            mesh = MeshGraph(prng=AleaPRNG("subdivide"))
            mesh.subdivide()
            meshes.append(mesh)
        assert [n.elevation for n in meshes[0].nodes] == [n.elevation for n in meshes[1].nodes]

    def test_elevation_jitter_bounded(self, level1_mesh):
        """A midpoint stays within the jitter band around its parents' mean."""
        for edge_index in range(30):
            node = level1_mesh.nodes[12 + edge_index]
            assert abs(node.elevation) < 0.5 + 0.5 * 3.0 * 0.75


class TestDistort:
    """Test edge rotation."""

    def test_icosahedron_cannot_rotate(self, icosahedron):
        """Every node has five faces, so no flip is ever accepted."""
        before = [list(f.points) for f in icosahedron.faces]
        assert icosahedron.distort(1) is False
        assert [f.points for f in icosahedron.faces] == before

    def test_keeps_counts(self, level2_mesh):
        assert level2_mesh.distort(10) is True
        assert level2_mesh.num_nodes() == 162
        assert level2_mesh.num_edges() == 480
        assert level2_mesh.num_faces() == 320

    def test_keeps_links(self, level2_mesh):
        level2_mesh.distort(20)
        assert_mesh_consistent(level2_mesh)

    def test_changes_degrees(self, level2_mesh):
        level2_mesh.distort(5)
        degrees = [len(n.faces) for n in level2_mesh.nodes]
        assert 7 in degrees
        assert sum(degrees) == 3 * level2_mesh.num_faces()

    def test_zero_degree(self, level2_mesh):
        assert level2_mesh.distort(0) is True

    def test_negative_degree(self, level2_mesh):
        with pytest.raises(ValueError):
            level2_mesh.distort(-1)

    def test_single_rotation(self, level2_mesh):
        """A flipped edge joins the two far corners of its faces."""
        for edge_index, edge in enumerate(level2_mesh.edges):
            old_key = edge.key
            far = sorted(
                level2_mesh.faces[f].points[level2_mesh.faces[f].opposite_node_index(*old_key)]
                for f in edge.faces
            )
            if level2_mesh.conditional_rotate_edge(edge_index):
                break
        else:
            pytest.fail("No edge could be rotated")

        assert level2_mesh.edges[edge_index].key == tuple(far)
        assert len(level2_mesh.nodes[old_key[0]].faces) == 5
        assert len(level2_mesh.nodes[old_key[1]].faces) == 5
        assert_mesh_consistent(level2_mesh)

    def test_rejected_rotation_leaves_mesh_untouched(self, level2_mesh):
        """Edges around an icosahedron corner have an endpoint with only five faces."""
        edge_index = level2_mesh.nodes[0].edges[0]
        before = [list(f.points) for f in level2_mesh.faces]
        assert level2_mesh.conditional_rotate_edge(edge_index) is False
        assert [f.points for f in level2_mesh.faces] == before


class TestRelax:
    """Test relaxation."""

    def test_regular_mesh_is_stable(self, icosahedron):
        assert icosahedron.relax(0.5) == pytest.approx(0.0, abs=1e-9)

    def test_zero_multiplier(self, level2_mesh):
        assert level2_mesh.relax(0.0) == pytest.approx(0.0, abs=1e-9)

    def test_points_stay_on_sphere(self, level2_mesh):
        level2_mesh.distort(20)
        for _ in range(3):
            level2_mesh.relax(0.5)
        for node in level2_mesh.nodes:
            assert np.linalg.norm(node.point) == pytest.approx(1.0)

    def test_converges(self, level2_mesh):
        level2_mesh.distort(20)
        shifts = [level2_mesh.relax(0.5) for _ in range(30)]
        assert shifts[0] > 0.0
        assert shifts[-1] < shifts[0]

    def test_topology_unchanged(self, level2_mesh):
        before = [e.key for e in level2_mesh.edges]
        level2_mesh.relax(0.5)
        assert [e.key for e in level2_mesh.edges] == before


class TestFaceRing:
    """Test the walk around a node."""

    def test_ring_covers_node_faces(self, level2_mesh):
        for i, node in enumerate(level2_mesh.nodes):
            ring = level2_mesh.face_ring(i)
            assert sorted(ring) == sorted(node.faces)

    def test_consecutive_faces_share_an_edge(self, level2_mesh):
        level2_mesh.distort(10)
        for i in range(level2_mesh.num_nodes()):
            ring = level2_mesh.face_ring(i)
            for j, fi in enumerate(ring):
                fj = ring[(j + 1) % len(ring)]
                shared = set(level2_mesh.faces[fi].edges) & set(level2_mesh.faces[fj].edges)
                assert len(shared) == 1

    def test_broken_links_raise(self, icosahedron):
        face_index = icosahedron.nodes[0].faces[0]
        face = icosahedron.faces[face_index]
        position = face.points.index(0)
        icosahedron.edges[face.edges[(position + 2) % 3]].faces = [98, 99]
        with pytest.raises(MeshInvariantError):
            icosahedron.face_ring(0)


class TestToPlanet:
    """Test dual tile derivation."""

    def test_counts(self, level1_mesh):
        planet = level1_mesh.to_planet()
        assert planet.num_tiles == 42
        assert planet.num_corners == 80
        assert len(planet.borders) == 120
        assert len(planet.vertices) == 122

    def test_pentagons_and_hexagons(self, level2_planet):
        sizes = [len(t.vertices) for t in level2_planet.tiles]
        assert sizes.count(5) == 12
        assert sizes.count(6) == len(sizes) - 12

    def test_corners_are_face_centroids(self, level1_mesh):
        planet = level1_mesh.to_planet()
        for i, face in enumerate(level1_mesh.faces):
            np.testing.assert_allclose(planet.vertices[i], level1_mesh.face_midpoint(face))
