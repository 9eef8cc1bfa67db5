"""Shared fixtures."""

import pytest

from py_terragen.core.alea_prng import AleaPRNG
from py_terragen.core.mesh_graph import MeshGraph


@pytest.fixture
def prng():
    return AleaPRNG("test_seed")


@pytest.fixture
def icosahedron(prng):
    """Unsubdivided mesh."""
    return MeshGraph(prng=prng)


@pytest.fixture
def level1_mesh(prng):
    mesh = MeshGraph(prng=prng)
    mesh.subdivide()
    return mesh


@pytest.fixture
def level2_mesh(prng):
    mesh = MeshGraph(prng=prng)
    mesh.subdivide()
    mesh.subdivide()
    return mesh


@pytest.fixture
def level2_planet(level2_mesh):
    return level2_mesh.to_planet()
