"""
Core terrain generation functionality.
"""

from .alea_prng import AleaPRNG
from .errors import MeshInvariantError
from .mesh_graph import MeshGraph, Node, Edge, Face, rebuild_links
from .planet import Planet, Tile, Border
from .plates import Plate
from .elevation import ElevationOptions, RidgedMultifractal
from .mesh_emitter import MeshBuffers, generate_regular, generate_dual, generate_tiles
from .pipeline import GenerationOptions, GenerationResult, generate_planet

__all__ = ['AleaPRNG', 'MeshInvariantError',
           'MeshGraph', 'Node', 'Edge', 'Face', 'rebuild_links',
           'Planet', 'Tile', 'Border', 'Plate',
           'ElevationOptions', 'RidgedMultifractal',
           'MeshBuffers', 'generate_regular', 'generate_dual', 'generate_tiles',
           'GenerationOptions', 'GenerationResult', 'generate_planet']
