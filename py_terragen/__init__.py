"""Procedural icosphere planets with dual tiles and tectonic plates."""

__version__ = "0.1.0"
