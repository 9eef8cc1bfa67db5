"""Tectonic plates: tile ownership, perimeter bookkeeping and rigid motion."""

from dataclasses import dataclass, field
from typing import Iterable, List, Set

import numpy as np

from .alea_prng import AleaPRNG
from .vector import length, normalize, vec3

# Base elevation sampling
OCEAN_RATIO = 0.6
OCEAN_ELEVATION_RANGE = (-500.0, -100.0)
CONTINENT_ELEVATION_RANGE = (-50.0, 250.0)

# Rotation sampling
MIN_AXIS_LENGTH = 0.01
ANGULAR_VELOCITY_RANGE = (0.1, 0.4)


@dataclass(eq=False)
class Plate:
    """
    A group of tiles moving as one rigid body.

    ``borders`` holds only the border indices on the plate's perimeter: a
    border shared by two tiles of the same plate cancels out when the
    second tile is added.
    """

    id: int
    base_elevation: float
    axis_of_rotation: np.ndarray
    angular_velocity: float
    tiles: List[int] = field(default_factory=list)
    borders: Set[int] = field(default_factory=set)

    @classmethod
    def random(cls, plate_id: int, prng: AleaPRNG) -> "Plate":
        """Create a plate with sampled base elevation and rotation."""
        if prng.random() < OCEAN_RATIO:
            base_elevation = prng.uniform(*OCEAN_ELEVATION_RANGE)
        else:
            base_elevation = prng.uniform(*CONTINENT_ELEVATION_RANGE)

        axis = vec3()
        while length(axis) < MIN_AXIS_LENGTH:
            axis = vec3(prng.uniform(-1.0, 1.0), prng.uniform(-1.0, 1.0), prng.uniform(-1.0, 1.0))

        return cls(
            id=plate_id,
            base_elevation=base_elevation,
            axis_of_rotation=normalize(axis),
            angular_velocity=prng.uniform(*ANGULAR_VELOCITY_RANGE),
        )

    def add_tile(self, tile_index: int, borders: Iterable[int] = ()) -> None:
        self.tiles.append(tile_index)
        self.borders ^= set(borders)

    def merge(self, other: "Plate") -> None:
        """Absorb all tiles of ``other``; shared perimeter borders become interior."""
        self.tiles.extend(other.tiles)
        self.borders ^= other.borders

    def movement_at(self, point: np.ndarray) -> np.ndarray:
        """Surface velocity of the plate's rotation at ``point``."""
        base_on_axis = self.axis_of_rotation * float(np.dot(point, self.axis_of_rotation))
        perpendicular = point - base_on_axis
        return np.cross(self.axis_of_rotation, perpendicular) * self.angular_velocity

    def __len__(self) -> int:
        return len(self.tiles)
