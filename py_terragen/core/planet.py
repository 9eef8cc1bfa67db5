"""
Dual tile graph of an icosphere, with tectonic plates.

Each primal face becomes a tile corner and each primal node a tile (a
pentagon or hexagon after plain subdivision). Borders are the dual edges;
every border separates exactly two tiles. Plates are grown over the tile
adjacency by a randomized flood fill and small plates are merged into
their neighbours afterwards.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .elevation import ElevationOptions, RidgedMultifractal
from .errors import MeshInvariantError
from .plates import Plate
from .vector import normalize, sorted_pair, vec3
from ..utils import random as default_random

logger = structlog.get_logger()

DEFAULT_PLATE_COUNT = 27
MAX_SEED_ATTEMPTS = 10000
MIN_PLATE_FRACTION = 30  # A plate needs at least num_tiles // 30 tiles after merging
DEFAULT_SCALE = 10.0


@dataclass
class Border:
    """A dual edge: two corner indices and the two tiles it separates (both sorted)."""

    vertices: Tuple[int, int]
    tiles: Tuple[int, int]

    @classmethod
    def new(cls, va: int, vb: int, ta: int, tb: int) -> "Border":
        return cls(sorted_pair(va, vb), sorted_pair(ta, tb))

    def other_tile(self, tile_index: int) -> Optional[int]:
        if self.tiles[0] == tile_index:
            return self.tiles[1]
        if self.tiles[1] == tile_index:
            return self.tiles[0]
        return None


@dataclass
class Tile:
    """A polygon of the dual graph, its corners in cyclic order."""

    vertices: List[int]
    midpoint: int
    borders: List[int] = field(default_factory=list)
    plate_id: int = 0
    movement_vector: np.ndarray = field(default_factory=vec3)

    def index_of(self, a: int) -> Optional[int]:
        try:
            return self.vertices.index(a)
        except ValueError:
            return None

    def has_edge(self, a: int, b: int) -> bool:
        """True if corners ``a`` and ``b`` are adjacent on the ring (either direction)."""
        idx = self.index_of(a)
        if idx is None:
            return False
        n = len(self.vertices)
        return self.vertices[(idx - 1) % n] == b or self.vertices[(idx + 1) % n] == b


class Planet:
    """
    Tiles, borders and plates derived from a ``MeshGraph`` snapshot.

    ``vertices`` holds the tile corners (face centroids) at indices
    ``0..num_corners`` followed by one midpoint per tile.
    """

    def __init__(
        self,
        vertices: np.ndarray,
        rings: List[List[int]],
        prng: Optional[AleaPRNG] = None,
        elevation_options: Optional[ElevationOptions] = None,
        scale: float = DEFAULT_SCALE,
    ):
        self.prng = prng if prng is not None else default_random.get_prng()
        self.vertices = vertices
        self.num_tiles = len(rings)
        self.num_corners = len(vertices) - self.num_tiles
        self.scale = scale

        self.tiles: List[Tile] = [
            Tile(list(ring), self.num_corners + i) for i, ring in enumerate(rings)
        ]
        self.borders: List[Border] = self._build_borders()

        self.vertex_to_tiles: List[List[int]] = [[] for _ in range(self.num_corners)]
        for idx, tile in enumerate(self.tiles):
            for vi in tile.vertices:
                self.vertex_to_tiles[vi].append(idx)

        self.tile_neighbours: List[List[int]] = []
        for idx, tile in enumerate(self.tiles):
            neighbours = []
            for bi in tile.borders:
                other = self.borders[bi].other_tile(idx)
                if other is not None and other not in neighbours:
                    neighbours.append(other)
            self.tile_neighbours.append(neighbours)

        self.elevation_field = RidgedMultifractal(self.prng.randint32(), elevation_options)
        self.elevations = self.elevation_field.sample_points(vertices[: self.num_corners])

        self._plates: List[Plate] = []

        logger.info(
            "Planet constructed",
            tiles=self.num_tiles,
            corners=self.num_corners,
            borders=len(self.borders),
        )

    def _build_borders(self) -> List[Border]:
        border_tiles: Dict[Tuple[int, int], List[int]] = {}
        for idx, tile in enumerate(self.tiles):
            prev = tile.vertices[-1]
            for curr in tile.vertices:
                border_tiles.setdefault(sorted_pair(curr, prev), []).append(idx)
                prev = curr

        borders = []
        for (va, vb), tiles in border_tiles.items():
            if len(tiles) != 2:
                raise MeshInvariantError(
                    f"Expected border ({va}, {vb}) to have 2 tiles, but was {tiles}"
                )
            bix = len(borders)
            borders.append(Border.new(va, vb, tiles[0], tiles[1]))
            self.tiles[tiles[0]].borders.append(bix)
            self.tiles[tiles[1]].borders.append(bix)
        return borders

    @property
    def plates(self) -> List[Plate]:
        return self._plates

    @property
    def num_plates(self) -> int:
        return len(self._plates)

    def plate_of(self, tile: Tile) -> Optional[Plate]:
        if tile.plate_id == 0:
            return None
        return self._plates[tile.plate_id - 1]

    def tile_normal(self, tile: Tile) -> np.ndarray:
        return normalize(self.vertices[tile.midpoint].copy())

    def tile_midpoint(self, tile: Tile) -> np.ndarray:
        return self.vertices[tile.midpoint] * self.scale

    def tile_border_points(self, tile: Tile) -> List[np.ndarray]:
        return [self.vertices[vi] * self.scale for vi in tile.vertices]

    def tile_elevation(self, tile: Tile) -> float:
        """Mean corner noise plus the owning plate's base elevation."""
        elevation = float(np.mean(self.elevations[tile.vertices]))
        plate = self.plate_of(tile)
        if plate is not None:
            elevation += plate.base_elevation
        return elevation

    def get_elevation_scale(self) -> Tuple[float, float]:
        """Return (minimum tile elevation, elevation range)."""
        elevations = [self.tile_elevation(t) for t in self.tiles]
        min_elevation = min(elevations)
        return min_elevation, max(elevations) - min_elevation

    def _assign_plate_to_tile(self, plate: Plate, tile_index: int) -> None:
        tile = self.tiles[tile_index]
        tile.plate_id = plate.id
        tile.movement_vector = plate.movement_at(self.vertices[tile.midpoint])

    def initialize_plates(self, num_plates: int, max_attempts: int = MAX_SEED_ATTEMPTS) -> List[Tuple[int, int]]:
        """
        Seed up to ``num_plates`` plates and return the initial growth queue.

        A seed is the cluster of tiles sharing a random corner, accepted only
        if none of them belongs to a plate yet. Seeding stops early after
        ``max_attempts`` consecutive rejections.

        Returns:
            List of (tile index, plate id) candidates bordering the seeds
        """
        if num_plates <= 0:
            raise ValueError(f"Plate count must be positive, got {num_plates}")

        for tile in self.tiles:
            tile.plate_id = 0
            tile.movement_vector = vec3()

        self._plates = []
        assign_queue: List[Tuple[int, int]] = []
        failed_count = 0

        while len(self._plates) < num_plates and failed_count < max_attempts:
            corner = self.vertex_to_tiles[self.prng.randrange(self.num_corners)]
            if any(self.tiles[t].plate_id > 0 for t in corner):
                failed_count += 1
                continue
            failed_count = 0

            plate = Plate.random(len(self._plates) + 1, self.prng)
            self._plates.append(plate)
            for tile_idx in corner:
                plate.add_tile(tile_idx, self.tiles[tile_idx].borders)
                self._assign_plate_to_tile(plate, tile_idx)

            for tile_idx in corner:
                for other_idx in self.tile_neighbours[tile_idx]:
                    if self.tiles[other_idx].plate_id == 0:
                        assign_queue.append((other_idx, plate.id))

        if len(self._plates) < num_plates:
            logger.info("Plate seeding saturated", requested=num_plates, seeded=len(self._plates))
        else:
            logger.debug("Plates seeded", plates=len(self._plates))

        return assign_queue

    def grow_plates(self, num_plates: int = DEFAULT_PLATE_COUNT, max_attempts: int = MAX_SEED_ATTEMPTS) -> None:
        """
        Partition all tiles into plates.

        Candidates are drawn from the queue at ``floor(r^2 * len)``, which
        favours older entries without being a strict BFS, so plates grow
        as irregular blobs.
        """
        assign_queue = self.initialize_plates(num_plates, max_attempts)

        while assign_queue:
            idx = int(self.prng.random() ** 2 * len(assign_queue))
            tile_idx, plate_id = assign_queue.pop(idx)

            if self.tiles[tile_idx].plate_id != 0:
                continue

            plate = self._plates[plate_id - 1]
            self._assign_plate_to_tile(plate, tile_idx)
            plate.add_tile(tile_idx, self.tiles[tile_idx].borders)
            for other_idx in self.tile_neighbours[tile_idx]:
                if self.tiles[other_idx].plate_id == 0:
                    assign_queue.append((other_idx, plate_id))

        logger.info("Plates grown", plates=len(self._plates), tiles=self.num_tiles)

    def merge_plates(self, min_fraction: int = MIN_PLATE_FRACTION) -> None:
        """
        Merge undersized plates into a neighbour.

        The smallest plate is repeatedly folded into the first plate it
        touches until every plate has at least ``num_tiles // min_fraction``
        tiles or only one plate is left. Plates are renumbered 1..n at the
        end and every tile is reassigned.

        Raises:
            ValueError: If some tile has no plate yet (``grow_plates`` not run)
        """
        unassigned = sum(1 for t in self.tiles if t.plate_id == 0)
        if unassigned:
            raise ValueError(
                f"Cannot merge plates: {unassigned} tiles have no plate, run grow_plates() first"
            )

        min_plate_size = self.num_tiles // min_fraction
        plates = list(self._plates)
        owner: Dict[int, Plate] = {t: p for p in plates for t in p.tiles}

        while len(plates) > 1:
            plates.sort(key=len)
            smallest = plates[0]
            if len(smallest) >= min_plate_size:
                break

            target = self._neighbouring_plate(smallest, owner)
            logger.info(
                "Merging plates",
                plate=smallest.id,
                size=len(smallest),
                into=target.id,
                into_size=len(target),
            )
            target.merge(smallest)
            for t in smallest.tiles:
                owner[t] = target
            plates.pop(0)

        for new_id, plate in enumerate(plates, start=1):
            plate.id = new_id
        self._plates = plates
        self.assign_plates()

        logger.info("Plates merged", plates=len(plates), min_plate_size=min_plate_size)

    def _neighbouring_plate(self, plate: Plate, owner: Dict[int, Plate]) -> Plate:
        for own_tile in plate.tiles:
            for other_tile in self.tile_neighbours[own_tile]:
                other = owner.get(other_tile)
                if other is not None and other is not plate:
                    return other
        raise MeshInvariantError(f"Plate {plate.id} has no neighbouring plate")

    def assign_plates(self) -> None:
        """Write plate ids and movement vectors from the plate tile lists onto the tiles."""
        for plate in self._plates:
            for tile_idx in plate.tiles:
                self._assign_plate_to_tile(plate, tile_idx)
