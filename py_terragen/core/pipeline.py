"""
Planet generation pipeline.

Chains the terrain stages the way an interactive session would drive them:
subdivide the icosahedron, roughen it with alternating edge rotations and
relaxation passes, relax to convergence, derive the tile graph and grow
plates on it.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import structlog

from .alea_prng import AleaPRNG
from .elevation import ElevationOptions
from .mesh_graph import MeshGraph
from .planet import DEFAULT_PLATE_COUNT, MAX_SEED_ATTEMPTS, MIN_PLATE_FRACTION, Planet
from ..utils import random as default_random

logger = structlog.get_logger()

ProgressCallback = Callable[[int, str], None]


@dataclass
class GenerationOptions:
    """Knobs of a full planet generation run."""

    level: int = 4  # Number of subdivisions
    max_level: int = 7
    distort_iterations: int = 6  # Rounds of distort + relax
    distort_fraction: float = 0.05  # First round rotates this share of all edges
    relax_multiplier: float = 0.5
    relax_tolerance: float = 0.001  # Stop once the shift improves by less than this (relative)
    max_relax_iterations: int = 300
    plate_count: int = DEFAULT_PLATE_COUNT
    merge_plates: bool = True
    min_plate_fraction: int = MIN_PLATE_FRACTION
    seed_attempts: int = MAX_SEED_ATTEMPTS
    elevation: ElevationOptions = field(default_factory=ElevationOptions)

    def validate(self) -> None:
        if not 0 <= self.level <= self.max_level:
            raise ValueError(f"Subdivision level must be within 0..{self.max_level}, got {self.level}")
        if self.distort_iterations < 0:
            raise ValueError(f"Distortion rounds must be non-negative, got {self.distort_iterations}")
        if not 0.0 <= self.distort_fraction <= 1.0:
            raise ValueError(f"Distortion fraction must be within 0..1, got {self.distort_fraction}")
        if self.plate_count <= 0:
            raise ValueError(f"Plate count must be positive, got {self.plate_count}")


@dataclass
class GenerationResult:
    """Outcome of ``generate_planet``."""

    mesh: MeshGraph
    planet: Planet
    timings: Dict[str, float] = field(default_factory=dict)
    relax_history: List[float] = field(default_factory=list)
    distortion_complete: bool = True


def distortion_schedule(num_edges: int, rounds: int, fraction: float) -> List[int]:
    """Edge rotations per round, shrinking linearly to zero."""
    return [int(num_edges * fraction * (rounds - i) / rounds) for i in range(rounds)]


def relax_until_stable(
    mesh: MeshGraph, multiplier: float, tolerance: float, max_iterations: int
) -> List[float]:
    """
    Relax until the total shift stops improving.

    Returns the shift of every pass that was run.
    """
    history: List[float] = []
    for _ in range(max_iterations):
        shift = mesh.relax(multiplier)
        history.append(shift)
        if len(history) > 1:
            previous = history[-2]
            if previous <= 0.0 or (previous - shift) / previous < tolerance:
                break
    return history


def generate_planet(
    options: Optional[GenerationOptions] = None,
    prng: Optional[AleaPRNG] = None,
    progress: Optional[ProgressCallback] = None,
) -> GenerationResult:
    """
    Run the whole pipeline.

    Args:
        options: Generation options, defaults when omitted
        prng: Random handle driving every stochastic stage
        progress: Optional callback receiving (percent, stage name)

    Returns:
        GenerationResult with the final mesh, planet and stage timings
    """
    options = options or GenerationOptions()
    options.validate()
    prng = prng if prng is not None else default_random.get_prng()

    def report(percent: int, stage: str) -> None:
        if progress is not None:
            progress(percent, stage)

    timings: Dict[str, float] = {}
    started = time.perf_counter()

    # Stage 1: Subdivision
    logger.info("Subdividing icosahedron", level=options.level)
    mesh = MeshGraph(prng=prng)
    for _ in range(options.level):
        mesh.subdivide()
    timings["subdivide"] = time.perf_counter() - started
    report(20, "subdivided")

    # Stage 2: Distortion
    stage_start = time.perf_counter()
    distortion_complete = True
    relax_history: List[float] = []
    schedule = distortion_schedule(mesh.num_edges(), options.distort_iterations, options.distort_fraction)
    logger.info("Distorting mesh", rounds=len(schedule), rotations=sum(schedule))
    for batch in schedule:
        if not mesh.distort(batch):
            distortion_complete = False
        relax_history.append(mesh.relax(options.relax_multiplier))
    timings["distort"] = time.perf_counter() - stage_start
    report(40, "distorted")

    # Stage 3: Relaxation
    stage_start = time.perf_counter()
    relax_history.extend(
        relax_until_stable(
            mesh, options.relax_multiplier, options.relax_tolerance, options.max_relax_iterations
        )
    )
    timings["relax"] = time.perf_counter() - stage_start
    logger.info(
        "Relaxation finished",
        passes=len(relax_history),
        final_shift=relax_history[-1] if relax_history else None,
        edge_length_variance=mesh.edge_length_variance(),
    )
    report(60, "relaxed")

    # Stage 4: Dual tiles
    stage_start = time.perf_counter()
    planet = mesh.to_planet(elevation_options=options.elevation)
    timings["to_planet"] = time.perf_counter() - stage_start
    report(80, "tiles")

    # Stage 5: Plates
    stage_start = time.perf_counter()
    planet.grow_plates(options.plate_count, options.seed_attempts)
    if options.merge_plates:
        planet.merge_plates(options.min_plate_fraction)
    timings["plates"] = time.perf_counter() - stage_start
    timings["total"] = time.perf_counter() - started
    report(100, "plates")

    logger.info(
        "Planet generated",
        tiles=planet.num_tiles,
        plates=planet.num_plates,
        seconds=round(timings["total"], 3),
    )
    return GenerationResult(
        mesh=mesh,
        planet=planet,
        timings=timings,
        relax_history=relax_history,
        distortion_complete=distortion_complete,
    )
