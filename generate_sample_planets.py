#!/usr/bin/env python3
"""
Generate sample planets and plot them as longitude/latitude maps.

Each planet goes through the full pipeline:
1. Icosahedron subdivision
2. Edge distortion and relaxation
3. Dual tile derivation
4. Plate growth and merging

Usage:
    python generate_sample_planets.py [seed] [level]

If no seed is provided, defaults to "default_seed"
"""

import sys

import matplotlib.pyplot as plt
import numpy as np

from py_terragen.core.alea_prng import AleaPRNG
from py_terragen.core.pipeline import GenerationOptions, generate_planet
from py_terragen.logging_config import configure_logging


def lon_lat(points):
    """Longitude and latitude in degrees for an (N, 3) array of points."""
    points = points / np.linalg.norm(points, axis=1)[:, np.newaxis]
    lon = np.degrees(np.arctan2(points[:, 0], points[:, 2]))
    lat = np.degrees(np.arcsin(np.clip(points[:, 1], -1.0, 1.0)))
    return lon, lat


def create_planet_map(seed="default_seed", level=5, plate_count=27):
    """Generate a planet and save plate and elevation maps side by side."""

    print(f"\nGenerating planet...")
    print(f"  Seed: {seed}")
    print(f"  Subdivision level: {level}")

    options = GenerationOptions(level=level, max_level=max(level, 7), plate_count=plate_count)
    result = generate_planet(
        options,
        prng=AleaPRNG(seed),
        progress=lambda percent, stage: print(f"  {percent:3d}% {stage}"),
    )
    planet = result.planet
    print(f"     {planet.num_tiles} tiles, {planet.num_plates} plates, "
          f"{len(result.relax_history)} relaxation passes")

    midpoints = planet.vertices[planet.num_corners:]
    lon, lat = lon_lat(midpoints)
    plate_ids = np.array([t.plate_id for t in planet.tiles])
    elevations = np.array([planet.tile_elevation(t) for t in planet.tiles])
    marker_size = max(1.0, 4000.0 / planet.num_tiles)

    print("  Creating visualization...")
    fig, (ax_plates, ax_elevation) = plt.subplots(1, 2, figsize=(20, 6))

    ax_plates.scatter(lon, lat, c=plate_ids, cmap="tab20", s=marker_size, marker="h")
    ax_plates.set_title(f"Plates ({planet.num_plates})")

    im = ax_elevation.scatter(lon, lat, c=elevations, cmap="terrain", s=marker_size, marker="h")
    ax_elevation.set_title("Elevation")
    plt.colorbar(im, ax=ax_elevation, label="Elevation", shrink=0.8, pad=0.02)

    for ax in (ax_plates, ax_elevation):
        ax.set_xlim(-180, 180)
        ax.set_ylim(-90, 90)
        ax.set_aspect("equal")
        ax.set_xticks([])
        ax.set_yticks([])

    fig.suptitle(f"Seed: {seed} - level {level} - {planet.num_tiles:,} tiles", fontsize=14)

    output_file = f"planet_{seed}_l{level}.png"
    plt.savefig(output_file, dpi=200, bbox_inches="tight", pad_inches=0.1)
    print(f"  Saved to: {output_file}")

    plt.close()

    return result


def main():
    """Generate a sample planet."""
    configure_logging("WARNING", "plain")

    seed = sys.argv[1] if len(sys.argv) > 1 else "default_seed"
    level = int(sys.argv[2]) if len(sys.argv) > 2 else 5

    print("Generating planet with full pipeline")
    print("=" * 60)
    create_planet_map(seed=seed, level=level)


if __name__ == "__main__":
    main()
