"""
Ridged multifractal elevation field sampled on the sphere.

Built on OpenSimplex gradient noise. Each octave folds the noise around
zero (``offset - |n|``), squares it and weights it by the previous
octave, which produces sharp ridge lines typical of mountain chains.
"""

from dataclasses import dataclass

import numpy as np
import structlog
from opensimplex import OpenSimplex

logger = structlog.get_logger()


@dataclass
class ElevationOptions:
    """Parameters of the ridged multifractal field."""

    octaves: int = 6
    frequency: float = 1.5  # Sphere radius in noise space
    lacunarity: float = 2.0  # Frequency multiplier per octave
    gain: float = 2.0
    offset: float = 1.0
    exponent: float = 1.0  # Spectral falloff H
    scale: float = 200.0  # Output multiplier, same unit as plate base elevation


class RidgedMultifractal:
    """Seeded ridged multifractal noise over 3D points."""

    def __init__(self, seed: int, options: ElevationOptions = None):
        self.options = options or ElevationOptions()
        self.noise = OpenSimplex(seed=seed)

        freq = 1.0
        self.spectral_weights = []
        for _ in range(self.options.octaves):
            self.spectral_weights.append(freq ** -self.options.exponent)
            freq *= self.options.lacunarity

    def sample(self, x: float, y: float, z: float) -> float:
        """Noise value at a point, roughly in [-1, 1]."""
        opts = self.options
        x *= opts.frequency
        y *= opts.frequency
        z *= opts.frequency

        value = 0.0
        weight = 1.0
        for spectral_weight in self.spectral_weights:
            signal = opts.offset - abs(self.noise.noise3(x, y, z))
            signal *= signal
            signal *= weight

            weight = min(max(signal * opts.gain, 0.0), 1.0)
            value += signal * spectral_weight

            x *= opts.lacunarity
            y *= opts.lacunarity
            z *= opts.lacunarity

        return value * 1.25 - 1.0

    def sample_points(self, points: np.ndarray) -> np.ndarray:
        """Scaled field values for an ``(N, 3)`` array of points."""
        values = np.fromiter(
            (self.sample(float(p[0]), float(p[1]), float(p[2])) for p in points),
            dtype=np.float64,
            count=len(points),
        )
        values *= self.options.scale
        logger.debug("Elevation field sampled", points=len(points),
                     min=float(values.min()) if len(values) else None,
                     max=float(values.max()) if len(values) else None)
        return values
