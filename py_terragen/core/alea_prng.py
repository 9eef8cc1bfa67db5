"""
Alea pseudo-random generator used as the explicit randomness handle.

Based on Johannes Baagøe's Alea algorithm. Every stochastic step of the
terrain pipeline (subdivision jitter, edge distortion, plate seeding and
growth) draws from an instance of this class, so a planet generated twice
from the same seed and call sequence is identical.
"""

from typing import Sequence, TypeVar

T = TypeVar("T")


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Seedable Alea generator.

    The handle is passed explicitly into ``MeshGraph`` and ``Planet``;
    there is no hidden module state in the generator itself.
    """

    def __init__(self, seed):
        """Initialize with seed string, number or iterable of those."""
        self.seed = seed
        self.call_count = 0

        if hasattr(seed, "__iter__") and not isinstance(seed, str):
            args = list(seed)
        else:
            args = [seed]

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            for char in str(data):
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        for arg in args:
            self.s0 -= mash(arg)
            if self.s0 < 0:
                self.s0 += 1
            self.s1 -= mash(arg)
            if self.s1 < 0:
                self.s1 += 1
            self.s2 -= mash(arg)
            if self.s2 < 0:
                self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def uniform(self, low: float, high: float) -> float:
        """Uniform float in [low, high)."""
        return low + (high - low) * self.random()

    def signed(self, magnitude: float) -> float:
        """Uniform float in [-magnitude, magnitude)."""
        return self.random() * 2.0 * magnitude - magnitude

    def randrange(self, stop: int) -> int:
        """Uniform integer in [0, stop)."""
        if stop <= 0:
            raise ValueError(f"randrange() needs a positive bound, got {stop}")
        return min(int(self.random() * stop), stop - 1)

    def randint32(self) -> int:
        """Unsigned 32-bit integer, used to seed derived generators."""
        return int(self.random() * 2**32)

    def choice(self, seq: Sequence[T]) -> T:
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[self.randrange(len(seq))]
