"""
Process default random handle.

Core operations take an explicit ``AleaPRNG``; this module supplies the
fallback used when a caller does not pass one. Python's ``random`` and
NumPy's global generator are never used by the terrain core.
"""

from typing import Optional, Union

from ..core.alea_prng import AleaPRNG

DEFAULT_SEED = "terragen"

# Global PRNG instance
_prng: Optional[AleaPRNG] = None


def set_random_seed(seed: Union[str, int]) -> AleaPRNG:
    """
    Reset the process default generator.

    Args:
        seed: Seed string or number

    Returns:
        The new default AleaPRNG
    """
    global _prng
    _prng = AleaPRNG(seed)
    return _prng


def get_prng() -> AleaPRNG:
    """Return the process default generator, creating it on first use."""
    global _prng
    if _prng is None:
        _prng = AleaPRNG(DEFAULT_SEED)
    return _prng


def make_prng(seed: Optional[Union[str, int]] = None) -> AleaPRNG:
    """A fresh generator for ``seed``, or the process default when no seed is given."""
    if seed is None:
        return get_prng()
    return AleaPRNG(seed)
