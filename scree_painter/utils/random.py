"""
Random number generation utilities.

Every routine that needs random numbers receives a ``numpy.random.Generator``
as an argument. Nothing in the generation code creates its own generator,
so a run is reproducible from a single seed and tests can substitute
their own streams.
"""

from typing import Optional

import numpy as np


def create_prng(seed: int, stream: Optional[int] = None) -> np.random.Generator:
    """
    Create a PRNG for a run or for one stream within a run.

    Args:
        seed: Seed of the run
        stream: Optional stream id, e.g. the index of a polygon

    Returns:
        A new numpy Generator
    """
    if stream is None:
        return np.random.default_rng(seed)
    return np.random.default_rng([seed, stream])


def polygon_prng(seed: int, polygon_index: int) -> np.random.Generator:
    """PRNG for filling one polygon. Independent of worker scheduling."""
    return create_prng(seed, polygon_index)
