"""
Utility modules.
"""

from .random import create_prng, polygon_prng

__all__ = ['create_prng', 'polygon_prng']
