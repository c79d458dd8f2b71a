"""
Runtime settings and generation parameters.
"""

from .config import Settings, settings
from .parameters import ScreeParameters

__all__ = ['Settings', 'settings', 'ScreeParameters']
