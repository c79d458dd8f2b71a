"""
Scree Painter: procedural scree stones and gully lines for relief shading.
"""

from .config import ScreeParameters, Settings, settings
from .core.generator_manager import ScreeGeneratorManager, ScreeResult
from .core.scree_data import ScreeData
from .log_setup import configure_logging

__all__ = ['ScreeParameters', 'Settings', 'settings', 'ScreeGeneratorManager',
           'ScreeResult', 'ScreeData', 'configure_logging']
