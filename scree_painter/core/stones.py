"""
Scree stones.

A stone is placed as a circle (center and mean radius) and later receives
an irregular polygonal outline. The outline is generated once and stays
fixed.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np
from shapely.geometry import Polygon

from ..config.parameters import ScreeParameters


@dataclass
class Stone:
    """A stone with a position, a mean radius and the corners of its outline."""
    x: float
    y: float
    r: float  # mean radius, corners can be further away
    corners: Optional[np.ndarray] = field(default=None, repr=False, compare=False)  # (n, 2)

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        return (self.x - self.r, self.y - self.r, self.x + self.r, self.y + self.r)

    @property
    def corner_count(self) -> int:
        return 0 if self.corners is None else len(self.corners)

    def is_valid(self) -> bool:
        return not (math.isnan(self.x) or math.isnan(self.y) or math.isnan(self.r))

    def to_outline_polygon(self) -> Optional[Polygon]:
        """The outline as a generic polygon, None if no outline has been generated."""
        if self.corners is None:
            return None
        return Polygon(self.corners)


def clamped_gaussian(rng: np.random.Generator) -> float:
    """
    A bell-shaped random value in [0, 1].

    Standard normal samples outside +-3 are rejected, the rest are scaled
    by 1/3 and folded onto the positive half.
    """
    limit = 3.0
    while True:
        v = rng.standard_normal()
        if -limit <= v <= limit:
            break
    return min(abs(v / limit), 1.0)


def generate_stone(stone: Stone, params: ScreeParameters,
                   rng: np.random.Generator) -> Optional[Stone]:
    """
    Synthesize the outline of a stone.

    The radius varies uniformly by +-stone_radius_variability_perc percent.
    Corners are placed at regular angular increments from a random start
    angle. Each corner is rotated forward by up to
    stone_angle_variability_perc percent of the increment; the rotation is
    never backwards.

    Args:
        stone: Stone to update. Its radius and corners are replaced.
        params: Generation parameters
        rng: Random number generator

    Returns:
        The stone, or None if its position or radius is undefined
    """
    if not stone.is_valid():
        return None

    max_variance = params.stone_radius_variability_perc / 100.0
    radius_variance = -max_variance + 2.0 * max_variance * rng.random()
    r = stone.r * (1 + radius_variance)
    stone.r = r

    min_corners = params.stone_min_corner_count
    max_corners = params.stone_max_corner_count
    n_corners = int(math.floor(min_corners + (max_corners - min_corners) * rng.random() + 0.5))

    angle_increment = 2 * math.pi / n_corners
    current_angle = math.pi * rng.random()
    corners = np.empty((n_corners, 2))
    for i in range(n_corners):
        angle_variance = params.stone_angle_variability_perc / 100.0 * rng.random()
        angle = current_angle + angle_increment * angle_variance
        current_angle += angle_increment
        corners[i, 0] = stone.x + r * math.cos(angle)
        corners[i, 1] = stone.y + r * math.sin(angle)

    stone.corners = corners
    return stone
